"""Sync module - pluggable export/import engine for the device fleet.

Architecture:
    domain/     - Entities and port interfaces (plugin, history, inventory)
    plugins/    - Plugin registry, config-schema validation, built-in JSON plugin
    use_cases/  - Coordinator, history service, scheduler, download gatekeeper
    adapters/   - Result cache, in-memory and PostgreSQL adapters
    api/        - FastAPI routers, schemas and dependencies
"""

from .domain.entities import (
    ExportRequest,
    ExportResult,
    ImportRequest,
    ImportResult,
    PluginInfo,
)
from .domain.ports import IDeviceInventory, IHistoryRepository, ISyncPlugin
from .plugins import JSONSyncPlugin, PluginRegistry
from .use_cases import DownloadGatekeeper, ExportScheduler, HistoryService, SyncCoordinator

__all__ = [
    "DownloadGatekeeper",
    "ExportRequest",
    "ExportResult",
    "ExportScheduler",
    "HistoryService",
    "IDeviceInventory",
    "IHistoryRepository",
    "ISyncPlugin",
    "ImportRequest",
    "ImportResult",
    "JSONSyncPlugin",
    "PluginInfo",
    "PluginRegistry",
    "SyncCoordinator",
]
