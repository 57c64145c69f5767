"""Domain layer - Pure domain entities and port interfaces.

This layer contains:
- Entities: requests, results, history records and schedules
- Ports: plugin, history and inventory contracts

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    ChangeType,
    ConfigSchema,
    DeviceData,
    ExportConfig,
    ExportData,
    ExportFilters,
    ExportHistoryRecord,
    ExportMetadata,
    ExportOptions,
    ExportRequest,
    ExportResult,
    ExportSchedule,
    HistoryPage,
    ImportChange,
    ImportConfig,
    ImportHistoryRecord,
    ImportOptions,
    ImportRequest,
    ImportResult,
    ImportSource,
    OutputConfig,
    PluginCapabilities,
    PluginCategory,
    PluginInfo,
    PreviewResult,
    PropertySchema,
    ScheduleUpdate,
    SyncStatistics,
)
from .ports import IDeviceInventory, IHistoryRepository, ISyncPlugin

__all__ = [
    # Plugin metadata
    "ConfigSchema",
    "PluginCapabilities",
    "PluginCategory",
    "PluginInfo",
    "PropertySchema",
    # Fleet data
    "DeviceData",
    "ExportData",
    "ExportMetadata",
    # Export
    "ExportConfig",
    "ExportFilters",
    "ExportOptions",
    "ExportRequest",
    "ExportResult",
    "OutputConfig",
    "PreviewResult",
    # Import
    "ChangeType",
    "ImportChange",
    "ImportConfig",
    "ImportOptions",
    "ImportRequest",
    "ImportResult",
    "ImportSource",
    # History
    "ExportHistoryRecord",
    "HistoryPage",
    "ImportHistoryRecord",
    "SyncStatistics",
    # Schedules
    "ExportSchedule",
    "ScheduleUpdate",
    # Ports
    "IDeviceInventory",
    "IHistoryRepository",
    "ISyncPlugin",
]
