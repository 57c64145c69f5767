"""Service container wiring the sync engine together.

One SyncServices instance is built per application at startup and torn
down at shutdown; nothing in the engine is module-global.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .adapters import (
    InMemoryDeviceInventory,
    InMemoryHistoryRepository,
    PostgresDeviceInventory,
    PostgresHistoryRepository,
)
from .config import SyncConfig
from .domain.ports import IDeviceInventory, IHistoryRepository
from .plugins import JSONSyncPlugin, PluginRegistry
from .use_cases import DownloadGatekeeper, ExportScheduler, HistoryService, SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass
class SyncServices:
    config: SyncConfig
    registry: PluginRegistry
    inventory: IDeviceInventory
    coordinator: SyncCoordinator
    history: HistoryService
    scheduler: ExportScheduler
    downloads: DownloadGatekeeper
    pool: Optional[Any] = None

    async def shutdown(self) -> None:
        """Stop the scheduler, then clean up every plugin."""
        await self.scheduler.stop()
        errors = self.registry.shutdown()
        if errors:
            logger.warning(f"{len(errors)} plugin(s) failed to clean up")


def build_services(
    config: SyncConfig,
    pool: Optional[Any] = None,
    history_repo: Optional[IHistoryRepository] = None,
    inventory: Optional[IDeviceInventory] = None,
    register_builtin: bool = True,
) -> SyncServices:
    """Assemble the engine.

    With a pool, history and inventory are PostgreSQL-backed; otherwise
    in-memory adapters are used unless explicit ones are passed in.
    """
    if history_repo is None:
        history_repo = PostgresHistoryRepository(pool) if pool else InMemoryHistoryRepository()
    if inventory is None:
        inventory = PostgresDeviceInventory(pool) if pool else InMemoryDeviceInventory()

    registry = PluginRegistry()
    if register_builtin:
        registry.register(JSONSyncPlugin(inventory))

    coordinator = SyncCoordinator(registry, inventory, cache_size=config.result_cache_size)
    history = HistoryService(history_repo)
    scheduler = ExportScheduler(
        coordinator,
        history,
        run_timeout=config.scheduler_run_timeout_seconds,
        tick_seconds=config.scheduler_tick_seconds,
        requester_mode=config.scheduler_requester_mode,
        scheduler_identity=config.scheduler_identity,
    )
    downloads = DownloadGatekeeper(coordinator, history, base_dir=config.export_base_dir)

    return SyncServices(
        config=config,
        registry=registry,
        inventory=inventory,
        coordinator=coordinator,
        history=history,
        scheduler=scheduler,
        downloads=downloads,
        pool=pool,
    )
