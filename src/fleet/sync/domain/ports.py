"""Port interfaces for the sync engine.

Ports define the contracts between the use cases and the infrastructure.
Plugins, history stores and the device inventory are all adapters behind
these abstract base classes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .entities import (
    ConfigSchema,
    DeviceData,
    ExportConfig,
    ExportData,
    ExportFilters,
    ExportHistoryRecord,
    ExportResult,
    ImportChange,
    ImportConfig,
    ImportHistoryRecord,
    ImportResult,
    ImportSource,
    PluginCapabilities,
    PluginInfo,
    PreviewResult,
    SyncStatistics,
)


class ISyncPlugin(ABC):
    """Capability provider for one export/import format family.

    Lifecycle: ``initialize`` is called exactly once by the registry before
    first use and ``cleanup`` exactly once at shutdown. Plugins are
    operator-installed; side-effect-free execution for dry-run and
    validate-only options is part of this contract, not enforced by a
    sandbox.
    """

    @abstractmethod
    def info(self) -> PluginInfo:
        ...

    @abstractmethod
    def config_schema(self) -> ConfigSchema:
        ...

    @abstractmethod
    def validate_config(self, config: dict[str, Any]) -> None:
        """Reject an unusable config.

        Raises:
            ValidationError (or any exception) describing the problem
        """
        ...

    @abstractmethod
    def capabilities(self) -> PluginCapabilities:
        ...

    @abstractmethod
    async def export(self, data: ExportData, config: ExportConfig) -> ExportResult:
        """Serialize ``data`` to the configured output.

        Must write nothing when ``config.options`` is dry-run or validate-only.
        """
        ...

    @abstractmethod
    async def preview(self, data: ExportData, config: ExportConfig) -> PreviewResult:
        """Report what an export would produce without writing anything."""
        ...

    @abstractmethod
    async def import_data(self, source: ImportSource, config: ImportConfig) -> ImportResult:
        """Reconstruct state from ``source``.

        Must not mutate backing state when ``config.options`` is dry-run or
        validate-only; the reported change list must be deterministic.
        """
        ...

    def initialize(self, logger: logging.Logger) -> None:
        """Prepare the plugin for use. Raising aborts registration."""

    def cleanup(self) -> None:
        """Release resources held by the plugin."""


class IHistoryRepository(ABC):
    """Port for the append-only export/import audit log."""

    @abstractmethod
    async def save_export(self, record: ExportHistoryRecord) -> ExportHistoryRecord:
        ...

    @abstractmethod
    async def save_import(self, record: ImportHistoryRecord) -> ImportHistoryRecord:
        ...

    @abstractmethod
    async def list_exports(
        self,
        offset: int,
        limit: int,
        plugin_name: str | None = None,
        success: bool | None = None,
    ) -> tuple[list[ExportHistoryRecord], int]:
        """Filter, order newest first, then slice.

        Returns:
            Tuple of (records in the requested window, total matching records)
        """
        ...

    @abstractmethod
    async def list_imports(
        self,
        offset: int,
        limit: int,
        plugin_name: str | None = None,
        success: bool | None = None,
    ) -> tuple[list[ImportHistoryRecord], int]:
        ...

    @abstractmethod
    async def get_export(self, export_id: str) -> ExportHistoryRecord | None:
        ...

    @abstractmethod
    async def get_import(self, import_id: str) -> ImportHistoryRecord | None:
        ...

    @abstractmethod
    async def export_statistics(self) -> SyncStatistics:
        ...

    @abstractmethod
    async def import_statistics(self) -> SyncStatistics:
        ...


class IDeviceInventory(ABC):
    """Port for the device inventory the plugins read from and import into."""

    @abstractmethod
    async def list_devices(self, filters: ExportFilters | None = None) -> list[DeviceData]:
        """Return devices matching ``filters``, ordered by MAC address."""
        ...

    @abstractmethod
    async def apply_changes(self, changes: list[ImportChange]) -> int:
        """Apply create/update/delete changes.

        Returns:
            Number of devices written or removed
        """
        ...
