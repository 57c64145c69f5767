"""Sync Coordinator - validates and executes export/import requests.

Workflow for an export:
1. Generate a correlation id
2. Resolve and validate the target plugin (fails fast with ValidationError)
3. Load fleet data from the inventory using the request filters
4. Invoke the plugin without holding any registry lock
5. Capture plugin failures into the result rather than raising
6. Store the result in the export result cache

History persistence is a separate, caller-driven step (see HistoryService)
so an audit failure never hides the outcome of the operation itself.
"""

import logging
import time
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from ...api.exceptions import FleetError, NotFoundError, PluginExecutionError, ValidationError
from ..adapters.result_cache import DEFAULT_CACHE_SIZE, ResultCache
from ..domain.entities import (
    ExportConfig,
    ExportData,
    ExportFilters,
    ExportMetadata,
    ExportRequest,
    ExportResult,
    ImportConfig,
    ImportRequest,
    ImportResult,
    PluginInfo,
    PreviewResult,
)
from ..domain.ports import IDeviceInventory, ISyncPlugin
from ..plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


def _failure_code(error: Exception, plugin_name: str, operation: str) -> tuple[str, str]:
    """Map an exception raised during execution to (code, message)."""
    if isinstance(error, FleetError):
        return error.code, error.message
    wrapped = PluginExecutionError(plugin_name, operation, cause=error)
    return wrapped.code, wrapped.message


def _check_result(result, expected: type, plugin_name: str, operation: str) -> None:
    if not isinstance(result, expected):
        raise TypeError(
            f"Plugin '{plugin_name}' {operation} returned {type(result).__name__}, "
            f"expected {expected.__name__}"
        )


class SyncCoordinator:
    """Executes export, import and preview requests against registered plugins.

    Example:
        coordinator = SyncCoordinator(registry, inventory)
        result = await coordinator.export(ExportRequest(plugin_name="json", format="json"))
        same = coordinator.get_export_result(result.export_id)
    """

    def __init__(
        self,
        registry: PluginRegistry,
        inventory: IDeviceInventory,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ):
        self.registry = registry
        self.inventory = inventory
        self.export_results: ResultCache[ExportResult] = ResultCache(cache_size)
        self.import_results: ResultCache[ImportResult] = ResultCache(cache_size)

    # ========== Plugins ==========

    def list_plugins(self) -> list[PluginInfo]:
        return self.registry.list()

    def get_plugin(self, name: str) -> ISyncPlugin:
        return self.registry.get(name)

    def _resolve(self, plugin_name: str) -> ISyncPlugin:
        if not plugin_name:
            raise ValidationError("plugin_name is required", field="plugin_name")
        try:
            return self.registry.get(plugin_name)
        except NotFoundError as e:
            raise ValidationError(
                f"Unknown plugin '{plugin_name}'", field="plugin_name", cause=e
            )

    @staticmethod
    def _check_config(plugin: ISyncPlugin, plugin_name: str, config: dict) -> None:
        try:
            plugin.validate_config(config)
        except ValidationError:
            raise
        except Exception as e:
            raise ValidationError(
                f"Invalid config for plugin '{plugin_name}': {e}", field="config", cause=e
            )

    # ========== Validation ==========

    def validate_export(self, request: ExportRequest) -> ISyncPlugin:
        """Resolve the plugin and check the request against it.

        Returns:
            The plugin handle, captured so it can be invoked lock-free

        Raises:
            ValidationError: empty/unknown plugin, rejected config, or a
                format the plugin does not declare
        """
        plugin = self._resolve(request.plugin_name)
        self._check_config(plugin, request.plugin_name, request.config)

        formats = plugin.info().supported_formats
        if formats and request.format not in formats:
            raise ValidationError(
                f"Plugin '{request.plugin_name}' does not support format '{request.format}'",
                field="format",
                details={"supported_formats": list(formats)},
            )
        return plugin

    def validate_import(self, request: ImportRequest) -> ISyncPlugin:
        plugin = self._resolve(request.plugin_name)
        if request.source is None or not request.source.type:
            raise ValidationError("source.type is required", field="source.type")
        self._check_config(plugin, request.plugin_name, request.config)
        return plugin

    # ========== Correlation ids ==========

    def _new_id(self) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in self.export_results and candidate not in self.import_results:
                return candidate

    # ========== Export ==========

    async def _load_data(
        self, export_id: str, export_type: str, filters: ExportFilters
    ) -> ExportData:
        now = datetime.now(UTC)
        devices = await self.inventory.list_devices(filters)
        return ExportData(
            devices=devices,
            metadata=ExportMetadata(
                export_id=export_id,
                export_type=export_type,
                requested_at=now,
                total_devices=len(devices),
                filters_applied=not filters.is_empty,
            ),
            timestamp=now,
        )

    @staticmethod
    def _export_config(export_id: str, request: ExportRequest) -> ExportConfig:
        return ExportConfig(
            export_id=export_id,
            plugin_name=request.plugin_name,
            format=request.format,
            config=dict(request.config),
            filters=request.filters,
            output=request.output,
            options=request.options,
        )

    async def export(self, request: ExportRequest, export_type: str = "manual") -> ExportResult:
        """Run an export and cache its result.

        Plugin failures come back as ``success=False`` results carrying an
        error code. Cancellation propagates before anything is cached.

        Raises:
            ValidationError: If the request is rejected before execution
        """
        export_id = self._new_id()
        started = time.monotonic()
        plugin = self.validate_export(request)

        logger.info(f"Starting {export_type} export {export_id} with plugin {request.plugin_name}")
        try:
            data = await self._load_data(export_id, export_type, request.filters)
            result = await plugin.export(data, self._export_config(export_id, request))
            _check_result(result, ExportResult, request.plugin_name, "export")
        except Exception as e:
            code, message = _failure_code(e, request.plugin_name, "export")
            logger.error(f"Export {export_id} failed: {message}")
            result = ExportResult(
                success=False,
                plugin_name=request.plugin_name,
                format=request.format,
                errors=[message],
                error_code=code,
            )

        result.export_id = export_id
        result.plugin_name = request.plugin_name
        result.format = request.format
        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.created_at = datetime.now(UTC)
        result.metadata.setdefault("export_type", export_type)

        self.export_results.put(result.export_id, result)
        logger.info(
            f"Export {result.export_id} finished: success={result.success}, "
            f"records={result.record_count}, duration={result.duration_ms}ms"
        )
        return result

    async def preview(self, request: ExportRequest) -> PreviewResult:
        """Report what an export would produce. Touches neither cache nor disk."""
        plugin = self.validate_export(request)
        preview_request = replace(
            request, options=replace(request.options, dry_run=True)
        )
        data = await self._load_data("preview", "preview", request.filters)
        try:
            preview = await plugin.preview(data, self._export_config("preview", preview_request))
            _check_result(preview, PreviewResult, request.plugin_name, "preview")
            return preview
        except Exception as e:
            _, message = _failure_code(e, request.plugin_name, "preview")
            logger.error(f"Preview with plugin {request.plugin_name} failed: {message}")
            return PreviewResult(success=False, warnings=[message])

    def record_export_failure(
        self,
        request: ExportRequest,
        code: str,
        message: str,
        export_type: str = "manual",
    ) -> ExportResult:
        """Cache a failed result for an export that never reached its plugin."""
        result = ExportResult(
            success=False,
            plugin_name=request.plugin_name,
            format=request.format,
            export_id=self._new_id(),
            errors=[message],
            error_code=code,
            created_at=datetime.now(UTC),
            metadata={"export_type": export_type},
        )
        self.export_results.put(result.export_id, result)
        logger.warning(f"Export {result.export_id} failed before execution: {message}")
        return result

    def get_export_result(self, export_id: str) -> ExportResult:
        result = self.export_results.get(export_id)
        if result is None:
            raise NotFoundError("Export result", export_id)
        return result

    # ========== Import ==========

    async def import_data(self, request: ImportRequest) -> ImportResult:
        """Run an import and cache its result.

        Raises:
            ValidationError: If the request is rejected before execution
        """
        import_id = self._new_id()
        started = time.monotonic()
        plugin = self.validate_import(request)
        config = ImportConfig(
            import_id=import_id,
            plugin_name=request.plugin_name,
            format=request.format,
            config=dict(request.config),
            options=request.options,
        )

        mode = "dry-run " if request.options.is_side_effect_free else ""
        logger.info(f"Starting {mode}import {import_id} with plugin {request.plugin_name}")
        try:
            result = await plugin.import_data(request.source, config)
            _check_result(result, ImportResult, request.plugin_name, "import")
        except Exception as e:
            code, message = _failure_code(e, request.plugin_name, "import")
            logger.error(f"Import {import_id} failed: {message}")
            result = ImportResult(
                success=False,
                plugin_name=request.plugin_name,
                format=request.format,
                errors=[message],
                error_code=code,
            )

        result.import_id = import_id
        result.plugin_name = request.plugin_name
        result.format = request.format
        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.created_at = datetime.now(UTC)

        self.import_results.put(result.import_id, result)
        logger.info(
            f"Import {result.import_id} finished: success={result.success}, "
            f"imported={result.records_imported}, changes={len(result.changes)}"
        )
        return result

    async def preview_import(self, request: ImportRequest) -> ImportResult:
        """Dry-run import: reports the change list without mutating state."""
        dry = replace(request, options=replace(request.options, dry_run=True))
        return await self.import_data(dry)

    def get_import_result(self, import_id: str) -> ImportResult:
        result = self.import_results.get(import_id)
        if result is None:
            raise NotFoundError("Import result", import_id)
        return result
