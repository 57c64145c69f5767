"""Built-in JSON export/import plugin.

Exports the device inventory as a versioned JSON envelope and imports the
same envelope back, diffing devices by MAC address against the inventory.
"""

import asyncio
import gzip
import hashlib
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ...api.exceptions import ValidationError
from ..domain.entities import (
    ChangeType,
    ConfigSchema,
    DeviceData,
    ExportConfig,
    ExportData,
    ExportResult,
    ImportChange,
    ImportConfig,
    ImportResult,
    ImportSource,
    PluginCapabilities,
    PluginCategory,
    PluginInfo,
    PreviewResult,
    PropertySchema,
)
from ..domain.ports import IDeviceInventory, ISyncPlugin
from .schema import apply_defaults, validate_against_schema

ENVELOPE_VERSION = "1.0"
PREVIEW_SAMPLE_SIZE = 3

# Fields compared when deciding whether an imported device is an update
COMPARED_FIELDS = ("ip", "type", "name", "model", "firmware", "status", "settings")


class JSONPluginConfig(BaseModel):
    """Typed settings, built from the free-form config after validation."""

    output_path: str = "./data/exports"
    pretty: bool = True
    compression: Literal["none", "gzip"] = "none"
    file_prefix: str = "fleet"
    prune: bool = False


def _comparable(device: DeviceData) -> dict[str, Any]:
    full = device.to_dict()
    return {key: full[key] for key in COMPARED_FIELDS}


class JSONSyncPlugin(ISyncPlugin):
    """Export/import plugin for the native JSON envelope.

    Envelope layout::

        {"version": "1.0", "created_at": ..., "metadata": {...}, "devices": [...]}
    """

    def __init__(self, inventory: IDeviceInventory):
        self.inventory = inventory
        self.logger = logging.getLogger(__name__)

    def info(self) -> PluginInfo:
        return PluginInfo(
            name="json",
            version="1.0.0",
            description="Export and import the device inventory as JSON",
            author="Fleet Sync",
            license="MIT",
            supported_formats=("json",),
            tags=("backup", "json"),
            category=PluginCategory.BACKUP,
        )

    def config_schema(self) -> ConfigSchema:
        return ConfigSchema(
            properties={
                "output_path": PropertySchema(
                    type="string",
                    description="Directory for generated files when no destination is given",
                    default="./data/exports",
                ),
                "pretty": PropertySchema(
                    type="boolean", description="Indent the output", default=True
                ),
                "compression": PropertySchema(
                    type="string",
                    description="Compress the written file",
                    default="none",
                    enum=["none", "gzip"],
                ),
                "file_prefix": PropertySchema(
                    type="string",
                    description="Prefix of generated file names",
                    default="fleet",
                    pattern=r"[A-Za-z0-9_-]+",
                ),
                "prune": PropertySchema(
                    type="boolean",
                    description="On import, delete devices absent from the source",
                    default=False,
                ),
            },
        )

    def validate_config(self, config: dict[str, Any]) -> None:
        validate_against_schema(config, self.config_schema())
        self._settings(config)

    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(
            supports_scheduling=True,
            supported_outputs=["file"],
            concurrency_level=1,
        )

    def initialize(self, logger: logging.Logger) -> None:
        self.logger = logger
        self.logger.debug("JSON plugin initialized")

    def _settings(self, config: dict[str, Any]) -> JSONPluginConfig:
        try:
            return JSONPluginConfig(**apply_defaults(config, self.config_schema()))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid JSON plugin config: {e}", cause=e)

    # ========== Export ==========

    def _envelope(self, data: ExportData, config: ExportConfig) -> dict[str, Any]:
        envelope: dict[str, Any] = {
            "version": ENVELOPE_VERSION,
            "created_at": data.timestamp.isoformat(),
        }
        if config.options.include_metadata:
            envelope["metadata"] = {
                "export_id": data.metadata.export_id,
                "export_type": data.metadata.export_type,
                "total_devices": data.metadata.total_devices,
                "filters_applied": data.metadata.filters_applied,
            }
        envelope["devices"] = [d.to_dict() for d in data.devices]
        return envelope

    @staticmethod
    def _compressed(settings: JSONPluginConfig, config: ExportConfig) -> bool:
        return settings.compression == "gzip" or config.output.compression == "gzip"

    def _target_path(self, settings: JSONPluginConfig, config: ExportConfig) -> Path:
        if config.output.destination:
            return Path(config.output.destination)
        stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        suffix = ".json.gz" if self._compressed(settings, config) else ".json"
        filename = f"{settings.file_prefix}-export-{stamp}-{config.export_id[:8]}{suffix}"
        return Path(settings.output_path) / filename

    async def export(self, data: ExportData, config: ExportConfig) -> ExportResult:
        settings = self._settings(config.config)
        indent = None if (config.options.compact_output or not settings.pretty) else 2
        payload = json.dumps(self._envelope(data, config), indent=indent).encode()
        if self._compressed(settings, config):
            payload = gzip.compress(payload, mtime=0)

        result = ExportResult(
            success=True,
            plugin_name=config.plugin_name,
            format=config.format,
            export_id=config.export_id,
            record_count=len(data.devices),
            file_size=len(payload),
            checksum=hashlib.sha256(payload).hexdigest(),
        )

        if config.options.is_side_effect_free:
            result.warnings.append("Dry run: no file written")
            return result

        path = self._target_path(settings, config)
        await asyncio.to_thread(self._write, path, payload)
        result.output_path = str(path)
        self.logger.info(f"Wrote {result.record_count} devices to {path}")
        return result

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)

    async def preview(self, data: ExportData, config: ExportConfig) -> PreviewResult:
        devices = [d.to_dict() for d in data.devices]
        canonical = json.dumps(devices, sort_keys=True, separators=(",", ":"))
        warnings = []
        if not devices:
            warnings.append("No devices match the given filters")
        return PreviewResult(
            success=True,
            record_count=len(devices),
            estimated_size=len(canonical.encode()),
            sample_data=devices[:PREVIEW_SAMPLE_SIZE],
            warnings=warnings,
        )

    # ========== Import ==========

    async def _load(self, source: ImportSource) -> Any:
        if source.type == "file":
            if not source.path:
                raise ValidationError("File import requires a path", field="source.path")
            raw = await asyncio.to_thread(Path(source.path).read_bytes)
            if source.path.endswith(".gz"):
                raw = gzip.decompress(raw)
            return json.loads(raw)
        if source.type == "data":
            if isinstance(source.data, (str, bytes)):
                return json.loads(source.data)
            return source.data
        raise ValidationError(f"Unsupported import source type '{source.type}'", field="source.type")

    async def import_data(self, source: ImportSource, config: ImportConfig) -> ImportResult:
        settings = self._settings(config.config)
        document = await self._load(source)
        raw_devices = document.get("devices", []) if isinstance(document, dict) else document
        if not isinstance(raw_devices, list):
            raise ValidationError("Import document has no device list", field="devices")

        result = ImportResult(
            success=True,
            plugin_name=config.plugin_name,
            format=config.format,
            import_id=config.import_id,
        )

        incoming: dict[str, DeviceData] = {}
        for index, raw in enumerate(raw_devices):
            if not isinstance(raw, dict) or not raw.get("mac"):
                result.records_skipped += 1
                result.warnings.append(f"Device at index {index} has no MAC address")
                continue
            device = DeviceData.from_dict(raw)
            incoming[device.mac] = device

        existing = {d.mac.lower(): d for d in await self.inventory.list_devices()}
        changes = self._diff(existing, incoming, settings, config.options.force_overwrite)
        result.records_skipped += len(incoming) - sum(
            1 for c in changes if c.type != ChangeType.DELETE
        )
        result.changes = changes

        if config.options.is_side_effect_free:
            return result

        applied = await self.inventory.apply_changes(changes)
        result.records_imported = applied
        self.logger.info(f"Applied {applied} device changes from {source.type} import")
        return result

    @staticmethod
    def _diff(
        existing: dict[str, DeviceData],
        incoming: dict[str, DeviceData],
        settings: JSONPluginConfig,
        force_overwrite: bool,
    ) -> list[ImportChange]:
        changes = []
        for mac, device in incoming.items():
            current: Optional[DeviceData] = existing.get(mac)
            if current is None:
                changes.append(ImportChange(
                    type=ChangeType.CREATE,
                    resource="device",
                    resource_id=mac,
                    new_value=device.to_dict(),
                ))
            elif force_overwrite or _comparable(current) != _comparable(device):
                changes.append(ImportChange(
                    type=ChangeType.UPDATE,
                    resource="device",
                    resource_id=mac,
                    old_value=current.to_dict(),
                    new_value=device.to_dict(),
                ))

        if settings.prune:
            for mac, current in existing.items():
                if mac not in incoming:
                    changes.append(ImportChange(
                        type=ChangeType.DELETE,
                        resource="device",
                        resource_id=mac,
                        old_value=current.to_dict(),
                    ))

        return sorted(changes, key=lambda c: c.sort_key)
