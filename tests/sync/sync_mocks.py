"""Mock ports and builders shared by the sync engine tests."""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from fleet.sync.adapters import InMemoryHistoryRepository
from fleet.sync.domain.entities import (
    ConfigSchema,
    DeviceData,
    ExportConfig,
    ExportData,
    ExportHistoryRecord,
    ExportRequest,
    ExportResult,
    ImportConfig,
    ImportResult,
    ImportSource,
    OutputConfig,
    PluginCapabilities,
    PluginInfo,
    PreviewResult,
    PropertySchema,
)
from fleet.sync.domain.ports import ISyncPlugin

FILE_CONTENT = b"hello world"


class MockFilePlugin(ISyncPlugin):
    """Plugin that writes ``hello world`` to the requested destination."""

    def __init__(self, name: str = "mockfile", fail_with: Exception | None = None):
        self.name = name
        self.fail_with = fail_with
        self.initialized = 0
        self.cleaned_up = 0
        self.export_calls = 0
        self.import_calls = 0

    def info(self) -> PluginInfo:
        return PluginInfo(name=self.name, version="0.1.0", supported_formats=("txt",))

    def config_schema(self) -> ConfigSchema:
        return ConfigSchema(properties={"mode": PropertySchema(type="string", enum=["ok", "bad"])})

    def validate_config(self, config: dict[str, Any]) -> None:
        if config.get("mode") == "bad":
            raise ValueError("mode 'bad' is not allowed")

    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(supports_scheduling=True, supported_outputs=["file"])

    def initialize(self, logger) -> None:
        self.initialized += 1

    def cleanup(self) -> None:
        self.cleaned_up += 1

    async def export(self, data: ExportData, config: ExportConfig) -> ExportResult:
        self.export_calls += 1
        if self.fail_with:
            raise self.fail_with
        result = ExportResult(
            success=True,
            plugin_name=config.plugin_name,
            format=config.format,
            record_count=len(data.devices),
            file_size=len(FILE_CONTENT),
        )
        if not config.options.is_side_effect_free:
            path = Path(config.output.destination)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(FILE_CONTENT)
            result.output_path = str(path)
        return result

    async def preview(self, data: ExportData, config: ExportConfig) -> PreviewResult:
        return PreviewResult(
            success=True,
            record_count=len(data.devices),
            estimated_size=len(FILE_CONTENT) * len(data.devices),
        )

    async def import_data(self, source: ImportSource, config: ImportConfig) -> ImportResult:
        self.import_calls += 1
        if self.fail_with:
            raise self.fail_with
        return ImportResult(
            success=True,
            plugin_name=config.plugin_name,
            format=config.format,
            records_imported=0 if config.options.is_side_effect_free else 1,
        )


class FailingHistoryRepository(InMemoryHistoryRepository):
    """History store whose writes always fail."""

    async def save_export(self, record):
        raise ConnectionError("history database unavailable")

    async def save_import(self, record):
        raise ConnectionError("history database unavailable")


def make_devices() -> list[DeviceData]:
    seen = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
    return [
        DeviceData(mac="aa:bb:cc:00:00:01", ip="10.0.0.1", type="SHSW-1", name="Porch", status="online", last_seen=seen),
        DeviceData(mac="aa:bb:cc:00:00:02", ip="10.0.0.2", type="SHPLG-S", name="Heater", status="offline", last_seen=seen),
        DeviceData(mac="aa:bb:cc:00:00:03", ip="10.0.0.3", type="SHSW-1", name="Garage", status="online"),
    ]


def export_request(destination: str, plugin_name: str = "mockfile", **kwargs) -> ExportRequest:
    return ExportRequest(
        plugin_name=plugin_name,
        format=kwargs.pop("format", "txt"),
        output=OutputConfig(type="file", destination=destination),
        **kwargs,
    )


def history_record(plugin_name: str, success: bool, export_id: str) -> ExportHistoryRecord:
    return ExportHistoryRecord(
        export_id=export_id,
        plugin_name=plugin_name,
        format="txt",
        success=success,
        requested_by="tester",
    )
