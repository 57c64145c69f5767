"""Tests for the built-in JSON plugin, run through the coordinator."""

import gzip
import hashlib
import json

import pytest

from fleet.api.exceptions import ValidationError
from fleet.sync.adapters import InMemoryDeviceInventory
from fleet.sync.domain.entities import (
    ChangeType,
    ExportOptions,
    ExportRequest,
    ImportOptions,
    ImportRequest,
    ImportSource,
    OutputConfig,
)
from fleet.sync.plugins import JSONSyncPlugin, PluginRegistry
from fleet.sync.use_cases import SyncCoordinator
from sync_mocks import make_devices


@pytest.fixture
def json_inventory():
    return InMemoryDeviceInventory(make_devices())


@pytest.fixture
def json_coordinator(json_inventory):
    registry = PluginRegistry()
    registry.register(JSONSyncPlugin(json_inventory))
    return SyncCoordinator(registry, json_inventory)


def json_export(tmp_path, **kwargs) -> ExportRequest:
    return ExportRequest(
        plugin_name="json",
        format="json",
        config={"output_path": str(tmp_path)},
        **kwargs,
    )


def json_import(document, **options) -> ImportRequest:
    return ImportRequest(
        plugin_name="json",
        format="json",
        source=ImportSource(type="data", data=document),
        options=ImportOptions(**options),
    )


class TestConfig:
    def test_rejects_unknown_compression(self, json_inventory):
        plugin = JSONSyncPlugin(json_inventory)

        with pytest.raises(ValidationError):
            plugin.validate_config({"compression": "brotli"})

    def test_rejects_wrong_type(self, json_inventory):
        with pytest.raises(ValidationError):
            JSONSyncPlugin(json_inventory).validate_config({"pretty": "yes"})

    def test_accepts_defaults(self, json_inventory):
        JSONSyncPlugin(json_inventory).validate_config({})


class TestExport:
    @pytest.mark.asyncio
    async def test_writes_envelope_with_checksum(self, json_coordinator, tmp_path):
        result = await json_coordinator.export(json_export(tmp_path))

        assert result.success is True
        with open(result.output_path, "rb") as f:
            payload = f.read()
        document = json.loads(payload)
        assert document["version"] == "1.0"
        assert len(document["devices"]) == 3
        assert document["metadata"]["export_id"] == result.export_id
        assert result.checksum == hashlib.sha256(payload).hexdigest()
        assert result.file_size == len(payload)
        assert result.output_path.endswith(".json")

    @pytest.mark.asyncio
    async def test_gzip_output(self, json_coordinator, tmp_path):
        request = json_export(tmp_path)
        request.config["compression"] = "gzip"

        result = await json_coordinator.export(request)

        assert result.output_path.endswith(".json.gz")
        with open(result.output_path, "rb") as f:
            assert json.loads(gzip.decompress(f.read()))["devices"]

    @pytest.mark.asyncio
    async def test_output_compression_names_file_gz(self, json_coordinator, tmp_path):
        request = json_export(tmp_path, output=OutputConfig(compression="gzip"))

        result = await json_coordinator.export(request)

        assert result.output_path.endswith(".json.gz")
        with open(result.output_path, "rb") as f:
            assert len(json.loads(gzip.decompress(f.read()))["devices"]) == 3

    @pytest.mark.asyncio
    async def test_explicit_destination(self, json_coordinator, tmp_path):
        target = tmp_path / "nested" / "fleet.json"
        request = json_export(tmp_path, output=OutputConfig(destination=str(target)))

        result = await json_coordinator.export(request)

        assert result.output_path == str(target)
        assert target.exists()

    @pytest.mark.asyncio
    async def test_validate_only_writes_nothing(self, json_coordinator, tmp_path):
        request = json_export(tmp_path, options=ExportOptions(validate_only=True))

        result = await json_coordinator.export(request)

        assert result.success is True
        assert result.output_path == ""
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_preview_is_deterministic(self, json_coordinator, tmp_path):
        first = await json_coordinator.preview(json_export(tmp_path))
        second = await json_coordinator.preview(json_export(tmp_path))

        assert first.estimated_size == second.estimated_size > 0
        assert first.record_count == 3
        assert len(first.sample_data) == 3
        assert list(tmp_path.iterdir()) == []


class TestImport:
    @pytest.mark.asyncio
    async def test_dry_run_reports_sorted_changes_without_mutating(self, json_coordinator, json_inventory):
        document = {
            "devices": [
                {"mac": "AA:BB:CC:00:00:09", "name": "New"},
                {"mac": "aa:bb:cc:00:00:01", "ip": "10.0.0.99", "type": "SHSW-1", "name": "Porch", "status": "online"},
            ]
        }

        first = await json_coordinator.import_data(json_import(document, dry_run=True))
        second = await json_coordinator.import_data(json_import(document, dry_run=True))

        assert [(c.type, c.resource_id) for c in first.changes] == [
            (ChangeType.UPDATE, "aa:bb:cc:00:00:01"),
            (ChangeType.CREATE, "aa:bb:cc:00:00:09"),
        ]
        assert first.changes == second.changes
        assert len(await json_inventory.list_devices()) == 3
        assert first.records_imported == 0

    @pytest.mark.asyncio
    async def test_apply_creates_and_updates(self, json_coordinator, json_inventory):
        document = {"devices": [{"mac": "aa:bb:cc:00:00:09", "name": "New", "type": "SHDM-2"}]}

        result = await json_coordinator.import_data(json_import(document))

        assert result.success is True
        assert result.records_imported == 1
        macs = [d.mac for d in await json_inventory.list_devices()]
        assert "aa:bb:cc:00:00:09" in macs

    @pytest.mark.asyncio
    async def test_prune_deletes_missing_devices(self, json_coordinator, json_inventory):
        request = json_import({"devices": []})
        request.config["prune"] = True

        result = await json_coordinator.import_data(request)

        assert {c.type for c in result.changes} == {ChangeType.DELETE}
        assert await json_inventory.list_devices() == []

    @pytest.mark.asyncio
    async def test_round_trip_from_file_is_a_no_op(self, json_coordinator, tmp_path):
        exported = await json_coordinator.export(json_export(tmp_path))
        request = ImportRequest(
            plugin_name="json",
            format="json",
            source=ImportSource(type="file", path=exported.output_path),
            options=ImportOptions(dry_run=True),
        )

        result = await json_coordinator.import_data(request)

        assert result.success is True
        assert result.changes == []
        assert result.records_skipped == 3

    @pytest.mark.asyncio
    async def test_devices_without_mac_are_skipped(self, json_coordinator):
        result = await json_coordinator.import_data(
            json_import({"devices": [{"name": "nameless"}]}, dry_run=True)
        )

        assert result.records_skipped == 1
        assert result.warnings

    @pytest.mark.asyncio
    async def test_missing_file_is_captured(self, json_coordinator, tmp_path):
        request = ImportRequest(
            plugin_name="json",
            format="json",
            source=ImportSource(type="file", path=str(tmp_path / "missing.json")),
        )

        result = await json_coordinator.import_data(request)

        assert result.success is False
        assert result.error_code == "PLUGIN_EXECUTION_ERROR"
