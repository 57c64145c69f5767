"""Tests for the SyncCoordinator.

Uses the in-memory inventory and a file-writing mock plugin.
"""

import asyncio

import pytest

from fleet.api.exceptions import NotFoundError, ValidationError
from fleet.sync.domain.entities import (
    ExportFilters,
    ExportOptions,
    ImportRequest,
    ImportSource,
)
from fleet.sync.plugins import PluginRegistry
from fleet.sync.use_cases import SyncCoordinator
from sync_mocks import FILE_CONTENT, MockFilePlugin, export_request


class TestValidateExport:
    def test_empty_plugin_name(self, coordinator):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.validate_export(export_request("/tmp/x.txt", plugin_name=""))
        assert exc_info.value.code == "VALIDATION_FAILED"

    def test_unknown_plugin(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.validate_export(export_request("/tmp/x.txt", plugin_name="ghost"))

    def test_config_rejected_by_plugin(self, coordinator):
        request = export_request("/tmp/x.txt", config={"mode": "bad"})
        with pytest.raises(ValidationError) as exc_info:
            coordinator.validate_export(request)
        assert "not allowed" in exc_info.value.message

    def test_unsupported_format(self, coordinator):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.validate_export(export_request("/tmp/x.txt", format="yaml"))
        assert exc_info.value.details["supported_formats"] == ["txt"]


class TestExport:
    @pytest.mark.asyncio
    async def test_success_is_cached_with_unique_id(self, coordinator, tmp_path):
        target = tmp_path / "out.txt"

        first = await coordinator.export(export_request(str(target)))
        second = await coordinator.export(export_request(str(target)))

        assert first.success is True
        assert first.export_id and second.export_id
        assert first.export_id != second.export_id
        assert first.record_count == 3
        assert target.read_bytes() == FILE_CONTENT
        assert coordinator.get_export_result(first.export_id) is first
        assert first.metadata["export_type"] == "manual"

    @pytest.mark.asyncio
    async def test_filters_limit_exported_devices(self, coordinator, tmp_path):
        request = export_request(
            str(tmp_path / "out.txt"),
            filters=ExportFilters(device_types=["SHSW-1"], device_status=["online"]),
        )

        result = await coordinator.export(request)

        assert result.record_count == 2

    @pytest.mark.asyncio
    async def test_plugin_failure_captured_in_result(self, inventory, tmp_path):
        registry = PluginRegistry()
        registry.register(MockFilePlugin(fail_with=OSError("disk full")))
        coordinator = SyncCoordinator(registry, inventory)

        result = await coordinator.export(export_request(str(tmp_path / "out.txt")))

        assert result.success is False
        assert result.error_code == "PLUGIN_EXECUTION_ERROR"
        assert "disk full" in result.error_message
        assert coordinator.get_export_result(result.export_id) is result

    @pytest.mark.asyncio
    async def test_validation_error_is_raised_not_cached(self, coordinator):
        with pytest.raises(ValidationError):
            await coordinator.export(export_request("/tmp/x.txt", plugin_name=""))
        assert len(coordinator.export_results) == 0

    @pytest.mark.asyncio
    async def test_cancellation_leaves_cache_untouched(self, inventory, tmp_path):
        started = asyncio.Event()

        class SlowPlugin(MockFilePlugin):
            async def export(self, data, config):
                started.set()
                await asyncio.sleep(60)

        registry = PluginRegistry()
        registry.register(SlowPlugin())
        coordinator = SyncCoordinator(registry, inventory)

        task = asyncio.create_task(coordinator.export(export_request(str(tmp_path / "x.txt"))))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(coordinator.export_results) == 0

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, coordinator, tmp_path):
        target = tmp_path / "out.txt"
        request = export_request(str(target), options=ExportOptions(dry_run=True))

        result = await coordinator.export(request)

        assert result.success is True
        assert result.output_path == ""
        assert not target.exists()

    def test_unknown_result_id(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.get_export_result("does-not-exist")


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_is_idempotent_and_side_effect_free(self, coordinator, tmp_path):
        target = tmp_path / "out.txt"
        request = export_request(str(target))

        first = await coordinator.preview(request)
        second = await coordinator.preview(request)

        assert (first.record_count, first.estimated_size) == (second.record_count, second.estimated_size)
        assert first.record_count == 3
        assert not target.exists()
        assert len(coordinator.export_results) == 0


class TestImport:
    def _request(self, **kwargs):
        return ImportRequest(
            plugin_name=kwargs.pop("plugin_name", "mockfile"),
            format="txt",
            source=kwargs.pop("source", ImportSource(type="data", data={})),
            **kwargs,
        )

    def test_source_type_required(self, coordinator):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.validate_import(self._request(source=ImportSource(type="")))
        assert exc_info.value.details["field"] == "source.type"

    @pytest.mark.asyncio
    async def test_import_is_cached(self, coordinator, plugin):
        result = await coordinator.import_data(self._request())

        assert result.success is True
        assert result.import_id
        assert plugin.import_calls == 1
        assert coordinator.get_import_result(result.import_id) is result

    @pytest.mark.asyncio
    async def test_preview_import_forces_dry_run(self, coordinator):
        result = await coordinator.preview_import(self._request())

        assert result.records_imported == 0

    @pytest.mark.asyncio
    async def test_import_failure_captured(self, inventory):
        registry = PluginRegistry()
        registry.register(MockFilePlugin(fail_with=ValueError("corrupt archive")))
        coordinator = SyncCoordinator(registry, inventory)

        result = await coordinator.import_data(self._request())

        assert result.success is False
        assert result.error_code == "PLUGIN_EXECUTION_ERROR"
        assert "corrupt archive" in result.errors[0]

    def test_unknown_import_id(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.get_import_result("missing")


class FixedIdPlugin(MockFilePlugin):
    """Plugin that stamps its own id on every result."""

    async def export(self, data, config):
        result = await super().export(data, config)
        result.export_id = "fixed-id"
        return result

    async def import_data(self, source, config):
        result = await super().import_data(source, config)
        result.import_id = "fixed-id"
        return result


class NoResultPlugin(MockFilePlugin):
    async def export(self, data, config):
        return None

    async def import_data(self, source, config):
        return None


class TestCorrelationIds:
    @pytest.mark.asyncio
    async def test_plugin_ids_never_reused_after_eviction(self, inventory, tmp_path):
        registry = PluginRegistry()
        registry.register(FixedIdPlugin())
        coordinator = SyncCoordinator(registry, inventory, cache_size=1)

        ids = [
            (await coordinator.export(export_request(str(tmp_path / f"{i}.txt")))).export_id
            for i in range(3)
        ]

        assert len(set(ids)) == 3
        assert "fixed-id" not in ids

    @pytest.mark.asyncio
    async def test_import_ids_assigned_by_coordinator(self, inventory):
        registry = PluginRegistry()
        registry.register(FixedIdPlugin())
        coordinator = SyncCoordinator(registry, inventory, cache_size=1)
        request = ImportRequest(
            plugin_name="mockfile", format="txt", source=ImportSource(type="data", data={})
        )

        first = await coordinator.import_data(request)
        second = await coordinator.import_data(request)

        assert first.import_id != second.import_id
        assert "fixed-id" not in (first.import_id, second.import_id)


class TestMalformedPluginResults:
    @pytest.mark.asyncio
    async def test_export_returning_none_is_captured(self, inventory, tmp_path):
        registry = PluginRegistry()
        registry.register(NoResultPlugin())
        coordinator = SyncCoordinator(registry, inventory)

        result = await coordinator.export(export_request(str(tmp_path / "x.txt")))

        assert result.success is False
        assert result.error_code == "PLUGIN_EXECUTION_ERROR"
        assert "NoneType" in result.error_message
        assert coordinator.get_export_result(result.export_id) is result

    @pytest.mark.asyncio
    async def test_import_returning_none_is_captured(self, inventory):
        registry = PluginRegistry()
        registry.register(NoResultPlugin())
        coordinator = SyncCoordinator(registry, inventory)
        request = ImportRequest(
            plugin_name="mockfile", format="txt", source=ImportSource(type="data", data={})
        )

        result = await coordinator.import_data(request)

        assert result.success is False
        assert result.error_code == "PLUGIN_EXECUTION_ERROR"
