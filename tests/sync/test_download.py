"""Tests for the DownloadGatekeeper path checks."""

import os

import pytest

from fleet.api.exceptions import ForbiddenError, NotFoundError, UnprocessableEntityError
from fleet.sync.domain.entities import ExportOptions, ExportResult
from fleet.sync.use_cases import DownloadGatekeeper
from sync_mocks import export_request, history_record


@pytest.fixture
def base_dir(tmp_path):
    base = tmp_path / "exports"
    base.mkdir()
    return base


class TestResolve:
    @pytest.mark.asyncio
    async def test_file_inside_base_dir(self, coordinator, history, base_dir):
        result = await coordinator.export(export_request(str(base_dir / "x.txt")))
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        resolved = await gatekeeper.resolve(result.export_id)

        assert resolved.path.read_bytes() == b"hello world"
        assert resolved.media_type == "text/plain"
        assert resolved.filename == "x.txt"

    @pytest.mark.asyncio
    async def test_file_outside_base_dir_forbidden(self, coordinator, history, base_dir, tmp_path):
        result = await coordinator.export(export_request(str(tmp_path / "elsewhere.txt")))
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        with pytest.raises(ForbiddenError):
            await gatekeeper.resolve(result.export_id)

    @pytest.mark.asyncio
    async def test_parent_traversal_forbidden(self, coordinator, history, base_dir):
        sneaky = os.path.join(str(base_dir), "..", "escaped.txt")
        result = await coordinator.export(export_request(sneaky))
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        with pytest.raises(ForbiddenError) as exc_info:
            await gatekeeper.resolve(result.export_id)
        assert exc_info.value.code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_symlink_escape_forbidden(self, coordinator, history, base_dir, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("secret")
        link = base_dir / "link.txt"
        link.symlink_to(outside)
        coordinator.export_results.put(
            "exp-link",
            ExportResult(success=True, plugin_name="mockfile", format="txt",
                         export_id="exp-link", output_path=str(link)),
        )
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        with pytest.raises(ForbiddenError):
            await gatekeeper.resolve("exp-link")

    @pytest.mark.asyncio
    async def test_no_base_dir_allows_any_path(self, coordinator, history, tmp_path):
        result = await coordinator.export(export_request(str(tmp_path / "anywhere.txt")))
        gatekeeper = DownloadGatekeeper(coordinator, history)

        resolved = await gatekeeper.resolve(result.export_id)

        assert resolved.path.exists()

    @pytest.mark.asyncio
    async def test_no_output_path_is_unprocessable(self, coordinator, history, base_dir):
        request = export_request(str(base_dir / "x.txt"), options=ExportOptions(dry_run=True))
        result = await coordinator.export(request)
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        with pytest.raises(UnprocessableEntityError):
            await gatekeeper.resolve(result.export_id)

    @pytest.mark.asyncio
    async def test_unknown_id(self, coordinator, history):
        with pytest.raises(NotFoundError):
            await DownloadGatekeeper(coordinator, history).resolve("missing")

    @pytest.mark.asyncio
    async def test_falls_back_to_history_after_eviction(self, coordinator, history, history_repo, base_dir):
        target = base_dir / "old.txt"
        target.write_text("archived")
        record = history_record("mockfile", True, "exp-old")
        record.file_path = str(target)
        await history_repo.save_export(record)
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        resolved = await gatekeeper.resolve("exp-old")

        assert resolved.path.read_text() == "archived"

    @pytest.mark.asyncio
    async def test_deleted_file_not_found(self, coordinator, history, base_dir):
        result = await coordinator.export(export_request(str(base_dir / "gone.txt")))
        (base_dir / "gone.txt").unlink()
        gatekeeper = DownloadGatekeeper(coordinator, history, base_dir=str(base_dir))

        with pytest.raises(NotFoundError):
            await gatekeeper.resolve(result.export_id)
