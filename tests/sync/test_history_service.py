"""Tests for HistoryService: persistence, pagination, filters and statistics."""

import pytest

from fleet.api.exceptions import NotFoundError
from fleet.sync.domain.entities import ExportResult, ImportRequest, ImportResult, ImportSource
from fleet.sync.use_cases import HistoryService, normalize_page, parse_success_filter
from sync_mocks import FailingHistoryRepository, export_request, history_record


async def seed(repo, count: int, plugin_name: str = "A", success: bool = True):
    for i in range(count):
        await repo.save_export(history_record(plugin_name, success, f"{plugin_name}-{i}"))


class TestNormalizePage:
    @pytest.mark.parametrize(
        "page,page_size,expected",
        [
            (0, 20, (1, 20)),
            (-3, 20, (1, 20)),
            ("abc", 20, (1, 20)),
            (2, 101, (2, 20)),
            (2, 0, (2, 20)),
            (2, "many", (2, 20)),
            ("3", "50", (3, 50)),
            (None, None, (1, 20)),
        ],
    )
    def test_corrects_instead_of_rejecting(self, page, page_size, expected):
        assert normalize_page(page, page_size) == expected


class TestSuccessFilter:
    @pytest.mark.parametrize("value", ["true", "1", "YES"])
    def test_truthy(self, value):
        assert parse_success_filter(value) is True

    def test_other_values_are_false(self):
        assert parse_success_filter("false") is False
        assert parse_success_filter("no") is False

    def test_empty_means_no_filter(self):
        assert parse_success_filter(None) is None
        assert parse_success_filter("") is None


class TestListExportHistory:
    @pytest.mark.asyncio
    async def test_last_page_returns_remainder(self, history, history_repo):
        await seed(history_repo, 7)

        page = await history.list_export_history(page=3, page_size=3)

        assert len(page.items) == 1
        assert page.total == 7
        assert page.total_pages == 3
        assert page.has_next is False

    @pytest.mark.asyncio
    async def test_out_of_range_page_is_empty(self, history, history_repo):
        await seed(history_repo, 2)

        page = await history.list_export_history(page=9, page_size=10)

        assert page.items == []
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_newest_first(self, history, history_repo):
        await seed(history_repo, 3)

        page = await history.list_export_history()

        assert [r.export_id for r in page.items] == ["A-2", "A-1", "A-0"]

    @pytest.mark.asyncio
    async def test_filters_apply_before_pagination(self, history, history_repo):
        await seed(history_repo, 3, plugin_name="X", success=True)
        await seed(history_repo, 2, plugin_name="X", success=False)
        await seed(history_repo, 4, plugin_name="Y", success=True)

        page = await history.list_export_history(page=1, page_size=2, plugin="X", success=True)

        assert page.total == 3
        assert len(page.items) == 2
        assert all(r.plugin_name == "X" and r.success for r in page.items)

    @pytest.mark.asyncio
    async def test_unknown_plugin_filter_is_empty(self, history, history_repo):
        await seed(history_repo, 2)

        page = await history.list_export_history(plugin="nope")

        assert page.items == []
        assert page.total == 0


class TestSaveHistory:
    @pytest.mark.asyncio
    async def test_save_export_flattens_result(self, history, history_repo, tmp_path):
        target = tmp_path / "out.txt"
        target.write_bytes(b"0123456789")
        request = export_request(str(target), name="nightly", description="full backup")
        result = ExportResult(
            success=True,
            plugin_name="mockfile",
            format="txt",
            export_id="exp-1",
            output_path=str(target),
            record_count=4,
        )

        assert await history.save_export_history(request, result, "alice") is True

        record = await history.get_export_history("exp-1")
        assert record.requested_by == "alice"
        assert record.name == "nightly"
        assert record.file_size == 10
        assert record.file_path == str(target)
        assert record.error_message is None

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_not_raised(self, caplog):
        history = HistoryService(FailingHistoryRepository())
        result = ExportResult(success=True, plugin_name="mockfile", format="txt", export_id="exp-9")

        saved = await history.save_export_history(export_request("/tmp/x.txt"), result, "bob")

        assert saved is False
        assert "HISTORY_PERSISTENCE_ERROR" in caplog.text

    @pytest.mark.asyncio
    async def test_import_history_round_trip(self, history):
        request = ImportRequest(plugin_name="json", format="json", source=ImportSource(type="data"))
        result = ImportResult(
            success=False,
            plugin_name="json",
            format="json",
            import_id="imp-1",
            errors=["bad document"],
        )

        await history.save_import_history(request, result, "carol")

        record = await history.get_import_history("imp-1")
        assert record.success is False
        assert record.error_message == "bad document"

    @pytest.mark.asyncio
    async def test_unknown_history_id(self, history):
        with pytest.raises(NotFoundError):
            await history.get_export_history("missing")


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counts_by_plugin(self, history, history_repo):
        await seed(history_repo, 2, plugin_name="A", success=True)
        await seed(history_repo, 1, plugin_name="A", success=False)
        await seed(history_repo, 1, plugin_name="B", success=True)

        stats = await history.get_export_statistics()

        assert (stats.total, stats.success, stats.failure) == (4, 3, 1)
        assert stats.by_plugin == {"A": 3, "B": 1}

    @pytest.mark.asyncio
    async def test_empty_store(self, history):
        stats = await history.get_import_statistics()

        assert stats.total == 0
        assert stats.by_plugin == {}
