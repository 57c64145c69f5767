"""History Service - audit persistence, paginated queries and statistics.

Saving is best-effort: a failing store is logged as a
HistoryPersistenceError and never propagated to the export/import caller.
Query parameters are corrected to defaults instead of rejected.
"""

import logging
import os
from typing import Any

from ...api.exceptions import HistoryPersistenceError, NotFoundError
from ..domain.entities import (
    ExportHistoryRecord,
    ExportRequest,
    ExportResult,
    HistoryPage,
    ImportHistoryRecord,
    ImportRequest,
    ImportResult,
    SyncStatistics,
)
from ..domain.ports import IHistoryRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
TRUTHY_FILTER_VALUES = ("true", "1", "yes")


def parse_int_default(value: Any, default: int) -> int:
    """Parse an int, falling back to ``default`` for missing or malformed input."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_page(page: Any, page_size: Any) -> tuple[int, int]:
    """Correct pagination input: page < 1 -> 1, page_size outside [1, 100] -> 20."""
    page = parse_int_default(page, 1)
    page_size = parse_int_default(page_size, DEFAULT_PAGE_SIZE)
    if page < 1:
        page = 1
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def parse_success_filter(value: str | None) -> bool | None:
    """Parse the ``success`` query filter; empty means no filter."""
    if value is None or value == "":
        return None
    return value.strip().lower() in TRUTHY_FILTER_VALUES


def _file_size(path: str, reported: int) -> int:
    if not path:
        return reported
    try:
        return os.stat(path).st_size
    except OSError:
        return reported


class HistoryService:
    """Flattens results into history records and answers audit queries.

    Example:
        history = HistoryService(InMemoryHistoryRepository())
        await history.save_export_history(request, result, requested_by="alice")
        page = await history.list_export_history(page=1, page_size=20, plugin="json")
    """

    def __init__(self, repository: IHistoryRepository):
        self.repo = repository

    # ========== Persistence ==========

    async def save_export_history(
        self,
        request: ExportRequest,
        result: ExportResult,
        requested_by: str,
    ) -> bool:
        """Persist a flattened export record.

        Returns:
            True if stored, False if the store failed (already logged)
        """
        record = ExportHistoryRecord(
            export_id=result.export_id,
            plugin_name=result.plugin_name or request.plugin_name,
            format=result.format or request.format,
            name=request.name,
            description=request.description,
            requested_by=requested_by,
            success=result.success,
            record_count=result.record_count,
            file_size=_file_size(result.output_path, result.file_size),
            file_path=result.output_path,
            duration_ms=result.duration_ms,
            error_message=result.error_message,
        )
        try:
            await self.repo.save_export(record)
            return True
        except Exception as e:
            error = HistoryPersistenceError("export", result.export_id, cause=e)
            logger.error(f"{error}: {e}", exc_info=True)
            return False

    async def save_import_history(
        self,
        request: ImportRequest,
        result: ImportResult,
        requested_by: str,
    ) -> bool:
        record = ImportHistoryRecord(
            import_id=result.import_id,
            plugin_name=result.plugin_name or request.plugin_name,
            format=result.format or request.format,
            requested_by=requested_by,
            success=result.success,
            records_imported=result.records_imported,
            records_skipped=result.records_skipped,
            duration_ms=result.duration_ms,
            error_message=result.error_message,
        )
        try:
            await self.repo.save_import(record)
            return True
        except Exception as e:
            error = HistoryPersistenceError("import", result.import_id, cause=e)
            logger.error(f"{error}: {e}", exc_info=True)
            return False

    # ========== Queries ==========

    async def list_export_history(
        self,
        page: Any = 1,
        page_size: Any = DEFAULT_PAGE_SIZE,
        plugin: str | None = None,
        success: bool | None = None,
    ) -> HistoryPage:
        """Filter, then paginate. Pages past the end are empty, not errors."""
        page, page_size = normalize_page(page, page_size)
        items, total = await self.repo.list_exports(
            offset=(page - 1) * page_size,
            limit=page_size,
            plugin_name=plugin or None,
            success=success,
        )
        return HistoryPage(items=items, total=total, page=page, page_size=page_size)

    async def list_import_history(
        self,
        page: Any = 1,
        page_size: Any = DEFAULT_PAGE_SIZE,
        plugin: str | None = None,
        success: bool | None = None,
    ) -> HistoryPage:
        page, page_size = normalize_page(page, page_size)
        items, total = await self.repo.list_imports(
            offset=(page - 1) * page_size,
            limit=page_size,
            plugin_name=plugin or None,
            success=success,
        )
        return HistoryPage(items=items, total=total, page=page, page_size=page_size)

    async def get_export_history(self, export_id: str) -> ExportHistoryRecord:
        record = await self.repo.get_export(export_id)
        if record is None:
            raise NotFoundError("Export history", export_id)
        return record

    async def get_import_history(self, import_id: str) -> ImportHistoryRecord:
        record = await self.repo.get_import(import_id)
        if record is None:
            raise NotFoundError("Import history", import_id)
        return record

    async def find_export_history(self, export_id: str) -> ExportHistoryRecord | None:
        """Like get_export_history, but a store failure reads as 'unknown'."""
        try:
            return await self.repo.get_export(export_id)
        except Exception as e:
            logger.warning(f"History lookup for export {export_id} failed: {e}")
            return None

    # ========== Statistics ==========

    async def get_export_statistics(self) -> SyncStatistics:
        return await self.repo.export_statistics()

    async def get_import_statistics(self) -> SyncStatistics:
        return await self.repo.import_statistics()
