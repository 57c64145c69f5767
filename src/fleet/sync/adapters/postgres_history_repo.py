"""PostgreSQL repository adapter for export/import history.

Implements IHistoryRepository on the export_history and import_history
tables defined in db/sync_schema.sql. Rows are insert-only.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from ..domain.entities import (
    ExportHistoryRecord,
    ImportHistoryRecord,
    SyncStatistics,
)
from ..domain.ports import IHistoryRepository

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "id, export_id, plugin_name, format, name, description, requested_by, "
    "success, record_count, file_size, file_path, duration_ms, error_message, created_at"
)
IMPORT_COLUMNS = (
    "id, import_id, plugin_name, format, requested_by, success, "
    "records_imported, records_skipped, duration_ms, error_message, created_at"
)


def _where(plugin_name: Optional[str], success: Optional[bool]) -> tuple[str, list[Any]]:
    """Build a WHERE clause for the optional history filters."""
    clauses = []
    params: list[Any] = []
    if plugin_name is not None:
        params.append(plugin_name)
        clauses.append(f"plugin_name = ${len(params)}")
    if success is not None:
        params.append(success)
        clauses.append(f"success = ${len(params)}")
    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


def _statistics(total_row, plugin_rows) -> SyncStatistics:
    return SyncStatistics(
        total=total_row["total"] or 0,
        success=total_row["success"] or 0,
        failure=total_row["failure"] or 0,
        by_plugin={row["plugin_name"]: row["count"] for row in plugin_rows},
    )


class PostgresHistoryRepository(IHistoryRepository):
    """PostgreSQL implementation of IHistoryRepository."""

    def __init__(self, pool: "asyncpg.Pool"):
        self.pool = pool

    async def save_export(self, record: ExportHistoryRecord) -> ExportHistoryRecord:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO export_history (
                    export_id, plugin_name, format, name, description,
                    requested_by, success, record_count, file_size, file_path,
                    duration_ms, error_message
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING id, created_at
                """,
                record.export_id,
                record.plugin_name,
                record.format,
                record.name,
                record.description,
                record.requested_by,
                record.success,
                record.record_count,
                record.file_size,
                record.file_path,
                record.duration_ms,
                record.error_message,
            )
        record.id = row["id"]
        record.created_at = row["created_at"]
        return record

    async def save_import(self, record: ImportHistoryRecord) -> ImportHistoryRecord:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO import_history (
                    import_id, plugin_name, format, requested_by, success,
                    records_imported, records_skipped, duration_ms, error_message
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING id, created_at
                """,
                record.import_id,
                record.plugin_name,
                record.format,
                record.requested_by,
                record.success,
                record.records_imported,
                record.records_skipped,
                record.duration_ms,
                record.error_message,
            )
        record.id = row["id"]
        record.created_at = row["created_at"]
        return record

    async def _list(self, table, columns, offset, limit, plugin_name, success):
        where, params = _where(plugin_name, success)
        async with self.pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM {table} {where}", *params)
            rows = await conn.fetch(
                f"""
                SELECT {columns} FROM {table} {where}
                ORDER BY created_at DESC, id DESC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
                """,
                *params,
                limit,
                offset,
            )
        return rows, total or 0

    async def list_exports(self, offset, limit, plugin_name=None, success=None):
        rows, total = await self._list(
            "export_history", EXPORT_COLUMNS, offset, limit, plugin_name, success
        )
        return [ExportHistoryRecord(**dict(r)) for r in rows], total

    async def list_imports(self, offset, limit, plugin_name=None, success=None):
        rows, total = await self._list(
            "import_history", IMPORT_COLUMNS, offset, limit, plugin_name, success
        )
        return [ImportHistoryRecord(**dict(r)) for r in rows], total

    async def get_export(self, export_id: str) -> Optional[ExportHistoryRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {EXPORT_COLUMNS} FROM export_history "
                "WHERE export_id = $1 ORDER BY id DESC LIMIT 1",
                export_id,
            )
        return ExportHistoryRecord(**dict(row)) if row else None

    async def get_import(self, import_id: str) -> Optional[ImportHistoryRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {IMPORT_COLUMNS} FROM import_history "
                "WHERE import_id = $1 ORDER BY id DESC LIMIT 1",
                import_id,
            )
        return ImportHistoryRecord(**dict(row)) if row else None

    async def _statistics(self, table: str) -> SyncStatistics:
        async with self.pool.acquire() as conn:
            total_row = await conn.fetchrow(
                f"""
                SELECT
                    COUNT(*) AS total,
                    COUNT(*) FILTER (WHERE success) AS success,
                    COUNT(*) FILTER (WHERE NOT success) AS failure
                FROM {table}
                """
            )
            plugin_rows = await conn.fetch(
                f"SELECT plugin_name, COUNT(*) AS count FROM {table} GROUP BY plugin_name"
            )
        return _statistics(total_row, plugin_rows)

    async def export_statistics(self) -> SyncStatistics:
        return await self._statistics("export_history")

    async def import_statistics(self) -> SyncStatistics:
        return await self._statistics("import_history")
