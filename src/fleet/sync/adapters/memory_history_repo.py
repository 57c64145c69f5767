"""In-memory history repository.

Used when no DATABASE_URL is configured and by the test suite. Records are
kept for the process lifetime only.
"""

import asyncio
import itertools
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime
from typing import Optional, TypeVar

from ..domain.entities import (
    ExportHistoryRecord,
    ImportHistoryRecord,
    SyncStatistics,
)
from ..domain.ports import IHistoryRepository

R = TypeVar("R", ExportHistoryRecord, ImportHistoryRecord)


def _page(
    records: list[R],
    offset: int,
    limit: int,
    plugin_name: Optional[str],
    success: Optional[bool],
) -> tuple[list[R], int]:
    matching = [
        r for r in records
        if (plugin_name is None or r.plugin_name == plugin_name)
        and (success is None or r.success == success)
    ]
    # newest first; id breaks ties between records created in the same instant
    matching.sort(key=lambda r: (r.created_at, r.id), reverse=True)
    return matching[offset:offset + limit], len(matching)


def _statistics(records: list[R]) -> SyncStatistics:
    successes = sum(1 for r in records if r.success)
    return SyncStatistics(
        total=len(records),
        success=successes,
        failure=len(records) - successes,
        by_plugin=dict(Counter(r.plugin_name for r in records)),
    )


class InMemoryHistoryRepository(IHistoryRepository):
    """Append-only history kept in process memory."""

    def __init__(self):
        self._exports: list[ExportHistoryRecord] = []
        self._imports: list[ImportHistoryRecord] = []
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def save_export(self, record: ExportHistoryRecord) -> ExportHistoryRecord:
        async with self._lock:
            stored = replace(
                record,
                id=next(self._ids),
                created_at=record.created_at or datetime.now(UTC),
            )
            self._exports.append(stored)
        return stored

    async def save_import(self, record: ImportHistoryRecord) -> ImportHistoryRecord:
        async with self._lock:
            stored = replace(
                record,
                id=next(self._ids),
                created_at=record.created_at or datetime.now(UTC),
            )
            self._imports.append(stored)
        return stored

    async def list_exports(self, offset, limit, plugin_name=None, success=None):
        return _page(self._exports, offset, limit, plugin_name, success)

    async def list_imports(self, offset, limit, plugin_name=None, success=None):
        return _page(self._imports, offset, limit, plugin_name, success)

    async def get_export(self, export_id: str) -> Optional[ExportHistoryRecord]:
        return next((r for r in reversed(self._exports) if r.export_id == export_id), None)

    async def get_import(self, import_id: str) -> Optional[ImportHistoryRecord]:
        return next((r for r in reversed(self._imports) if r.import_id == import_id), None)

    async def export_statistics(self) -> SyncStatistics:
        return _statistics(self._exports)

    async def import_statistics(self) -> SyncStatistics:
        return _statistics(self._imports)
