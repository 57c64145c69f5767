"""Use cases layer - orchestration of sync operations.

- SyncCoordinator: validates and runs export/import/preview requests
- HistoryService: best-effort audit persistence, queries and statistics
- ExportScheduler: recurring exports with per-schedule mutual exclusion
- DownloadGatekeeper: serves export files from an allow-listed directory

Use cases depend only on ports, not concrete implementations.
"""

from .coordinator import SyncCoordinator
from .download import DownloadGatekeeper, ResolvedDownload
from .history import HistoryService, normalize_page, parse_int_default, parse_success_filter
from .scheduler import ExportScheduler

__all__ = [
    "DownloadGatekeeper",
    "ExportScheduler",
    "HistoryService",
    "ResolvedDownload",
    "SyncCoordinator",
    "normalize_page",
    "parse_int_default",
    "parse_success_filter",
]
