"""Download Gatekeeper - decides whether an export's file may be served.

Plugins may write anywhere; serving is restricted to files that resolve
(symlinks followed) inside the configured base directory.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ...api.exceptions import ForbiddenError, NotFoundError, UnprocessableEntityError
from .coordinator import SyncCoordinator
from .history import HistoryService

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ".gz": "application/gzip",
    ".zip": "application/zip",
    ".json": "application/json",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
    ".csv": "text/csv",
    ".txt": "text/plain",
}
DEFAULT_MEDIA_TYPE = "application/octet-stream"


def media_type_for(path: Path) -> str:
    return MEDIA_TYPES.get(path.suffix.lower(), DEFAULT_MEDIA_TYPE)


@dataclass
class ResolvedDownload:
    export_id: str
    path: Path
    filename: str
    media_type: str


class DownloadGatekeeper:
    """Resolves an export id to a servable file.

    Lookup order is the result cache, then the export history record, so
    files stay downloadable after their result has been evicted.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        history: HistoryService,
        base_dir: Optional[str] = None,
    ):
        self.coordinator = coordinator
        self.history = history
        self.base_dir = Path(base_dir) if base_dir else None

    async def _output_path(self, export_id: str) -> str:
        cached = self.coordinator.export_results.get(export_id)
        if cached is not None:
            return cached.output_path

        record = await self.history.find_export_history(export_id)
        if record is None:
            raise NotFoundError("Export result", export_id)
        return record.file_path

    def _check_within_base(self, path: Path) -> Path:
        try:
            base = self.base_dir.resolve(strict=False)
            resolved = path.resolve(strict=False)
            resolved.relative_to(base)
        except (ValueError, OSError, RuntimeError) as e:
            logger.warning(f"Rejected download outside {self.base_dir}: {path}")
            raise ForbiddenError(details={"path": str(path)}, cause=e)
        return resolved

    async def resolve(self, export_id: str) -> ResolvedDownload:
        """Return the file to stream for ``export_id``.

        Raises:
            NotFoundError: unknown id, or the file no longer exists
            UnprocessableEntityError: the export has no output file
            ForbiddenError: the file resolves outside the base directory
        """
        output_path = await self._output_path(export_id)
        if not output_path:
            raise UnprocessableEntityError(
                "Export has no output file to download",
                details={"export_id": export_id},
            )

        path = Path(output_path)
        if self.base_dir is not None:
            path = self._check_within_base(path)

        if not path.is_file():
            raise NotFoundError("Export file", str(path))

        return ResolvedDownload(
            export_id=export_id,
            path=path,
            filename=path.name,
            media_type=media_type_for(path),
        )
