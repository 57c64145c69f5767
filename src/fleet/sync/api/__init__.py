"""HTTP surface of the sync engine."""

from .errors import fleet_error_handler
from .import_router import router as import_router
from .router import router as export_router

__all__ = ["export_router", "fleet_error_handler", "import_router"]
