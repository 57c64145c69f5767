"""FastAPI dependency injection for the sync API.

Lifecycle Management:
- The SyncServices container is built in the application lifespan and
  stored on ``app.state.sync``; dependencies below read it per request.

Security:
- When ADMIN_API_KEY is set, every sync endpoint requires either
  ``Authorization: Bearer <key>`` or ``X-API-Key: <key>``
- When ADMIN_API_KEY is not set, the guard is a no-op
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from ..plugins.registry import PluginRegistry
from ..services import SyncServices
from ..use_cases import DownloadGatekeeper, ExportScheduler, HistoryService, SyncCoordinator

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


# ========== Services ==========

def get_services(request: Request) -> SyncServices:
    services = getattr(request.app.state, "sync", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync engine not initialized",
        )
    return services


def get_registry(services: SyncServices = Depends(get_services)) -> PluginRegistry:
    return services.registry


def get_coordinator(services: SyncServices = Depends(get_services)) -> SyncCoordinator:
    return services.coordinator


def get_history(services: SyncServices = Depends(get_services)) -> HistoryService:
    return services.history


def get_scheduler(services: SyncServices = Depends(get_services)) -> ExportScheduler:
    return services.scheduler


def get_downloads(services: SyncServices = Depends(get_services)) -> DownloadGatekeeper:
    return services.downloads


# ========== Admin Key Authentication ==========

async def verify_admin_key(
    services: SyncServices = Depends(get_services),
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    api_key: Optional[str] = Security(api_key_header),
) -> bool:
    """Check the operator credential against ADMIN_API_KEY.

    Raises:
        HTTPException: 401 if the key is configured and the request does not
            carry it
    """
    expected_key = services.config.admin_api_key
    if not expected_key:
        return True

    provided = bearer.credentials if bearer else api_key
    if not provided:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin credentials. Provide a Bearer token or X-API-Key header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Constant-time comparison
    if not secrets.compare_digest(provided.encode(), expected_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return True


# ========== Requester Identity ==========

def get_requester(request: Request) -> str:
    """Identity recorded in history for the current request.

    Resolution order: X-User-ID, X-User, Authorization, client address.
    """
    for header in ("X-User-ID", "X-User", "Authorization"):
        value = request.headers.get(header)
        if value:
            return value
    if request.client:
        return request.client.host
    return "unknown"
