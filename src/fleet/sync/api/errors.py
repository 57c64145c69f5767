"""Translation of FleetError into HTTP responses.

Body shape: ``{"detail": {"code": ..., "message": ..., "details": {...}}}``.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ...api.exceptions import FleetError

logger = logging.getLogger(__name__)


async def fleet_error_handler(request: Request, exc: FleetError) -> JSONResponse:
    status_code = exc.http_status
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )
