"""FastAPI router for import endpoints. Imports have no scheduling."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..use_cases import HistoryService, SyncCoordinator, parse_success_filter
from .dependencies import get_coordinator, get_history, get_requester, verify_admin_key
from .schemas import (
    ImportHistoryDTO,
    ImportHistoryPageDTO,
    ImportRequestDTO,
    ImportResultDTO,
    StatisticsDTO,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/import",
    tags=["Import"],
    dependencies=[Depends(verify_admin_key)],
)


@router.get("/history", response_model=ImportHistoryPageDTO)
async def list_import_history(
    page: Optional[str] = Query(default=None),
    page_size: Optional[str] = Query(default=None),
    plugin: Optional[str] = Query(default=None),
    success: Optional[str] = Query(default=None),
    history: HistoryService = Depends(get_history),
):
    result = await history.list_import_history(
        page=page,
        page_size=page_size,
        plugin=plugin,
        success=parse_success_filter(success),
    )
    return ImportHistoryPageDTO.from_page(result)


@router.get("/history/{import_id}", response_model=ImportHistoryDTO)
async def get_import_history(import_id: str, history: HistoryService = Depends(get_history)):
    return ImportHistoryDTO.model_validate(await history.get_import_history(import_id))


@router.get("/statistics", response_model=StatisticsDTO)
async def import_statistics(history: HistoryService = Depends(get_history)):
    return StatisticsDTO.model_validate(await history.get_import_statistics())


@router.post("", response_model=ImportResultDTO)
async def run_import(
    body: ImportRequestDTO,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    history: HistoryService = Depends(get_history),
    requester: str = Depends(get_requester),
):
    """Run an import. With dry_run or validate_only nothing is changed."""
    request = body.to_domain()
    result = await coordinator.import_data(request)
    await history.save_import_history(request, result, requester)
    return ImportResultDTO.model_validate(result)


@router.post("/preview", response_model=ImportResultDTO)
async def preview_import(
    body: ImportRequestDTO,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    history: HistoryService = Depends(get_history),
    requester: str = Depends(get_requester),
):
    """Report the change list an import would apply, without applying it."""
    request = body.to_domain()
    result = await coordinator.preview_import(request)
    await history.save_import_history(request, result, requester)
    return ImportResultDTO.model_validate(result)


@router.get("/{import_id}", response_model=ImportResultDTO)
async def get_import_result(
    import_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    return ImportResultDTO.model_validate(coordinator.get_import_result(import_id))
