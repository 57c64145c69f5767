"""FastAPI router for export endpoints: plugins, exports, history, schedules.

Static paths are declared before ``/export/{export_id}`` so they are matched
first.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from ..plugins.registry import PluginRegistry
from ..use_cases import (
    DownloadGatekeeper,
    ExportScheduler,
    HistoryService,
    SyncCoordinator,
    parse_success_filter,
)
from .dependencies import (
    get_coordinator,
    get_downloads,
    get_history,
    get_registry,
    get_requester,
    get_scheduler,
    verify_admin_key,
)
from .schemas import (
    ConfigSchemaDTO,
    ExportHistoryDTO,
    ExportHistoryPageDTO,
    ExportRequestDTO,
    ExportResultDTO,
    PluginCapabilitiesDTO,
    PluginDetailDTO,
    PluginInfoDTO,
    PluginListResponse,
    PreviewResultDTO,
    ScheduleCreateRequest,
    ScheduleDTO,
    ScheduleListResponse,
    ScheduleUpdateRequest,
    StatisticsDTO,
)

logger = logging.getLogger(__name__)

DOWNLOAD_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "X-Content-Type-Options": "nosniff",
}

router = APIRouter(
    prefix="/export",
    tags=["Export"],
    dependencies=[Depends(verify_admin_key)],
)


# ========== Plugins ==========

@router.get("/plugins", response_model=PluginListResponse)
async def list_plugins(registry: PluginRegistry = Depends(get_registry)):
    """List installed plugins in registration order."""
    plugins = [PluginInfoDTO.model_validate(info) for info in registry.list()]
    return PluginListResponse(plugins=plugins, count=len(plugins))


@router.get("/plugins/{name}", response_model=PluginDetailDTO)
async def get_plugin(name: str, registry: PluginRegistry = Depends(get_registry)):
    plugin = registry.get(name)
    return PluginDetailDTO(
        info=PluginInfoDTO.model_validate(plugin.info()),
        capabilities=PluginCapabilitiesDTO.model_validate(plugin.capabilities()),
    )


@router.get("/plugins/{name}/schema", response_model=ConfigSchemaDTO)
async def get_plugin_schema(name: str, registry: PluginRegistry = Depends(get_registry)):
    return ConfigSchemaDTO.model_validate(registry.get(name).config_schema())


# ========== Schedules ==========

@router.get("/schedules", response_model=ScheduleListResponse)
async def list_schedules(scheduler: ExportScheduler = Depends(get_scheduler)):
    schedules = [ScheduleDTO.model_validate(s) for s in scheduler.list_schedules()]
    return ScheduleListResponse(schedules=schedules, count=len(schedules))


@router.post("/schedules", response_model=ScheduleDTO, status_code=201)
async def create_schedule(
    body: ScheduleCreateRequest,
    scheduler: ExportScheduler = Depends(get_scheduler),
    requester: str = Depends(get_requester),
):
    """Create a recurring export. The first run is due one interval from now."""
    schedule = scheduler.create_schedule(
        name=body.name,
        interval_sec=body.interval_sec,
        request=body.request.to_domain(),
        enabled=body.enabled,
        created_by=requester,
    )
    return ScheduleDTO.model_validate(schedule)


@router.get("/schedules/{schedule_id}", response_model=ScheduleDTO)
async def get_schedule(schedule_id: str, scheduler: ExportScheduler = Depends(get_scheduler)):
    return ScheduleDTO.model_validate(scheduler.get_schedule(schedule_id))


@router.put("/schedules/{schedule_id}", response_model=ScheduleDTO)
async def update_schedule(
    schedule_id: str,
    body: ScheduleUpdateRequest,
    scheduler: ExportScheduler = Depends(get_scheduler),
):
    return ScheduleDTO.model_validate(scheduler.update_schedule(schedule_id, body.to_domain()))


@router.delete("/schedules/{schedule_id}")
async def delete_schedule(schedule_id: str, scheduler: ExportScheduler = Depends(get_scheduler)):
    scheduler.delete_schedule(schedule_id)
    return {"deleted": True, "id": schedule_id}


@router.post("/schedules/{schedule_id}/run", response_model=ExportResultDTO)
async def run_schedule(
    schedule_id: str,
    scheduler: ExportScheduler = Depends(get_scheduler),
    requester: str = Depends(get_requester),
):
    """Run a schedule now, whether or not it is enabled or due."""
    result = await scheduler.run_schedule(schedule_id, requested_by=requester)
    return ExportResultDTO.model_validate(result)


# ========== History & statistics ==========

@router.get("/history", response_model=ExportHistoryPageDTO)
async def list_export_history(
    page: Optional[str] = Query(default=None),
    page_size: Optional[str] = Query(default=None),
    plugin: Optional[str] = Query(default=None),
    success: Optional[str] = Query(default=None),
    history: HistoryService = Depends(get_history),
):
    """Paginated export history, newest first.

    Malformed or out-of-range paging values are corrected, not rejected.
    """
    result = await history.list_export_history(
        page=page,
        page_size=page_size,
        plugin=plugin,
        success=parse_success_filter(success),
    )
    return ExportHistoryPageDTO.from_page(result)


@router.get("/history/{export_id}", response_model=ExportHistoryDTO)
async def get_export_history(export_id: str, history: HistoryService = Depends(get_history)):
    return ExportHistoryDTO.model_validate(await history.get_export_history(export_id))


@router.get("/statistics", response_model=StatisticsDTO)
async def export_statistics(history: HistoryService = Depends(get_history)):
    return StatisticsDTO.model_validate(await history.get_export_statistics())


# ========== Exports ==========

@router.post("", response_model=ExportResultDTO)
async def run_export(
    body: ExportRequestDTO,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    history: HistoryService = Depends(get_history),
    requester: str = Depends(get_requester),
):
    """Run an export synchronously.

    A plugin failure still returns 200 with ``success=false``; the attempt
    is recorded in history either way.
    """
    request = body.to_domain()
    result = await coordinator.export(request)
    await history.save_export_history(request, result, requester)
    return ExportResultDTO.model_validate(result)


@router.post("/preview", response_model=PreviewResultDTO)
async def preview_export(
    body: ExportRequestDTO,
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    return PreviewResultDTO.model_validate(await coordinator.preview(body.to_domain()))


@router.get("/{export_id}", response_model=ExportResultDTO)
async def get_export_result(
    export_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    return ExportResultDTO.model_validate(coordinator.get_export_result(export_id))


@router.get("/{export_id}/download")
async def download_export(
    export_id: str,
    downloads: DownloadGatekeeper = Depends(get_downloads),
):
    """Stream the export's output file if it lies inside the base directory."""
    resolved = await downloads.resolve(export_id)
    logger.info(f"Serving export {export_id} from {resolved.path}")
    return FileResponse(
        resolved.path,
        media_type=resolved.media_type,
        filename=resolved.filename,
        headers=DOWNLOAD_HEADERS,
    )
