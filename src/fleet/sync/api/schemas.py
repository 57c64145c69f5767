"""Pydantic schemas for sync API request/response validation."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..domain.entities import (
    ChangeType,
    ExportFilters,
    ExportOptions,
    ExportRequest,
    HistoryPage,
    ImportOptions,
    ImportRequest,
    ImportSource,
    OutputConfig,
    PluginCategory,
    ScheduleUpdate,
)


# ========== Requests ==========

class ExportFiltersDTO(BaseModel):
    device_ids: list[int] = Field(default_factory=list)
    device_types: list[str] = Field(default_factory=list)
    device_status: list[str] = Field(default_factory=list)
    last_seen_after: Optional[datetime] = None

    class Config:
        from_attributes = True


class OutputConfigDTO(BaseModel):
    type: str = "file"
    destination: str = ""
    compression: Optional[str] = None

    class Config:
        from_attributes = True


class ExportOptionsDTO(BaseModel):
    dry_run: bool = False
    validate_only: bool = False
    include_metadata: bool = True
    compact_output: bool = False

    class Config:
        from_attributes = True


class ExportRequestDTO(BaseModel):
    """Export request body.

    ``plugin_name`` and ``format`` default to empty so that a missing plugin
    is reported by the engine's own validation with a stable error code.
    """

    plugin_name: str = ""
    format: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    filters: ExportFiltersDTO = Field(default_factory=ExportFiltersDTO)
    output: OutputConfigDTO = Field(default_factory=OutputConfigDTO)
    options: ExportOptionsDTO = Field(default_factory=ExportOptionsDTO)
    name: str = ""
    description: str = ""

    class Config:
        from_attributes = True

    def to_domain(self) -> ExportRequest:
        return ExportRequest(
            plugin_name=self.plugin_name,
            format=self.format,
            config=dict(self.config),
            filters=ExportFilters(**self.filters.model_dump()),
            output=OutputConfig(**self.output.model_dump()),
            options=ExportOptions(**self.options.model_dump()),
            name=self.name,
            description=self.description,
        )


class ImportSourceDTO(BaseModel):
    type: str = ""
    path: Optional[str] = None
    data: Any = None


class ImportOptionsDTO(BaseModel):
    dry_run: bool = False
    validate_only: bool = False
    force_overwrite: bool = False


class ImportRequestDTO(BaseModel):
    plugin_name: str = ""
    format: str = ""
    source: ImportSourceDTO = Field(default_factory=ImportSourceDTO)
    config: dict[str, Any] = Field(default_factory=dict)
    options: ImportOptionsDTO = Field(default_factory=ImportOptionsDTO)

    def to_domain(self) -> ImportRequest:
        return ImportRequest(
            plugin_name=self.plugin_name,
            format=self.format,
            source=ImportSource(**self.source.model_dump()),
            config=dict(self.config),
            options=ImportOptions(**self.options.model_dump()),
        )


class ScheduleCreateRequest(BaseModel):
    name: str = ""
    interval_sec: int = 0
    enabled: bool = True
    request: ExportRequestDTO = Field(default_factory=ExportRequestDTO)


class ScheduleUpdateRequest(BaseModel):
    name: Optional[str] = None
    interval_sec: Optional[int] = None
    enabled: Optional[bool] = None
    request: Optional[ExportRequestDTO] = None

    def to_domain(self) -> ScheduleUpdate:
        return ScheduleUpdate(
            name=self.name,
            interval_sec=self.interval_sec,
            enabled=self.enabled,
            request=self.request.to_domain() if self.request else None,
        )


# ========== Plugins ==========

class PluginInfoDTO(BaseModel):
    name: str
    version: str
    description: str = ""
    author: str = ""
    license: str = ""
    supported_formats: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    category: PluginCategory = PluginCategory.CUSTOM

    class Config:
        from_attributes = True


class PluginCapabilitiesDTO(BaseModel):
    supports_incremental: bool = False
    supports_scheduling: bool = False
    requires_authentication: bool = False
    supported_outputs: list[str] = Field(default_factory=list)
    max_data_size: int = 0
    concurrency_level: int = 1

    class Config:
        from_attributes = True


class PluginDetailDTO(BaseModel):
    info: PluginInfoDTO
    capabilities: PluginCapabilitiesDTO


class PluginListResponse(BaseModel):
    plugins: list[PluginInfoDTO]
    count: int


class PropertySchemaDTO(BaseModel):
    type: str
    description: str = ""
    default: Any = None
    enum: Optional[list[Any]] = None
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    sensitive: bool = False

    class Config:
        from_attributes = True


class ConfigSchemaDTO(BaseModel):
    version: str = "1.0"
    properties: dict[str, PropertySchemaDTO] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ========== Results ==========

class ExportResultDTO(BaseModel):
    export_id: str
    success: bool
    plugin_name: str
    format: str
    output_path: str = ""
    record_count: int = 0
    file_size: int = 0
    checksum: str = ""
    duration_ms: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error_code: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PreviewResultDTO(BaseModel):
    success: bool
    record_count: int = 0
    estimated_size: int = 0
    sample_data: Any = None
    warnings: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ImportChangeDTO(BaseModel):
    type: ChangeType
    resource: str
    resource_id: str
    old_value: Any = None
    new_value: Any = None

    class Config:
        from_attributes = True


class ImportResultDTO(BaseModel):
    import_id: str
    success: bool
    plugin_name: str
    format: str
    records_imported: int = 0
    records_skipped: int = 0
    changes: list[ImportChangeDTO] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error_code: Optional[str] = None
    duration_ms: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ========== History ==========

class ExportHistoryDTO(BaseModel):
    id: Optional[int] = None
    export_id: str
    plugin_name: str
    format: str
    name: str = ""
    description: str = ""
    requested_by: str = ""
    success: bool
    record_count: int = 0
    file_size: int = 0
    file_path: str = ""
    duration_ms: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportHistoryDTO(BaseModel):
    id: Optional[int] = None
    import_id: str
    plugin_name: str
    format: str
    requested_by: str = ""
    success: bool
    records_imported: int = 0
    records_skipped: int = 0
    duration_ms: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class _HistoryPageFields(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @staticmethod
    def _page_fields(page: HistoryPage) -> dict[str, Any]:
        return {
            "total": page.total,
            "page": page.page,
            "page_size": page.page_size,
            "total_pages": page.total_pages,
            "has_next": page.has_next,
            "has_previous": page.has_previous,
        }


class ExportHistoryPageDTO(_HistoryPageFields):
    items: list[ExportHistoryDTO]

    @classmethod
    def from_page(cls, page: HistoryPage) -> "ExportHistoryPageDTO":
        return cls(
            items=[ExportHistoryDTO.model_validate(r) for r in page.items],
            **cls._page_fields(page),
        )


class ImportHistoryPageDTO(_HistoryPageFields):
    items: list[ImportHistoryDTO]

    @classmethod
    def from_page(cls, page: HistoryPage) -> "ImportHistoryPageDTO":
        return cls(
            items=[ImportHistoryDTO.model_validate(r) for r in page.items],
            **cls._page_fields(page),
        )


class StatisticsDTO(BaseModel):
    total: int = 0
    success: int = 0
    failure: int = 0
    by_plugin: dict[str, int] = Field(default_factory=dict)

    class Config:
        from_attributes = True


# ========== Schedules ==========

class ScheduleDTO(BaseModel):
    id: str
    name: str
    interval_sec: int
    enabled: bool
    request: ExportRequestDTO
    created_by: str = ""
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_export_id: Optional[str] = None
    last_success: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScheduleListResponse(BaseModel):
    schedules: list[ScheduleDTO]
    count: int
