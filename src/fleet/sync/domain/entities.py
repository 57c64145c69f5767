"""Domain entities for export/import sync operations.

These are pure data structures with no infrastructure dependencies.
Request shapes are built by the HTTP layer from validated pydantic models;
results and history records flow back out through the same layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import ceil
from typing import Any


# ============================================
# Plugin metadata
# ============================================

class PluginCategory(str, Enum):
    BACKUP = "backup"
    GITOPS = "gitops"
    HOME_AUTOMATION = "home_automation"
    NETWORKING = "networking"
    MONITORING = "monitoring"
    DOCUMENTATION = "documentation"
    CUSTOM = "custom"


@dataclass(frozen=True)
class PluginInfo:
    """Descriptor of an installed plugin. Immutable once registered."""

    name: str
    version: str
    description: str = ""
    author: str = ""
    license: str = ""
    supported_formats: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    category: PluginCategory = PluginCategory.CUSTOM


@dataclass
class PropertySchema:
    """Schema for a single plugin config key."""

    type: str
    description: str = ""
    default: Any = None
    enum: list[Any] | None = None
    pattern: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    sensitive: bool = False


@dataclass
class ConfigSchema:
    """Free-form config contract advertised by a plugin."""

    version: str = "1.0"
    properties: dict[str, PropertySchema] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)


@dataclass
class PluginCapabilities:
    supports_incremental: bool = False
    supports_scheduling: bool = False
    requires_authentication: bool = False
    supported_outputs: list[str] = field(default_factory=list)
    max_data_size: int = 0
    concurrency_level: int = 1


# ============================================
# Fleet data handed to plugins
# ============================================

@dataclass
class DeviceData:
    """A managed device as seen by export/import plugins.

    The MAC address is the stable identity used to diff imports.
    """

    mac: str
    id: int | None = None
    ip: str | None = None
    type: str | None = None
    name: str | None = None
    model: str | None = None
    firmware: str | None = None
    status: str | None = None
    last_seen: datetime | None = None
    settings: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mac": self.mac,
            "id": self.id,
            "ip": self.ip,
            "type": self.type,
            "name": self.name,
            "model": self.model,
            "firmware": self.firmware,
            "status": self.status,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "settings": self.settings,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DeviceData":
        last_seen = raw.get("last_seen")
        if isinstance(last_seen, str):
            last_seen = datetime.fromisoformat(last_seen)
        return cls(
            mac=str(raw["mac"]).lower(),
            id=raw.get("id"),
            ip=raw.get("ip"),
            type=raw.get("type"),
            name=raw.get("name"),
            model=raw.get("model"),
            firmware=raw.get("firmware"),
            status=raw.get("status"),
            last_seen=last_seen,
            settings=raw.get("settings") or {},
        )


@dataclass
class ExportMetadata:
    export_id: str
    export_type: str
    requested_at: datetime
    total_devices: int = 0
    filters_applied: bool = False


@dataclass
class ExportData:
    """Snapshot of fleet state loaded for a single export."""

    devices: list[DeviceData]
    metadata: ExportMetadata
    timestamp: datetime


# ============================================
# Export
# ============================================

@dataclass
class ExportFilters:
    device_ids: list[int] = field(default_factory=list)
    device_types: list[str] = field(default_factory=list)
    device_status: list[str] = field(default_factory=list)
    last_seen_after: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.device_ids
            or self.device_types
            or self.device_status
            or self.last_seen_after
        )

    def matches(self, device: DeviceData) -> bool:
        if self.device_ids and device.id not in self.device_ids:
            return False
        if self.device_types and device.type not in self.device_types:
            return False
        if self.device_status and device.status not in self.device_status:
            return False
        if self.last_seen_after and (
            device.last_seen is None or device.last_seen < self.last_seen_after
        ):
            return False
        return True


@dataclass
class OutputConfig:
    type: str = "file"
    destination: str = ""
    compression: str | None = None


@dataclass
class ExportOptions:
    dry_run: bool = False
    validate_only: bool = False
    include_metadata: bool = True
    compact_output: bool = False

    @property
    def is_side_effect_free(self) -> bool:
        return self.dry_run or self.validate_only


@dataclass
class ExportRequest:
    """Transient export request; never persisted directly."""

    plugin_name: str
    format: str
    config: dict[str, Any] = field(default_factory=dict)
    filters: ExportFilters = field(default_factory=ExportFilters)
    output: OutputConfig = field(default_factory=OutputConfig)
    options: ExportOptions = field(default_factory=ExportOptions)
    name: str = ""
    description: str = ""


@dataclass
class ExportConfig:
    """Plugin-facing config derived from an ExportRequest."""

    export_id: str
    plugin_name: str
    format: str
    config: dict[str, Any]
    filters: ExportFilters
    output: OutputConfig
    options: ExportOptions


@dataclass
class ExportResult:
    """Outcome of one export execution, keyed by its correlation id."""

    success: bool
    plugin_name: str
    format: str
    export_id: str = ""
    output_path: str = ""
    record_count: int = 0
    file_size: int = 0
    checksum: str = ""
    duration_ms: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def error_message(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None


@dataclass
class PreviewResult:
    success: bool
    record_count: int = 0
    estimated_size: int = 0
    sample_data: Any = None
    warnings: list[str] = field(default_factory=list)


# ============================================
# Import
# ============================================

class ChangeType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class ImportSource:
    type: str
    path: str | None = None
    data: Any = None


@dataclass
class ImportOptions:
    dry_run: bool = False
    validate_only: bool = False
    force_overwrite: bool = False

    @property
    def is_side_effect_free(self) -> bool:
        return self.dry_run or self.validate_only


@dataclass
class ImportRequest:
    plugin_name: str
    format: str
    source: ImportSource
    config: dict[str, Any] = field(default_factory=dict)
    options: ImportOptions = field(default_factory=ImportOptions)


@dataclass
class ImportConfig:
    """Plugin-facing config derived from an ImportRequest."""

    import_id: str
    plugin_name: str
    format: str
    config: dict[str, Any]
    options: ImportOptions


@dataclass
class ImportChange:
    """One intended or applied mutation, identified by resource + resource_id."""

    type: ChangeType
    resource: str
    resource_id: str
    old_value: Any = None
    new_value: Any = None

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.resource, self.resource_id, self.type.value)


@dataclass
class ImportResult:
    success: bool
    plugin_name: str
    format: str
    import_id: str = ""
    records_imported: int = 0
    records_skipped: int = 0
    changes: list[ImportChange] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    duration_ms: int = 0
    created_at: datetime | None = None

    @property
    def error_message(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None


# ============================================
# History & statistics
# ============================================

@dataclass
class ExportHistoryRecord:
    """Flattened, append-only audit entry for one export attempt.

    Maps to the export_history table in db/sync_schema.sql.
    """

    export_id: str
    plugin_name: str
    format: str
    success: bool
    requested_by: str
    id: int | None = None
    name: str = ""
    description: str = ""
    record_count: int = 0
    file_size: int = 0
    file_path: str = ""
    duration_ms: int = 0
    error_message: str | None = None
    created_at: datetime | None = None


@dataclass
class ImportHistoryRecord:
    """Maps to the import_history table in db/sync_schema.sql."""

    import_id: str
    plugin_name: str
    format: str
    success: bool
    requested_by: str
    id: int | None = None
    records_imported: int = 0
    records_skipped: int = 0
    duration_ms: int = 0
    error_message: str | None = None
    created_at: datetime | None = None


@dataclass
class HistoryPage:
    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, ceil(self.total / self.page_size))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


@dataclass
class SyncStatistics:
    total: int = 0
    success: int = 0
    failure: int = 0
    by_plugin: dict[str, int] = field(default_factory=dict)


# ============================================
# Schedules
# ============================================

@dataclass
class ExportSchedule:
    """Named, interval-driven recurring export definition."""

    id: str
    name: str
    interval_sec: int
    request: ExportRequest
    enabled: bool = True
    created_by: str = ""
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_export_id: str | None = None
    last_success: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        return self.enabled and self.next_run is not None and self.next_run <= now


@dataclass
class ScheduleUpdate:
    """Partial update; None leaves the field untouched."""

    name: str | None = None
    interval_sec: int | None = None
    enabled: bool | None = None
    request: ExportRequest | None = None
