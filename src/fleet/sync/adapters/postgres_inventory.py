"""PostgreSQL adapter for the device inventory.

Reads devices for export and applies import changes against the devices
table in db/sync_schema.sql. Changes from one import are applied in a
single transaction. MAC addresses are matched lower-cased, backed by the
unique index on lower(mac).
"""

import json
import logging
from typing import TYPE_CHECKING, Any

from ...api.database import database_transaction
from ..domain.entities import ChangeType, DeviceData, ExportFilters, ImportChange
from ..domain.ports import IDeviceInventory

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

DEVICE_COLUMNS = "id, lower(mac) AS mac, ip, type, name, model, firmware, status, last_seen, settings"


class PostgresDeviceInventory(IDeviceInventory):
    """PostgreSQL implementation of IDeviceInventory."""

    def __init__(self, pool: "asyncpg.Pool"):
        self.pool = pool

    async def list_devices(self, filters: ExportFilters | None = None) -> list[DeviceData]:
        clauses = []
        params: list[Any] = []
        if filters is not None:
            if filters.device_ids:
                params.append(filters.device_ids)
                clauses.append(f"id = ANY(${len(params)}::bigint[])")
            if filters.device_types:
                params.append(filters.device_types)
                clauses.append(f"type = ANY(${len(params)}::text[])")
            if filters.device_status:
                params.append(filters.device_status)
                clauses.append(f"status = ANY(${len(params)}::text[])")
            if filters.last_seen_after:
                params.append(filters.last_seen_after)
                clauses.append(f"last_seen >= ${len(params)}")
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {DEVICE_COLUMNS} FROM devices {where} ORDER BY lower(mac)",
                *params,
            )
        return [self._row_to_device(r) for r in rows]

    @staticmethod
    def _row_to_device(row) -> DeviceData:
        data = dict(row)
        settings = data.get("settings")
        if isinstance(settings, str):
            data["settings"] = json.loads(settings)
        return DeviceData(**{**data, "settings": data.get("settings") or {}})

    async def apply_changes(self, changes: list[ImportChange]) -> int:
        applied = 0
        async with database_transaction(self.pool) as conn:
            for change in changes:
                if change.resource != "device":
                    logger.warning(f"Skipping change for unsupported resource {change.resource}")
                    continue
                if change.type == ChangeType.DELETE:
                    status = await conn.execute(
                        "DELETE FROM devices WHERE lower(mac) = $1", change.resource_id.lower()
                    )
                    applied += int(status.split()[-1])
                    continue

                device = DeviceData.from_dict(change.new_value)
                await conn.execute(
                    """
                    INSERT INTO devices (
                        mac, ip, type, name, model, firmware, status, last_seen,
                        settings, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, NOW())
                    ON CONFLICT ((lower(mac))) DO UPDATE SET
                        mac = EXCLUDED.mac,
                        ip = EXCLUDED.ip,
                        type = EXCLUDED.type,
                        name = EXCLUDED.name,
                        model = EXCLUDED.model,
                        firmware = EXCLUDED.firmware,
                        status = EXCLUDED.status,
                        last_seen = EXCLUDED.last_seen,
                        settings = EXCLUDED.settings,
                        updated_at = NOW()
                    """,
                    device.mac,
                    device.ip,
                    device.type,
                    device.name,
                    device.model,
                    device.firmware,
                    device.status,
                    device.last_seen,
                    json.dumps(device.settings),
                )
                applied += 1

        logger.info(f"Applied {applied} device changes")
        return applied
