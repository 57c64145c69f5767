"""In-memory device inventory for no-database mode and tests."""

import asyncio
import itertools
import logging
from dataclasses import replace

from ..domain.entities import ChangeType, DeviceData, ExportFilters, ImportChange
from ..domain.ports import IDeviceInventory

logger = logging.getLogger(__name__)


class InMemoryDeviceInventory(IDeviceInventory):
    """Devices keyed by lower-cased MAC address."""

    def __init__(self, devices: list[DeviceData] | None = None):
        self._ids = itertools.count(1)
        self._devices: dict[str, DeviceData] = {}
        self._lock = asyncio.Lock()
        for device in devices or []:
            self._store(device)

    def _store(self, device: DeviceData) -> None:
        mac = device.mac.lower()
        current = self._devices.get(mac)
        device_id = device.id or (current.id if current else next(self._ids))
        self._devices[mac] = replace(device, mac=mac, id=device_id)

    async def list_devices(self, filters: ExportFilters | None = None) -> list[DeviceData]:
        devices = sorted(self._devices.values(), key=lambda d: d.mac)
        if filters is None or filters.is_empty:
            return devices
        return [d for d in devices if filters.matches(d)]

    async def apply_changes(self, changes: list[ImportChange]) -> int:
        applied = 0
        async with self._lock:
            for change in changes:
                if change.resource != "device":
                    logger.warning(f"Skipping change for unsupported resource {change.resource}")
                    continue
                if change.type == ChangeType.DELETE:
                    if self._devices.pop(change.resource_id.lower(), None) is not None:
                        applied += 1
                else:
                    # ids are assigned locally, never taken from the source
                    self._store(replace(DeviceData.from_dict(change.new_value), id=None))
                    applied += 1
        return applied
