"""Tests for the in-memory device inventory."""

import pytest

from fleet.sync.adapters import InMemoryDeviceInventory
from fleet.sync.domain.entities import ChangeType, ExportFilters, ImportChange
from sync_mocks import make_devices


@pytest.fixture
def inventory():
    return InMemoryDeviceInventory(make_devices())


class TestApplyChanges:
    @pytest.mark.asyncio
    async def test_imported_ids_are_not_trusted(self, inventory):
        existing = {d.mac: d.id for d in await inventory.list_devices()}
        change = ImportChange(
            type=ChangeType.CREATE,
            resource="device",
            resource_id="aa:bb:cc:00:00:09",
            new_value={"mac": "aa:bb:cc:00:00:09", "id": existing["aa:bb:cc:00:00:01"]},
        )

        await inventory.apply_changes([change])

        ids = [d.id for d in await inventory.list_devices()]
        assert len(ids) == 4
        assert len(set(ids)) == 4

    @pytest.mark.asyncio
    async def test_update_keeps_existing_id(self, inventory):
        before = {d.mac: d.id for d in await inventory.list_devices()}
        change = ImportChange(
            type=ChangeType.UPDATE,
            resource="device",
            resource_id="aa:bb:cc:00:00:02",
            new_value={"mac": "AA:BB:CC:00:00:02", "id": 999, "name": "Boiler"},
        )

        await inventory.apply_changes([change])

        devices = {d.mac: d for d in await inventory.list_devices()}
        assert devices["aa:bb:cc:00:00:02"].id == before["aa:bb:cc:00:00:02"]
        assert devices["aa:bb:cc:00:00:02"].name == "Boiler"

    @pytest.mark.asyncio
    async def test_delete_matches_mac_case_insensitively(self, inventory):
        change = ImportChange(type=ChangeType.DELETE, resource="device", resource_id="AA:BB:CC:00:00:03")

        applied = await inventory.apply_changes([change])

        assert applied == 1
        assert len(await inventory.list_devices()) == 2

    @pytest.mark.asyncio
    async def test_filters(self, inventory):
        devices = await inventory.list_devices(ExportFilters(device_status=["offline"]))

        assert [d.mac for d in devices] == ["aa:bb:cc:00:00:02"]
