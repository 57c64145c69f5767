"""Shared fixtures for sync engine tests."""

import pytest

from fleet.sync.adapters import InMemoryDeviceInventory, InMemoryHistoryRepository
from fleet.sync.plugins import PluginRegistry
from fleet.sync.use_cases import HistoryService, SyncCoordinator
from sync_mocks import MockFilePlugin, make_devices


@pytest.fixture
def inventory():
    return InMemoryDeviceInventory(make_devices())


@pytest.fixture
def plugin():
    return MockFilePlugin()


@pytest.fixture
def registry(plugin):
    registry = PluginRegistry()
    registry.register(plugin)
    return registry


@pytest.fixture
def coordinator(registry, inventory):
    return SyncCoordinator(registry, inventory)


@pytest.fixture
def history_repo():
    return InMemoryHistoryRepository()


@pytest.fixture
def history(history_repo):
    return HistoryService(history_repo)
