"""
Shared fixtures: an isolated data file and components per test.
"""

from pathlib import Path

import pytest

from drawtask.accounts import AccountRegistry
from drawtask.store import SnapshotStore
from drawtask.tasks import TaskRepository


@pytest.fixture()
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "data.json"


@pytest.fixture()
def store(data_file: Path) -> SnapshotStore:
    return SnapshotStore(data_file)


@pytest.fixture()
def accounts(store: SnapshotStore) -> AccountRegistry:
    return AccountRegistry(store)


@pytest.fixture()
def tasks(store: SnapshotStore) -> TaskRepository:
    return TaskRepository(store)
