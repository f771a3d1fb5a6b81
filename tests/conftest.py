"""Shared fixtures for maintenance engine tests."""

from datetime import date, datetime

import pytest

from rideway import (
    CollectingEventSink,
    InMemoryRepository,
    MaintenanceTask,
    Motorcycle,
    Settings,
    recompute,
)

TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def repo():
    """Alice's bike at 5,000 and Bob's bike at 100."""
    repository = InMemoryRepository()
    repository.add_motorcycle(
        Motorcycle("bike-1", "alice", "Daily", "Honda", "CB500X", 2021, 5000)
    )
    repository.add_motorcycle(Motorcycle("bike-2", "bob", "Track", current_mileage=100))
    return repository


@pytest.fixture
def sink():
    return CollectingEventSink()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def make_task(repo):
    """Factory that stores a task with a freshly computed due point."""

    def _make(task_id, name=None, motorcycle_id="bike-1", **kwargs):
        kwargs.setdefault("base_date", TODAY)
        task = MaintenanceTask(task_id, motorcycle_id, name or task_id, **kwargs)
        task = recompute(task, repo.get_motorcycle(motorcycle_id))
        repo.add_task(task)
        return task

    return _make
