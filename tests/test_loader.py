#!/usr/bin/env python3
"""Tests for YAML loading and saving utilities."""

from datetime import date, datetime

import pytest
import yaml

from rideway import (
    Completion,
    IntervalBase,
    MaintenanceTask,
    Motorcycle,
    PersistenceError,
    Priority,
    YamlRepository,
    apply_mileage_update,
    complete_task,
    load_garage,
)
from rideway.loader import parse_date, parse_datetime

GARAGE = """
motorcycles:
  - id: bike-1
    ownerId: alice
    name: Daily
    make: Honda
    model: CB500X
    year: 2021
    currentMileage: 5000

tasks:
  - id: oil
    motorcycleId: bike-1
    name: Oil change
    intervalMiles: 3000
    intervalDays: 180
    baseOdometer: 4000
    baseDate: '2025-03-01'
    nextDueOdometer: 7000
    nextDueDate: '2025-08-28'
    priority: high
  - id: chain
    motorcycleId: bike-1
    name: Chain
    intervalMiles: 6000
    intervalBase: zero
    archived: true

mileageLogs:
  - id: log-1
    motorcycleId: bike-1
    previousMileage: 4000
    newMileage: 5000
    date: '2025-05-01T09:30:00'

serviceRecords:
  - id: rec-1
    motorcycleId: bike-1
    taskId: oil
    date: '2025-03-01'
    mileage: 4000
    cost: 45.0
    isScheduled: true
"""


@pytest.fixture
def garage_file(tmp_path):
    path = tmp_path / "garage.yaml"
    path.write_text(GARAGE)
    return path


class TestParseHelpers:
    """Tests for date parsing helpers."""

    def test_parse_date(self):
        assert parse_date("2025-03-01") == date(2025, 3, 1)
        assert parse_date(date(2025, 3, 1)) == date(2025, 3, 1)
        assert parse_date(datetime(2025, 3, 1, 8, 0)) == date(2025, 3, 1)
        assert parse_date(None) is None
        assert parse_date("") is None

    def test_parse_datetime(self):
        assert parse_datetime("2025-05-01T09:30:00") == datetime(2025, 5, 1, 9, 30)
        assert parse_datetime(date(2025, 5, 1)) == datetime(2025, 5, 1)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("next tuesday")


class TestLoadGarage:
    """Tests for load_garage."""

    def test_loads_everything(self, garage_file):
        repo = load_garage(garage_file)

        motorcycle = repo.get_motorcycle("bike-1")
        assert isinstance(motorcycle, Motorcycle)
        assert motorcycle.owner_id == "alice"
        assert motorcycle.current_mileage == 5000

        oil = repo.get_task("oil")
        assert isinstance(oil, MaintenanceTask)
        assert oil.interval_miles == 3000
        assert oil.base_date == date(2025, 3, 1)
        assert oil.next_due_date == date(2025, 8, 28)
        assert oil.priority is Priority.HIGH
        assert oil.interval_base is IntervalBase.CURRENT

        chain = repo.get_task("chain")
        assert chain.interval_base is IntervalBase.ZERO
        assert chain.archived is True

        (log,) = repo.list_mileage_logs("bike-1")
        assert log.timestamp == datetime(2025, 5, 1, 9, 30)

        (record,) = repo.list_service_records(task_id="oil")
        assert record.cost == 45.0
        assert record.is_scheduled is True
        assert record.resets_interval is True

    def test_unquoted_dates_accepted(self, tmp_path):
        path = tmp_path / "garage.yaml"
        path.write_text(GARAGE.replace("'2025-03-01'", "2025-03-01"))
        assert load_garage(path).get_task("oil").base_date == date(2025, 3, 1)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "garage.yaml"
        path.write_text("")
        assert load_garage(path).list_motorcycles() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            load_garage(tmp_path / "nope.yaml")

    def test_create_missing_file(self, tmp_path):
        path = tmp_path / "new.yaml"
        repo = YamlRepository(path, create=True)
        assert path.exists()
        assert repo.list_motorcycles() == []

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("motorcycles: [unclosed\n")
        with pytest.raises(PersistenceError, match="Cannot read"):
            load_garage(path)

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("motorcycles:\n  - id: bike-1\n    name: Daily\n")
        with pytest.raises(PersistenceError, match="Malformed"):
            load_garage(path)


class TestSaveGarage:
    """Writes reach the file on commit."""

    def test_mileage_update_saved(self, garage_file):
        repo = load_garage(garage_file)
        apply_mileage_update(repo, "alice", "bike-1", 6200, datetime(2025, 6, 1, 12))

        reloaded = load_garage(garage_file)
        assert reloaded.get_motorcycle("bike-1").current_mileage == 6200
        assert len(reloaded.list_mileage_logs("bike-1")) == 2

    def test_completion_saved(self, garage_file):
        repo = load_garage(garage_file)
        complete_task(
            repo,
            "alice",
            "oil",
            Completion(date=date(2025, 6, 1), cost=50.0),
            today=date(2025, 6, 1),
        )

        reloaded = load_garage(garage_file)
        assert reloaded.get_task("oil").next_due_odometer == 8000
        assert reloaded.get_task("oil").base_date == date(2025, 6, 1)
        assert len(reloaded.list_service_records(task_id="oil")) == 2

    def test_written_file_uses_camel_case(self, garage_file):
        repo = load_garage(garage_file)
        apply_mileage_update(repo, "alice", "bike-1", 6200, datetime(2025, 6, 1, 12))

        data = yaml.safe_load(garage_file.read_text())
        assert list(data) == ["motorcycles", "tasks", "mileageLogs", "serviceRecords"]
        assert data["motorcycles"][0]["currentMileage"] == 6200
        assert data["tasks"][1]["intervalBase"] == "zero"
        assert data["tasks"][1]["archived"] is True
        assert "isRecurring" not in data["tasks"][0]

    def test_failed_write_keeps_memory_consistent(self, garage_file, monkeypatch):
        repo = load_garage(garage_file)

        def fail():
            raise PersistenceError("disk full")

        monkeypatch.setattr(repo, "_write", fail)
        with pytest.raises(PersistenceError):
            apply_mileage_update(
                repo, "alice", "bike-1", 6200, datetime(2025, 6, 1, 12)
            )
        assert repo.get_motorcycle("bike-1").current_mileage == 5000
        assert load_garage(garage_file).get_motorcycle("bike-1").current_mileage == 5000
