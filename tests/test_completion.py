#!/usr/bin/env python3
"""Tests for completing maintenance tasks."""

from datetime import timedelta

import pytest

from conftest import NOW, TODAY
from rideway import (
    Completion,
    DueTaskNotifier,
    NotFoundError,
    PersistenceError,
    Settings,
    ValidationError,
    apply_mileage_update,
    complete_task,
    recompute,
)
from rideway.events import MAINTENANCE_COMPLETED, MAINTENANCE_DUE, MILEAGE_UPDATED


def ride_to(repo, mileage):
    apply_mileage_update(repo, "alice", "bike-1", mileage, NOW)


class TestResetSchedule:
    """Default completion restarts the cycle where the work was done."""

    def test_resets_base_to_completion(self, repo, make_task):
        make_task("oil", interval_miles=3000, interval_days=180, base_odometer=5000)
        ride_to(repo, 7000)

        result = complete_task(
            repo, "alice", "oil", Completion(date=TODAY), today=TODAY
        )

        task = repo.get_task("oil")
        assert task.base_odometer == 7000
        assert task.next_due_odometer == 10000
        assert task.next_due_date == TODAY + timedelta(days=180)
        assert result.updated_task.next_due_odometer == 10000

    def test_service_record_written(self, repo, make_task):
        make_task("oil", "Oil change", interval_miles=3000, base_odometer=5000)
        result = complete_task(
            repo, "alice", "oil", Completion(date=TODAY, cost=45.0), today=TODAY
        )
        record = result.service_record
        assert record.task_id == "oil"
        assert record.mileage == 5000
        assert record.cost == 45.0
        assert record.notes == "Completed Oil change"
        assert record.is_scheduled is True
        assert record.next_due_odometer == 8000
        assert repo.list_service_records(task_id="oil") == [record]

    def test_second_completion_advances_again(self, repo, make_task):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        ride_to(repo, 7000)
        complete_task(repo, "alice", "oil", Completion(date=TODAY), today=TODAY)
        ride_to(repo, 9500)
        complete_task(repo, "alice", "oil", Completion(date=TODAY), today=TODAY)
        assert repo.get_task("oil").next_due_odometer == 12500
        assert len(repo.list_service_records(task_id="oil")) == 2

    def test_zero_based_snaps_to_next_milestone(self, repo, make_task):
        make_task("chain", interval_miles=6000, interval_base="zero")
        ride_to(repo, 6500)
        complete_task(repo, "alice", "chain", Completion(date=TODAY), today=TODAY)
        assert repo.get_task("chain").next_due_odometer == 12000


class TestMaintainOriginalSchedule:
    """resetSchedule=false keeps the cadence anchored to the original due point."""

    def test_early_completion_keeps_due_point(self, repo, make_task):
        ride_to(repo, 9000)
        make_task("oil", interval_miles=4000, base_odometer=8000)
        assert repo.get_task("oil").next_due_odometer == 12000

        result = complete_task(
            repo,
            "alice",
            "oil",
            Completion(date=TODAY, mileage=10000),
            reset_schedule=False,
            today=TODAY,
        )

        assert result.updated_task.next_due_odometer == 12000
        assert repo.get_task("oil").next_due_odometer == 12000
        assert result.service_record.resets_interval is False

    def test_late_completion_advances_one_interval(self, repo, make_task):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        ride_to(repo, 8600)
        complete_task(
            repo,
            "alice",
            "oil",
            Completion(date=TODAY),
            reset_schedule=False,
            today=TODAY,
        )
        task = repo.get_task("oil")
        assert task.next_due_odometer == 11000
        assert task.base_odometer == 8000

    def test_late_date_advances_from_original(self, repo, make_task):
        make_task("coolant", interval_days=30, base_date=TODAY - timedelta(days=40))
        complete_task(
            repo,
            "alice",
            "coolant",
            Completion(date=TODAY),
            reset_schedule=False,
            today=TODAY,
        )
        assert repo.get_task("coolant").next_due_date == TODAY + timedelta(days=20)

    def test_late_zero_based_record_matches_task(self, repo, make_task):
        make_task("chain", interval_miles=6000, interval_base="zero")
        result = complete_task(
            repo,
            "alice",
            "chain",
            Completion(date=TODAY, mileage=13000),
            reset_schedule=False,
            today=TODAY,
        )
        task = repo.get_task("chain")
        assert task.next_due_odometer == 18000
        assert result.updated_task.next_due_odometer == 18000
        assert result.service_record.next_due_odometer == 18000

    def test_stored_due_point_survives_recompute(self, repo, make_task):
        make_task("oil", interval_miles=3000, interval_days=90, base_odometer=5000)
        ride_to(repo, 8600)
        complete_task(
            repo,
            "alice",
            "oil",
            Completion(date=TODAY + timedelta(days=100)),
            reset_schedule=False,
            today=TODAY,
        )
        task = repo.get_task("oil")
        again = recompute(task, repo.get_motorcycle("bike-1"))
        assert again.next_due_odometer == task.next_due_odometer == 11000
        assert again.next_due_date == task.next_due_date


class TestCompletionValidation:
    """Rejected completions leave everything untouched."""

    def test_mileage_below_odometer_rejected(self, repo, make_task):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        with pytest.raises(ValidationError, match="cannot be less than"):
            complete_task(repo, "alice", "oil", Completion(mileage=4000), today=TODAY)
        assert repo.list_service_records() == []

    def test_negative_cost_rejected(self, repo, make_task):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        with pytest.raises(ValidationError):
            complete_task(repo, "alice", "oil", Completion(cost=-5), today=TODAY)

    def test_foreign_task_looks_missing(self, repo, make_task):
        make_task("bobs", motorcycle_id="bike-2", interval_miles=1000, base_odometer=0)
        with pytest.raises(NotFoundError, match="Maintenance task not found"):
            complete_task(repo, "alice", "bobs", Completion(), today=TODAY)

    def test_unknown_task(self, repo):
        with pytest.raises(NotFoundError):
            complete_task(repo, "alice", "nope", Completion(), today=TODAY)

    def test_needs_task_or_motorcycle(self, repo):
        with pytest.raises(ValidationError):
            complete_task(repo, "alice", None, Completion(), today=TODAY)

    def test_storage_failure_rolls_back_reschedule(self, repo, make_task, monkeypatch):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        ride_to(repo, 7000)

        def fail(record):
            raise PersistenceError("disk full")

        monkeypatch.setattr(repo, "add_service_record", fail)
        with pytest.raises(PersistenceError):
            complete_task(repo, "alice", "oil", Completion(), today=TODAY)
        assert repo.get_task("oil").next_due_odometer == 8000


class TestUnscheduledService:
    """Service records without a task."""

    def test_record_for_motorcycle(self, repo):
        result = complete_task(
            repo,
            "alice",
            None,
            Completion(date=TODAY, cost=120.0, notes="New grips", motorcycle_id="bike-1"),
            today=TODAY,
        )
        assert result.updated_task is None
        assert result.service_record.task_id is None
        assert result.service_record.is_scheduled is False
        assert result.service_record.notes == "New grips"

    def test_non_recurring_task_not_rescheduled(self, repo, make_task):
        make_task("fork", interval_miles=3000, base_odometer=5000, is_recurring=False)
        ride_to(repo, 6000)
        result = complete_task(repo, "alice", "fork", Completion(), today=TODAY)
        assert result.updated_task.next_due_odometer == 8000
        assert result.service_record.task_id == "fork"


class TestCompletionPropagation:
    """A completion mileage above the odometer is a new reading."""

    def test_propagates_to_other_tasks(self, repo, make_task, sink):
        make_task("oil", interval_miles=3000, base_odometer=5000)
        make_task("chain", interval_miles=6000, interval_base="zero")

        result = complete_task(
            repo,
            "alice",
            "oil",
            Completion(date=TODAY, mileage=6500),
            today=TODAY,
            sink=sink,
        )

        assert repo.get_motorcycle("bike-1").current_mileage == 6500
        assert len(repo.list_mileage_logs("bike-1")) == 1
        assert repo.get_task("chain").next_due_odometer == 12000
        assert repo.get_task("oil").next_due_odometer == 9500
        assert [t.id for t in result.mileage_update.newly_due_tasks] == ["chain"]

        kinds = [kind for _, kind, _ in sink.events]
        assert kinds == [MAINTENANCE_COMPLETED, MILEAGE_UPDATED]

    def test_completed_zero_based_task_is_not_newly_due(self, repo, make_task, sink):
        make_task("chain", interval_miles=6000, interval_base="zero")
        notifier = DueTaskNotifier(Settings())

        result = complete_task(
            repo,
            "alice",
            "chain",
            Completion(date=TODAY, mileage=6100),
            today=TODAY,
            sink=sink,
            notifier=notifier,
        )

        assert result.mileage_update.newly_due_tasks == []
        assert repo.get_task("chain").next_due_odometer == 12000
        sweep = notifier.sweep(repo, "alice", NOW, sink)
        assert sweep.notifications_triggered == 0
        assert sink.of_type(MAINTENANCE_DUE) == []

    def test_completed_event_payload(self, repo, make_task, sink):
        make_task("oil", "Oil change", interval_miles=3000, base_odometer=5000)
        complete_task(
            repo, "alice", "oil", Completion(date=TODAY, cost=45.0),
            today=TODAY, sink=sink,
        )
        (payload,) = sink.of_type(MAINTENANCE_COMPLETED)
        assert payload["task"] == {"id": "oil", "name": "Oil change"}
        assert payload["record"]["cost"] == 45.0
        assert payload["motorcycle"]["id"] == "bike-1"
