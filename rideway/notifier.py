"""
Due-task notifier.

Sweeps are triggered from outside (a cron job, a dashboard request) and gated
to one per user per sweep interval. A ``maintenance_due`` event goes out once
per due transition: the notifier remembers which due point it announced for
each task and stays quiet until that task leaves the due state.

Given a state file, the gate, the announced due points and the queue of
crossed milestones survive between processes, so short-lived callers such as
the CLI share one notification history per garage.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .config import DEFAULTS, Settings
from .errors import PersistenceError
from .events import EventSink, MAINTENANCE_DUE, dispatch, maintenance_due_payload
from .loader import parse_date, parse_datetime
from .motorcycle import Motorcycle
from .repository import Repository
from .schedule import ScheduleView, recompute_schedule
from .task import MaintenanceTask

logger = logging.getLogger("rideway.notifier")

DuePoint = Tuple[Optional[int], Optional[date]]


@dataclass
class DueTask:
    """A task found due by a sweep."""

    task: MaintenanceTask
    motorcycle: Motorcycle
    schedule: ScheduleView


@dataclass
class SweepResult:
    due_tasks: List[DueTask] = field(default_factory=list)
    notifications_triggered: int = 0
    rate_limited: bool = False
    retry_after_seconds: int = 0

    @property
    def message(self) -> str:
        if self.rate_limited:
            minutes = -(-self.retry_after_seconds // 60)
            return f"Rate limited: next check allowed in {minutes} minutes"
        return "Maintenance check completed"


def state_file_for(garage_file: Union[str, Path]) -> Path:
    """Notifier state kept next to a garage file (garage.yaml.state)."""
    path = Path(garage_file)
    return path.with_name(path.name + ".state")


def _due_point_to_dict(due_point: DuePoint) -> Dict[str, Any]:
    due_mileage, due_date = due_point
    return {
        "dueMileage": due_mileage,
        "dueDate": due_date.isoformat() if due_date else None,
    }


def _parse_due_point(dct: Dict[str, Any]) -> DuePoint:
    return dct.get("dueMileage"), parse_date(dct.get("dueDate"))


class DueTaskNotifier:
    """Per-user sweep gate plus the memory of announced due points."""

    def __init__(
        self,
        settings: Settings = DEFAULTS,
        state_file: Optional[Union[str, Path]] = None,
    ):
        self.settings = settings
        self.state_file = Path(state_file) if state_file is not None else None
        self._lock = threading.Lock()
        self._user_locks: Dict[str, threading.Lock] = {}
        self._last_sweep: Dict[str, datetime] = {}
        self._notified: Dict[str, DuePoint] = {}
        self._pending: Dict[str, Dict[str, DuePoint]] = {}
        if self.state_file is not None and self.state_file.exists():
            self._load_state()

    # -- persistence ---------------------------------------------------------

    def _load_state(self) -> None:
        try:
            with open(self.state_file, "r") as fp:
                data = yaml.load(fp, Loader=yaml.SafeLoader) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Cannot read {self.state_file}: {e}") from e

        try:
            self._last_sweep = {
                user: parse_datetime(at)
                for user, at in (data.get("lastSweep") or {}).items()
            }
            self._notified = {
                task_id: _parse_due_point(dct)
                for task_id, dct in (data.get("notified") or {}).items()
            }
            self._pending = {
                user: {
                    task_id: _parse_due_point(dct)
                    for task_id, dct in (queue or {}).items()
                }
                for user, queue in (data.get("pending") or {}).items()
            }
        except (AttributeError, ValueError, TypeError) as e:
            raise PersistenceError(
                f"Malformed notifier state {self.state_file}: {e}"
            ) from e

    def _save_state(self) -> None:
        if self.state_file is None:
            return
        with self._lock:
            data = {
                "lastSweep": {
                    user: at.isoformat() for user, at in self._last_sweep.items()
                },
                "notified": {
                    task_id: _due_point_to_dict(point)
                    for task_id, point in self._notified.items()
                },
                "pending": {
                    user: {
                        task_id: _due_point_to_dict(point)
                        for task_id, point in queue.items()
                    }
                    for user, queue in self._pending.items()
                    if queue
                },
            }
            try:
                with open(self.state_file, "w") as fp:
                    yaml.dump(data, fp, default_flow_style=False, sort_keys=False)
            except (OSError, yaml.YAMLError) as e:
                raise PersistenceError(
                    f"Cannot write {self.state_file}: {e}"
                ) from e

    # -- gate ----------------------------------------------------------------

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._lock:
            return self._user_locks.setdefault(user_id, threading.Lock())

    def _seconds_until_allowed(self, user_id: str, now: datetime) -> int:
        with self._lock:
            last = self._last_sweep.get(user_id)
        if last is None:
            return 0
        elapsed = (now - last).total_seconds()
        return max(0, int(self.settings.sweep_interval_seconds - elapsed))

    # -- transition memory ---------------------------------------------------

    def report_newly_due(
        self,
        user_id: str,
        motorcycle: Motorcycle,
        tasks: List[MaintenanceTask],
        previous_mileage: Optional[int] = None,
    ) -> None:
        """
        Queue tasks a mileage update pushed into the due state.

        For zero-based tasks the crossed milestone is the due point computed
        at previous_mileage, since the cached one has already moved on.
        """
        with self._lock:
            queue = self._pending.setdefault(user_id, {})
            for task in tasks:
                due_mileage = task.next_due_odometer
                if previous_mileage is not None and task.interval_miles:
                    crossed, _ = task.interval.due_point(previous_mileage)
                    if crossed is not None and crossed <= motorcycle.current_mileage:
                        due_mileage = crossed
                queue[task.id] = (due_mileage, task.next_due_date)
        logger.debug("Queued %d newly due tasks for user %s", len(tasks), user_id)
        self._save_state()

    def _already_notified(self, task_id: str, due_point: DuePoint) -> bool:
        with self._lock:
            return self._notified.get(task_id) == due_point

    def _mark_notified(self, task_id: str, due_point: DuePoint) -> None:
        with self._lock:
            self._notified[task_id] = due_point

    def _clear(self, task_id: str) -> None:
        with self._lock:
            self._notified.pop(task_id, None)

    # -- sweeps --------------------------------------------------------------

    def sweep(
        self,
        repository: Repository,
        user_id: str,
        now: Optional[datetime] = None,
        sink: Optional[EventSink] = None,
        force: bool = False,
    ) -> SweepResult:
        """
        Check a user's active recurring tasks and announce new due transitions.

        Returns rate_limited when the user was swept within the sweep interval
        or a sweep for the same user is still running; force skips the
        interval check but never runs two sweeps for one user at once. Only a
        sweep that finishes starts a new interval.
        """
        now = now or datetime.now()
        lock = self._user_lock(user_id)
        if not lock.acquire(blocking=False):
            logger.info("Sweep for user %s already running", user_id)
            return SweepResult(rate_limited=True)
        try:
            wait = self._seconds_until_allowed(user_id, now)
            if wait and not force:
                logger.info("Sweep for user %s rate limited (%ds)", user_id, wait)
                return SweepResult(rate_limited=True, retry_after_seconds=wait)
            result = self._sweep(repository, user_id, now.date(), sink)
            with self._lock:
                self._last_sweep[user_id] = now
            self._save_state()
            return result
        finally:
            lock.release()

    def _sweep(
        self,
        repository: Repository,
        user_id: str,
        today: date,
        sink: Optional[EventSink],
    ) -> SweepResult:
        result = SweepResult()
        with self._lock:
            pending = dict(self._pending.get(user_id, {}))
        undelivered = set()

        for motorcycle in repository.list_motorcycles(owner_id=user_id):
            for task in repository.list_tasks(motorcycle.id):
                if not task.is_recurring or not task.has_interval:
                    continue
                view = recompute_schedule(task, motorcycle, today, self.settings)
                queued = pending.get(task.id)

                if view.is_due:
                    result.due_tasks.append(DueTask(task, motorcycle, view))
                    due_point = (view.due_mileage, view.due_date)
                elif queued is not None:
                    due_point = queued
                else:
                    self._clear(task.id)
                    continue

                if sink is None:
                    undelivered.add(task.id)
                    continue
                if self._already_notified(task.id, due_point):
                    continue
                delivered = dispatch(
                    sink,
                    user_id,
                    MAINTENANCE_DUE,
                    maintenance_due_payload(motorcycle, task, *due_point),
                )
                if delivered:
                    self._mark_notified(task.id, due_point)
                    result.notifications_triggered += 1
                    logger.info("Maintenance due: %s on %s", task.name, motorcycle.name)
                else:
                    undelivered.add(task.id)

        # Undelivered entries and those queued while this sweep ran stay.
        with self._lock:
            queue = self._pending.get(user_id, {})
            for task_id, point in pending.items():
                if task_id not in undelivered and queue.get(task_id) == point:
                    del queue[task_id]
            if not queue:
                self._pending.pop(user_id, None)

        logger.info(
            "Sweep for user %s: %d due, %d notifications",
            user_id,
            len(result.due_tasks),
            result.notifications_triggered,
        )
        return result

    def check_all_users(
        self,
        repository: Repository,
        now: Optional[datetime] = None,
        sink: Optional[EventSink] = None,
    ) -> Dict[str, SweepResult]:
        """Sweep every motorcycle owner in the repository."""
        owners = sorted({m.owner_id for m in repository.list_motorcycles()})
        return {
            owner: self.sweep(repository, owner, now, sink) for owner in owners
        }
