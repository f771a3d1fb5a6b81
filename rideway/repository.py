"""
Repository interface and the in-memory implementation.

Reads hand back copies, so a caller only changes stored state through the
update/add methods. Writes inside ``with repository.transaction():`` commit
together; an exception rolls every one of them back.
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from .errors import PersistenceError
from .motorcycle import Motorcycle
from .records import MileageLog, ServiceRecord
from .task import MaintenanceTask

logger = logging.getLogger("rideway.repository")


class Repository:
    """Storage operations the maintenance engine depends on."""

    def get_motorcycle(self, motorcycle_id: str) -> Optional[Motorcycle]:
        raise NotImplementedError

    def list_motorcycles(self, owner_id: Optional[str] = None) -> List[Motorcycle]:
        raise NotImplementedError

    def add_motorcycle(self, motorcycle: Motorcycle) -> Motorcycle:
        raise NotImplementedError

    def update_motorcycle(self, motorcycle: Motorcycle) -> None:
        raise NotImplementedError

    def get_task(self, task_id: str) -> Optional[MaintenanceTask]:
        raise NotImplementedError

    def list_tasks(
        self, motorcycle_id: str, include_archived: bool = False
    ) -> List[MaintenanceTask]:
        raise NotImplementedError

    def add_task(self, task: MaintenanceTask) -> MaintenanceTask:
        raise NotImplementedError

    def update_task(self, task: MaintenanceTask) -> None:
        raise NotImplementedError

    def delete_task(self, task_id: str) -> None:
        raise NotImplementedError

    def add_mileage_log(self, log: MileageLog) -> MileageLog:
        raise NotImplementedError

    def list_mileage_logs(self, motorcycle_id: str) -> List[MileageLog]:
        raise NotImplementedError

    def add_service_record(self, record: ServiceRecord) -> ServiceRecord:
        raise NotImplementedError

    def list_service_records(
        self, motorcycle_id: Optional[str] = None, task_id: Optional[str] = None
    ) -> List[ServiceRecord]:
        raise NotImplementedError

    def transaction(self):
        raise NotImplementedError

    def latest_mileage_log(
        self, motorcycle_id: str, new_mileage: int
    ) -> Optional[MileageLog]:
        """Most recent log for the motorcycle that recorded new_mileage."""
        matching = [
            log
            for log in self.list_mileage_logs(motorcycle_id)
            if log.new_mileage == new_mileage
        ]
        if not matching:
            return None
        return max(matching, key=lambda log: log.timestamp)


class InMemoryRepository(Repository):
    """Dict-backed repository with snapshot rollback."""

    def __init__(self):
        self._motorcycles: Dict[str, Motorcycle] = {}
        self._tasks: Dict[str, MaintenanceTask] = {}
        self._mileage_logs: List[MileageLog] = []
        self._service_records: List[ServiceRecord] = []
        self._depth = 0

    # -- motorcycles ---------------------------------------------------------

    def get_motorcycle(self, motorcycle_id):
        motorcycle = self._motorcycles.get(motorcycle_id)
        return copy.copy(motorcycle) if motorcycle else None

    def list_motorcycles(self, owner_id=None):
        return [
            copy.copy(m)
            for m in self._motorcycles.values()
            if owner_id is None or m.owner_id == owner_id
        ]

    def add_motorcycle(self, motorcycle):
        with self.transaction():
            if motorcycle.id in self._motorcycles:
                raise PersistenceError(f"Motorcycle {motorcycle.id} already exists")
            self._motorcycles[motorcycle.id] = copy.copy(motorcycle)
        return motorcycle

    def update_motorcycle(self, motorcycle):
        with self.transaction():
            if motorcycle.id not in self._motorcycles:
                raise PersistenceError(f"Motorcycle {motorcycle.id} does not exist")
            self._motorcycles[motorcycle.id] = copy.copy(motorcycle)

    # -- tasks ---------------------------------------------------------------

    def get_task(self, task_id):
        task = self._tasks.get(task_id)
        return copy.copy(task) if task else None

    def list_tasks(self, motorcycle_id, include_archived=False):
        return [
            copy.copy(t)
            for t in self._tasks.values()
            if t.motorcycle_id == motorcycle_id and (include_archived or not t.archived)
        ]

    def add_task(self, task):
        with self.transaction():
            if task.id in self._tasks:
                raise PersistenceError(f"Task {task.id} already exists")
            self._tasks[task.id] = copy.copy(task)
        return task

    def update_task(self, task):
        with self.transaction():
            if task.id not in self._tasks:
                raise PersistenceError(f"Task {task.id} does not exist")
            self._tasks[task.id] = copy.copy(task)

    def delete_task(self, task_id):
        """Remove a task; its service records stay, without a task id."""
        with self.transaction():
            if self._tasks.pop(task_id, None) is None:
                raise PersistenceError(f"Task {task_id} does not exist")
            self._service_records = [
                replace(r, task_id=None) if r.task_id == task_id else r
                for r in self._service_records
            ]

    # -- append-only records -------------------------------------------------

    def add_mileage_log(self, log):
        with self.transaction():
            self._mileage_logs.append(log)
        return log

    def list_mileage_logs(self, motorcycle_id):
        return [log for log in self._mileage_logs if log.motorcycle_id == motorcycle_id]

    def add_service_record(self, record):
        with self.transaction():
            self._service_records.append(record)
        return record

    def list_service_records(self, motorcycle_id=None, task_id=None):
        return [
            r
            for r in self._service_records
            if (motorcycle_id is None or r.motorcycle_id == motorcycle_id)
            and (task_id is None or r.task_id == task_id)
        ]

    # -- transactions --------------------------------------------------------

    def _snapshot(self):
        return (
            copy.deepcopy(self._motorcycles),
            copy.deepcopy(self._tasks),
            list(self._mileage_logs),
            list(self._service_records),
        )

    def _restore(self, snapshot) -> None:
        (
            self._motorcycles,
            self._tasks,
            self._mileage_logs,
            self._service_records,
        ) = snapshot

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRepository"]:
        """Group writes; nested transactions join the outermost one."""
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield self
            self._commit()
        except BaseException:
            self._restore(snapshot)
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._depth = 0

    def _commit(self) -> None:
        """Hook for repositories that persist on commit."""
