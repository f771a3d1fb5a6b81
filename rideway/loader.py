"""YAML loading and saving for garage files."""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dateutil.parser import isoparse

from .errors import PersistenceError
from .motorcycle import Motorcycle
from .records import MileageLog, ServiceRecord
from .repository import InMemoryRepository
from .task import MaintenanceTask

logger = logging.getLogger("rideway.loader")


def parse_date(value: Any) -> Optional[date]:
    """Accept a date, a datetime, or an ISO-8601 string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return isoparse(str(value)).date()


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return isoparse(str(value))


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None values for cleaner YAML."""
    return {k: v for k, v in d.items() if v is not None}


# =============================================================================
# Parsing
# =============================================================================


def _parse_motorcycle(dct: Dict[str, Any]) -> Motorcycle:
    return Motorcycle(
        dct["id"],
        dct["ownerId"],
        dct["name"],
        dct.get("make"),
        dct.get("model"),
        dct.get("year"),
        dct.get("currentMileage") or 0,
        parse_datetime(dct.get("createdAt")),
    )


def _parse_task(dct: Dict[str, Any]) -> MaintenanceTask:
    return MaintenanceTask(
        dct["id"],
        dct["motorcycleId"],
        dct["name"],
        interval_miles=dct.get("intervalMiles"),
        interval_days=dct.get("intervalDays"),
        interval_base=dct.get("intervalBase"),
        base_odometer=dct.get("baseOdometer"),
        base_date=parse_date(dct.get("baseDate")),
        next_due_odometer=dct.get("nextDueOdometer"),
        next_due_date=parse_date(dct.get("nextDueDate")),
        priority=dct.get("priority"),
        is_recurring=dct.get("isRecurring", True),
        archived=dct.get("archived", False),
        description=dct.get("description"),
        created_at=parse_datetime(dct.get("createdAt")),
    )


def _parse_mileage_log(dct: Dict[str, Any]) -> MileageLog:
    return MileageLog(
        dct["id"],
        dct["motorcycleId"],
        dct.get("previousMileage"),
        dct["newMileage"],
        parse_datetime(dct["date"]),
        dct.get("notes"),
    )


def _parse_service_record(dct: Dict[str, Any]) -> ServiceRecord:
    return ServiceRecord(
        id=dct["id"],
        motorcycle_id=dct["motorcycleId"],
        date=parse_date(dct["date"]),
        task_id=dct.get("taskId"),
        mileage=dct.get("mileage"),
        cost=dct.get("cost"),
        notes=dct.get("notes"),
        is_scheduled=dct.get("isScheduled", False),
        resets_interval=dct.get("resetsInterval", True),
        next_due_odometer=dct.get("nextDueOdometer"),
        next_due_date=parse_date(dct.get("nextDueDate")),
    )


# =============================================================================
# Serialising
# =============================================================================


def _motorcycle_to_dict(m: Motorcycle) -> Dict[str, Any]:
    return _compact(
        {
            "id": m.id,
            "ownerId": m.owner_id,
            "name": m.name,
            "make": m.make,
            "model": m.model,
            "year": m.year,
            "currentMileage": m.current_mileage,
            "createdAt": _iso(m.created_at),
        }
    )


def _task_to_dict(t: MaintenanceTask) -> Dict[str, Any]:
    d = _compact(
        {
            "id": t.id,
            "motorcycleId": t.motorcycle_id,
            "name": t.name,
            "description": t.description,
            "priority": t.priority.value,
            "intervalMiles": t.interval_miles,
            "intervalDays": t.interval_days,
            "intervalBase": t.interval_base.value,
            "baseOdometer": t.base_odometer,
            "baseDate": _iso(t.base_date),
            "nextDueOdometer": t.next_due_odometer,
            "nextDueDate": _iso(t.next_due_date),
            "createdAt": _iso(t.created_at),
        }
    )
    if not t.is_recurring:
        d["isRecurring"] = False
    if t.archived:
        d["archived"] = True
    return d


def _mileage_log_to_dict(log: MileageLog) -> Dict[str, Any]:
    return _compact(
        {
            "id": log.id,
            "motorcycleId": log.motorcycle_id,
            "previousMileage": log.previous_mileage,
            "newMileage": log.new_mileage,
            "date": _iso(log.timestamp),
            "notes": log.notes,
        }
    )


def _service_record_to_dict(r: ServiceRecord) -> Dict[str, Any]:
    d = _compact(
        {
            "id": r.id,
            "motorcycleId": r.motorcycle_id,
            "taskId": r.task_id,
            "date": _iso(r.date),
            "mileage": r.mileage,
            "cost": r.cost,
            "notes": r.notes,
            "nextDueOdometer": r.next_due_odometer,
            "nextDueDate": _iso(r.next_due_date),
        }
    )
    if r.is_scheduled:
        d["isScheduled"] = True
    if not r.resets_interval:
        d["resetsInterval"] = False
    return d


# =============================================================================
# Repository
# =============================================================================


class YamlRepository(InMemoryRepository):
    """
    Repository backed by a single garage YAML file.

    The whole file is loaded on construction and rewritten on every commit,
    so a transaction's writes reach disk together or not at all.
    """

    def __init__(self, filename: Union[str, Path], create: bool = False):
        super().__init__()
        self.filename = Path(filename)
        if not self.filename.exists() and create:
            self._write()
            return
        self._load()

    def _load(self) -> None:
        try:
            with open(self.filename, "r") as fp:
                data = yaml.load(fp, Loader=yaml.SafeLoader) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Cannot read {self.filename}: {e}") from e

        try:
            for dct in data.get("motorcycles") or []:
                m = _parse_motorcycle(dct)
                self._motorcycles[m.id] = m
            for dct in data.get("tasks") or []:
                t = _parse_task(dct)
                self._tasks[t.id] = t
            self._mileage_logs = [
                _parse_mileage_log(d) for d in data.get("mileageLogs") or []
            ]
            self._service_records = [
                _parse_service_record(d) for d in data.get("serviceRecords") or []
            ]
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(f"Malformed garage file {self.filename}: {e}") from e
        logger.debug(
            "Loaded %d motorcycles and %d tasks from %s",
            len(self._motorcycles),
            len(self._tasks),
            self.filename,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "motorcycles": [_motorcycle_to_dict(m) for m in self._motorcycles.values()],
            "tasks": [_task_to_dict(t) for t in self._tasks.values()],
            "mileageLogs": [_mileage_log_to_dict(l) for l in self._mileage_logs],
            "serviceRecords": [
                _service_record_to_dict(r) for r in self._service_records
            ],
        }

    def _write(self) -> None:
        try:
            with open(self.filename, "w") as fp:
                yaml.dump(
                    self.to_dict(),
                    fp,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                    width=120,
                )
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Cannot write {self.filename}: {e}") from e

    def _commit(self) -> None:
        self._write()


def load_garage(filename: Union[str, Path]) -> YamlRepository:
    """Open an existing garage YAML file."""
    return YamlRepository(filename)
