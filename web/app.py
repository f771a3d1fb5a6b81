"""Flask JSON API for motorcycle maintenance tracking."""

import logging
import os
from datetime import date, datetime
from typing import Optional

from flask import Flask, g, jsonify, request

from rideway import (
    Completion,
    DueTaskNotifier,
    LoggingEventSink,
    MaintenanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    YamlRepository,
    apply_mileage_update,
    complete_task,
    load_settings,
    recompute_schedule,
)
from rideway.config import Settings
from rideway.events import EventSink, record_payload
from rideway.loader import parse_date
from rideway.notifier import state_file_for
from rideway.propagator import get_owned_motorcycle
from rideway.repository import Repository
from rideway.tasks import get_owned_task

logger = logging.getLogger("rideway.web")

STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    PersistenceError: 500,
}


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _int_field(body: dict, key: str) -> Optional[int]:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be a whole number")
    return value


def _date_field(body: dict, key: str) -> Optional[date]:
    try:
        return parse_date(body.get(key))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO date (YYYY-MM-DD)") from None


def _task_schedule(task, motorcycle, today, settings) -> dict:
    view = recompute_schedule(task, motorcycle, today, settings)
    data = view.as_dict()
    data["name"] = task.name
    data["priority"] = task.priority.value
    return data


def create_app(
    repository: Repository,
    settings: Optional[Settings] = None,
    sink: Optional[EventSink] = None,
    notifier: Optional[DueTaskNotifier] = None,
) -> Flask:
    """
    Build the API around a repository.

    Every route acts for the user named in the X-User-Id header; resources
    belonging to someone else look exactly like missing ones.
    """
    settings = settings or load_settings()
    notifier = notifier or DueTaskNotifier(settings)

    app = Flask(__name__)
    app.config["REPOSITORY"] = repository
    app.config["SETTINGS"] = settings
    app.config["NOTIFIER"] = notifier

    @app.errorhandler(MaintenanceError)
    def handle_maintenance_error(e):
        code = STATUS_CODES.get(type(e), 500)
        if code >= 500:
            logger.error("Request failed: %s", e)
        return jsonify({"error": str(e)}), code

    @app.before_request
    def identify_user():
        user_id = request.headers.get("X-User-Id")
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401
        g.user_id = user_id

    @app.route("/api/motorcycles/<motorcycle_id>/schedule")
    def motorcycle_schedule(motorcycle_id: str):
        """Schedule of every active task on a motorcycle, most urgent first."""
        motorcycle = get_owned_motorcycle(repository, g.user_id, motorcycle_id)
        today = date.today()
        tasks = [
            _task_schedule(task, motorcycle, today, settings)
            for task in repository.list_tasks(motorcycle.id)
        ]
        order = {"overdue": 0, "due soon": 1, "ok": 2, "unknown": 3}
        tasks.sort(key=lambda t: (order[t["status"]], t["name"]))
        return jsonify(
            {
                "motorcycleId": motorcycle.id,
                "currentMileage": motorcycle.current_mileage,
                "tasks": tasks,
            }
        )

    @app.route("/api/tasks/<task_id>/schedule")
    def task_schedule(task_id: str):
        task = get_owned_task(repository, g.user_id, task_id)
        motorcycle = repository.get_motorcycle(task.motorcycle_id)
        return jsonify(_task_schedule(task, motorcycle, date.today(), settings))

    @app.route("/api/motorcycles/<motorcycle_id>/mileage", methods=["POST"])
    def update_mileage(motorcycle_id: str):
        """Record an odometer reading and propagate it to every task."""
        body = _json_body()
        mileage = _int_field(body, "mileage")
        if mileage is None:
            raise ValidationError("mileage is required")
        allow_decrease = body.get("allowDecrease")

        result = apply_mileage_update(
            repository,
            g.user_id,
            motorcycle_id,
            mileage,
            datetime.now(),
            previous_mileage=_int_field(body, "previousMileage"),
            notes=body.get("notes"),
            allow_decrease=bool(allow_decrease) if allow_decrease is not None else None,
            settings=settings,
            sink=sink,
            notifier=notifier,
        )
        return jsonify(
            {
                "motorcycleId": result.motorcycle.id,
                "previousMileage": result.previous_mileage,
                "newMileage": result.new_mileage,
                "updatedTasks": len(result.updated_tasks),
                "newlyDueTasks": [t.id for t in result.newly_due_tasks],
                "deduplicated": result.deduplicated,
                "message": result.message,
            }
        )

    def _complete(task_id, body, motorcycle_id=None):
        cost = body.get("cost")
        if cost is not None and (
            isinstance(cost, bool) or not isinstance(cost, (int, float))
        ):
            raise ValidationError("cost must be a number")
        completion = Completion(
            date=_date_field(body, "date"),
            mileage=_int_field(body, "mileage"),
            cost=cost,
            notes=body.get("notes"),
            motorcycle_id=motorcycle_id,
        )
        result = complete_task(
            repository,
            g.user_id,
            task_id,
            completion,
            reset_schedule=body.get("resetSchedule", True) is not False,
            settings=settings,
            sink=sink,
            notifier=notifier,
        )
        data = {"record": record_payload(result.service_record)}
        if result.updated_task is not None:
            task = result.updated_task
            data["task"] = {
                "id": task.id,
                "name": task.name,
                "nextDueOdometer": task.next_due_odometer,
                "nextDueDate": (
                    task.next_due_date.isoformat() if task.next_due_date else None
                ),
            }
        return jsonify(data), 201

    @app.route("/api/tasks/<task_id>/complete", methods=["POST"])
    def complete(task_id: str):
        """Mark a task done; resetSchedule=false keeps the original cadence."""
        return _complete(task_id, _json_body())

    @app.route("/api/service-records", methods=["POST"])
    def add_service_record():
        """Log service, optionally tied to a task."""
        body = _json_body()
        task_id = body.get("taskId")
        motorcycle_id = body.get("motorcycleId")
        if task_id is None and motorcycle_id is None:
            raise ValidationError("motorcycleId or taskId is required")
        return _complete(task_id, body, motorcycle_id)

    @app.route("/api/maintenance/check-due", methods=["POST"])
    def check_due():
        body = _json_body()
        result = notifier.sweep(
            repository, g.user_id, datetime.now(), sink, force=bool(body.get("force"))
        )
        if result.rate_limited:
            response = jsonify({"error": result.message})
            response.headers["Retry-After"] = str(result.retry_after_seconds)
            return response, 429
        return jsonify(
            {
                "message": result.message,
                "dueTasks": [
                    {
                        "taskId": due.task.id,
                        "name": due.task.name,
                        "motorcycleId": due.motorcycle.id,
                        "dueMileage": due.schedule.due_mileage,
                        "dueDate": (
                            due.schedule.due_date.isoformat()
                            if due.schedule.due_date
                            else None
                        ),
                    }
                    for due in result.due_tasks
                ],
                "notificationsTriggered": result.notifications_triggered,
            }
        )

    return app


def main():
    """Serve the garage named by RIDEWAY_GARAGE."""
    settings = load_settings(os.environ.get("RIDEWAY_SETTINGS"))
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    garage_file = os.environ.get("RIDEWAY_GARAGE", "garage.yaml")
    repository = YamlRepository(garage_file, create=True)
    notifier = DueTaskNotifier(settings, state_file=state_file_for(garage_file))
    app = create_app(
        repository, settings, sink=LoggingEventSink(), notifier=notifier
    )
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1", port=5000)


if __name__ == "__main__":
    main()
