#!/usr/bin/env python3
"""
Unified CLI for motorcycle maintenance tracking.

Commands:
  status       - Show what maintenance is due, overdue, or upcoming
  history      - View service history for a motorcycle
  update-miles - Record a new odometer reading
  complete     - Log a completed maintenance task
  add-task     - Define a new maintenance task
  archive-task - Archive (or restore) a task
  check-due    - Sweep for due tasks and emit notifications
"""

import argparse
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path
from tabulate import tabulate
from typing import List, Optional

from dateutil.parser import isoparse

from rideway import (
    Completion,
    DueTaskNotifier,
    LoggingEventSink,
    MaintenanceError,
    ScheduleView,
    ServiceRecord,
    Status,
    YamlRepository,
    apply_mileage_update,
    archive_task,
    complete_task,
    create_task,
    load_settings,
    recompute_schedule,
    unarchive_task,
)
from rideway.notifier import state_file_for
from rideway.units import format_distance, unit_label

logger = logging.getLogger("rideway.cli")

# =============================================================================
# Formatting helpers
# =============================================================================


def format_miles(miles: Optional[float]) -> str:
    """Format a distance for display."""
    return f"{miles:,.0f}" if miles is not None else "-"


def format_cost(cost: Optional[float]) -> str:
    """Format cost for display."""
    return f"${cost:,.2f}" if cost is not None else "-"


def format_remaining(view: ScheduleView) -> str:
    """Format remaining distance for display."""
    if view.remaining_miles is None:
        return "-"
    if view.remaining_miles < 0:
        return f"-{abs(view.remaining_miles):,.0f}"
    return f"{view.remaining_miles:,.0f}"


def format_time_remaining(view: ScheduleView) -> str:
    """Format remaining time for display (e.g., '3mo 15d' or '-2mo 5d')."""
    if view.remaining_days is None:
        return "-"

    days = abs(view.remaining_days)
    sign = "-" if view.remaining_days < 0 else ""
    months = days // 30
    remaining_days = days % 30
    if months > 0:
        return f"{sign}{months}mo {remaining_days}d"
    return f"{sign}{days}d"


def format_progress(view: ScheduleView) -> str:
    """Format mileage-cycle completion as a percentage."""
    if view.completion_percentage is None:
        return "-"
    return f"{view.completion_percentage:.0f}%"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def parse_day(text: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD argument."""
    return isoparse(text).date() if text else None


# =============================================================================
# Status command
# =============================================================================


def make_status_table(rows) -> List[List[str]]:
    """Convert (task, motorcycle, view) tuples to table rows."""
    table = []
    for task, motorcycle, view in rows:
        table.append(
            [
                task.name,
                motorcycle.name,
                format_miles(view.due_mileage),
                view.due_date.isoformat() if view.due_date else "-",
                format_remaining(view),
                format_time_remaining(view),
                format_progress(view),
            ]
        )
    return table


def cmd_status(args, repository, settings):
    """Show what maintenance is due, overdue, or upcoming."""
    today = parse_day(args.date) or date.today()
    motorcycles = repository.list_motorcycles(owner_id=args.user)
    if args.motorcycle:
        motorcycles = [m for m in motorcycles if m.id == args.motorcycle]
        if not motorcycles:
            print(f"Error: Unknown motorcycle '{args.motorcycle}'")
            return 1

    rows = []
    for motorcycle in motorcycles:
        print(
            f"Motorcycle: {motorcycle.display_name} "
            f"[{motorcycle.id}] @ {format_distance(motorcycle.current_mileage, settings.display_units, settings.storage_units)}"
        )
        for task in repository.list_tasks(motorcycle.id):
            view = recompute_schedule(task, motorcycle, today, settings)
            rows.append((task, motorcycle, view))
    print()

    label = unit_label(settings.storage_units)
    headers = [
        "Task",
        "Motorcycle",
        f"Due ({label})",
        "Due (date)",
        f"Remaining ({label})",
        "Remaining (time)",
        "Progress",
    ]

    for status in (Status.OVERDUE, Status.DUE_SOON, Status.OK):
        group = sorted(
            [r for r in rows if r[2].status == status],
            key=lambda r: (r[1].name, r[0].name),
        )
        if group:
            print(f"{status.label.upper()}:")
            print(tabulate(make_status_table(group), headers=headers, tablefmt="simple"))
            print()

    unknown = [r for r in rows if r[2].status == Status.UNKNOWN]
    if unknown:
        print("UNKNOWN (no interval):")
        for task, motorcycle, _ in unknown:
            print(f"  {task.name} ({motorcycle.name})")
        print()

    return 0


# =============================================================================
# History command
# =============================================================================


def make_history_table(records: List[ServiceRecord], repository) -> List[List[str]]:
    """Convert service records to table rows."""
    rows = []
    for record in records:
        task = repository.get_task(record.task_id) if record.task_id else None
        rows.append(
            [
                record.date.isoformat(),
                format_miles(record.mileage),
                task.name if task else "-",
                format_cost(record.cost),
                truncate(record.notes),
            ]
        )
    return rows


def cmd_history(args, repository, settings):
    """View service history for a motorcycle."""
    motorcycle = repository.get_motorcycle(args.motorcycle)
    if motorcycle is None or not motorcycle.is_owned_by(args.user):
        print(f"Error: Unknown motorcycle '{args.motorcycle}'")
        return 1

    records = sorted(
        repository.list_service_records(motorcycle_id=motorcycle.id),
        key=lambda r: (r.date, r.mileage or 0),
        reverse=not args.asc,
    )
    since = parse_day(args.since)
    if since:
        records = [r for r in records if r.date >= since]

    total_cost = sum(r.cost for r in records if r.cost is not None)

    print(f"Motorcycle: {motorcycle.display_name}")
    print(f"Current mileage: {format_miles(motorcycle.current_mileage)}")
    print(f"Services: {len(records)}")
    if total_cost > 0:
        print(f"Total cost: ${total_cost:,.2f}")
    print()

    if not records:
        print("No service records found.")
        return 0

    headers = ["Date", "Mileage", "Task", "Cost", "Notes"]
    print(tabulate(make_history_table(records, repository), headers=headers, tablefmt="simple"))
    return 0


# =============================================================================
# Update Miles command
# =============================================================================


def cmd_update_miles(args, repository, settings, sink, notifier):
    """Record a new odometer reading."""
    motorcycle = repository.get_motorcycle(args.motorcycle)
    if motorcycle is None or not motorcycle.is_owned_by(args.user):
        print(f"Error: Unknown motorcycle '{args.motorcycle}'")
        return 1

    print(f"Motorcycle: {motorcycle.display_name}")
    print(f"Current mileage: {format_miles(motorcycle.current_mileage)}")
    print(f"New mileage:     {format_miles(args.mileage)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    result = apply_mileage_update(
        repository,
        args.user,
        motorcycle.id,
        args.mileage,
        datetime.now(),
        notes=args.notes,
        allow_decrease=args.allow_decrease or None,
        settings=settings,
        sink=sink,
        notifier=notifier,
    )
    if result.unchanged:
        print(result.message)
        return 0

    print(f"Mileage updated. {len(result.updated_tasks)} tasks recomputed.")
    for task in result.newly_due_tasks:
        print(f"  Now due: {task.name}")
    return 0


# =============================================================================
# Complete command
# =============================================================================


def cmd_complete(args, repository, settings, sink, notifier):
    """Log a completed maintenance task."""
    completion = Completion(
        date=parse_day(args.date),
        mileage=args.mileage,
        cost=args.cost,
        notes=args.notes,
    )
    result = complete_task(
        repository,
        args.user,
        args.task_id,
        completion,
        reset_schedule=not args.keep_schedule,
        settings=settings,
        sink=sink,
        notifier=notifier,
    )
    task = result.updated_task
    record = result.service_record
    print(f"Completed: {task.name}")
    print(f"  Date:    {record.date.isoformat()}")
    print(f"  Mileage: {format_miles(record.mileage)}")
    if record.cost is not None:
        print(f"  Cost:    {format_cost(record.cost)}")
    print(f"  Next due: {format_miles(task.next_due_odometer)}"
          f" / {task.next_due_date.isoformat() if task.next_due_date else '-'}")
    return 0


# =============================================================================
# Task commands
# =============================================================================


def cmd_add_task(args, repository, settings):
    """Define a new maintenance task."""
    task = create_task(
        repository,
        args.user,
        args.motorcycle,
        args.name,
        interval_miles=args.miles,
        interval_days=args.days,
        interval_base="zero" if args.zero_based else "current",
        next_due_mileage=args.next_due,
        priority=args.priority,
        is_recurring=not args.one_off,
    )
    print(f"Task added: {task.name} [{task.id}]")
    print(f"  Next due: {format_miles(task.next_due_odometer)}"
          f" / {task.next_due_date.isoformat() if task.next_due_date else '-'}")
    return 0


def cmd_archive_task(args, repository, settings):
    """Archive or restore a task."""
    if args.restore:
        task = unarchive_task(repository, args.user, args.task_id)
    else:
        task = archive_task(repository, args.user, args.task_id)
    print(f"Task {'restored' if args.restore else 'archived'}: {task.name}")
    return 0


def cmd_check_due(args, repository, settings, sink, notifier):
    """Sweep for due tasks and emit notifications."""
    result = notifier.sweep(repository, args.user, datetime.now(), sink, force=args.force)
    print(result.message)
    if result.rate_limited:
        return 0
    for due in result.due_tasks:
        print(f"  DUE: {due.task.name} ({due.motorcycle.name})")
    print(f"Notifications sent: {result.notifications_triggered}")
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Motorcycle maintenance tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s garage.yaml --user alice status
  %(prog)s garage.yaml --user alice history bike-1 --since 2024-01-01
  %(prog)s garage.yaml --user alice update-miles bike-1 12500
  %(prog)s garage.yaml --user alice add-task bike-1 "Oil change" --miles 6000 --days 365
  %(prog)s garage.yaml --user alice complete <task-id> --mileage 12500 --cost 45
  %(prog)s garage.yaml --user alice check-due
""",
    )
    parser.add_argument("garage_file", type=Path, help="Path to garage YAML file")
    parser.add_argument(
        "--user",
        default=os.environ.get("RIDEWAY_USER"),
        help="Owner id to act as (default: $RIDEWAY_USER)",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=os.environ.get("RIDEWAY_SETTINGS"),
        help="Settings YAML file (default: $RIDEWAY_SETTINGS)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser(
        "status", help="Show what maintenance is due, overdue, or upcoming"
    )
    status_parser.add_argument("--motorcycle", help="Only this motorcycle id")
    status_parser.add_argument("--date", help="Evaluate as of date (YYYY-MM-DD)")

    history_parser = subparsers.add_parser("history", help="View service history")
    history_parser.add_argument("motorcycle", help="Motorcycle id")
    history_parser.add_argument("--since", help="Only records since date (YYYY-MM-DD)")
    history_parser.add_argument(
        "--asc", action="store_true", help="Sort ascending instead of descending"
    )

    miles_parser = subparsers.add_parser(
        "update-miles", aliases=["log-miles"], help="Record a new odometer reading"
    )
    miles_parser.add_argument("motorcycle", help="Motorcycle id")
    miles_parser.add_argument("mileage", type=int, help="Current odometer reading")
    miles_parser.add_argument("--notes", help="Notes for the mileage log")
    miles_parser.add_argument(
        "--allow-decrease",
        action="store_true",
        help="Accept a reading lower than the current one (replaced odometer)",
    )
    miles_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would change without saving"
    )

    complete_parser = subparsers.add_parser(
        "complete", help="Log a completed maintenance task"
    )
    complete_parser.add_argument("task_id", help="Task id")
    complete_parser.add_argument("--date", help="Service date (default: today)")
    complete_parser.add_argument("--mileage", type=int, help="Mileage at service")
    complete_parser.add_argument("--cost", type=float, help="Cost of service")
    complete_parser.add_argument("--notes", help="Notes about the service")
    complete_parser.add_argument(
        "--keep-schedule",
        action="store_true",
        help="Maintain the original schedule instead of restarting it",
    )

    task_parser = subparsers.add_parser("add-task", help="Define a maintenance task")
    task_parser.add_argument("motorcycle", help="Motorcycle id")
    task_parser.add_argument("name", help="Task name")
    task_parser.add_argument("--miles", type=int, help="Distance interval")
    task_parser.add_argument("--days", type=int, help="Day interval")
    task_parser.add_argument(
        "--zero-based",
        action="store_true",
        help="Due at fixed multiples of the distance interval",
    )
    task_parser.add_argument("--next-due", type=int, help="Absolute due mileage")
    task_parser.add_argument(
        "--priority", choices=["low", "medium", "high"], default="medium"
    )
    task_parser.add_argument(
        "--one-off", action="store_true", help="Task does not recur"
    )

    archive_parser = subparsers.add_parser("archive-task", help="Archive a task")
    archive_parser.add_argument("task_id", help="Task id")
    archive_parser.add_argument(
        "--restore", action="store_true", help="Bring an archived task back"
    )

    check_parser = subparsers.add_parser(
        "check-due", help="Sweep for due tasks and emit notifications"
    )
    check_parser.add_argument(
        "--force", action="store_true", help="Ignore the once-per-interval limit"
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.garage_file.exists():
        print(f"Error: File not found: {args.garage_file}")
        return 1
    if not args.user:
        print("Error: --user is required (or set RIDEWAY_USER)")
        return 1

    try:
        settings = load_settings(args.settings)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else settings.log_level.upper(),
            format="%(levelname)s %(name)s: %(message)s",
        )
        repository = YamlRepository(args.garage_file)
        logger.debug("Using garage %s as user %s", args.garage_file, args.user)
        sink = LoggingEventSink()
        notifier = DueTaskNotifier(
            settings, state_file=state_file_for(args.garage_file)
        )

        if args.command == "status":
            return cmd_status(args, repository, settings)
        elif args.command == "history":
            return cmd_history(args, repository, settings)
        elif args.command in ("update-miles", "log-miles"):
            return cmd_update_miles(args, repository, settings, sink, notifier)
        elif args.command == "complete":
            return cmd_complete(args, repository, settings, sink, notifier)
        elif args.command == "add-task":
            return cmd_add_task(args, repository, settings)
        elif args.command == "archive-task":
            return cmd_archive_task(args, repository, settings)
        elif args.command == "check-due":
            return cmd_check_due(args, repository, settings, sink, notifier)
    except MaintenanceError as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main() or 0)
