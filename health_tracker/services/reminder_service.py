"""
Health Reminder Service
=======================
Cron-scheduled health reminders backed by APScheduler triggers:
- Crontab expressions ("0 9 * * *") and named schedules ("@daily")
- Go-style intervals ("@every 1h30m")
- Next-run computation and due-reminder processing
- Background polling scheduler
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from health_tracker.core.config import settings
from health_tracker.core.error_handling import (
    InvalidScheduleError,
    NotFoundError,
    first_validation_message,
)
from health_tracker.core.logging import log_audit, log_info
from health_tracker.models.health_models import ReminderRunSummary
from health_tracker.schemas.health_schemas import HealthReminder, HealthReminderCreate, parse_datetime

logger = logging.getLogger(__name__)

NAMED_SCHEDULES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * sun",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

INTERVAL_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}

EVERY_PATTERN = re.compile(r"^@every\s+((?:\d+(?:ns|us|µs|ms|s|m|h))+)$")
INTERVAL_PART = re.compile(r"(\d+)(ns|us|µs|ms|s|m|h)")

# Crontab counts weekdays from Sunday (0 and 7); APScheduler counts from Monday
CRONTAB_WEEKDAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]

Trigger = Union[CronTrigger, IntervalTrigger]
Notifier = Callable[[HealthReminder], None]


def _parse_interval(text: str) -> timedelta:
    seconds = sum(int(amount) * INTERVAL_UNITS[unit] for amount, unit in INTERVAL_PART.findall(text))
    if seconds <= 0:
        raise InvalidScheduleError(f"Interval must be positive: @every {text}")
    return timedelta(seconds=seconds)


def _weekday_name(match: re.Match) -> str:
    number = int(match.group(0))
    if number >= len(CRONTAB_WEEKDAYS):
        raise InvalidScheduleError(f"Invalid day of week: {number}")
    return CRONTAB_WEEKDAYS[number]


def _to_apscheduler_crontab(expr: str) -> str:
    """Rewrite a numeric day-of-week field as weekday names."""
    fields = expr.split()
    if len(fields) != 5 or "/" in fields[4]:
        return expr
    fields[4] = re.sub(r"\d+", _weekday_name, fields[4])
    return " ".join(fields)


def build_trigger(cron_expr: str, start: Optional[datetime] = None, tz: Optional[str] = None) -> Trigger:
    """
    APScheduler trigger for a reminder schedule.

    Raises:
        InvalidScheduleError: the expression is malformed or unsupported
    """
    if not isinstance(cron_expr, str) or not cron_expr.strip():
        raise InvalidScheduleError("Cron expression is required")

    expr = cron_expr.strip()
    tz = tz or settings.REMINDER_TIMEZONE

    if expr == "@reboot":
        raise InvalidScheduleError("@reboot schedules are not supported for reminders")

    every = EVERY_PATTERN.match(expr)
    if every:
        interval = _parse_interval(every.group(1))
        return IntervalTrigger(seconds=interval.total_seconds(), start_date=start, timezone=tz)

    expr = _to_apscheduler_crontab(NAMED_SCHEDULES.get(expr.lower(), expr))
    try:
        return CronTrigger.from_crontab(expr, timezone=tz)
    except ValueError as e:
        raise InvalidScheduleError(f"Invalid cron expression {cron_expr!r}: {e}") from e


def compute_next_run(cron_expr: str, after: Optional[datetime] = None, tz: Optional[str] = None) -> datetime:
    """Next fire time strictly after ``after`` (default now), in UTC."""
    after = parse_datetime(after) if after is not None else datetime.now(timezone.utc)

    trigger = build_trigger(cron_expr, start=after, tz=tz)
    next_run = trigger.get_next_fire_time(after, after)
    if next_run is None:
        raise InvalidScheduleError(f"Schedule {cron_expr!r} never fires again")
    return next_run.astimezone(timezone.utc)


def create_reminder(
    reminder_data: Union[HealthReminderCreate, dict],
    reminder_id: Optional[Union[int, str]] = None,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HealthReminder:
    """
    Validate a reminder payload and schedule its first run.

    Raises:
        InvalidScheduleError: the payload or its schedule is invalid
    """
    try:
        payload = HealthReminderCreate.model_validate(reminder_data)
    except ValidationError as e:
        raise InvalidScheduleError(f"Validation failed: {first_validation_message(e)}") from e

    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    reminder = HealthReminder(
        id=reminder_id,
        user_id=user_id,
        type=payload.type,
        cron_expr=payload.cron_expr,
        message=payload.message,
        active=payload.active,
        next_run_at=compute_next_run(payload.cron_expr, now) if payload.active else None,
        created_at=now,
    )
    log_audit("health_reminder_created", user_id, {
        "reminder_id": reminder_id,
        "type": reminder.type,
        "cron_expr": reminder.cron_expr,
    })
    return reminder


def deactivate_reminder(reminder: HealthReminder) -> HealthReminder:
    """Reminders are never removed; deleting clears the active flag"""
    log_audit("health_reminder_deactivated", reminder.user_id, {"reminder_id": reminder.id})
    return reminder.model_copy(update={"active": False, "next_run_at": None})


def find_reminder(reminders: Iterable[HealthReminder], reminder_id: Union[int, str]) -> HealthReminder:
    for reminder in reminders:
        if reminder.id == reminder_id:
            return reminder
    raise NotFoundError(f"Reminder not found: {reminder_id}")


def get_due_reminders(reminders: Iterable[Any], now: Optional[datetime] = None) -> List[HealthReminder]:
    """Active reminders whose next run is at or before ``now`` (naive means UTC)"""
    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    due = []
    for raw in reminders:
        reminder = HealthReminder.model_validate(raw)
        if reminder.active and reminder.next_run_at is not None and reminder.next_run_at <= now:
            due.append(reminder)
    return due


def _log_notification(reminder: HealthReminder) -> None:
    log_info(f"Reminder {reminder.id} ({reminder.type}) fired", logger_name=__name__)


def process_due_reminders(
    reminders: Sequence[Any],
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> ReminderRunSummary:
    """
    Fire every due reminder and reschedule it.

    A failing reminder is recorded in the summary and left unchanged so it
    is retried on the next run; the others are still processed.
    """
    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    notify = notify or _log_notification
    summary = ReminderRunSummary(processed=0, failed=0)

    for reminder in get_due_reminders(reminders, now):
        try:
            notify(reminder)
            next_run = compute_next_run(reminder.cron_expr, now)
        except Exception as e:
            logger.error(f"Failed to process reminder {reminder.id}: {type(e).__name__}: {e}")
            summary.failed += 1
            summary.errors.append({"reminder_id": reminder.id, "error": str(e)})
            continue

        updated = reminder.model_copy(update={"last_run_at": now, "next_run_at": next_run})
        summary.processed += 1
        summary.reminders.append(updated.model_dump(mode="json"))

    if summary.processed or summary.failed:
        log_audit("health_reminders_processed", None, {
            "processed": summary.processed,
            "failed": summary.failed,
            "run_at": now.isoformat(),
        })
    return summary


class ReminderScheduler:
    """Polls for due reminders on a background APScheduler job."""

    JOB_ID = "process_health_reminders"

    def __init__(
        self,
        load_reminders: Callable[[], Sequence[Any]],
        save_reminders: Callable[[List[HealthReminder]], None],
        notify: Optional[Notifier] = None,
        interval_minutes: Optional[int] = None,
    ):
        self.scheduler = BackgroundScheduler(timezone=settings.REMINDER_TIMEZONE)
        self.load_reminders = load_reminders
        self.save_reminders = save_reminders
        self.notify = notify
        self.interval_minutes = interval_minutes or settings.REMINDER_POLL_INTERVAL_MINUTES

    def start(self):
        """Start the background scheduler."""
        if not self.scheduler.running:
            self.scheduler.add_job(
                self.run_once,
                IntervalTrigger(minutes=self.interval_minutes),
                id=self.JOB_ID,
                replace_existing=True,
                name='Process Health Reminders'
            )
            self.scheduler.start()
            logger.info(f"Reminder scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        """Stop the background scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped")

    def run_once(self, now: Optional[datetime] = None) -> ReminderRunSummary:
        summary = process_due_reminders(self.load_reminders(), now=now, notify=self.notify)
        if summary.reminders:
            self.save_reminders([HealthReminder.model_validate(r) for r in summary.reminders])
        return summary
