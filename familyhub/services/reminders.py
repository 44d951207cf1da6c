"""Daily reminder resolution and classification.

Both functions here are pure: they never read the clock or touch storage,
so the persistence-backed manager and any client-side preview share them.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from loguru import logger

from familyhub.data.models import IntakeLogEntry, Medication, ReminderInstance, Schedule
from familyhub.utils.timezone import to_reference_timezone
from familyhub.utils.weekdays import weekday_index

DEFAULT_GRACE_WINDOW = timedelta(hours=6)
DEFAULT_TAKEN_TOLERANCE_HOURS = 1


def reminder_id(medication_id: str, schedule_id: str, day: datetime) -> str:
    """Deterministic reminder identity for a schedule firing on ``day``."""
    return f"{medication_id}-{schedule_id}-{day.date().isoformat()}"


def _is_satisfied_by(
    entry: IntakeLogEntry,
    schedule: Schedule,
    reference: datetime,
    tolerance_hours: int,
) -> bool:
    """Check whether a taken entry on the reference date answers ``schedule``.

    Entries that name their schedule only satisfy that schedule. Entries
    without one are matched by hour, within ``tolerance_hours``.
    """
    if not entry.taken:
        return False

    local_time = to_reference_timezone(entry.timestamp, reference)
    if local_time.date() != reference.date():
        return False

    if entry.schedule_id is not None:
        return entry.schedule_id == schedule.id

    return abs(local_time.hour - schedule.hour) <= tolerance_hours


def resolve_reminders(
    reference: datetime,
    medications: Iterable[Medication],
    intake_logs: Iterable[IntakeLogEntry],
    tolerance_hours: int = DEFAULT_TAKEN_TOLERANCE_HOURS,
) -> list[ReminderInstance]:
    """Compute the reminders due on the reference instant's date.

    Every active schedule whose weekday set contains today's weekday
    (0 = Sunday) produces one reminder at today's date and the schedule's
    time. A reminder is marked taken when a taken intake entry for the
    same medication exists on the same date and matches the schedule.

    Args:
        reference: Current date/time; its timezone is used for all dates
        medications: Medications with their schedules
        intake_logs: Intake entries, any medication, any date
        tolerance_hours: Allowed hour distance for entries without schedule id

    Returns:
        Reminders sorted by scheduled time (stable for equal times)
    """
    today = weekday_index(reference)

    logs_by_medication: dict[str, list[IntakeLogEntry]] = defaultdict(list)
    for entry in intake_logs:
        logs_by_medication[entry.medication_id].append(entry)

    reminders = []
    for medication in medications:
        entries = logs_by_medication.get(medication.id, [])

        for schedule in medication.schedules:
            if not schedule.fires_on(today):
                continue

            reminder_time = reference.replace(
                hour=schedule.hour,
                minute=schedule.minute,
                second=0,
                microsecond=0,
            )
            taken = any(
                _is_satisfied_by(entry, schedule, reference, tolerance_hours)
                for entry in entries
            )

            reminders.append(
                ReminderInstance(
                    id=reminder_id(medication.id, schedule.id, reference),
                    medication_id=medication.id,
                    medication=medication.name,
                    dosage=medication.dosage,
                    time=schedule.time,
                    timestamp=reminder_time,
                    taken=taken,
                    schedule_id=schedule.id,
                )
            )

    reminders.sort(key=lambda reminder: reminder.timestamp)

    logger.debug(
        f"Resolved {len(reminders)} reminder(s) for "
        f"{reference.date().isoformat()} (weekday {today})"
    )

    return reminders


@dataclass
class ReminderBuckets:
    """Resolved reminders partitioned for presentation."""

    due: list[ReminderInstance] = field(default_factory=list)
    upcoming: list[ReminderInstance] = field(default_factory=list)
    taken: list[ReminderInstance] = field(default_factory=list)
    missed: list[ReminderInstance] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.due) + len(self.upcoming) + len(self.taken) + len(self.missed)

    def to_dict(self) -> dict:
        return {
            "due": [reminder.to_dict() for reminder in self.due],
            "upcoming": [reminder.to_dict() for reminder in self.upcoming],
            "taken": [reminder.to_dict() for reminder in self.taken],
            "missed": [reminder.to_dict() for reminder in self.missed],
        }


def classify_reminder(
    reference: datetime,
    reminder: ReminderInstance,
    grace_window: timedelta = DEFAULT_GRACE_WINDOW,
) -> str:
    """Return the bucket name ("taken", "upcoming", "due" or "missed") for one reminder."""
    if reminder.taken:
        return "taken"

    reminder_time = to_reference_timezone(reminder.timestamp, reference)
    if reminder_time > reference:
        return "upcoming"

    # Elapsed time is measured in UTC so a DST change inside the window counts
    now = reference
    if reference.tzinfo is not None:
        reminder_time = reminder_time.astimezone(timezone.utc)
        now = reference.astimezone(timezone.utc)

    # Exactly grace_window overdue is still due
    if now - reminder_time <= grace_window:
        return "due"
    return "missed"


def classify_reminders(
    reference: datetime,
    reminders: Iterable[ReminderInstance],
    grace_window: timedelta = DEFAULT_GRACE_WINDOW,
) -> ReminderBuckets:
    """Partition reminders into due, upcoming, taken and missed buckets.

    Every reminder lands in exactly one bucket; input order is kept
    within each bucket.

    Args:
        reference: Current date/time
        reminders: Output of ``resolve_reminders``
        grace_window: How long an overdue reminder stays due

    Returns:
        ReminderBuckets instance
    """
    buckets = ReminderBuckets()
    for reminder in reminders:
        getattr(buckets, classify_reminder(reference, reminder, grace_window)).append(reminder)

    logger.debug(
        f"Classified reminders: {len(buckets.due)} due, "
        f"{len(buckets.upcoming)} upcoming, {len(buckets.taken)} taken, "
        f"{len(buckets.missed)} missed"
    )

    return buckets
