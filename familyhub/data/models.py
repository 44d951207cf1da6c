"""Data models for FamilyHub medications."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from familyhub.utils.weekdays import ALL_DAYS, parse_schedule_time


def new_id() -> str:
    """Generate an opaque identifier."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


@dataclass
class Schedule:
    """Weekly recurrence rule for a medication reminder.

    Attributes:
        id: Identifier, unique within its medication
        time: Time of day in HH:MM format (24h, zero-padded)
        days_of_week: Weekdays the schedule fires on (0 = Sunday .. 6 = Saturday)
        active: Whether the schedule currently fires
    """

    time: str
    days_of_week: list[int] = field(default_factory=lambda: list(ALL_DAYS))
    active: bool = True
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        # Malformed times are rejected here so resolution can trust them
        parse_schedule_time(self.time)
        self.days_of_week = [int(day) for day in self.days_of_week]

    @property
    def hour(self) -> int:
        return parse_schedule_time(self.time)[0]

    @property
    def minute(self) -> int:
        return parse_schedule_time(self.time)[1]

    def fires_on(self, weekday: int) -> bool:
        """Check whether the schedule fires on the given weekday index."""
        return self.active and weekday in self.days_of_week

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time,
            "days_of_week": list(self.days_of_week),
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Schedule":
        kwargs = {
            "time": data["time"],
            "active": data.get("active", True),
        }
        if data.get("id") is not None:
            kwargs["id"] = str(data["id"])
        if data.get("days_of_week") is not None:
            kwargs["days_of_week"] = data["days_of_week"]
        return cls(**kwargs)


@dataclass(frozen=True)
class IntakeLogEntry:
    """Immutable record that a dose was (or was not) taken.

    Attributes:
        medication_id: Owning medication
        timestamp: When the intake happened
        taken: True for a taken dose, False for a skipped/missed one
        notes: Free-text notes
        schedule_id: Schedule the intake answers, when known
        id: Identifier of the entry
    """

    medication_id: str
    timestamp: datetime
    taken: bool = True
    notes: str = ""
    schedule_id: Optional[str] = None
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "medication_id": self.medication_id,
            "timestamp": self.timestamp.isoformat(),
            "taken": self.taken,
            "notes": self.notes,
            "schedule_id": self.schedule_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IntakeLogEntry":
        return cls(
            id=str(data["id"]),
            medication_id=str(data["medication_id"]),
            timestamp=_parse_datetime(data["timestamp"]),
            taken=data.get("taken", True),
            notes=data.get("notes") or "",
            schedule_id=data.get("schedule_id"),
        )


@dataclass
class Medication:
    """Medication data model.

    Attributes:
        name: Name of the medication
        dosage: Dosage information (e.g., "400mg")
        unit: Unit the inventory is counted in
        instructions: Optional intake instructions
        remaining_amount: Units left in stock, never negative
        refill_reminder: Whether low stock should be reported
        refill_threshold: Stock level at or below which a refill is due
        expiration: Optional expiration date
        schedules: Owned reminder schedules
        id: Identifier of the medication
        version: Optimistic concurrency counter, bumped on every save
        created_at: Creation time (UTC)
        updated_at: Last modification time (UTC)
    """

    name: str
    dosage: str
    unit: str = "tablets"
    instructions: Optional[str] = None
    remaining_amount: int = 0
    refill_reminder: bool = False
    refill_threshold: int = 5
    expiration: Optional[date] = None
    schedules: list[Schedule] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    version: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.remaining_amount < 0:
            raise ValueError(
                f"Remaining amount cannot be negative: {self.remaining_amount}"
            )

    @property
    def needs_refill(self) -> bool:
        """True when refill reminders are on and stock is at or below threshold."""
        return self.refill_reminder and self.remaining_amount <= self.refill_threshold

    def is_expired(self, on_date: date) -> bool:
        return self.expiration is not None and self.expiration < on_date

    def get_schedule_by_id(self, schedule_id: str) -> Optional[Schedule]:
        """Get schedule by ID.

        Args:
            schedule_id: Schedule ID

        Returns:
            Schedule instance or None if not found
        """
        for schedule in self.schedules:
            if schedule.id == schedule_id:
                return schedule
        return None

    def remove_schedule(self, schedule_id: str) -> bool:
        """Remove schedule by ID.

        Returns:
            True if schedule was removed, False if not found
        """
        for i, schedule in enumerate(self.schedules):
            if schedule.id == schedule_id:
                self.schedules.pop(i)
                return True
        return False

    def to_dict(self) -> dict:
        """Convert medication to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the medication
        """
        return {
            "id": self.id,
            "name": self.name,
            "dosage": self.dosage,
            "unit": self.unit,
            "instructions": self.instructions,
            "remaining_amount": self.remaining_amount,
            "refill_reminder": self.refill_reminder,
            "refill_threshold": self.refill_threshold,
            "expiration": self.expiration.isoformat() if self.expiration else None,
            "schedules": [schedule.to_dict() for schedule in self.schedules],
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Medication":
        """Create medication from dictionary.

        Args:
            data: Dictionary with medication data

        Returns:
            Medication instance
        """
        kwargs = {
            "id": str(data["id"]),
            "name": data["name"],
            "dosage": data["dosage"],
            "unit": data.get("unit", "tablets"),
            "instructions": data.get("instructions"),
            "remaining_amount": data.get("remaining_amount", 0),
            "refill_reminder": data.get("refill_reminder", False),
            "refill_threshold": data.get("refill_threshold", 5),
            "expiration": _parse_date(data.get("expiration")),
            "schedules": [
                Schedule.from_dict(schedule_data)
                for schedule_data in data.get("schedules", [])
            ],
            "version": data.get("version", 0),
        }
        if data.get("created_at"):
            kwargs["created_at"] = _parse_datetime(data["created_at"])
        if data.get("updated_at"):
            kwargs["updated_at"] = _parse_datetime(data["updated_at"])
        return cls(**kwargs)


@dataclass(frozen=True)
class ReminderInstance:
    """A schedule firing on a specific day. Derived, never persisted."""

    id: str
    medication_id: str
    medication: str
    dosage: str
    time: str
    timestamp: datetime
    taken: bool
    schedule_id: str

    def to_dict(self) -> dict:
        """Serialize in the shape consumed by the reminder list UI."""
        return {
            "id": self.id,
            "medicationId": self.medication_id,
            "medication": self.medication,
            "dosage": self.dosage,
            "time": self.time,
            "timestamp": self.timestamp.isoformat(),
            "taken": self.taken,
            "scheduleId": self.schedule_id,
        }
