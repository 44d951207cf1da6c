"""Medication manager for FamilyHub."""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from loguru import logger

from familyhub.config import settings
from familyhub.data.models import IntakeLogEntry, Medication, ReminderInstance, Schedule, utc_now
from familyhub.data.repository import (
    ConcurrencyConflictError,
    MedicationNotFoundError,
    MedicationRepository,
    ScheduleNotFoundError,
)
from familyhub.services import inventory
from familyhub.services.reminders import (
    ReminderBuckets,
    classify_reminders,
    resolve_reminders,
)
from familyhub.utils import (
    format_days_of_week,
    get_current_time,
    get_logger,
    log_operation,
    timed_operation,
)
from familyhub.utils.weekdays import parse_schedule_time

EDITABLE_FIELDS = {
    "name",
    "dosage",
    "unit",
    "instructions",
    "remaining_amount",
    "refill_reminder",
    "refill_threshold",
    "expiration",
}


class MedicationManager:
    """Manager for medication, schedule and intake operations.

    Handles all operations the medication API exposes:
    - Creating, updating and deleting medications
    - Adding, editing and removing schedules
    - Logging intakes (with atomic inventory decrement)
    - Inventory and expiration queries
    - Resolving and classifying today's reminders
    """

    def __init__(
        self,
        repository: MedicationRepository,
        timezone_offset: Optional[str] = None,
        max_retries: Optional[int] = None,
        grace_hours: Optional[int] = None,
        tolerance_hours: Optional[int] = None,
    ):
        """Initialize medication manager.

        Args:
            repository: Repository used for persistence
            timezone_offset: Offset used when no reference time is given
            max_retries: Attempts for updates that hit a version conflict
            grace_hours: How long an overdue reminder stays due
            tolerance_hours: Hour window for matching intakes to schedules
        """
        self.repository = repository
        self.timezone_offset = timezone_offset or settings.default_timezone_offset
        self.max_retries = max(1, max_retries or settings.max_update_retries)
        self.grace_window = timedelta(
            hours=grace_hours if grace_hours is not None else settings.reminder_grace_hours
        )
        self.tolerance_hours = (
            tolerance_hours if tolerance_hours is not None else settings.intake_tolerance_hours
        )
        logger.debug("MedicationManager initialized")

    def _now(self) -> datetime:
        return get_current_time(self.timezone_offset)

    async def create_medication(
        self,
        name: str,
        dosage: str,
        unit: str = "tablets",
        instructions: Optional[str] = None,
        remaining_amount: int = 0,
        refill_reminder: bool = False,
        refill_threshold: int = 5,
        expiration: Optional[date] = None,
        schedules: Optional[list[dict]] = None,
    ) -> Medication:
        """Create a medication with optional schedules.

        Args:
            name: Medication name
            dosage: Dosage information
            unit: Unit of the inventory
            instructions: Optional intake instructions
            remaining_amount: Initial stock
            refill_reminder: Whether to report low stock
            refill_threshold: Low-stock threshold
            expiration: Optional expiration date
            schedules: Schedule dictionaries ({"time", "days_of_week", "active"})

        Returns:
            Created Medication instance

        Raises:
            ValueError: If a field or schedule time is invalid
        """
        if not name or not name.strip():
            raise ValueError("Medication name cannot be empty")
        if not dosage or not dosage.strip():
            raise ValueError("Medication dosage cannot be empty")

        medication = Medication(
            name=name.strip(),
            dosage=dosage.strip(),
            unit=unit,
            instructions=instructions,
            remaining_amount=remaining_amount,
            refill_reminder=refill_reminder,
            refill_threshold=refill_threshold,
            expiration=expiration,
            schedules=[Schedule.from_dict(data) for data in schedules or []],
        )

        saved = await self.repository.save(medication)
        logger.info(
            f"Created medication {saved.id}: {saved.name} {saved.dosage} "
            f"with {len(saved.schedules)} schedule(s)"
        )
        return saved

    async def get_medication(self, medication_id: str) -> Medication:
        """Get medication by ID.

        Raises:
            MedicationNotFoundError: If medication does not exist
        """
        medication = await self.repository.find_by_id(medication_id)
        if medication is None:
            logger.error(f"Medication {medication_id} not found")
            raise MedicationNotFoundError(f"Medication {medication_id} not found")
        return medication

    async def list_medications(self) -> list[Medication]:
        """Get all medications, most recently updated first."""
        medications = await self.repository.find_all()
        medications.sort(key=lambda med: med.updated_at, reverse=True)
        return medications

    async def _modify(
        self,
        medication_id: str,
        mutate: Callable[[Medication], Any],
        operation: str,
    ) -> Medication:
        """Apply ``mutate`` to a fresh copy and save with a version check.

        Retries on ConcurrencyConflictError, reloading the medication each
        time, up to ``max_retries`` attempts.

        Raises:
            ConcurrencyConflictError: If every attempt conflicted
        """
        for attempt in range(1, self.max_retries + 1):
            medication = await self.get_medication(medication_id)
            expected_version = medication.version
            mutate(medication)

            try:
                saved = await self.repository.save(medication, expected_version=expected_version)
            except ConcurrencyConflictError:
                logger.warning(
                    f"{operation} on medication {medication_id} conflicted "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                if attempt == self.max_retries:
                    raise
                continue

            log_operation(operation, medication_id=medication_id, version=saved.version)
            return saved

    async def update_medication(self, medication_id: str, **changes) -> Medication:
        """Update editable medication fields.

        Args:
            medication_id: ID of medication to update
            **changes: Field values; see EDITABLE_FIELDS. ``schedules`` may be
                given as a list of schedule dictionaries to replace all schedules.

        Returns:
            Updated Medication instance

        Raises:
            ValueError: If an unknown field or invalid value is given
            MedicationNotFoundError: If medication does not exist
        """
        schedule_data = changes.pop("schedules", None)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown medication field(s): {', '.join(sorted(unknown))}")

        for key in ("name", "dosage"):
            if key not in changes:
                continue
            value = changes[key]
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Medication {key} cannot be empty")
            changes[key] = value.strip()

        if changes.get("remaining_amount") is not None and changes["remaining_amount"] < 0:
            raise ValueError(
                f"Remaining amount cannot be negative: {changes['remaining_amount']}"
            )
        if isinstance(changes.get("expiration"), str):
            changes["expiration"] = date.fromisoformat(changes["expiration"][:10])

        # Validate schedules once, before any attempt
        new_schedules = (
            [Schedule.from_dict(data) for data in schedule_data]
            if schedule_data is not None else None
        )

        def apply(medication: Medication) -> None:
            for key, value in changes.items():
                setattr(medication, key, value)
            if new_schedules is not None:
                medication.schedules = [Schedule.from_dict(s.to_dict()) for s in new_schedules]

        medication = await self._modify(medication_id, apply, "medication_updated")
        logger.info(
            f"Updated medication {medication_id}: "
            f"{', '.join(sorted(changes)) or 'no fields'}"
            f"{' and schedules' if new_schedules is not None else ''}"
        )
        return medication

    async def delete_medication(self, medication_id: str) -> None:
        """Delete medication together with its schedules and logs.

        Raises:
            MedicationNotFoundError: If medication does not exist
        """
        if not await self.repository.delete(medication_id):
            logger.warning(f"No medication deleted: {medication_id} not found")
            raise MedicationNotFoundError(f"Medication {medication_id} not found")

        log_operation("medication_deleted", medication_id=medication_id)

    async def add_schedule(
        self,
        medication_id: str,
        time: str,
        days_of_week: Optional[list[int]] = None,
        active: bool = True,
    ) -> Schedule:
        """Add a schedule to a medication.

        Args:
            medication_id: Medication ID
            time: Time in "HH:MM" format
            days_of_week: Weekdays (0 = Sunday); every day if omitted
            active: Whether the schedule fires

        Returns:
            Created Schedule instance

        Raises:
            ValueError: If time is malformed
            MedicationNotFoundError: If medication does not exist
        """
        kwargs = {"time": time, "active": active}
        if days_of_week is not None:
            kwargs["days_of_week"] = days_of_week
        schedule = Schedule(**kwargs)

        def apply(medication: Medication) -> None:
            medication.schedules.append(Schedule.from_dict(schedule.to_dict()))

        await self._modify(medication_id, apply, "schedule_added")
        logger.info(
            f"Added schedule {schedule.id} to medication {medication_id}: "
            f"{time} ({format_days_of_week(schedule.days_of_week)})"
        )
        return schedule

    async def update_schedule(
        self,
        medication_id: str,
        schedule_id: str,
        time: Optional[str] = None,
        days_of_week: Optional[list[int]] = None,
        active: Optional[bool] = None,
    ) -> Schedule:
        """Edit a schedule's time, weekdays or active flag.

        Raises:
            ValueError: If time is malformed
            MedicationNotFoundError: If medication does not exist
            ScheduleNotFoundError: If schedule does not exist
        """
        if time is not None:
            parse_schedule_time(time)

        updated = {}

        def apply(medication: Medication) -> None:
            schedule = medication.get_schedule_by_id(schedule_id)
            if schedule is None:
                logger.error(
                    f"Schedule {schedule_id} not found for medication {medication_id}"
                )
                raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
            if time is not None:
                schedule.time = time
            if days_of_week is not None:
                schedule.days_of_week = [int(day) for day in days_of_week]
            if active is not None:
                schedule.active = active
            updated["schedule"] = schedule

        await self._modify(medication_id, apply, "schedule_updated")
        return updated["schedule"]

    async def remove_schedule(self, medication_id: str, schedule_id: str) -> None:
        """Remove a schedule from a medication.

        Raises:
            MedicationNotFoundError: If medication does not exist
            ScheduleNotFoundError: If schedule does not exist
        """
        def apply(medication: Medication) -> None:
            if not medication.remove_schedule(schedule_id):
                raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")

        await self._modify(medication_id, apply, "schedule_removed")

    async def log_intake(
        self,
        medication_id: str,
        taken: bool = True,
        notes: str = "",
        timestamp: Optional[datetime] = None,
        schedule_id: Optional[str] = None,
    ) -> tuple[IntakeLogEntry, Medication]:
        """Record an intake and adjust inventory atomically.

        Args:
            medication_id: Medication ID
            taken: False records a skipped dose (inventory untouched)
            notes: Free-text notes
            timestamp: When the intake happened (default: now, UTC)
            schedule_id: Schedule the intake answers, if known

        Returns:
            Tuple of (created entry, updated medication)

        Raises:
            MedicationNotFoundError: If medication does not exist
            ScheduleNotFoundError: If schedule_id is not one of its schedules
        """
        if schedule_id is not None:
            medication = await self.get_medication(medication_id)
            if medication.get_schedule_by_id(schedule_id) is None:
                raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")

        entry = IntakeLogEntry(
            medication_id=medication_id,
            timestamp=timestamp or utc_now(),
            taken=taken,
            notes=notes or "",
            schedule_id=schedule_id,
        )

        updated = await self.repository.append_intake(entry)

        intake_log = get_logger(operation="log_intake", medication_id=medication_id)
        intake_log.info(
            f"Logged {'taken' if taken else 'skipped'} dose of {updated.name}: "
            f"{updated.remaining_amount} {updated.unit} left"
        )
        if updated.needs_refill:
            intake_log.warning(
                f"Medication {updated.name} needs a refill: "
                f"{updated.remaining_amount} left (threshold {updated.refill_threshold})"
            )

        return entry, updated

    async def get_intake_logs(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[IntakeLogEntry]:
        """Get intake logs, newest first, optionally filtered."""
        return await self.repository.list_logs(medication_id, start, end)

    async def update_inventory(self, medication_id: str, amount: int) -> Medication:
        """Set a medication's remaining amount (restock or correction).

        Raises:
            ValueError: If amount is negative
            MedicationNotFoundError: If medication does not exist
        """
        if amount is None or amount < 0:
            raise ValueError(f"Inventory amount must be a non-negative number, got {amount}")

        def apply(medication: Medication) -> None:
            medication.remaining_amount = inventory.set_inventory(medication, amount).remaining_amount

        medication = await self._modify(medication_id, apply, "inventory_updated")
        logger.info(f"Set inventory of {medication.name} to {amount} {medication.unit}")
        return medication

    async def get_low_inventory_medications(self) -> list[Medication]:
        """Get medications due for a refill, lowest stock first."""
        medications = [med for med in await self.repository.find_all() if med.needs_refill]
        medications.sort(key=lambda med: med.remaining_amount)
        return medications

    async def get_expiring_medications(
        self,
        within_days: int = 30,
        today: Optional[date] = None,
    ) -> list[Medication]:
        """Get medications expiring within ``within_days`` (expired ones included).

        Returns:
            Medications sorted by expiration date
        """
        today = today or self._now().date()
        limit = today + timedelta(days=within_days)
        medications = [
            med for med in await self.repository.find_all()
            if med.expiration is not None and med.expiration <= limit
        ]
        medications.sort(key=lambda med: med.expiration)
        return medications

    async def get_daily_reminders(
        self, reference: Optional[datetime] = None
    ) -> list[ReminderInstance]:
        """Resolve today's reminders from stored medications and logs.

        Args:
            reference: Current date/time (default: now in configured offset)

        Returns:
            Reminders sorted by time
        """
        reference = reference or self._now()

        day_start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
        medications = await self.repository.find_all()
        # One day of slack either side; the resolver does the exact date match
        logs = await self.repository.list_logs(
            start=day_start - timedelta(days=1),
            end=day_start + timedelta(days=2),
        )

        return resolve_reminders(
            reference, medications, logs, tolerance_hours=self.tolerance_hours
        )

    async def get_reminder_overview(
        self, reference: Optional[datetime] = None
    ) -> ReminderBuckets:
        """Resolve and classify today's reminders.

        Args:
            reference: Current date/time (default: now in configured offset)

        Returns:
            ReminderBuckets with due, upcoming, taken and missed reminders
        """
        reference = reference or self._now()

        with timed_operation("reminder_overview") as timing:
            reminders = await self.get_daily_reminders(reference)
            buckets = classify_reminders(reference, reminders, grace_window=self.grace_window)
            timing["reminders"] = len(reminders)

        return buckets

    def format_reminders_for_display(self, buckets: ReminderBuckets) -> str:
        """Format classified reminders for display.

        Format:
            Due now:
            08:00 Ibuprofen 400mg
            Later today:
            20:00 Ibuprofen 400mg

        Args:
            buckets: Classified reminders

        Returns:
            Formatted multi-line string
        """
        if len(buckets) == 0:
            return "No medication reminders today."

        sections = (
            ("Due now", buckets.due),
            ("Later today", buckets.upcoming),
            ("Taken", buckets.taken),
            ("Missed", buckets.missed),
        )

        lines = []
        for title, reminders in sections:
            if not reminders:
                continue
            lines.append(f"{title}:")
            for reminder in reminders:
                lines.append(f"{reminder.time} {reminder.medication} {reminder.dosage}")

        return "\n".join(lines)

    def format_schedule_for_display(self, medications: list[Medication]) -> str:
        """Format medication schedules for display.

        Format:
            1) Ibuprofen 400mg: 08:00 (Every day), 20:00 (Weekdays)
            2) Vitamin D 1000 IU: no active schedules
        """
        if not medications:
            return "No medications yet."

        lines = []
        for idx, medication in enumerate(medications, start=1):
            active = sorted(
                (s for s in medication.schedules if s.active),
                key=lambda s: s.time,
            )
            if active:
                times = ", ".join(
                    f"{s.time} ({format_days_of_week(s.days_of_week)})" for s in active
                )
            else:
                times = "no active schedules"
            lines.append(f"{idx}) {medication.name} {medication.dosage}: {times}")

        return "\n".join(lines)
