"""Medication repository interface and in-memory implementation."""

import asyncio
import copy
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional, Protocol

from loguru import logger

from familyhub.data.models import IntakeLogEntry, Medication, utc_now
from familyhub.services import inventory
from familyhub.utils.timezone import to_reference_timezone


class MedicationNotFoundError(ValueError):
    """Raised when a medication ID does not exist."""
    pass


class ScheduleNotFoundError(ValueError):
    """Raised when a schedule ID does not exist on its medication."""
    pass


class ConcurrencyConflictError(Exception):
    """Raised when a save is based on a stale medication version.

    The caller should reload the medication and retry.
    """

    def __init__(self, medication_id: str, expected_version: int, actual_version: Optional[int]):
        self.medication_id = medication_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Medication {medication_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class MedicationRepository(Protocol):
    """Persistence collaborator for medications and their intake logs."""

    async def find_by_id(self, medication_id: str) -> Optional[Medication]:
        ...

    async def find_all(self) -> list[Medication]:
        ...

    async def save(
        self, medication: Medication, expected_version: Optional[int] = None
    ) -> Medication:
        ...

    async def delete(self, medication_id: str) -> bool:
        ...

    async def list_logs(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[IntakeLogEntry]:
        ...

    async def append_intake(self, entry: IntakeLogEntry) -> Medication:
        ...


def filter_logs(
    logs: Iterable[IntakeLogEntry],
    medication_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[IntakeLogEntry]:
    """Filter intake logs by medication and inclusive time range, newest first."""
    result = []
    for entry in logs:
        if medication_id is not None and entry.medication_id != medication_id:
            continue
        if start is not None and to_reference_timezone(entry.timestamp, start) < start:
            continue
        if end is not None and to_reference_timezone(entry.timestamp, end) > end:
            continue
        result.append(entry)

    result.sort(key=lambda entry: entry.timestamp.timestamp(), reverse=True)
    return result


def check_version(
    medication_id: str,
    expected_version: Optional[int],
    actual_version: Optional[int],
) -> None:
    """Raise ConcurrencyConflictError if an expected version does not match."""
    if expected_version is not None and expected_version != actual_version:
        logger.warning(
            f"Version conflict for medication {medication_id}: "
            f"expected {expected_version}, found {actual_version}"
        )
        raise ConcurrencyConflictError(medication_id, expected_version, actual_version)


class InMemoryMedicationRepository:
    """Repository keeping medications and logs in process memory.

    Used by tests and by client-side previews. Updates to one medication
    are serialized with a per-medication asyncio lock; returned objects are
    copies, so callers never mutate stored state directly.
    """

    def __init__(
        self,
        medications: Optional[Iterable[Medication]] = None,
        logs: Optional[Iterable[IntakeLogEntry]] = None,
    ):
        self._medications: dict[str, Medication] = {}
        self._logs: list[IntakeLogEntry] = []
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        for medication in medications or []:
            self._medications[medication.id] = copy.deepcopy(medication)
        self._logs.extend(logs or [])

    async def find_by_id(self, medication_id: str) -> Optional[Medication]:
        medication = self._medications.get(medication_id)
        return copy.deepcopy(medication) if medication else None

    async def find_all(self) -> list[Medication]:
        return [copy.deepcopy(med) for med in self._medications.values()]

    async def save(
        self, medication: Medication, expected_version: Optional[int] = None
    ) -> Medication:
        async with self._locks[medication.id]:
            stored = self._medications.get(medication.id)
            check_version(
                medication.id, expected_version, stored.version if stored else None
            )

            saved = copy.deepcopy(medication)
            saved.version = (stored.version if stored else 0) + 1
            saved.updated_at = utc_now()
            self._medications[saved.id] = saved

            logger.debug(f"Saved medication {saved.id} (version {saved.version})")
            return copy.deepcopy(saved)

    async def delete(self, medication_id: str) -> bool:
        async with self._locks[medication_id]:
            if self._medications.pop(medication_id, None) is None:
                return False
            self._logs = [
                entry for entry in self._logs if entry.medication_id != medication_id
            ]

        self._locks.pop(medication_id, None)
        logger.debug(f"Deleted medication {medication_id} with its logs")
        return True

    async def list_logs(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[IntakeLogEntry]:
        return filter_logs(self._logs, medication_id, start, end)

    async def append_intake(self, entry: IntakeLogEntry) -> Medication:
        async with self._locks[entry.medication_id]:
            stored = self._medications.get(entry.medication_id)
            if stored is None:
                raise MedicationNotFoundError(
                    f"Medication {entry.medication_id} not found"
                )

            updated = inventory.record_intake(stored, entry)
            updated.version = stored.version + 1

            # Both writes happen without a suspension point in between
            self._logs.append(entry)
            self._medications[updated.id] = updated

            return copy.deepcopy(updated)
