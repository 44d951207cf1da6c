"""Data layer for FamilyHub.

This module provides data models, the repository interface and its
storage implementations.
"""

from .models import IntakeLogEntry, Medication, ReminderInstance, Schedule
from .repository import (
    ConcurrencyConflictError,
    InMemoryMedicationRepository,
    MedicationNotFoundError,
    MedicationRepository,
    ScheduleNotFoundError,
)
from .storage import JsonMedicationStore

__all__ = [
    "Medication",
    "Schedule",
    "IntakeLogEntry",
    "ReminderInstance",
    "MedicationRepository",
    "InMemoryMedicationRepository",
    "JsonMedicationStore",
    "MedicationNotFoundError",
    "ScheduleNotFoundError",
    "ConcurrencyConflictError",
]
