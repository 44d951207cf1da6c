"""Inventory bookkeeping driven by intake logging."""

from dataclasses import replace

from loguru import logger

from familyhub.data.models import IntakeLogEntry, Medication, utc_now


def record_intake(medication: Medication, log_entry: IntakeLogEntry) -> Medication:
    """Apply an intake log entry to a medication's stock.
    
    A taken dose consumes one unit, floored at zero. A skipped dose
    (``taken=False``) leaves the stock untouched. The input medication is
    not modified; persisting the result together with the log entry is
    the repository's job.
    
    Args:
        medication: Medication the entry belongs to
        log_entry: Intake log entry being recorded
        
    Returns:
        Updated copy of the medication
        
    Raises:
        ValueError: If the entry belongs to another medication
    """
    if log_entry.medication_id != medication.id:
        raise ValueError(
            f"Intake entry {log_entry.id} belongs to medication "
            f"{log_entry.medication_id}, not {medication.id}"
        )
    
    if not log_entry.taken:
        logger.debug(
            f"Skipped dose logged for {medication.name}, inventory unchanged "
            f"({medication.remaining_amount} {medication.unit})"
        )
        return replace(medication, schedules=list(medication.schedules))
    
    remaining = max(0, medication.remaining_amount - 1)
    if medication.remaining_amount == 0:
        logger.warning(
            f"Dose of {medication.name} taken with empty inventory, "
            f"keeping remaining amount at 0"
        )
    
    return replace(
        medication,
        schedules=list(medication.schedules),
        remaining_amount=remaining,
        updated_at=utc_now(),
    )


def set_inventory(medication: Medication, amount: int) -> Medication:
    """Return a copy of ``medication`` restocked to ``amount`` units.
    
    Raises:
        ValueError: If amount is negative
    """
    if amount is None or amount < 0:
        raise ValueError(f"Inventory amount must be a non-negative number, got {amount}")
    
    return replace(
        medication,
        schedules=list(medication.schedules),
        remaining_amount=int(amount),
        updated_at=utc_now(),
    )
