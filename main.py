"""Main entry point for FamilyHub medication reminders."""

import asyncio
import json
import sys

from familyhub.config import settings
from familyhub.data import (
    InMemoryMedicationRepository,
    JsonMedicationStore,
    Medication,
    MedicationRepository,
)
from familyhub.database import Database
from familyhub.services.medication_manager import MedicationManager
from familyhub.utils import format_error_for_user, handle_errors, logger, setup_logger


async def build_repository() -> MedicationRepository:
    """Create the repository selected by STORAGE_BACKEND."""
    settings.ensure_storage_dirs()

    if settings.storage_backend == "sqlite":
        database = Database(settings.database_path)
        await database.init()
        return database

    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage, nothing will be persisted")
        return InMemoryMedicationRepository()

    return JsonMedicationStore(settings.data_dir)


@handle_errors(default_return=[], log_level="WARNING")
async def report_refills(manager: MedicationManager) -> list[Medication]:
    """Log medications that need a refill. Failures never block the overview."""
    medications = await manager.get_low_inventory_medications()
    for medication in medications:
        logger.warning(
            f"Refill needed: {medication.name} "
            f"({medication.remaining_amount} {medication.unit} left)"
        )
    return medications


async def main():
    """Print today's reminder overview as JSON."""
    setup_logger(
        console_level=settings.log_level,
        logs_dir=settings.log_dir,
        serialize=settings.log_json,
    )

    logger.info("Starting FamilyHub medication reminders")
    logger.debug(f"Configuration: {settings!r}")

    try:
        repository = await build_repository()
        manager = MedicationManager(repository)

        buckets = await manager.get_reminder_overview()
    except Exception as e:
        logger.opt(exception=e).error(f"Failed to resolve reminders: {e}")
        print(format_error_for_user(e), file=sys.stderr)
        sys.exit(1)

    refills = await report_refills(manager)

    logger.info(manager.format_reminders_for_display(buckets))
    output = buckets.to_dict()
    output["refill"] = [medication.id for medication in refills]
    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    asyncio.run(main())
