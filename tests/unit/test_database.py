"""Unit tests for the SQLite medication repository."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import aiosqlite
import pytest

from familyhub.data.models import IntakeLogEntry, Schedule
from familyhub.data.repository import ConcurrencyConflictError, MedicationNotFoundError

from fixtures.medication_samples import SAMPLE_LAST_DOSE, make_medication


# TC-DB-001: Save And Load
@pytest.mark.asyncio
async def test_save_and_load(database, ibuprofen):
    """Test that a medication and its schedules survive a round trip."""
    # When: Saving medication
    saved = await database.save(ibuprofen)

    # Then: Loaded medication matches
    loaded = await database.find_by_id(ibuprofen.id)
    assert saved.version == 1
    assert loaded.name == "Ibuprofen"
    assert loaded.expiration == date(2026, 12, 31)
    assert loaded.refill_reminder is True
    assert [(s.id, s.time) for s in loaded.schedules] == [
        ("sched-morning", "08:00"),
        ("sched-evening", "20:00"),
    ]


# TC-DB-002: Missing Medication
@pytest.mark.asyncio
async def test_find_missing(database):
    """Test that unknown IDs return None."""
    assert await database.find_by_id("missing") is None


# TC-DB-003: Schedules Are Replaced
@pytest.mark.asyncio
async def test_save_replaces_schedules(database, ibuprofen):
    """Test that saving replaces the schedule set."""
    saved = await database.save(ibuprofen)

    saved.schedules = [Schedule(id="sched-noon", time="12:00", days_of_week=[0, 6])]
    updated = await database.save(saved, expected_version=saved.version)

    assert updated.version == 2
    assert [s.id for s in updated.schedules] == ["sched-noon"]
    assert updated.schedules[0].days_of_week == [0, 6]


# TC-DB-004: Version Conflict
@pytest.mark.asyncio
async def test_stale_save_rejected(database, ibuprofen):
    """Test that a save based on an old version is rejected and rolled back."""
    await database.save(ibuprofen)
    await database.save(ibuprofen, expected_version=1)

    ibuprofen.dosage = "600mg"
    with pytest.raises(ConcurrencyConflictError):
        await database.save(ibuprofen, expected_version=1)

    stored = await database.find_by_id(ibuprofen.id)
    assert stored.dosage == "400mg"
    assert stored.version == 2


# TC-DB-005: Intake Is Atomic
@pytest.mark.asyncio
async def test_append_intake(database, ibuprofen):
    """Test that intake inserts the log and decrements stock together."""
    await database.save(ibuprofen)
    entry = IntakeLogEntry(
        medication_id=ibuprofen.id,
        timestamp=datetime(2024, 1, 1, 8, 5, tzinfo=timezone.utc),
        notes="With breakfast",
    )

    updated = await database.append_intake(entry)

    assert updated.remaining_amount == 19
    assert updated.version == 2
    logs = await database.list_logs(ibuprofen.id)
    assert logs == [entry]


# TC-DB-006: Skipped Dose
@pytest.mark.asyncio
async def test_skipped_intake_keeps_stock(database, ibuprofen):
    """Test that a skipped dose is logged without consuming stock."""
    await database.save(ibuprofen)

    updated = await database.append_intake(
        IntakeLogEntry(medication_id=ibuprofen.id, timestamp=datetime(2024, 1, 1, 8, 0), taken=False)
    )

    assert updated.remaining_amount == 20
    assert (await database.list_logs(ibuprofen.id))[0].taken is False


# TC-DB-007: Intake For Missing Medication
@pytest.mark.asyncio
async def test_append_intake_missing_medication(database):
    """Test that intake for unknown medication raises and writes nothing."""
    entry = IntakeLogEntry(medication_id="missing", timestamp=datetime(2024, 1, 1, 8, 0))

    with pytest.raises(MedicationNotFoundError):
        await database.append_intake(entry)

    assert await database.list_logs() == []


# TC-DB-008: Concurrent Intakes
@pytest.mark.asyncio
async def test_concurrent_intakes_floor_at_zero(database):
    """Test that concurrent intakes never lose a decrement or go negative."""
    # Given: Medication with 3 units
    medication = make_medication(SAMPLE_LAST_DOSE, remaining_amount=3)
    await database.save(medication)

    # When: Five concurrent intakes
    await asyncio.gather(*[
        database.append_intake(
            IntakeLogEntry(medication_id=medication.id, timestamp=datetime(2024, 1, 1, 12, i))
        )
        for i in range(5)
    ])

    # Then: Stock stops at zero, every intake is logged
    stored = await database.find_by_id(medication.id)
    assert stored.remaining_amount == 0
    assert stored.version == 6
    assert len(await database.list_logs(medication.id)) == 5


# TC-DB-009: Delete Cascades
@pytest.mark.asyncio
async def test_delete_cascades(database, ibuprofen):
    """Test that deleting a medication removes schedules and logs."""
    await database.save(ibuprofen)
    await database.append_intake(
        IntakeLogEntry(medication_id=ibuprofen.id, timestamp=datetime(2024, 1, 1, 8, 0))
    )

    assert await database.delete(ibuprofen.id) is True
    assert await database.delete(ibuprofen.id) is False

    async with aiosqlite.connect(database.db_path) as db:
        cursor = await db.execute("SELECT COUNT(*) FROM schedules")
        assert (await cursor.fetchone())[0] == 0
    assert await database.list_logs() == []


# TC-DB-010: Log Time Range
@pytest.mark.asyncio
async def test_list_logs_time_range(database, ibuprofen):
    """Test that logs are filtered by inclusive range, newest first."""
    await database.save(ibuprofen)
    start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
    for hours in (-1, 0, 8, 24, 25):
        await database.append_intake(
            IntakeLogEntry(medication_id=ibuprofen.id, timestamp=start + timedelta(hours=hours))
        )

    logs = await database.list_logs(start=start, end=start + timedelta(hours=24))

    assert [entry.timestamp.hour for entry in logs] == [0, 8, 0]
    assert logs[0].timestamp.day == 2
