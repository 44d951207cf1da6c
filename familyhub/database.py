"""SQLite storage for FamilyHub medications."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite
from loguru import logger

from familyhub.data.models import IntakeLogEntry, Medication, Schedule, utc_now
from familyhub.data.repository import MedicationNotFoundError, check_version, filter_logs


class Database:
    """Medication repository backed by SQLite.

    Intake logging runs in a single write transaction and decrements stock
    with one UPDATE statement, so concurrent intakes on the same medication
    are serialized by SQLite itself, across processes too.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self):
        # Autocommit mode; transactions are opened explicitly with BEGIN IMMEDIATE
        return aiosqlite.connect(self.db_path, isolation_level=None)

    async def _prepare(self, db: aiosqlite.Connection) -> None:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")

    async def init(self):
        """Initialize database with schema."""
        async with self._connect() as db:
            # Enable WAL mode for better concurrency
            await db.execute("PRAGMA journal_mode=WAL")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS medications (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    dosage TEXT NOT NULL,
                    unit TEXT NOT NULL,
                    instructions TEXT,
                    remaining_amount INTEGER NOT NULL DEFAULT 0
                        CHECK (remaining_amount >= 0),
                    refill_reminder INTEGER NOT NULL DEFAULT 0,
                    refill_threshold INTEGER NOT NULL DEFAULT 5,
                    expiration TEXT,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS schedules (
                    id TEXT NOT NULL,
                    medication_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    time TEXT NOT NULL,
                    days_of_week TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    PRIMARY KEY (medication_id, id),
                    FOREIGN KEY (medication_id) REFERENCES medications(id) ON DELETE CASCADE
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS intake_logs (
                    id TEXT PRIMARY KEY,
                    medication_id TEXT NOT NULL,
                    schedule_id TEXT,
                    timestamp TEXT NOT NULL,
                    taken INTEGER NOT NULL DEFAULT 1,
                    notes TEXT NOT NULL DEFAULT '',
                    FOREIGN KEY (medication_id) REFERENCES medications(id) ON DELETE CASCADE
                )
            """)

            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_intake_logs_medication "
                "ON intake_logs(medication_id)"
            )

        logger.info(f"Database initialized at {self.db_path}")

    async def _load_schedules(
        self, db: aiosqlite.Connection, medication_id: str
    ) -> List[Schedule]:
        cursor = await db.execute(
            "SELECT * FROM schedules WHERE medication_id = ? ORDER BY position",
            (medication_id,)
        )
        rows = await cursor.fetchall()
        return [
            Schedule(
                id=row["id"],
                time=row["time"],
                days_of_week=json.loads(row["days_of_week"]),
                active=bool(row["active"]),
            )
            for row in rows
        ]

    async def _row_to_medication(
        self, db: aiosqlite.Connection, row: aiosqlite.Row
    ) -> Medication:
        data: Dict[str, Any] = dict(row)
        data["refill_reminder"] = bool(data["refill_reminder"])
        medication = Medication.from_dict(data)
        medication.schedules = await self._load_schedules(db, medication.id)
        return medication

    async def _fetch_medication(
        self, db: aiosqlite.Connection, medication_id: str
    ) -> Optional[Medication]:
        cursor = await db.execute(
            "SELECT * FROM medications WHERE id = ?",
            (medication_id,)
        )
        row = await cursor.fetchone()
        return await self._row_to_medication(db, row) if row else None

    async def find_by_id(self, medication_id: str) -> Optional[Medication]:
        """Get medication with its schedules.

        Args:
            medication_id: Medication ID

        Returns:
            Medication or None if not found
        """
        async with self._connect() as db:
            await self._prepare(db)
            return await self._fetch_medication(db, medication_id)

    async def find_all(self) -> List[Medication]:
        """Get all medications, most recently updated first."""
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute("SELECT * FROM medications ORDER BY updated_at DESC")
            rows = await cursor.fetchall()
            return [await self._row_to_medication(db, row) for row in rows]

    async def save(
        self, medication: Medication, expected_version: Optional[int] = None
    ) -> Medication:
        """Insert or update a medication and replace its schedules.

        Args:
            medication: Medication to store
            expected_version: Version the caller read; None skips the check

        Returns:
            Stored medication with its new version

        Raises:
            ConcurrencyConflictError: If the stored version differs
        """
        now = utc_now()
        async with self._connect() as db:
            await self._prepare(db)
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT version FROM medications WHERE id = ?",
                    (medication.id,)
                )
                row = await cursor.fetchone()
                current_version = row["version"] if row else None
                check_version(medication.id, expected_version, current_version)

                new_version = (current_version or 0) + 1
                values = (
                    medication.name,
                    medication.dosage,
                    medication.unit,
                    medication.instructions,
                    medication.remaining_amount,
                    int(medication.refill_reminder),
                    medication.refill_threshold,
                    medication.expiration.isoformat() if medication.expiration else None,
                    new_version,
                    now.isoformat(),
                )

                if row is None:
                    await db.execute(
                        "INSERT INTO medications (name, dosage, unit, instructions, "
                        "remaining_amount, refill_reminder, refill_threshold, expiration, "
                        "version, updated_at, created_at, id) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        values + (medication.created_at.isoformat(), medication.id)
                    )
                else:
                    await db.execute(
                        "UPDATE medications SET name = ?, dosage = ?, unit = ?, "
                        "instructions = ?, remaining_amount = ?, refill_reminder = ?, "
                        "refill_threshold = ?, expiration = ?, version = ?, updated_at = ? "
                        "WHERE id = ?",
                        values + (medication.id,)
                    )

                await db.execute(
                    "DELETE FROM schedules WHERE medication_id = ?",
                    (medication.id,)
                )
                await db.executemany(
                    "INSERT INTO schedules "
                    "(id, medication_id, position, time, days_of_week, active) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (
                            schedule.id,
                            medication.id,
                            position,
                            schedule.time,
                            json.dumps(schedule.days_of_week),
                            int(schedule.active),
                        )
                        for position, schedule in enumerate(medication.schedules)
                    ]
                )

                await db.execute("COMMIT")
            except Exception:
                await db.execute("ROLLBACK")
                raise

            logger.debug(f"Saved medication {medication.id} (version {new_version})")
            return await self._fetch_medication(db, medication.id)

    async def delete(self, medication_id: str) -> bool:
        """Delete medication; schedules and logs cascade.

        Returns:
            True if deleted, False if not found
        """
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute(
                "DELETE FROM medications WHERE id = ?",
                (medication_id,)
            )
            return cursor.rowcount > 0

    async def list_logs(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[IntakeLogEntry]:
        """Get intake logs, newest first.

        Time bounds are applied after loading because stored timestamps
        may carry different UTC offsets.
        """
        async with self._connect() as db:
            await self._prepare(db)
            if medication_id is None:
                cursor = await db.execute("SELECT * FROM intake_logs")
            else:
                cursor = await db.execute(
                    "SELECT * FROM intake_logs WHERE medication_id = ?",
                    (medication_id,)
                )
            rows = await cursor.fetchall()

        entries = [
            IntakeLogEntry.from_dict({**dict(row), "taken": bool(row["taken"])})
            for row in rows
        ]
        return filter_logs(entries, medication_id, start, end)

    async def append_intake(self, entry: IntakeLogEntry) -> Medication:
        """Record an intake entry and adjust stock in one transaction.

        Raises:
            MedicationNotFoundError: If the medication does not exist
        """
        now = utc_now()
        async with self._connect() as db:
            await self._prepare(db)
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "UPDATE medications SET "
                    "remaining_amount = CASE WHEN ? THEN MAX(remaining_amount - 1, 0) "
                    "ELSE remaining_amount END, "
                    "version = version + 1, updated_at = ? "
                    "WHERE id = ?",
                    (int(entry.taken), now.isoformat(), entry.medication_id)
                )
                if cursor.rowcount == 0:
                    raise MedicationNotFoundError(
                        f"Medication {entry.medication_id} not found"
                    )

                await db.execute(
                    "INSERT INTO intake_logs "
                    "(id, medication_id, schedule_id, timestamp, taken, notes) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        entry.id,
                        entry.medication_id,
                        entry.schedule_id,
                        entry.timestamp.isoformat(),
                        int(entry.taken),
                        entry.notes,
                    )
                )

                await db.execute("COMMIT")
            except Exception:
                await db.execute("ROLLBACK")
                raise

            return await self._fetch_medication(db, entry.medication_id)
