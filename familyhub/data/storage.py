"""JSON document store for medications."""

import asyncio
import json
import re
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from familyhub.services import inventory
from familyhub.utils import log_operation, logger

from .models import IntakeLogEntry, Medication, utc_now
from .repository import (
    MedicationNotFoundError,
    check_version,
    filter_logs,
)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonMedicationStore:
    """Medication repository using one JSON document per medication.

    Each medication is stored in {data_dir}/{medication_id}.json together
    with its schedules and intake logs, so deleting the document removes
    everything the medication owns. Uses atomic write pattern (write to
    temp file, then rename) for data integrity.

    Read-modify-write cycles on one medication are serialized by a
    per-medication asyncio lock. The lock only covers this process; run a
    single writer per data directory.
    """

    def __init__(self, data_dir: str = "data/medications"):
        """Initialize document store.

        Args:
            data_dir: Directory to store medication documents
        """
        self.data_dir = Path(data_dir)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._ensure_data_dir()

    def _ensure_data_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Data directory ensured: {self.data_dir}")

    def _get_file_path(self, medication_id: str) -> Path:
        """Get path to a medication's document.

        Raises:
            ValueError: If the ID cannot be used as a file name
        """
        if not _SAFE_ID.match(medication_id):
            raise ValueError(f"Invalid medication ID: {medication_id!r}")
        return self.data_dir / f"{medication_id}.json"

    def _get_temp_file_path(self, medication_id: str) -> Path:
        """Get path to temporary file for atomic writes."""
        return self.data_dir / f"{medication_id}.json.tmp"

    async def _read_document(self, file_path: Path) -> Optional[dict]:
        """Load a medication document.

        Returns:
            Document dictionary or None if missing or corrupted
        """
        if not file_path.exists():
            return None

        try:
            async with aiofiles.open(file_path, mode="r", encoding="utf-8") as f:
                content = await f.read()
            document = json.loads(content)

        except json.JSONDecodeError as e:
            self._discard_corrupted(file_path, f"{type(e).__name__}: {e}")
            return None

        if not isinstance(document, dict) or not isinstance(document.get("medication"), dict):
            self._discard_corrupted(file_path, "no medication record")
            return None
        return document

    def _discard_corrupted(self, file_path: Path, reason: str) -> None:
        logger.error(f"Corrupted medication document {file_path.name}: {reason}. Removing it.")
        try:
            file_path.unlink()
            log_operation("corrupted_document_removed", file=file_path.name)
        except OSError as unlink_error:
            logger.error(
                f"Failed to remove corrupted document {file_path.name}: {unlink_error}"
            )

    async def _write_document(self, medication: Medication, logs: list[IntakeLogEntry]) -> None:
        """Write a medication document atomically.

        Raises:
            Exception: If save operation fails (temp file is cleaned up)
        """
        file_path = self._get_file_path(medication.id)
        temp_path = self._get_temp_file_path(medication.id)

        document = {
            "medication": medication.to_dict(),
            "logs": [entry.to_dict() for entry in logs],
        }

        try:
            json_content = json.dumps(document, ensure_ascii=False, indent=2)

            async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
                await f.write(json_content)

            # Atomic rename (replaces existing file)
            temp_path.replace(file_path)

        except Exception as e:
            logger.error(
                f"Error saving medication {medication.id}: {type(e).__name__}: {e}"
            )
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as unlink_error:
                    logger.error(
                        f"Failed to remove temp file for medication {medication.id}: "
                        f"{unlink_error}"
                    )
            raise

    async def _load(self, medication_id: str) -> tuple[Optional[Medication], list[IntakeLogEntry]]:
        document = await self._read_document(self._get_file_path(medication_id))
        if document is None:
            return None, []

        medication = Medication.from_dict(document["medication"])
        logs = [IntakeLogEntry.from_dict(entry) for entry in document.get("logs", [])]
        return medication, logs

    def _document_paths(self) -> list[Path]:
        """Medication documents in the data directory.

        Other ``*.json`` files (backups, exports) are skipped and logged.
        """
        paths = []
        # glob("*.json") does not match "*.json.tmp"
        for file_path in sorted(self.data_dir.glob("*.json")):
            if _SAFE_ID.match(file_path.stem):
                paths.append(file_path)
            else:
                logger.warning(f"Skipping non-medication file in data directory: {file_path.name}")
        return paths

    async def find_by_id(self, medication_id: str) -> Optional[Medication]:
        medication, _ = await self._load(medication_id)
        if medication is None:
            logger.debug(f"Medication document not found: {medication_id}")
        return medication

    async def find_all(self) -> list[Medication]:
        medications = []
        for file_path in self._document_paths():
            medication, _ = await self._load(file_path.stem)
            if medication is not None:
                medications.append(medication)

        logger.debug(f"Loaded {len(medications)} medication(s) from {self.data_dir}")
        return medications

    async def save(
        self, medication: Medication, expected_version: Optional[int] = None
    ) -> Medication:
        async with self._locks[medication.id]:
            stored, logs = await self._load(medication.id)
            check_version(
                medication.id, expected_version, stored.version if stored else None
            )

            saved = Medication.from_dict(medication.to_dict())
            saved.version = (stored.version if stored else 0) + 1
            saved.updated_at = utc_now()

            await self._write_document(saved, logs)
            log_operation("medication_saved", medication_id=saved.id, version=saved.version)

            return saved

    async def delete(self, medication_id: str) -> bool:
        file_path = self._get_file_path(medication_id)

        async with self._locks[medication_id]:
            if not file_path.exists():
                logger.debug(f"Medication document not found for deletion: {medication_id}")
                return False

            file_path.unlink()

        self._locks.pop(medication_id, None)
        logger.info(f"Deleted medication document: {medication_id}")
        return True

    async def list_logs(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[IntakeLogEntry]:
        if medication_id is not None:
            _, logs = await self._load(medication_id)
            return filter_logs(logs, medication_id, start, end)

        all_logs = []
        for file_path in self._document_paths():
            _, logs = await self._load(file_path.stem)
            all_logs.extend(logs)
        return filter_logs(all_logs, None, start, end)

    async def append_intake(self, entry: IntakeLogEntry) -> Medication:
        async with self._locks[entry.medication_id]:
            stored, logs = await self._load(entry.medication_id)
            if stored is None:
                raise MedicationNotFoundError(
                    f"Medication {entry.medication_id} not found"
                )

            updated = inventory.record_intake(stored, entry)
            updated.version = stored.version + 1

            # Log entry and inventory land in the same document write
            await self._write_document(updated, logs + [entry])
            log_operation(
                "intake_recorded",
                medication_id=updated.id,
                taken=entry.taken,
                remaining_amount=updated.remaining_amount,
            )

            return updated
