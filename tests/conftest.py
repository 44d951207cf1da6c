"""Shared fixtures for tests."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from familyhub.data.repository import InMemoryMedicationRepository
from familyhub.data.storage import JsonMedicationStore
from familyhub.database import Database
from familyhub.services.medication_manager import MedicationManager

from fixtures.medication_samples import SAMPLE_IBUPROFEN, SAMPLE_VITAMIN_D, make_medication


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data.

    Yields:
        Path: Path to temporary directory
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def ibuprofen():
    """Ibuprofen 400mg at 08:00 and 20:00 every day."""
    return make_medication(SAMPLE_IBUPROFEN)


@pytest.fixture
def vitamin_d():
    """Vitamin D 1000 IU at 08:00 every day."""
    return make_medication(SAMPLE_VITAMIN_D)


@pytest.fixture
def memory_repository():
    """Create empty InMemoryMedicationRepository.

    Returns:
        InMemoryMedicationRepository: Repository instance for testing
    """
    return InMemoryMedicationRepository()


@pytest.fixture
def json_store(temp_data_dir):
    """Create JsonMedicationStore with temp directory.

    Args:
        temp_data_dir: Temporary directory fixture

    Returns:
        JsonMedicationStore: Store instance for testing
    """
    return JsonMedicationStore(data_dir=str(temp_data_dir))


@pytest.fixture
def database(temp_data_dir):
    """Create initialized SQLite Database in temp directory.

    Args:
        temp_data_dir: Temporary directory fixture

    Returns:
        Database: Database instance for testing
    """
    db = Database(temp_data_dir / "familyhub.db")
    asyncio.run(db.init())
    return db


@pytest.fixture(params=["memory", "json", "sqlite"])
def repository(request, temp_data_dir):
    """Every repository implementation, one test run per backend.

    Returns:
        MedicationRepository implementation
    """
    if request.param == "memory":
        return InMemoryMedicationRepository()
    if request.param == "json":
        return JsonMedicationStore(data_dir=str(temp_data_dir / "documents"))

    db = Database(temp_data_dir / "familyhub.db")
    asyncio.run(db.init())
    return db


@pytest.fixture
def manager(memory_repository):
    """Create MedicationManager over in-memory storage in UTC.

    Args:
        memory_repository: InMemoryMedicationRepository fixture

    Returns:
        MedicationManager: Manager instance for testing
    """
    return MedicationManager(
        memory_repository,
        timezone_offset="+00:00",
        max_retries=3,
        grace_hours=6,
        tolerance_hours=1,
    )


@pytest.fixture
def backend_manager(repository):
    """Create MedicationManager over each storage backend in UTC.

    Args:
        repository: Parametrized repository fixture

    Returns:
        MedicationManager: Manager instance for testing
    """
    return MedicationManager(
        repository,
        timezone_offset="+00:00",
        max_retries=3,
        grace_hours=6,
        tolerance_hours=1,
    )
