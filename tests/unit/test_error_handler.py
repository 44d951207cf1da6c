"""Unit tests for error handling utilities."""

import pytest

from familyhub.data.repository import (
    ConcurrencyConflictError,
    MedicationNotFoundError,
    ScheduleNotFoundError,
)
from familyhub.utils.error_handler import format_error_for_user, handle_errors, timed_operation


class TestFormatErrorForUser:
    """Test cases for format_error_for_user."""

    def test_medication_not_found(self):
        error = MedicationNotFoundError("Medication abc not found")

        assert format_error_for_user(error) == "Medication not found."

    def test_schedule_not_found(self):
        error = ScheduleNotFoundError("Schedule abc not found")

        assert format_error_for_user(error) == "Schedule not found."

    def test_concurrency_conflict(self):
        error = ConcurrencyConflictError("abc", 1, 2)

        assert "try again" in format_error_for_user(error)

    def test_validation_error(self):
        error = ValueError("Medication name cannot be empty")

        assert format_error_for_user(error) == (
            "Validation error: Medication name cannot be empty"
        )

    def test_storage_error(self):
        assert format_error_for_user(OSError("Disk full")) == (
            "A storage error occurred. Please try again."
        )

    def test_unknown_error(self):
        assert format_error_for_user(RuntimeError("boom")) == (
            "An internal error occurred. Please try again."
        )


class TestConcurrencyConflictError:
    """Test cases for ConcurrencyConflictError."""

    def test_carries_versions(self):
        error = ConcurrencyConflictError("med-1", 3, 5)

        assert error.medication_id == "med-1"
        assert error.expected_version == 3
        assert error.actual_version == 5
        assert "med-1" in str(error)


class TestHandleErrors:
    """Test cases for handle_errors decorator."""

    @pytest.mark.asyncio
    async def test_returns_result_on_success(self):
        @handle_errors(default_return=[])
        async def load():
            return [1, 2]

        assert await load() == [1, 2]

    @pytest.mark.asyncio
    async def test_returns_default_on_error(self):
        @handle_errors(default_return=[])
        async def load():
            raise RuntimeError("boom")

        assert await load() == []

    @pytest.mark.asyncio
    async def test_keeps_function_name(self):
        @handle_errors()
        async def load_reminders():
            return None

        assert load_reminders.__name__ == "load_reminders"

    @pytest.mark.asyncio
    async def test_propagates_listed_errors(self):
        @handle_errors(default_return=[], propagate=(ConcurrencyConflictError,))
        async def save():
            raise ConcurrencyConflictError("med-1", 1, 2)

        with pytest.raises(ConcurrencyConflictError):
            await save()


class TestTimedOperation:
    """Test cases for timed_operation."""

    def test_logs_duration_with_context(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "familyhub.utils.error_handler.log_performance",
            lambda name, duration_ms, **ctx: calls.append((name, duration_ms, ctx)),
        )

        with timed_operation("reminder_overview", backend="memory") as timing:
            timing["reminders"] = 3

        name, duration_ms, context = calls[0]
        assert name == "reminder_overview"
        assert duration_ms >= 0
        assert context == {"backend": "memory", "reminders": 3}

    def test_logs_even_when_block_fails(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "familyhub.utils.error_handler.log_performance",
            lambda name, duration_ms, **ctx: calls.append(name),
        )

        with pytest.raises(RuntimeError):
            with timed_operation("reminder_overview"):
                raise RuntimeError("boom")

        assert calls == ["reminder_overview"]
