"""Error handling and operation logging for FamilyHub."""

import functools
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Tuple, Type

from loguru import logger

SLOW_OPERATION_MS = 1000

GENERIC_ERROR_MESSAGE = "An internal error occurred. Please try again."


def handle_errors(
    default_return: Any = None,
    log_level: str = "ERROR",
    propagate: Tuple[Type[BaseException], ...] = (),
) -> Callable:
    """Decorator for async functions whose failure should not stop the caller.

    Exceptions are logged with traceback and ``default_return`` is returned
    instead. Exception types listed in ``propagate`` are re-raised.

    Example:
        @handle_errors(default_return=[], log_level="WARNING")
        async def report_refills(manager):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except propagate:
                raise
            except Exception as e:
                logger.opt(exception=e).log(
                    log_level.upper(),
                    f"{func.__name__} failed with {type(e).__name__}: {e}",
                )
                return default_return

        return wrapper
    return decorator


def format_error_for_user(error: Exception) -> str:
    """Message safe to show to a family member for ``error``.

    Domain errors get a specific message; validation errors echo their
    text; anything else gets a generic message.
    """
    # Imported here: the data layer imports this package
    from familyhub.data.repository import (
        ConcurrencyConflictError,
        MedicationNotFoundError,
        ScheduleNotFoundError,
    )

    fixed_messages = (
        (MedicationNotFoundError, "Medication not found."),
        (ScheduleNotFoundError, "Schedule not found."),
        (
            ConcurrencyConflictError,
            "The medication was changed by someone else at the same time. "
            "Please try again.",
        ),
    )
    for error_type, message in fixed_messages:
        if isinstance(error, error_type):
            return message

    if isinstance(error, ValueError):
        return f"Validation error: {error}"
    if isinstance(error, OSError):
        return "A storage error occurred. Please try again."
    return GENERIC_ERROR_MESSAGE


def log_operation(
    operation_name: str,
    medication_id: Optional[str] = None,
    **extra_context,
) -> None:
    """Log a completed data operation with bound context.

    ``operation`` and ``medication_id`` become record extras; remaining
    keyword arguments are bound too and listed in the message.
    """
    bound = logger.bind(
        operation=operation_name,
        medication_id=medication_id or "-",
        **extra_context,
    )
    details = ", ".join(f"{key}={value}" for key, value in extra_context.items())
    bound.info(f"Operation: {operation_name}" + (f" ({details})" if details else ""))


def log_performance(operation_name: str, duration_ms: float, **extra_context) -> None:
    """Log how long an operation took; warn when it is slow."""
    bound = logger.bind(operation=operation_name, duration_ms=duration_ms, **extra_context)
    if duration_ms > SLOW_OPERATION_MS:
        bound.warning(f"Slow operation: {operation_name} took {duration_ms:.2f}ms")
    else:
        bound.debug(f"{operation_name} took {duration_ms:.2f}ms")


@contextmanager
def timed_operation(operation_name: str, **extra_context) -> Iterator[dict]:
    """Time the enclosed block and log it with ``log_performance``.

    Yields a dict; keys added to it inside the block are logged as context.
    """
    context = dict(extra_context)
    started = time.perf_counter()
    try:
        yield context
    finally:
        log_performance(operation_name, (time.perf_counter() - started) * 1000, **context)


__all__ = [
    "handle_errors",
    "format_error_for_user",
    "log_operation",
    "log_performance",
    "timed_operation",
]
