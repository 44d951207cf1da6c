"""Logging setup for FamilyHub.

Records carry two bound fields, ``operation`` and ``medication_id``, set by
``log_operation`` and ``logger.bind``. They default to "-" so every format
below can reference them.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "op={extra[operation]} med={extra[medication_id]} | "
    "{message}"
)


def setup_logger(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    logs_dir: Optional[Path] = None,
    serialize: bool = False,
) -> None:
    """Configure loguru with a console sink and a daily file sink.

    Args:
        console_level: Log level for stderr
        file_level: Log level for the log file
        logs_dir: Directory for log files (default: project_root/logs)
        serialize: Write the file sink as JSON lines instead of text
    """
    logger.remove()
    logger.configure(extra={"operation": "-", "medication_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=console_level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if logs_dir is None:
        logs_dir = Path(__file__).parent.parent.parent / "logs"
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    suffix = "jsonl" if serialize else "log"
    logger.add(
        logs_dir / f"familyhub_{{time:YYYY-MM-DD}}.{suffix}",
        format=FILE_FORMAT,
        level=file_level,
        rotation="00:00",
        retention="30 days",
        compression="zip",
        serialize=serialize,
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )

    logger.debug(
        f"Logging to stderr ({console_level}) and {logs_dir} ({file_level}"
        f"{', json' if serialize else ''})"
    )


def get_logger(**context):
    """Return the logger, bound to ``context`` when given."""
    return logger.bind(**context) if context else logger


__all__ = ["setup_logger", "get_logger", "logger", "CONSOLE_FORMAT", "FILE_FORMAT"]
