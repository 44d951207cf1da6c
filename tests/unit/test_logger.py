"""Unit tests for logging setup."""

import json
import sys

import pytest
from loguru import logger

from familyhub.utils.error_handler import log_operation
from familyhub.utils.logger import get_logger, setup_logger


@pytest.fixture
def restore_logger():
    """Put back a plain stderr sink after the test."""
    yield
    logger.remove()
    logger.add(sys.stderr)


def read_logs(logs_dir):
    return "".join(path.read_text() for path in sorted(logs_dir.iterdir()))


def test_file_sink_includes_bound_context(temp_data_dir, restore_logger):
    """Test that operation and medication id reach the log file."""
    # Given: Logger writing to a temp directory
    setup_logger(console_level="ERROR", logs_dir=temp_data_dir)

    # When: Logging a structured operation and a plain message
    log_operation("intake_recorded", medication_id="med-1", taken=True)
    logger.info("plain message")
    logger.remove()  # flushes the enqueued file sink

    # Then: Both lines are written with their context
    content = read_logs(temp_data_dir)
    assert "op=intake_recorded med=med-1 | Operation: intake_recorded" in content
    assert "op=- med=- | plain message" in content


def test_json_file_sink(temp_data_dir, restore_logger):
    """Test that serialize=True writes one JSON record per line."""
    setup_logger(console_level="ERROR", logs_dir=temp_data_dir, serialize=True)

    get_logger(medication_id="med-2").warning("Low stock")
    logger.remove()

    records = [json.loads(line) for line in read_logs(temp_data_dir).splitlines()]
    low_stock = [r for r in records if r["record"]["message"] == "Low stock"]
    assert low_stock[0]["record"]["extra"]["medication_id"] == "med-2"
    assert low_stock[0]["record"]["level"]["name"] == "WARNING"


def test_get_logger_without_context():
    """Test that get_logger returns the shared logger when unbound."""
    assert get_logger() is logger
