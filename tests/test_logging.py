"""Tests for structured logging functionality."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from billflow.config import BaseConfig
from billflow.logging_config import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("BILLFLOW_DATA_DIR", str(tmp_path))
    return BaseConfig()


@pytest.fixture(autouse=True)
def _reset_billflow_logger():
    yield
    logger = logging.getLogger("billflow")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def _record(**kwargs) -> logging.LogRecord:
    defaults = dict(
        name="billflow.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Test message",
        args=(),
        exc_info=None,
    )
    defaults.update(kwargs)
    return logging.LogRecord(**defaults)


def test_json_formatter():
    """JSONFormatter emits the standard fields."""
    log_data = json.loads(JSONFormatter().format(_record()))

    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "billflow.test"
    assert log_data["message"] == "Test message"
    assert log_data["line"] == 42
    assert "timestamp" in log_data


def test_json_formatter_with_exception_and_extra():
    try:
        raise ValueError("Test error")
    except ValueError:
        exc_info = sys.exc_info()

    record = _record(level=logging.ERROR, msg="Error occurred", exc_info=exc_info)
    record.transaction_id = 7
    log_data = json.loads(JSONFormatter().format(record))

    assert log_data["exception"]["type"] == "ValueError"
    assert "Test error" in log_data["exception"]["message"]
    assert log_data["extra"] == {"transaction_id": 7}


def test_setup_logging_writes_json_file(config, tmp_path):
    logger = setup_logging(config)

    assert logger.name == "billflow"
    assert len(logger.handlers) == 2  # Console + File

    get_logger("services.test").info("Plan settled", extra={"transaction_id": 3})
    for handler in logger.handlers:
        handler.flush()

    log_file = tmp_path / "logs" / "billflow.log"
    lines = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    assert lines[0]["message"] == "Logging initialized"
    assert lines[-1]["extra"] == {"transaction_id": 3}


@pytest.mark.parametrize("dev_mode", [True, False])
def test_console_level_follows_dev_mode(config, dev_mode):
    config.DEV_MODE = dev_mode
    logger = setup_logging(config)

    console = next(h for h in logger.handlers if type(h) is logging.StreamHandler)
    assert console.level == (logging.INFO if dev_mode else logging.WARNING)


def test_get_logger_namespaces_under_package():
    assert get_logger("services.recurrence").name == "billflow.services.recurrence"
