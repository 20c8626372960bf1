"""Structured logging — JSON lines with recruitment context, idempotent setup."""

import json
import logging
import sys
from datetime import datetime, timezone

import pytest

from app.infrastructure.observability import JSONFormatter, setup_logging


def _record(msg="Cohort %d created", args=(1,), **extra):
    record = logging.LogRecord(
        "app.core.recruitment_controller", logging.INFO, __file__, 1, msg, args, None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_line_carries_recruitment_context():
    record = _record(study_id="s1", cohort_id="s1-cohort-1", participant_id=None)
    line = json.loads(JSONFormatter().format(record))

    assert line["message"] == "Cohort 1 created"
    assert line["level"] == "INFO"
    assert line["logger"] == "app.core.recruitment_controller"
    assert line["study_id"] == "s1"
    assert line["cohort_id"] == "s1-cohort-1"
    assert "participant_id" not in line
    assert line["ts"] == datetime.fromtimestamp(record.created, timezone.utc).isoformat()


def test_json_line_includes_exception():
    try:
        raise RuntimeError("commit lost")
    except RuntimeError:
        record = _record("Write-back failed", ())
        record.exc_info = sys.exc_info()
    line = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: commit lost" in line["exception"]


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_is_idempotent(root_logger):
    foreign = len(root_logger.handlers)
    setup_logging("debug")
    handler = setup_logging("warning")

    assert len(root_logger.handlers) == foreign + 1
    assert root_logger.handlers[-1] is handler
    assert isinstance(handler.formatter, JSONFormatter)
    assert root_logger.level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_text_format_defaults_study_id(root_logger):
    handler = setup_logging("info", "text")
    assert "[-] - Cohort 1 created" in handler.format(_record())
    assert "[s1]" in handler.format(_record(study_id="s1"))
