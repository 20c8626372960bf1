"""Structured Logging — one JSON object per record, keyed by study.

Invariants:
    - Every entry carries ts (record creation time, UTC), level, logger, message
    - Recruitment context (study_id, cohort_id, participant_id, error_code,
      status, path) is copied from `extra=` only when set
    - setup_logging is idempotent: re-running it replaces its own handler
      and leaves foreign handlers (pytest caplog) alone

Design Decisions:
    - Timestamp from record.created, not format time, so queued or buffered
      records keep their order
    - "text" format for local runs; anything else falls back to JSON
"""

import logging
import json
from datetime import datetime, timezone

RECRUITMENT_KEYS = (
    "study_id", "cohort_id", "participant_id", "error_code", "status", "path",
)

# SQLAlchemy echoes every statement at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in RECRUITMENT_KEYS
            if getattr(record, key, None) is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class _RecruitmentHandler(logging.StreamHandler):
    """Marker type so setup_logging can find the handler it installed."""


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the recruitment log handler on the root logger."""
    root = logging.getLogger()
    for old in [h for h in root.handlers if isinstance(h, _RecruitmentHandler)]:
        root.removeHandler(old)

    handler = _RecruitmentHandler()
    if fmt == "text":
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(study_id)s] - %(message)s",
            defaults={"study_id": "-"},
        ))
    else:
        handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
