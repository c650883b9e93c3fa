"""
Logging setup shared by the API, the review console and the tools.

- log_json=True: one JSON object per line (log aggregator friendly)
- log_json=False: readable single-line format for local runs
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_EXTRA_KEYS = ("audit_id", "file_id", "session", "method", "path", "status", "duration_ms")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, ensure_ascii=False)


READABLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    # replace only handlers installed here, leave pytest/streamlit handlers alone
    for h in list(root.handlers):
        if getattr(h, "_audit_workbench", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler._audit_workbench = True  # type: ignore[attr-defined]
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(READABLE_FORMAT))
    root.addHandler(handler)

    # quieter third-party loggers
    for noisy in ("uvicorn.access", "watchdog"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
