"""
Centralized Logging

Architectural Intent:
- Provides structured JSON logging for all Palisade components
- Level comes from --verbose/--debug or the configured log_level
- Logs go to stderr so the CLI's JSON reports on stdout stay parseable
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Union

# Record attributes passed via `extra=` that the JSON output carries as fields
CONTEXT_FIELDS = ("ip", "region", "direction", "group_id")


def resolve_level(level: Union[int, str]) -> int:
    """Accept a logging level number or name ("info", "DEBUG"); unknown names mean WARNING."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with any CONTEXT_FIELDS set on the record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = str(value)
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
) -> None:
    """Install a single stderr handler on the "palisade" logger."""
    level = resolve_level(level)
    root = logging.getLogger("palisade")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)
