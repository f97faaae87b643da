"""
Logging setup for HydroLog.

One stdout handler on the root logger:
- production: one JSON object per line (picked up by journald / docker)
- development: colored, human-readable lines

Call sites attach structured fields with ``extra={"context": {...}}``.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from hydrolog.config.settings import settings


class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"


class JsonFormatter(logging.Formatter):
    """Structured single-line records for production."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "app": "hydrolog",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line = f"{line} {context}"
        return f"{color}{line}{Colors.RESET}"


def setup_logging(level: str = None) -> None:
    level = (level or settings.LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    if settings.is_production:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ColoredFormatter("[%(levelname)s] %(asctime)s %(name)s: %(message)s"))

    root = logging.getLogger()
    # Re-running (reload, tests) must not stack handlers
    for existing in list(root.handlers):
        if getattr(existing, "_hydrolog", False):
            root.removeHandler(existing)
    handler._hydrolog = True
    root.addHandler(handler)
    root.setLevel(level)
