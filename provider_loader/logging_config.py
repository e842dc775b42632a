"""Logging setup for command-line use.

The library itself only creates module loggers; applications decide where
records go. ``setup_logging`` is what the ``provider-loader`` CLI uses.
"""

import json
import logging
from pathlib import Path
import sys
from typing import Optional

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _single_line(message: str) -> str:
    """Escape line breaks so one record stays on one line."""
    return message.replace("\r", "\\r").replace("\n", "\\n")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record):
        log_obj = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": _single_line(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


def setup_logging(level=logging.INFO, log_file: Optional[str] = None, json_format: bool = False):
    """Set up logging to stderr and optionally to a file."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter: logging.Formatter = JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info(f"Logging to file: {log_file}")
        except OSError as e:
            root_logger.warning(f"Could not setup file logging: {e}")
