"""Event handlers reacting to discovery events."""

from .logging_handler import LoggingEventHandler

__all__ = [
    "LoggingEventHandler",
]
