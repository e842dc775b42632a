"""Application layer - the provider registry and event handlers."""

from .event_handlers import LoggingEventHandler
from .provider_registry import load, ProviderRegistry

__all__ = [
    "ProviderRegistry",
    "load",
    "LoggingEventHandler",
]
