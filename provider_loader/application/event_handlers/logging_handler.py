"""Logging event handler - logs discovery events."""

import json
import logging

from provider_loader.domain.events import (
    DiscoveryCompleted,
    DiscoveryStarted,
    DomainEvent,
    ProviderEntryRejected,
    ProviderInstantiated,
    RegistrySourceFound,
)
from provider_loader.domain.value_objects import ErrorKind

logger = logging.getLogger(__name__)


class LoggingEventHandler:
    """
    Event handler that logs discovery events in a readable audit format.

    Subscribe it with ``event_bus.subscribe_to_all(handler.handle)``.
    """

    def __init__(self, log_level: int = logging.INFO):
        """
        Initialize the logging handler.

        Args:
            log_level: Logging level for events without a specific level (default: INFO)
        """
        self.log_level = log_level

    def handle(self, event: DomainEvent) -> None:
        """Log a domain event at a level matching its severity."""
        if isinstance(event, ProviderEntryRejected):
            incompatible = event.kind == ErrorKind.INCOMPATIBLE_PROVIDER.value
            level = logging.DEBUG if incompatible else logging.WARNING
        elif isinstance(event, DiscoveryCompleted):
            level = logging.WARNING if event.aborted else logging.INFO
        elif isinstance(event, (DiscoveryStarted, RegistrySourceFound, ProviderInstantiated)):
            level = logging.DEBUG
        else:
            level = self.log_level

        logger.log(level, self._format_event(event))

    def _format_event(self, event: DomainEvent) -> str:
        event_type = event.__class__.__name__

        if isinstance(event, DiscoveryStarted):
            return f"[EVENT:{event_type}] Discovering '{event.contract}' under '{event.resource_key}'"
        elif isinstance(event, RegistrySourceFound):
            return f"[EVENT:{event_type}] '{event.contract}' source: {event.location}"
        elif isinstance(event, ProviderInstantiated):
            return (
                f"[EVENT:{event_type}] '{event.type_name}' instantiated for '{event.contract}' "
                f"({event.location}:{event.line_number})"
            )
        elif isinstance(event, ProviderEntryRejected):
            return f"[EVENT:{event_type}] [{event.kind}] {event.message}"
        elif isinstance(event, DiscoveryCompleted):
            return (
                f"[EVENT:{event_type}] '{event.contract}': {event.providers_count} provider(s) "
                f"from {event.sources_count} source(s), {event.diagnostics_count} problem(s) "
                f"in {event.duration_ms:.2f}ms{' ABORTED' if event.aborted else ''}"
            )
        else:
            # Generic format
            return f"[EVENT:{event_type}] {json.dumps(event.to_dict(), default=str)}"
