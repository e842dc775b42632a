"""Infrastructure layer - resolution contexts, type resolution and the event bus."""

from .event_bus import EventBus, get_event_bus, reset_event_bus
from .resolution_context import FileSystemResolutionContext, InMemoryResolutionContext
from .type_resolver import (
    get_type_registry,
    qualified_name,
    register_provider,
    reset_type_registry,
    TypeRegistry,
    TypeResolver,
)

__all__ = [
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    "FileSystemResolutionContext",
    "InMemoryResolutionContext",
    "TypeRegistry",
    "TypeResolver",
    "get_type_registry",
    "reset_type_registry",
    "register_provider",
    "qualified_name",
]
