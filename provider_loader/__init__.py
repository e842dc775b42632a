"""Provider Loader - service provider discovery via registry files.

Given a contract class, finds every registry resource listing implementations
of it (``META-INF/services/<module>.<Contract>`` on the search path), and
constructs one instance per listed provider type.

Typical use:
    from provider_loader import ProviderRegistry

    registry = ProviderRegistry.create(Logger)
    registry.discover()
    loggers = registry.providers()
"""

from .application import load, LoggingEventHandler, ProviderRegistry
from .config import LoaderConfig, load_config
from .domain.contracts import IResolutionContext, RegistrySource
from .domain.discovery import DiscoveryDiagnostic, DiscoveryResult, ProviderEntry
from .domain.exceptions import (
    ConfigurationError,
    DiscoveryError,
    IncompatibleProviderError,
    InstantiationError,
    InvalidContractError,
    ProviderLoaderError,
    ResourceResolutionError,
    TypeResolutionError,
)
from .domain.value_objects import ContractId, ErrorKind, ErrorPolicy, ProviderRegistryState
from .infrastructure import (
    EventBus,
    FileSystemResolutionContext,
    get_event_bus,
    get_type_registry,
    InMemoryResolutionContext,
    register_provider,
    TypeRegistry,
)

__all__ = [
    # Registry
    "ProviderRegistry",
    "load",
    # Results
    "DiscoveryResult",
    "DiscoveryDiagnostic",
    "ProviderEntry",
    # Value objects
    "ContractId",
    "ErrorKind",
    "ErrorPolicy",
    "ProviderRegistryState",
    # Resolution contexts
    "IResolutionContext",
    "RegistrySource",
    "FileSystemResolutionContext",
    "InMemoryResolutionContext",
    # Type registration
    "TypeRegistry",
    "get_type_registry",
    "register_provider",
    # Events
    "EventBus",
    "get_event_bus",
    "LoggingEventHandler",
    # Configuration
    "LoaderConfig",
    "load_config",
    # Exceptions
    "ProviderLoaderError",
    "InvalidContractError",
    "ConfigurationError",
    "DiscoveryError",
    "ResourceResolutionError",
    "TypeResolutionError",
    "IncompatibleProviderError",
    "InstantiationError",
]
