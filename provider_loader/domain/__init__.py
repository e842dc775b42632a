"""Domain layer - value objects, exceptions, events and discovery results."""

from .exceptions import (
    ConfigurationError,
    DiscoveryError,
    IncompatibleProviderError,
    InstantiationError,
    InvalidContractError,
    ProviderLoaderError,
    ResourceResolutionError,
    TypeResolutionError,
)
from .value_objects import ContractId, ErrorKind, ErrorPolicy, ProviderRegistryState

__all__ = [
    "ContractId",
    "ErrorKind",
    "ErrorPolicy",
    "ProviderRegistryState",
    "ProviderLoaderError",
    "InvalidContractError",
    "ConfigurationError",
    "DiscoveryError",
    "ResourceResolutionError",
    "TypeResolutionError",
    "IncompatibleProviderError",
    "InstantiationError",
]
