"""Domain exceptions for provider discovery.

All discovery faults derive from DiscoveryError and carry an ErrorKind, so the
registry can turn any of them into a diagnostic without inspecting the type.
"""

from typing import Any, Dict, Optional

from .value_objects import ErrorKind


class ProviderLoaderError(Exception):
    """Base exception for all provider loader errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for logging or display."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidContractError(ProviderLoaderError, ValueError):
    """Raised when a registry is created for something that is not a contract type."""

    def __init__(self, contract: Any):
        super().__init__(
            f"Contract must be a class, got {contract!r}",
            {"contract": repr(contract)},
        )


class ConfigurationError(ProviderLoaderError):
    """Raised when loader configuration is missing or invalid."""


# --- Discovery faults ---


class DiscoveryError(ProviderLoaderError):
    """Base class for faults met while discovering providers."""

    kind: ErrorKind


class ResourceResolutionError(DiscoveryError):
    """A registry resource could not be enumerated or read."""

    kind = ErrorKind.RESOURCE_RESOLUTION

    def __init__(self, location: str, reason: str):
        self.location = location
        super().__init__(
            f"Cannot read registry resource '{location}': {reason}",
            {"location": location, "reason": reason},
        )


class TypeResolutionError(DiscoveryError):
    """A provider entry names a type that cannot be located."""

    kind = ErrorKind.TYPE_RESOLUTION

    def __init__(self, type_name: str, reason: str):
        self.type_name = type_name
        super().__init__(
            f"Cannot resolve provider type '{type_name}': {reason}",
            {"type_name": type_name, "reason": reason},
        )


class IncompatibleProviderError(DiscoveryError):
    """A resolved provider type does not satisfy the contract."""

    kind = ErrorKind.INCOMPATIBLE_PROVIDER

    def __init__(self, type_name: str, contract_id: str):
        self.type_name = type_name
        self.contract_id = contract_id
        super().__init__(
            f"Provider type '{type_name}' does not implement '{contract_id}'",
            {"type_name": type_name, "contract": contract_id},
        )


class InstantiationError(DiscoveryError):
    """A compatible provider type could not be constructed without arguments."""

    kind = ErrorKind.INSTANTIATION

    def __init__(self, type_name: str, reason: str):
        self.type_name = type_name
        super().__init__(
            f"Cannot instantiate provider '{type_name}': {reason}",
            {"type_name": type_name, "reason": reason},
        )
