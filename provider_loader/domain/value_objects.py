"""Value objects for provider discovery.

Contains:
- ContractId - fully qualified identity of a contract type
- ErrorPolicy - how discovery reacts to a faulty entry or resource
- ErrorKind - classification of discovery diagnostics
- ProviderRegistryState - lifecycle of a ProviderRegistry
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ContractId:
    """Fully qualified name of a contract type, used as a resource lookup key.

    Format: ``<module>.<qualname>`` (e.g. ``logging_api.Logger``).

    Attributes:
        value: The contract identity string.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate contract identity."""
        if not self.value:
            raise ValueError("ContractId cannot be empty")
        if any(ch.isspace() for ch in self.value):
            raise ValueError("ContractId cannot contain whitespace")
        if "/" in self.value or "\\" in self.value:
            raise ValueError("ContractId cannot contain path separators")

    @classmethod
    def for_type(cls, contract: type) -> "ContractId":
        """Build the identity of a contract class.

        Args:
            contract: The contract class.

        Returns:
            ContractId derived from the class module and qualified name.
        """
        return cls(value=f"{contract.__module__}.{contract.__qualname__}")

    def resource_key(self, registry_root: str) -> str:
        """Compute the registry resource key under a registry root."""
        root = registry_root.strip("/")
        return f"{root}/{self.value}" if root else self.value

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ContractId('{self.value}')"


class ErrorPolicy(str, Enum):
    """Reaction to a discovery fault other than an incompatible entry."""

    SKIP_ENTRY = "skip_entry"  # drop the faulty line, keep reading
    SKIP_RESOURCE = "skip_resource"  # drop the rest of the resource
    ABORT = "abort"  # stop discovery, keep the partial result

    @classmethod
    def parse(cls, value: "str | ErrorPolicy") -> "ErrorPolicy":
        """Parse a policy from its name or value (case-insensitive).

        Raises:
            ValueError: If the value names no known policy.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for policy in cls:
            if normalized == policy.value:
                return policy
        valid = ", ".join(p.value for p in cls)
        raise ValueError(f"Unknown error policy '{value}' (expected one of: {valid})")


class ErrorKind(str, Enum):
    """Classification of a discovery diagnostic."""

    RESOURCE_RESOLUTION = "resource_resolution"
    TYPE_RESOLUTION = "type_resolution"
    INCOMPATIBLE_PROVIDER = "incompatible_provider"
    INSTANTIATION = "instantiation"


class ProviderRegistryState(str, Enum):
    """Lifecycle states of a ProviderRegistry."""

    CREATED = "created"
    DISCOVERING = "discovering"
    DISCOVERED = "discovered"

    def __str__(self) -> str:
        return self.value
