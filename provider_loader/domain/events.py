"""Domain events for provider discovery.

Events capture important discovery occurrences and allow decoupled reactions
(logging, auditing) without the registry knowing about its observers.
"""

from abc import ABC
from dataclasses import dataclass
import time
from typing import Any, Dict
import uuid


class DomainEvent(ABC):
    """
    Base class for all domain events.

    Note: Not a dataclass to avoid inheritance issues.
    Subclasses should be dataclasses.
    """

    def __init__(self):
        self.event_id: str = str(uuid.uuid4())
        self.occurred_at: float = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {"event_type": self.__class__.__name__, **self.__dict__}


@dataclass
class DiscoveryStarted(DomainEvent):
    """Published when a registry begins discovering providers."""

    contract: str
    resource_key: str

    def __post_init__(self):
        super().__init__()


@dataclass
class RegistrySourceFound(DomainEvent):
    """Published for each registry resource found for a contract."""

    contract: str
    location: str

    def __post_init__(self):
        super().__init__()


@dataclass
class ProviderInstantiated(DomainEvent):
    """Published when a provider instance is constructed and accepted."""

    contract: str
    type_name: str
    location: str
    line_number: int

    def __post_init__(self):
        super().__init__()


@dataclass
class ProviderEntryRejected(DomainEvent):
    """Published when an entry or resource is rejected during discovery."""

    contract: str
    kind: str  # ErrorKind value
    message: str
    location: str | None = None
    type_name: str | None = None

    def __post_init__(self):
        super().__init__()


@dataclass
class DiscoveryCompleted(DomainEvent):
    """Published when a discovery call finishes, successfully or not."""

    contract: str
    sources_count: int
    providers_count: int
    diagnostics_count: int
    aborted: bool
    duration_ms: float

    def __post_init__(self):
        super().__init__()
