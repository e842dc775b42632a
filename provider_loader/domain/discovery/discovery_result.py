"""Discovery result and diagnostics.

A DiscoveryResult is built once per discovery call and never mutated. It keeps
the constructed providers in read order together with a diagnostic for every
entry or resource that was rejected, so callers can tell "nothing registered"
apart from "something failed".
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from ..exceptions import DiscoveryError
from ..value_objects import ContractId, ErrorKind


@dataclass(frozen=True)
class ProviderEntry:
    """A single non-blank line of a registry resource.

    Attributes:
        location: Location of the resource the line was read from.
        line_number: 1-based line number within the resource.
        type_name: Provider type name, whitespace stripped.
    """

    location: str
    line_number: int
    type_name: str


@dataclass(frozen=True)
class DiscoveryDiagnostic:
    """Why an entry or a whole resource was left out of a result.

    Attributes:
        kind: Classification of the failure.
        message: Human-readable explanation.
        location: Resource location, if the failure is tied to one.
        line_number: Line within the resource, if tied to an entry.
        type_name: Provider type name, if tied to an entry.
    """

    kind: ErrorKind
    message: str
    location: Optional[str] = None
    line_number: Optional[int] = None
    type_name: Optional[str] = None

    @classmethod
    def from_error(
        cls,
        error: DiscoveryError,
        location: Optional[str] = None,
        entry: Optional[ProviderEntry] = None,
    ) -> "DiscoveryDiagnostic":
        """Build a diagnostic from a discovery error and where it happened."""
        if entry is not None:
            return cls(
                kind=error.kind,
                message=error.message,
                location=entry.location,
                line_number=entry.line_number,
                type_name=entry.type_name,
            )
        return cls(kind=error.kind, message=error.message, location=location)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "location": self.location,
            "line_number": self.line_number,
            "type_name": self.type_name,
        }


@dataclass(frozen=True)
class DiscoveryResult:
    """Providers constructed by one discovery call.

    Attributes:
        contract: Identity of the contract the providers satisfy.
        providers: Provider instances, ordered by source then line.
        diagnostics: Failures recorded along the way.
        sources: Locations of the registry resources that were found.
        aborted: Whether discovery stopped before reading every source.
    """

    contract: ContractId
    providers: tuple[Any, ...] = ()
    diagnostics: tuple[DiscoveryDiagnostic, ...] = ()
    sources: tuple[str, ...] = ()
    aborted: bool = False

    @property
    def ok(self) -> bool:
        """True when no failure was recorded."""
        return not self.diagnostics

    def has_errors_of(self, kind: ErrorKind) -> bool:
        """Check whether any diagnostic of the given kind was recorded."""
        return any(d.kind == kind for d in self.diagnostics)

    def provider_types(self) -> list[type]:
        """Return the types of the constructed providers, in order."""
        return [type(p) for p in self.providers]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.providers)

    def __len__(self) -> int:
        return len(self.providers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": str(self.contract),
            "providers": [f"{t.__module__}.{t.__qualname__}" for t in self.provider_types()],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "sources": list(self.sources),
            "aborted": self.aborted,
        }
