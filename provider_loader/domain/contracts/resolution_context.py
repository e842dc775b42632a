"""Resolution context interface for registry resource lookup.

Defines the contract for enumerating the registry resources available for a
resource key and reading their current content. Implementations are provided
by the infrastructure layer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, TextIO


@dataclass(frozen=True)
class RegistrySource:
    """A registry resource found in a resolution context.

    Attributes:
        location: Human-readable origin of the resource (file path,
            ``archive.zip!/key`` or ``memory:<label>!/key``).
        key: Resource key the source was found under.
        container: Archive path or label holding the resource, None for a
            plain file. Contexts open sources from this, never by parsing
            ``location``.
    """

    location: str
    key: str
    container: Optional[str] = None

    def __str__(self) -> str:
        return self.location


class IResolutionContext(ABC):
    """Interface for the set of locations searched for registry resources.

    Implementations must not cache resource content: every call to
    ``open_source`` reflects what the resource holds at that moment.
    """

    @abstractmethod
    def find_sources(self, key: str) -> list[RegistrySource]:
        """Enumerate every registry resource stored under a key.

        Args:
            key: Resource key (``<registry-root>/<contract-id>``).

        Returns:
            Sources in location order. Empty if nothing matches.

        Raises:
            ResourceResolutionError: If the context cannot be enumerated.
        """

    @abstractmethod
    def open_source(self, source: RegistrySource, encoding: str = "utf-8") -> Iterator[TextIO]:
        """Open a registry source for reading as text.

        Used as a context manager; the handle is released on exit.

        Args:
            source: A source previously returned by ``find_sources``.
            encoding: Text encoding of the resource.

        Raises:
            ResourceResolutionError: If the resource cannot be opened.
        """

    def describe(self) -> list[str]:
        """Return the searched locations, for display."""
        return []
