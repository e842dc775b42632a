"""Resolution contexts - where registry resources are looked up.

FileSystemResolutionContext searches directories and zip archives (wheels,
eggs, zipapps) the way the import system searches ``sys.path``.
InMemoryResolutionContext holds synthetic resources, mainly for tests.
"""

from contextlib import contextmanager
import io
import logging
import os
from pathlib import Path
import sys
import threading
from typing import Iterable, Iterator, Optional, TextIO
import zipfile
import zlib

from ..domain.contracts import IResolutionContext, RegistrySource
from ..domain.exceptions import ResourceResolutionError

logger = logging.getLogger(__name__)

ARCHIVE_SEPARATOR = "!/"

# Damaged or unsupported archive members surface as zlib.error, EOFError,
# RuntimeError (encrypted) or NotImplementedError (compression method).
_READ_ERRORS = (
    OSError,
    EOFError,
    LookupError,
    UnicodeDecodeError,
    RuntimeError,
    zlib.error,
    zipfile.BadZipFile,
)


class FileSystemResolutionContext(IResolutionContext):
    """Resolution context over filesystem locations.

    Each location is either a directory (resource is ``<dir>/<key>``) or a zip
    archive (resource is the ``<key>`` member). Locations that do not exist are
    ignored, as the import system ignores them on ``sys.path``.

    Locations are captured when the context is created; later changes to
    ``sys.path`` do not affect an existing context.
    """

    def __init__(self, locations: Iterable[str | os.PathLike]):
        self._locations: tuple[Path, ...] = tuple(self._dedupe(locations))

    @classmethod
    def from_sys_path(cls, extra_locations: Iterable[str | os.PathLike] = ()) -> "FileSystemResolutionContext":
        """Create a context over ``extra_locations`` followed by the current ``sys.path``.

        An empty ``sys.path`` entry means the current working directory.
        """
        return cls([*extra_locations, *(entry or os.getcwd() for entry in sys.path)])

    @property
    def locations(self) -> tuple[Path, ...]:
        return self._locations

    def describe(self) -> list[str]:
        return [str(p) for p in self._locations]

    def find_sources(self, key: str) -> list[RegistrySource]:
        sources: list[RegistrySource] = []
        for location in self._locations:
            try:
                if location.is_dir():
                    candidate = location / key
                    if candidate.is_file():
                        sources.append(RegistrySource(location=str(candidate), key=key))
                elif location.is_file() and zipfile.is_zipfile(location):
                    if self._archive_has_member(location, key):
                        sources.append(
                            RegistrySource(
                                location=f"{location}{ARCHIVE_SEPARATOR}{key}",
                                key=key,
                                container=str(location),
                            )
                        )
            except (OSError, zipfile.BadZipFile) as e:
                raise ResourceResolutionError(str(location), str(e)) from e

        logger.debug(f"Found {len(sources)} registry source(s) for '{key}'")
        return sources

    @contextmanager
    def open_source(self, source: RegistrySource, encoding: str = "utf-8") -> Iterator[TextIO]:
        try:
            if source.container is not None:
                # Archive is reopened on every read so edits are always seen.
                with zipfile.ZipFile(source.container) as zf, zf.open(source.key) as raw:
                    with io.TextIOWrapper(raw, encoding=encoding) as stream:
                        yield stream
            else:
                with open(source.location, encoding=encoding) as stream:
                    yield stream
        except _READ_ERRORS as e:
            raise ResourceResolutionError(source.location, f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _archive_has_member(archive: Path, key: str) -> bool:
        with zipfile.ZipFile(archive) as zf:
            try:
                zf.getinfo(key)
            except KeyError:
                return False
            return True

    @staticmethod
    def _dedupe(locations: Iterable[str | os.PathLike]) -> Iterator[Path]:
        seen: set[Path] = set()
        for entry in locations:
            path = Path(entry).absolute()
            if path in seen:
                continue
            seen.add(path)
            yield path

    def __repr__(self) -> str:
        return f"FileSystemResolutionContext({len(self._locations)} locations)"


class InMemoryResolutionContext(IResolutionContext):
    """Resolution context holding resources in memory.

    Resources are grouped by location label so several "packages" can
    contribute to the same key. Thread-safe.

    Example:
        ctx = InMemoryResolutionContext()
        ctx.add("plugin-a", "META-INF/services/app.Logger", "app.ConsoleLogger\\n")
    """

    def __init__(self):
        self._resources: dict[str, dict[str, str]] = {}
        self._unreadable: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def add(self, location: str, key: str, content: str) -> RegistrySource:
        """Add or replace a resource under a location label."""
        with self._lock:
            self._resources.setdefault(location, {})[key] = content
            self._unreadable.discard((location, key))
        return RegistrySource(location=self._source_location(location, key), key=key, container=location)

    def add_lines(self, location: str, key: str, lines: Iterable[str]) -> RegistrySource:
        """Add a resource built from individual lines."""
        return self.add(location, key, "".join(f"{line}\n" for line in lines))

    def mark_unreadable(self, location: str, key: str) -> None:
        """Make an existing resource fail when opened (simulates an I/O fault)."""
        with self._lock:
            if key not in self._resources.get(location, {}):
                raise KeyError(f"No resource '{key}' at '{location}'")
            self._unreadable.add((location, key))

    def remove(self, location: str, key: str) -> bool:
        """Remove a resource. Returns False if it did not exist."""
        with self._lock:
            entries = self._resources.get(location)
            if not entries or key not in entries:
                return False
            del entries[key]
            self._unreadable.discard((location, key))
            return True

    def describe(self) -> list[str]:
        with self._lock:
            return [f"memory:{label}" for label in self._resources]

    def find_sources(self, key: str) -> list[RegistrySource]:
        with self._lock:
            return [
                RegistrySource(location=self._source_location(label, key), key=key, container=label)
                for label, entries in self._resources.items()
                if key in entries
            ]

    @contextmanager
    def open_source(self, source: RegistrySource, encoding: str = "utf-8") -> Iterator[TextIO]:
        label = source.container
        with self._lock:
            content: Optional[str] = self._resources.get(label, {}).get(source.key) if label is not None else None
            unreadable = (label, source.key) in self._unreadable
        if content is None:
            raise ResourceResolutionError(source.location, "resource no longer exists")
        if unreadable:
            raise ResourceResolutionError(source.location, "resource is unreadable")
        with io.StringIO(content) as stream:
            yield stream

    @staticmethod
    def _source_location(label: str, key: str) -> str:
        return f"memory:{label}{ARCHIVE_SEPARATOR}{key}"

