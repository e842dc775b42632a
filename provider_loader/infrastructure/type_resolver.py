"""Type resolution - turn a provider type name into a class.

Names are looked up first in a TypeRegistry, a name -> class map populated by
explicit self-registration (``@register_provider``). Unregistered names fall
back to importing a dotted path:

- ``package.module.ClassName``
- ``package.module.Outer.Inner`` (shorter module prefixes are tried in turn)
- ``package.module:Outer.Inner`` (explicit module/attribute split)

Resolution only imports the module that defines the type; it never calls the
type. Module top-level code does run on first import, as with any import.
"""

import importlib
import logging
import threading
from typing import Callable, Dict, Optional, TypeVar

from ..domain.exceptions import TypeResolutionError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)


class TypeRegistry:
    """
    Thread-safe map of provider type names to classes.

    A name can be registered once; registering the same class twice under the
    same name is a no-op.
    """

    def __init__(self):
        self._types: Dict[str, type] = {}
        self._lock = threading.Lock()

    def register(self, cls: type, name: Optional[str] = None) -> str:
        """
        Register a provider class under a name.

        Args:
            cls: The provider class
            name: Lookup name (default: ``<module>.<qualname>`` of the class)

        Returns:
            The name the class was registered under

        Raises:
            TypeError: If cls is not a class
            ValueError: If another class is already registered under the name
        """
        if not isinstance(cls, type):
            raise TypeError(f"Only classes can be registered, got {cls!r}")
        key = name or qualified_name(cls)
        with self._lock:
            existing = self._types.get(key)
            if existing is not None and existing is not cls:
                raise ValueError(f"Type name '{key}' already registered for {qualified_name(existing)}")
            self._types[key] = cls
        logger.debug(f"Registered provider type '{key}'")
        return key

    def get(self, name: str) -> Optional[type]:
        with self._lock:
            return self._types.get(name)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._types

    def names(self) -> list[str]:
        with self._lock:
            return list(self._types)

    def clear(self) -> None:
        """Clear all registrations (mainly for testing)."""
        with self._lock:
            self._types.clear()


class TypeResolver:
    """Resolves provider type names against a TypeRegistry, then the import system."""

    def __init__(self, registry: Optional[TypeRegistry] = None, allow_import: bool = True):
        self._registry = registry if registry is not None else get_type_registry()
        self._allow_import = allow_import

    def resolve(self, type_name: str) -> type:
        """
        Resolve a type name to a class.

        Args:
            type_name: Registered name or dotted path of the provider type

        Returns:
            The resolved class

        Raises:
            TypeResolutionError: If the name cannot be located or does not name a class
        """
        registered = self._registry.get(type_name)
        if registered is not None:
            return registered

        if not self._allow_import:
            raise TypeResolutionError(type_name, "not registered")

        obj = self._import(type_name)
        if not isinstance(obj, type):
            raise TypeResolutionError(type_name, f"resolves to {type(obj).__name__}, not a class")
        return obj

    def _import(self, type_name: str) -> object:
        if ":" in type_name:
            module_name, _, attr_path = type_name.partition(":")
            if not module_name or not attr_path:
                raise TypeResolutionError(type_name, "malformed name")
            module = self._import_module(type_name, module_name)
            return self._walk(type_name, module, attr_path.split("."))

        parts = type_name.split(".")
        if len(parts) < 2 or not all(p.isidentifier() for p in parts):
            raise TypeResolutionError(type_name, "not a fully qualified type name")

        # Longest importable module prefix wins, the rest is the attribute path.
        last_error: Optional[BaseException] = None
        for split in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:split])
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                # Only a missing module along the tried path means "try a shorter prefix".
                if e.name is None or not (module_name == e.name or module_name.startswith(e.name + ".")):
                    raise TypeResolutionError(type_name, f"error importing '{module_name}': {e}") from e
                last_error = e
                continue
            except Exception as e:
                raise TypeResolutionError(type_name, f"error importing '{module_name}': {e}") from e
            return self._walk(type_name, module, parts[split:])

        raise TypeResolutionError(type_name, f"no importable module ({last_error})")

    @staticmethod
    def _import_module(type_name: str, module_name: str) -> object:
        try:
            return importlib.import_module(module_name)
        except Exception as e:
            raise TypeResolutionError(type_name, f"error importing '{module_name}': {e}") from e

    @staticmethod
    def _walk(type_name: str, obj: object, attrs: list[str]) -> object:
        for attr in attrs:
            try:
                obj = getattr(obj, attr)
            except AttributeError as e:
                raise TypeResolutionError(type_name, f"attribute '{attr}' not found") from e
        return obj


def qualified_name(cls: type) -> str:
    """Return ``<module>.<qualname>`` of a class."""
    return f"{cls.__module__}.{cls.__qualname__}"


# Global type registry instance
_global_type_registry: TypeRegistry | None = None
_global_registry_lock = threading.Lock()


def get_type_registry() -> TypeRegistry:
    """
    Get the global type registry instance (singleton pattern).

    Returns:
        The global TypeRegistry instance
    """
    global _global_type_registry

    if _global_type_registry is None:
        with _global_registry_lock:
            if _global_type_registry is None:
                _global_type_registry = TypeRegistry()

    return _global_type_registry


def reset_type_registry() -> None:
    """Reset the global type registry (mainly for testing)."""
    global _global_type_registry

    with _global_registry_lock:
        _global_type_registry = None


def register_provider(
    name: Optional[str] = None, registry: Optional[TypeRegistry] = None
) -> Callable[[T], T]:
    """
    Class decorator registering a provider type by name.

    Example:
        @register_provider("console")
        class ConsoleLogger(Logger):
            ...

    Args:
        name: Lookup name (default: the class's qualified name)
        registry: Target registry (default: the global registry)
    """

    def decorator(cls: T) -> T:
        (registry or get_type_registry()).register(cls, name)
        return cls

    return decorator
