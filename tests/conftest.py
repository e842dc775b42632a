"""Shared fixtures for provider loader tests."""

from pathlib import Path
import textwrap
import uuid

import pytest

from provider_loader.infrastructure import InMemoryResolutionContext, TypeRegistry
from provider_loader.infrastructure.event_bus import reset_event_bus
from provider_loader.infrastructure.type_resolver import reset_type_registry

PLUGIN_API = '''
from abc import ABC, abstractmethod


class Greeter(ABC):
    @abstractmethod
    def greet(self, name): ...
'''

PLUGIN_IMPL = '''
from {api} import Greeter


class EnglishGreeter(Greeter):
    def greet(self, name):
        return f"Hello, {{name}}"


class FrenchGreeter(Greeter):
    def greet(self, name):
        return f"Bonjour, {{name}}"


class NotAGreeter:
    pass


class NeedsArgs(Greeter):
    def __init__(self, prefix):
        self.prefix = prefix

    def greet(self, name):
        return self.prefix + name


class Outer:
    class NestedGreeter(Greeter):
        def greet(self, name):
            return f"Hi, {{name}}"
'''


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset process-wide registries before and after each test."""
    reset_type_registry()
    reset_event_bus()
    yield
    reset_type_registry()
    reset_event_bus()


@pytest.fixture
def type_registry():
    """Fresh, isolated type registry."""
    return TypeRegistry()


@pytest.fixture
def memory_context():
    """Empty in-memory resolution context."""
    return InMemoryResolutionContext()


class PluginPackage:
    """An importable plugin package written to a temporary directory.

    Each instance uses a unique package name so modules imported by one test
    never leak into another through ``sys.modules``.
    """

    def __init__(self, root: Path):
        self.root = root
        self.name = f"plugins_{uuid.uuid4().hex[:8]}"
        package_dir = root / self.name
        package_dir.mkdir(parents=True)
        (package_dir / "__init__.py").write_text("")
        (package_dir / "api.py").write_text(PLUGIN_API)
        (package_dir / "impl.py").write_text(PLUGIN_IMPL.format(api=f"{self.name}.api"))

    @property
    def contract_name(self) -> str:
        return f"{self.name}.api.Greeter"

    def impl(self, class_name: str) -> str:
        return f"{self.name}.impl.{class_name}"

    def write_registry(self, location: Path, lines: list[str], registry_root: str = "META-INF/services") -> Path:
        """Write a registry resource for the Greeter contract under a location."""
        resource = location / registry_root / self.contract_name
        resource.parent.mkdir(parents=True, exist_ok=True)
        resource.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return resource

    def write_module(self, module: str, source: str) -> str:
        """Add a module to the package and return its dotted name."""
        (self.root / self.name / f"{module}.py").write_text(textwrap.dedent(source))
        return f"{self.name}.{module}"


@pytest.fixture
def plugin_package(tmp_path, monkeypatch):
    """Importable plugin package with a Greeter contract and implementations."""
    src = tmp_path / "src"
    src.mkdir()
    monkeypatch.syspath_prepend(str(src))
    return PluginPackage(src)


@pytest.fixture
def greeter_contract(plugin_package):
    """The Greeter contract class of the plugin package."""
    import importlib

    return importlib.import_module(f"{plugin_package.name}.api").Greeter
