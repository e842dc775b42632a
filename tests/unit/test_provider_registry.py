"""Tests for ProviderRegistry discovery semantics."""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable
from unittest.mock import Mock

import pytest

from provider_loader import (
    ContractId,
    DiscoveryResult,
    ErrorKind,
    ErrorPolicy,
    InvalidContractError,
    LoaderConfig,
    load,
    ProviderRegistry,
    ProviderRegistryState,
)
from provider_loader.domain.events import (
    DiscoveryCompleted,
    DiscoveryStarted,
    ProviderEntryRejected,
    ProviderInstantiated,
    RegistrySourceFound,
)
from provider_loader.infrastructure import EventBus, FileSystemResolutionContext, get_event_bus

KEY_ROOT = "META-INF/services"


class Logger(ABC):
    @abstractmethod
    def info(self, message: str) -> str: ...


class ConsoleLogger(Logger):
    def info(self, message: str) -> str:
        return f"console: {message}"


class FileLogger(Logger):
    def info(self, message: str) -> str:
        return f"file: {message}"


class SyslogLogger(Logger):
    def info(self, message: str) -> str:
        return f"syslog: {message}"


class Unrelated:
    pass


class ExplodingLogger(Logger):
    def __init__(self):
        raise RuntimeError("boom")

    def info(self, message: str) -> str:
        return message


class ConfiguredLogger(Logger):
    def __init__(self, path):
        self.path = path

    def info(self, message: str) -> str:
        return message


class HalfLogger(Logger):
    """Abstract: does not implement info()."""


@runtime_checkable
class Closeable(Protocol):
    def close(self) -> None: ...


class Resource:
    def close(self) -> None:
        pass


class Counter:
    instances = 0

    def __init__(self):
        Counter.instances += 1


def key_for(contract: type) -> str:
    return f"{KEY_ROOT}/{ContractId.for_type(contract)}"


@pytest.fixture
def registered(type_registry):
    """Type registry with all the logger test types under short names."""
    for cls in (ConsoleLogger, FileLogger, SyslogLogger, Unrelated, ExplodingLogger, ConfiguredLogger, HalfLogger):
        type_registry.register(cls, cls.__name__)
    return type_registry


@pytest.fixture
def make_registry(memory_context, registered):
    """Factory building a Logger registry over the in-memory context."""

    def factory(contract=Logger, **kwargs):
        return ProviderRegistry.create(contract, memory_context, type_registry=registered, **kwargs)

    return factory


class TestCreate:
    """Tests for creating a registry handle."""

    def test_rejects_none_contract(self, memory_context):
        """Should raise InvalidContractError for None."""
        with pytest.raises(InvalidContractError):
            ProviderRegistry.create(None, memory_context)

    def test_rejects_non_class_contract(self, memory_context):
        """Should raise for instances passed as contract."""
        with pytest.raises(ValueError):
            ProviderRegistry.create(ConsoleLogger(), memory_context)

    def test_initial_state_is_created(self, make_registry):
        """A new registry is in CREATED state with no result."""
        registry = make_registry()

        assert registry.state is ProviderRegistryState.CREATED
        assert registry.result is None

    def test_providers_before_discover_is_empty(self, make_registry, memory_context):
        """providers() does not trigger discovery."""
        memory_context.add("a", key_for(Logger), "ConsoleLogger\n")
        registry = make_registry()

        assert registry.providers() == ()

    def test_resource_key_uses_registry_root_and_contract_id(self, make_registry):
        """Resource key is <registry-root>/<module>.<qualname>."""
        registry = make_registry(config=LoaderConfig(registry_root="plugins/registry/"))

        assert registry.resource_key == f"plugins/registry/{__name__}.Logger"

    def test_create_captures_context(self, make_registry, memory_context):
        """The context given at creation is used."""
        assert make_registry().context is memory_context

    def test_default_context_is_filesystem(self, tmp_path):
        """Without a context, the registry searches the filesystem."""
        registry = ProviderRegistry.create(
            Logger, config=LoaderConfig(extra_locations=(str(tmp_path),), include_sys_path=False)
        )

        assert isinstance(registry.context, FileSystemResolutionContext)
        assert registry.context.describe() == [str(tmp_path.absolute())]


class TestDiscover:
    """Tests for the discovery algorithm."""

    def test_no_sources_yields_empty_ok_result(self, make_registry):
        """No registry resources: empty result, no error, no diagnostics."""
        registry = make_registry()

        result = registry.discover()

        assert isinstance(result, DiscoveryResult)
        assert registry.providers() == ()
        assert result.ok
        assert result.sources == ()

    def test_single_provider(self, make_registry, memory_context):
        """One entry yields exactly one instance of that type."""
        memory_context.add("a", key_for(Logger), "ConsoleLogger\n")
        registry = make_registry()

        registry.discover()

        providers = registry.providers()
        assert len(providers) == 1
        assert type(providers[0]) is ConsoleLogger

    def test_every_line_is_attempted_in_order(self, make_registry, memory_context):
        """All N entries of one resource load, in line order."""
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger", "FileLogger", "SyslogLogger"])
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger, FileLogger, SyslogLogger]
        assert result.ok

    def test_sources_are_merged(self, make_registry, memory_context):
        """Entries contributed by several sources are all loaded."""
        memory_context.add_lines("pkg-a", key_for(Logger), ["ConsoleLogger"])
        memory_context.add_lines("pkg-b", key_for(Logger), ["FileLogger", "SyslogLogger"])
        registry = make_registry()

        result = registry.discover()

        assert set(result.provider_types()) == {ConsoleLogger, FileLogger, SyslogLogger}
        assert len(result.sources) == 2

    def test_incompatible_entry_is_skipped(self, make_registry, memory_context):
        """A type that does not implement the contract is left out, others kept."""
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger", "Unrelated", "FileLogger"])
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger, FileLogger]
        assert [d.kind for d in result.diagnostics] == [ErrorKind.INCOMPATIBLE_PROVIDER]
        assert result.diagnostics[0].line_number == 2
        assert result.diagnostics[0].type_name == "Unrelated"

    def test_incompatible_entry_is_skipped_even_when_aborting(self, make_registry, memory_context):
        """Incompatible entries never stop discovery, whatever the policy."""
        memory_context.add_lines("a", key_for(Logger), ["Unrelated", "ConsoleLogger"])
        registry = make_registry(config=LoaderConfig(error_policy=ErrorPolicy.ABORT))

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]
        assert not result.aborted

    def test_blank_lines_are_ignored(self, make_registry, memory_context):
        """Blank and whitespace-only lines change nothing."""
        memory_context.add("a", key_for(Logger), "\n  ConsoleLogger  \n\n\t\nFileLogger\n\n")
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger, FileLogger]
        assert result.ok

    def test_line_numbers_count_blank_lines(self, make_registry, memory_context):
        """Diagnostics point at the physical line."""
        memory_context.add("a", key_for(Logger), "\n\nUnrelated\n")
        registry = make_registry()

        result = registry.discover()

        assert result.diagnostics[0].line_number == 3

    def test_repeated_discovery_builds_fresh_instances(self, make_registry, memory_context):
        """Two calls yield the same types but new objects."""
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger", "FileLogger"])
        registry = make_registry()

        first = registry.discover()
        second = registry.discover()

        assert first is not second
        assert first.provider_types() == second.provider_types()
        assert all(a is not b for a, b in zip(first.providers, second.providers))
        assert registry.providers() == second.providers
        assert registry.state is ProviderRegistryState.DISCOVERED

    def test_rediscovery_sees_changed_content(self, make_registry, memory_context):
        """Nothing is cached: new content is read on the next call."""
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger"])
        registry = make_registry()
        registry.discover()

        memory_context.add_lines("a", key_for(Logger), ["FileLogger"])
        result = registry.discover()

        assert result.provider_types() == [FileLogger]

    def test_abstract_provider_is_instantiation_error(self, make_registry, memory_context):
        """A compatible but abstract class cannot be constructed."""
        memory_context.add_lines("a", key_for(Logger), ["HalfLogger", "ConsoleLogger"])
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]
        assert result.diagnostics[0].kind is ErrorKind.INSTANTIATION
        assert "info" in result.diagnostics[0].message

    def test_constructor_requiring_arguments_is_not_called(self, make_registry, memory_context):
        """Types without a zero-argument constructor are reported, not built."""
        memory_context.add_lines("a", key_for(Logger), ["ConfiguredLogger"])
        registry = make_registry()

        result = registry.discover()

        assert len(result) == 0
        assert result.diagnostics[0].kind is ErrorKind.INSTANTIATION
        assert "path" in result.diagnostics[0].message

    def test_failing_constructor_is_reported(self, make_registry, memory_context):
        """A constructor raising is an instantiation diagnostic, not an exception."""
        memory_context.add_lines("a", key_for(Logger), ["ExplodingLogger", "FileLogger"])
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [FileLogger]
        assert result.diagnostics[0].kind is ErrorKind.INSTANTIATION
        assert "boom" in result.diagnostics[0].message

    def test_runtime_checkable_protocol_contract(self, memory_context, type_registry):
        """Structural contracts are satisfied by matching classes."""
        type_registry.register(Resource, "Resource")
        type_registry.register(Unrelated, "Unrelated")
        memory_context.add_lines("a", key_for(Closeable), ["Resource", "Unrelated"])
        registry = ProviderRegistry.create(Closeable, memory_context, type_registry=type_registry)

        result = registry.discover()

        assert result.provider_types() == [Resource]

    def test_comment_lines_are_treated_as_type_names(self, make_registry, memory_context):
        """There is no comment syntax: '#' lines fail to resolve."""
        memory_context.add_lines("a", key_for(Logger), ["# loggers", "ConsoleLogger"])
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]
        assert result.diagnostics[0].kind is ErrorKind.TYPE_RESOLUTION

    def test_load_shortcut(self, memory_context, registered):
        """load() creates a registry and discovers once."""
        memory_context.add_lines("a", key_for(Logger), ["SyslogLogger"])

        result = load(Logger, memory_context, type_registry=registered)

        assert result.provider_types() == [SyslogLogger]


class TestErrorPolicy:
    """Tests for the configurable failure policy."""

    @pytest.fixture
    def faulty_context(self, memory_context):
        """Two sources; the first has an unresolvable entry in the middle."""
        memory_context.add_lines("pkg-a", key_for(Logger), ["ConsoleLogger", "does.not.Exist", "FileLogger"])
        memory_context.add_lines("pkg-b", key_for(Logger), ["SyslogLogger"])
        return memory_context

    def test_skip_entry_is_default(self):
        """Default policy skips only the offending entry."""
        assert LoaderConfig().error_policy is ErrorPolicy.SKIP_ENTRY

    def test_skip_entry_keeps_neighbours(self, make_registry, faulty_context):
        """Unresolvable entry is skipped, everything else loads."""
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger, FileLogger, SyslogLogger]
        assert [d.kind for d in result.diagnostics] == [ErrorKind.TYPE_RESOLUTION]
        assert result.diagnostics[0].type_name == "does.not.Exist"
        assert not result.ok
        assert not result.aborted

    def test_skip_resource_drops_rest_of_resource(self, make_registry, faulty_context):
        """Remaining lines of the faulty resource are dropped, other resources load."""
        registry = make_registry(config=LoaderConfig(error_policy=ErrorPolicy.SKIP_RESOURCE))

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger, SyslogLogger]
        assert not result.aborted

    def test_abort_keeps_partial_result(self, make_registry, faulty_context):
        """Discovery stops at the first fault, keeping earlier providers."""
        registry = make_registry(config=LoaderConfig(error_policy=ErrorPolicy.ABORT))

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]
        assert result.aborted
        assert result.has_errors_of(ErrorKind.TYPE_RESOLUTION)

    def test_unreadable_resource_is_skipped(self, make_registry, memory_context):
        """An I/O failure on one resource does not hide the others."""
        memory_context.add_lines("pkg-a", key_for(Logger), ["ConsoleLogger"])
        memory_context.add_lines("pkg-b", key_for(Logger), ["FileLogger"])
        memory_context.mark_unreadable("pkg-a", key_for(Logger))
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [FileLogger]
        assert result.diagnostics[0].kind is ErrorKind.RESOURCE_RESOLUTION
        assert result.diagnostics[0].line_number is None

    def test_unreadable_resource_aborts_under_abort(self, make_registry, memory_context):
        """Under ABORT a read failure stops discovery."""
        memory_context.add_lines("pkg-a", key_for(Logger), ["ConsoleLogger"])
        memory_context.add_lines("pkg-b", key_for(Logger), ["FileLogger"])
        memory_context.mark_unreadable("pkg-a", key_for(Logger))
        registry = make_registry(config=LoaderConfig(error_policy=ErrorPolicy.ABORT))

        result = registry.discover()

        assert len(result) == 0
        assert result.aborted

    def test_failing_enumeration_yields_empty_aborted_result(self, registered):
        """A context that cannot be enumerated degrades to an empty result."""
        from provider_loader.domain.exceptions import ResourceResolutionError

        context = Mock()
        context.find_sources.side_effect = ResourceResolutionError("/broken", "permission denied")
        registry = ProviderRegistry.create(Logger, context, type_registry=registered)

        result = registry.discover()

        assert len(result) == 0
        assert result.aborted
        assert result.diagnostics[0].kind is ErrorKind.RESOURCE_RESOLUTION

    def test_unexpected_enumeration_error_is_diagnosed(self, registered):
        """Arbitrary exceptions from a custom context do not escape discover()."""
        context = Mock()
        context.find_sources.side_effect = RuntimeError("backend offline")
        registry = ProviderRegistry.create(Logger, context, type_registry=registered)

        result = registry.discover()

        assert result.aborted
        assert result.diagnostics[0].kind is ErrorKind.RESOURCE_RESOLUTION
        assert "RuntimeError: backend offline" in result.diagnostics[0].message

    def test_unexpected_read_error_skips_resource(self, make_registry, memory_context):
        """A custom context failing while reading one source is a resource diagnostic."""
        good = memory_context.add_lines("good", key_for(Logger), ["ConsoleLogger"])
        broken = memory_context.add_lines("broken", key_for(Logger), ["FileLogger"])
        original_open = memory_context.open_source

        def open_source(source, encoding="utf-8"):
            if source == broken:
                raise LookupError(f"unknown encoding: {encoding}")
            return original_open(source, encoding=encoding)

        memory_context.open_source = open_source
        registry = make_registry()

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]
        assert [(d.kind, d.location) for d in result.diagnostics] == [
            (ErrorKind.RESOURCE_RESOLUTION, broken.location)
        ]
        assert good.location in result.sources


class TestEvents:
    """Tests for events published during discovery."""

    @pytest.fixture
    def mock_event_bus(self):
        """Create mock event bus."""
        bus = Mock()
        bus.publish.return_value = None
        return bus

    def published(self, bus):
        return [call[0][0] for call in bus.publish.call_args_list]

    def test_publishes_lifecycle_events(self, make_registry, memory_context, mock_event_bus):
        """Started, source, instantiated and completed events are published in order."""
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger"])
        registry = make_registry(event_bus=mock_event_bus)

        registry.discover()

        events = self.published(mock_event_bus)
        assert [type(e) for e in events] == [
            DiscoveryStarted,
            RegistrySourceFound,
            ProviderInstantiated,
            DiscoveryCompleted,
        ]
        assert events[2].type_name == f"{__name__}.ConsoleLogger"
        assert events[2].line_number == 1
        assert events[3].providers_count == 1

    def test_publishes_rejections(self, make_registry, memory_context, mock_event_bus):
        """Each rejected entry publishes ProviderEntryRejected."""
        memory_context.add_lines("a", key_for(Logger), ["Unrelated", "nope.Missing"])
        registry = make_registry(event_bus=mock_event_bus)

        registry.discover()

        rejected = [e for e in self.published(mock_event_bus) if isinstance(e, ProviderEntryRejected)]
        assert [e.kind for e in rejected] == ["incompatible_provider", "type_resolution"]
        completed = self.published(mock_event_bus)[-1]
        assert completed.diagnostics_count == 2

    def test_failing_subscriber_does_not_break_discovery(self, make_registry, memory_context):
        """Event handler errors stay inside the bus."""
        bus = EventBus()
        bus.subscribe_to_all(Mock(side_effect=RuntimeError("handler down")))
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger"])
        registry = make_registry(event_bus=bus)

        result = registry.discover()

        assert result.provider_types() == [ConsoleLogger]

    def test_global_bus_is_default(self, make_registry, memory_context):
        """Without an explicit bus, events go to the process-wide bus."""
        handler = Mock()
        get_event_bus().subscribe(DiscoveryCompleted, handler)
        memory_context.add_lines("a", key_for(Logger), ["ConsoleLogger"])

        make_registry().discover()

        handler.assert_called_once()
        assert handler.call_args[0][0].providers_count == 1


class TestConstructionCount:
    """Tests that construction happens exactly once per entry per call."""

    def test_constructor_runs_once_per_entry(self, memory_context, type_registry):
        """Each discovery constructs each provider exactly once."""
        Counter.instances = 0
        type_registry.register(Counter, "Counter")
        memory_context.add_lines("a", key_for(Counter), ["Counter", "Counter"])
        registry = ProviderRegistry.create(Counter, memory_context, type_registry=type_registry)

        registry.discover()
        registry.discover()

        assert Counter.instances == 4
        assert len(registry.providers()) == 2
