"""Provider registry - discover and instantiate providers of a contract.

Registry resources are text files stored under ``<registry-root>/<contract>``
at any location of a resolution context, each listing one provider type name
per line:

    # <location>/META-INF/services/logging_api.Logger
    logging_impl.ConsoleLogger
    logging_impl.FileLogger

Usage:
    registry = ProviderRegistry.create(Logger)
    result = registry.discover()
    for logger in registry.providers():
        logger.info("hello")

Discovery never raises discovery faults. Failures are logged and returned as
diagnostics on the DiscoveryResult, handled according to the ErrorPolicy.
"""

import inspect
import logging
import threading
import time
from typing import Any, Generic, Optional, TypeVar

from ..config import LoaderConfig
from ..domain.contracts import IResolutionContext, RegistrySource
from ..domain.discovery import DiscoveryDiagnostic, DiscoveryResult, ProviderEntry
from ..domain.events import (
    DiscoveryCompleted,
    DiscoveryStarted,
    DomainEvent,
    ProviderEntryRejected,
    ProviderInstantiated,
    RegistrySourceFound,
)
from ..domain.exceptions import (
    DiscoveryError,
    IncompatibleProviderError,
    InstantiationError,
    InvalidContractError,
    ResourceResolutionError,
)
from ..domain.value_objects import ContractId, ErrorPolicy, ProviderRegistryState
from ..infrastructure.event_bus import EventBus, get_event_bus
from ..infrastructure.resolution_context import FileSystemResolutionContext
from ..infrastructure.type_resolver import qualified_name, TypeRegistry, TypeResolver

logger = logging.getLogger(__name__)

S = TypeVar("S")


class _AbortDiscovery(Exception):
    """Internal signal: stop reading, keep what was collected."""


class _SkipResource(Exception):
    """Internal signal: drop the rest of the current resource."""


def _as_resource_error(location: str, error: Exception) -> ResourceResolutionError:
    """Contexts other than the bundled ones may fail with arbitrary exceptions."""
    if isinstance(error, ResourceResolutionError):
        return error
    return ResourceResolutionError(location, f"{type(error).__name__}: {error}")


class ProviderRegistry(Generic[S]):
    """
    Discovers providers of one contract within one resolution context.

    The contract and context are fixed at creation. Each ``discover()`` call
    re-reads every registry resource and constructs fresh instances; nothing
    is cached between calls. Calls on one instance are serialized.
    """

    def __init__(
        self,
        contract: type[S],
        context: Optional[IResolutionContext] = None,
        *,
        config: Optional[LoaderConfig] = None,
        type_registry: Optional[TypeRegistry] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Bind a registry to a contract and a resolution context.

        Args:
            contract: The contract class providers must satisfy
            context: Where registry resources are looked up (default: the
                current ``sys.path`` plus ``config.extra_locations``)
            config: Loader configuration (default: LoaderConfig())
            type_registry: Names resolved before importing (default: global registry)
            event_bus: Bus receiving discovery events (default: global bus)

        Raises:
            InvalidContractError: If contract is not a class
        """
        if not isinstance(contract, type):
            raise InvalidContractError(contract)

        self._contract = contract
        self._contract_id = ContractId.for_type(contract)
        self._config = config or LoaderConfig()
        self._context = context if context is not None else self._default_context(self._config)
        self._resolver = TypeResolver(type_registry)
        self._event_bus = event_bus if event_bus is not None else get_event_bus()

        self._state = ProviderRegistryState.CREATED
        self._result: Optional[DiscoveryResult] = None
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        contract: type[S],
        context: Optional[IResolutionContext] = None,
        **kwargs: Any,
    ) -> "ProviderRegistry[S]":
        """Create a registry handle for a contract. Performs no I/O."""
        return cls(contract, context, **kwargs)

    @staticmethod
    def _default_context(config: LoaderConfig) -> IResolutionContext:
        if config.include_sys_path:
            return FileSystemResolutionContext.from_sys_path(config.extra_locations)
        return FileSystemResolutionContext(config.extra_locations)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def contract(self) -> type[S]:
        return self._contract

    @property
    def contract_id(self) -> ContractId:
        return self._contract_id

    @property
    def context(self) -> IResolutionContext:
        return self._context

    @property
    def config(self) -> LoaderConfig:
        return self._config

    @property
    def resource_key(self) -> str:
        """Key registry resources for this contract are stored under."""
        return self._contract_id.resource_key(self._config.registry_root)

    @property
    def state(self) -> ProviderRegistryState:
        return self._state

    @property
    def result(self) -> Optional[DiscoveryResult]:
        """Result of the most recent discovery, or None before the first one."""
        return self._result

    def providers(self) -> tuple[S, ...]:
        """Providers found by the most recent discovery (empty before the first one)."""
        result = self._result
        return result.providers if result is not None else ()

    # =========================================================================
    # Discovery
    # =========================================================================

    def discover(self) -> DiscoveryResult:
        """
        Find, validate and instantiate all providers of the contract.

        Returns:
            A new DiscoveryResult, also retained for ``providers()``
        """
        with self._lock:
            self._state = ProviderRegistryState.DISCOVERING
            try:
                result = self._discover()
            finally:
                self._state = ProviderRegistryState.DISCOVERED
            self._result = result
            return result

    def _discover(self) -> DiscoveryResult:
        started = time.perf_counter()
        key = self.resource_key
        providers: list[S] = []
        diagnostics: list[DiscoveryDiagnostic] = []
        found: list[str] = []
        aborted = False

        logger.debug(f"Discovering providers of '{self._contract_id}' under '{key}'")
        self._publish(DiscoveryStarted(contract=str(self._contract_id), resource_key=key))

        try:
            try:
                sources = self._context.find_sources(key)
            except Exception as e:
                # Nothing can be read without the source list.
                self._reject(diagnostics, _as_resource_error(key, e))
                raise _AbortDiscovery() from e

            for source in sources:
                found.append(source.location)
                self._publish(RegistrySourceFound(contract=str(self._contract_id), location=source.location))
                try:
                    self._load_source(source, providers, diagnostics)
                except _SkipResource:
                    continue
        except _AbortDiscovery:
            aborted = True

        result = DiscoveryResult(
            contract=self._contract_id,
            providers=tuple(providers),
            diagnostics=tuple(diagnostics),
            sources=tuple(found),
            aborted=aborted,
        )

        duration_ms = (time.perf_counter() - started) * 1000
        log = logger.warning if diagnostics else logger.info
        log(
            f"Discovered {len(providers)} provider(s) of '{self._contract_id}' "
            f"from {len(found)} source(s) with {len(diagnostics)} problem(s)"
            f"{' (aborted)' if aborted else ''}"
        )
        self._publish(
            DiscoveryCompleted(
                contract=str(self._contract_id),
                sources_count=len(found),
                providers_count=len(providers),
                diagnostics_count=len(diagnostics),
                aborted=aborted,
                duration_ms=duration_ms,
            )
        )
        return result

    def _load_source(
        self,
        source: RegistrySource,
        providers: list[S],
        diagnostics: list[DiscoveryDiagnostic],
    ) -> None:
        try:
            entries = self._read_entries(source)
        except Exception as e:
            self._reject(diagnostics, _as_resource_error(source.location, e), location=source.location)
            self._escalate(resource_level=True)
            return

        for entry in entries:
            try:
                instance = self._instantiate(entry)
            except IncompatibleProviderError as e:
                # Registry files may be shared across consumers; never fatal.
                self._reject(diagnostics, e, entry=entry)
                continue
            except DiscoveryError as e:
                self._reject(diagnostics, e, entry=entry)
                self._escalate(resource_level=False)
                continue
            providers.append(instance)
            self._publish_accepted(entry, instance)

    def _read_entries(self, source: RegistrySource) -> list[ProviderEntry]:
        """Read every non-blank line of a source; the handle is closed before returning."""
        entries = []
        with self._context.open_source(source, encoding=self._config.encoding) as stream:
            for line_number, line in enumerate(stream, start=1):
                type_name = line.strip()
                if type_name:
                    entries.append(ProviderEntry(source.location, line_number, type_name))
        return entries

    def _instantiate(self, entry: ProviderEntry) -> S:
        provider_type = self._resolver.resolve(entry.type_name)

        if not self._is_compatible(provider_type):
            raise IncompatibleProviderError(entry.type_name, str(self._contract_id))

        self._check_no_arg_constructor(entry.type_name, provider_type)

        try:
            instance = provider_type()
        except Exception as e:
            raise InstantiationError(entry.type_name, f"constructor raised {type(e).__name__}: {e}") from e

        if not isinstance(instance, self._contract):
            # A __new__ override can return something else entirely.
            raise IncompatibleProviderError(entry.type_name, str(self._contract_id))
        return instance

    def _is_compatible(self, provider_type: type) -> bool:
        try:
            return issubclass(provider_type, self._contract)
        except TypeError:
            # Protocols with data members reject issubclass().
            return False

    @staticmethod
    def _check_no_arg_constructor(type_name: str, provider_type: type) -> None:
        if inspect.isabstract(provider_type):
            missing = ", ".join(sorted(getattr(provider_type, "__abstractmethods__", ())))
            raise InstantiationError(type_name, f"abstract class (unimplemented: {missing})")
        try:
            signature = inspect.signature(provider_type)
        except (TypeError, ValueError):
            # Builtins without introspectable signatures are tried as-is.
            return
        required = [
            name
            for name, param in signature.parameters.items()
            if param.default is inspect.Parameter.empty
            and param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
        ]
        if required:
            raise InstantiationError(type_name, f"constructor requires arguments: {', '.join(required)}")

    # =========================================================================
    # Error policy
    # =========================================================================

    def _escalate(self, resource_level: bool) -> None:
        """Apply the error policy after a non-recoverable fault was recorded."""
        policy = self._config.error_policy
        if policy is ErrorPolicy.ABORT:
            raise _AbortDiscovery()
        if policy is ErrorPolicy.SKIP_RESOURCE and not resource_level:
            raise _SkipResource()

    def _reject(
        self,
        diagnostics: list[DiscoveryDiagnostic],
        error: DiscoveryError,
        location: Optional[str] = None,
        entry: Optional[ProviderEntry] = None,
    ) -> None:
        diagnostic = DiscoveryDiagnostic.from_error(error, location=location, entry=entry)
        diagnostics.append(diagnostic)

        where = f"{diagnostic.location}:{diagnostic.line_number}" if entry else (diagnostic.location or self.resource_key)
        if isinstance(error, IncompatibleProviderError):
            logger.debug(f"Skipping entry at {where}: {error.message}")
        else:
            logger.warning(f"Discovery problem at {where}: {error.message}")

        self._publish(
            ProviderEntryRejected(
                contract=str(self._contract_id),
                kind=error.kind.value,
                message=error.message,
                location=diagnostic.location,
                type_name=diagnostic.type_name,
            )
        )

    # =========================================================================
    # Events
    # =========================================================================

    def _publish_accepted(self, entry: ProviderEntry, instance: S) -> None:
        self._publish(
            ProviderInstantiated(
                contract=str(self._contract_id),
                type_name=qualified_name(type(instance)),
                location=entry.location,
                line_number=entry.line_number,
            )
        )

    def _publish(self, event: DomainEvent) -> None:
        self._event_bus.publish(event)

    def __repr__(self) -> str:
        return f"ProviderRegistry(contract={self._contract_id!s}, state={self._state})"


def load(contract: type[S], context: Optional[IResolutionContext] = None, **kwargs: Any) -> DiscoveryResult:
    """Create a registry for a contract and run discovery once."""
    return ProviderRegistry.create(contract, context, **kwargs).discover()
