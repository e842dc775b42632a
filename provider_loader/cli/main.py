"""provider-loader command line.

Commands:
    discover  Discover and instantiate the providers of a contract
    sources   List registry resources found for a contract

Examples:
    provider-loader discover logging_api.Logger
    provider-loader discover logging_api.Logger --path ./plugins --policy abort
    provider-loader sources logging_api.Logger --path ./plugins
"""

from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import Annotated, Optional

from rich import box
from rich.console import Console
from rich.table import Table
import typer

from ..application import LoggingEventHandler, ProviderRegistry
from ..config import LoaderConfig, load_config
from ..domain.discovery import DiscoveryResult
from ..domain.exceptions import ConfigurationError, ProviderLoaderError, TypeResolutionError
from ..domain.value_objects import ErrorPolicy
from ..infrastructure import EventBus, TypeRegistry, TypeResolver
from ..logging_config import setup_logging

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_BAD_INPUT = 2

app = typer.Typer(
    name="provider-loader",
    help="Discover service providers registered for a contract",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


@dataclass
class GlobalOptions:
    """Options shared by all commands."""

    verbose: bool = False
    json_logs: bool = False


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Log as JSON lines to stderr")] = False,
):
    """Discover service providers registered for a contract."""
    ctx.obj = GlobalOptions(verbose=verbose, json_logs=json_logs)
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, json_format=json_logs)


def _build_config(
    config_path: Optional[Path],
    paths: Optional[list[Path]],
    policy: Optional[str],
    no_sys_path: bool,
) -> LoaderConfig:
    try:
        config = load_config(config_path) if config_path else LoaderConfig.from_env()
        extra = (*(str(p) for p in paths or ()), *config.extra_locations)
        return config.with_overrides(
            error_policy=ErrorPolicy.parse(policy) if policy else None,
            extra_locations=extra,
            include_sys_path=False if no_sys_path else None,
        )
    except (ConfigurationError, ValueError) as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(EXIT_BAD_INPUT)


def _import_contract(name: str, config: LoaderConfig) -> type:
    # Provider and contract modules living in --path locations must be importable.
    for location in reversed(config.extra_locations):
        if location not in sys.path:
            sys.path.insert(0, location)
    try:
        return TypeResolver(TypeRegistry()).resolve(name)
    except TypeResolutionError as e:
        err_console.print(f"[bold red]Cannot import contract:[/bold red] {e.message}")
        raise typer.Exit(EXIT_BAD_INPUT)


def _show_result(result: DiscoveryResult) -> None:
    table = Table(title=f"Providers of {result.contract}", box=box.SIMPLE)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Provider", style="bold")
    table.add_column("Instance", style="dim")
    for index, provider in enumerate(result.providers, start=1):
        provider_type = type(provider)
        table.add_row(str(index), f"{provider_type.__module__}.{provider_type.__qualname__}", repr(provider))
    console.print(table)

    if result.diagnostics:
        problems = Table(title="Problems", box=box.SIMPLE)
        problems.add_column("Kind", style="yellow")
        problems.add_column("Where", style="dim")
        problems.add_column("Message")
        for d in result.diagnostics:
            where = d.location or ""
            if d.line_number is not None:
                where = f"{where}:{d.line_number}"
            problems.add_row(d.kind.value, where, d.message)
        console.print(problems)

    summary = f"{len(result)} provider(s) from {len(result.sources)} source(s)"
    if result.aborted:
        console.print(f"[bold red]Discovery aborted:[/bold red] {summary}")
    elif result.diagnostics:
        console.print(f"[yellow]{summary}, {len(result.diagnostics)} problem(s)[/yellow]")
    else:
        console.print(f"[green]{summary}[/green]")


@app.command()
def discover(
    ctx: typer.Context,
    contract: Annotated[str, typer.Argument(help="Dotted name of the contract class, e.g. pkg.api.Logger")],
    paths: Annotated[
        Optional[list[Path]],
        typer.Option("--path", "-p", help="Extra location to search (repeatable)"),
    ] = None,
    policy: Annotated[
        Optional[str],
        typer.Option("--policy", help="Error policy: skip_entry, skip_resource or abort"),
    ] = None,
    config_path: Annotated[Optional[Path], typer.Option("--config", "-c", help="YAML configuration file")] = None,
    no_sys_path: Annotated[bool, typer.Option("--no-sys-path", help="Search only --path locations")] = False,
):
    """Discover and instantiate the providers of a contract.

    Exit code is 0 when every entry loaded, 1 when problems were recorded and
    2 when the contract or configuration is invalid.
    """
    config = _build_config(config_path, paths, policy, no_sys_path)
    contract_type = _import_contract(contract, config)

    event_bus = EventBus()
    event_bus.subscribe_to_all(LoggingEventHandler().handle)

    try:
        registry = ProviderRegistry.create(contract_type, config=config, event_bus=event_bus)
    except ProviderLoaderError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(EXIT_BAD_INPUT)

    global_opts: GlobalOptions = ctx.obj if ctx.obj else GlobalOptions()
    if global_opts.verbose:
        console.print(f"[dim]Searching {len(registry.context.describe())} location(s) for '{registry.resource_key}'[/dim]")

    result = registry.discover()
    _show_result(result)
    raise typer.Exit(EXIT_OK if result.ok else EXIT_DIAGNOSTICS)


@app.command()
def sources(
    contract: Annotated[str, typer.Argument(help="Dotted name of the contract class")],
    paths: Annotated[
        Optional[list[Path]],
        typer.Option("--path", "-p", help="Extra location to search (repeatable)"),
    ] = None,
    config_path: Annotated[Optional[Path], typer.Option("--config", "-c", help="YAML configuration file")] = None,
    no_sys_path: Annotated[bool, typer.Option("--no-sys-path", help="Search only --path locations")] = False,
):
    """List registry resources found for a contract, with their entries."""
    config = _build_config(config_path, paths, None, no_sys_path)
    contract_type = _import_contract(contract, config)
    registry = ProviderRegistry.create(contract_type, config=config)

    try:
        found = registry.context.find_sources(registry.resource_key)
    except ProviderLoaderError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(EXIT_DIAGNOSTICS)

    if not found:
        console.print(f"[dim]No registry resources for '{registry.resource_key}'[/dim]")
        raise typer.Exit(EXIT_OK)

    table = Table(title=registry.resource_key, box=box.SIMPLE)
    table.add_column("Source", style="bold")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Entry")

    status = EXIT_OK
    for source in found:
        try:
            with registry.context.open_source(source, encoding=config.encoding) as stream:
                lines = [(n, line.strip()) for n, line in enumerate(stream, start=1) if line.strip()]
        except ProviderLoaderError as e:
            table.add_row(source.location, "", f"[red]{e.message}[/red]")
            status = EXIT_DIAGNOSTICS
            continue
        if not lines:
            table.add_row(source.location, "", "[dim](empty)[/dim]")
        for line_number, entry in lines:
            table.add_row(source.location, str(line_number), entry)

    console.print(table)
    raise typer.Exit(status)


if __name__ == "__main__":
    app()
