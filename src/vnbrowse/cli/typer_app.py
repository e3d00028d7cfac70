"""
vnbrowse Typer CLI Application

Command line front end over the browsing services: search the catalog,
show the personal list, open title details and manage list entries.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from contextlib import closing
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from dependency_injector import providers

from vnbrowse.cli import render
from vnbrowse.cli.context import CliContext, LogLevel, get_cli_context, set_cli_context
from vnbrowse.cli.error_handler import handle_cli_error
from vnbrowse.cli.json_formatter import format_json_output
from vnbrowse.config import LoggingSettings
from vnbrowse.config.loader import load_settings
from vnbrowse.containers import Container
from vnbrowse.core.models import SortDirection, SortField
from vnbrowse.services.browsing_state_machine import BrowsingPhase, ListBrowsingStateMachine
from vnbrowse.services.session import AuthenticatedSession, InMemoryCredentialStore
from vnbrowse.shared.constants import DEFAULT_ADD_STATUS, Application, ListStatus
from vnbrowse.shared.errors import (
    ApplicationError,
    ErrorCode,
    ErrorContext,
    VnBrowseError,
    create_authentication_required_error,
    create_validation_error,
)
from vnbrowse.shared.logging import setup_structured_logger

app = typer.Typer(
    name=Application.NAME,
    help=Application.DESCRIPTION,
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"{Application.NAME} {Application.VERSION}")
        raise typer.Exit


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Enable verbose output (DEBUG logging)."),
    ] = 0,
    log_level: Annotated[
        Optional[LogLevel],
        typer.Option("--log-level", case_sensitive=False, help="Set the logging level."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Enable machine-readable JSON output."),
    ] = False,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="TOML configuration file."),
    ] = None,
    token: Annotated[
        Optional[str],
        typer.Option("--token", envvar="VNBROWSE_TOKEN", help="API token for list access."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Browse the visual novel catalog from the command line."""
    context = CliContext(
        verbose=verbose,
        log_level=log_level,
        json_output=json_output,
        config_path=config,
        token=token,
    )
    set_cli_context(context)
    setup_structured_logger(level=context.get_effective_log_level())


# =============================================================================
# Helpers
# =============================================================================


def build_container(context: CliContext) -> Container:
    """Create the service container, applying CLI overrides."""
    container = Container()
    if context.config_path is not None:
        settings = load_settings(context.config_path)
        container.config.override(providers.Object(settings))
    if context.token:
        container.credential_store.override(
            providers.Singleton(InMemoryCredentialStore, token=context.token),
        )
    return container


def _emit(command: str, data: Any) -> None:
    sys.stdout.buffer.write(format_json_output(True, command, data=data))
    sys.stdout.buffer.write(b"\n")


def configure_logging(context: CliContext, settings: LoggingSettings) -> None:
    """Apply the configured log file and console style; CLI flags win on level."""
    setup_structured_logger(
        level=context.get_effective_log_level(settings.level),
        log_file=settings.file,
        use_rich_console=settings.console_output,
    )


def _run(command: str, flow: Callable[[Container, CliContext], Awaitable[None]]) -> None:
    context = get_cli_context()

    async def runner(container: Container) -> None:
        try:
            await flow(container, context)
        finally:
            await container.transport().close()

    try:
        container = build_container(context)
        configure_logging(context, container.config().logging)
        asyncio.run(runner(container))
    except (VnBrowseError, ValueError, KeyboardInterrupt) as e:
        raise typer.Exit(handle_cli_error(e, command, json_output=context.json_output)) from e


async def _require_session(container: Container, operation: str) -> AuthenticatedSession:
    session = await container.session_manager().restore()
    if session is None:
        raise create_authentication_required_error(operation)
    return session


def _check_snapshot(machine: ListBrowsingStateMachine, operation: str) -> None:
    snapshot = machine.snapshot
    if snapshot.phase is BrowsingPhase.ERROR:
        raise ApplicationError(
            ErrorCode.CLI_COMMAND_FAILED,
            snapshot.error or f"{operation} failed",
            ErrorContext(operation=operation),
        )


def _parse_status(value: str) -> ListStatus:
    try:
        return ListStatus[value.strip().upper()]
    except KeyError:
        choices = ", ".join(status.name.lower() for status in ListStatus)
        raise typer.BadParameter(f"Unknown status '{value}'. Choose one of: {choices}") from None


def _machine(
    container: Container,
    sort_field: SortField | None,
    ascending: bool | None,
    **filter_defaults: Any,
) -> ListBrowsingStateMachine:
    browsing = container.config().browsing
    update: dict[str, Any] = {key: value for key, value in filter_defaults.items() if value}
    if sort_field is not None:
        update["default_sort_field"] = sort_field.value
    if ascending is not None:
        update["default_sort_direction"] = (
            SortDirection.ASC.value if ascending else SortDirection.DESC.value
        )
    return container.browsing_state_machine(settings=browsing.model_copy(update=update))


# =============================================================================
# Commands
# =============================================================================


@app.command("search")
def search_command(
    term: Annotated[str, typer.Argument(help="Search term; empty lists the default slice.")] = "",
    tag: Annotated[Optional[str], typer.Option("--tag", help="Tag identifier, e.g. g123.")] = None,
    developer: Annotated[
        Optional[str],
        typer.Option("--developer", help="Developer identifier, e.g. p45."),
    ] = None,
    languages: Annotated[
        Optional[list[str]],
        typer.Option("--lang", "-l", help="Available language code (repeatable)."),
    ] = None,
    original_language: Annotated[
        Optional[str],
        typer.Option("--olang", help="Original language code."),
    ] = None,
    screenshots: Annotated[
        bool,
        typer.Option("--screenshots", help="Only titles with screenshots."),
    ] = False,
    described: Annotated[
        bool,
        typer.Option("--described", help="Only titles with a description."),
    ] = False,
    sort: Annotated[Optional[SortField], typer.Option("--sort", "-s", help="Sort field.")] = None,
    ascending: Annotated[
        Optional[bool],
        typer.Option("--asc/--desc", help="Sort direction."),
    ] = None,
    pages: Annotated[int, typer.Option("--pages", "-p", min=1, help="Pages to load.")] = 1,
) -> None:
    """Search titles by text, tag or developer."""

    async def flow(container: Container, context: CliContext) -> None:
        machine = _machine(
            container,
            sort,
            ascending,
            default_languages=languages or [],
            default_original_language=original_language,
            only_with_screenshots=screenshots,
            only_with_description=described,
        )
        with closing(machine):
            await container.session_manager().restore()

            if tag:
                await machine.select_tag(tag)
            elif developer:
                await machine.select_developer(developer)
            else:
                await machine.submit_search(term)
            for _ in range(pages - 1):
                if not await machine.on_scroll_boundary_visible():
                    break
            await machine.wait_idle()
            _check_snapshot(machine, "search")
            snapshot = machine.snapshot

        if context.json_output:
            _emit(
                "search",
                {
                    "rows": [render.row_to_dict(row) for row in snapshot.rows],
                    "has_more": snapshot.has_more,
                },
            )
        else:
            label = (snapshot.descriptor.label if snapshot.descriptor else None) or term
            render.render_rows(snapshot.rows, f"Results for '{label}'" if label else "Titles")

    _run("search", flow)


@app.command("my-list")
def my_list_command(
    sort: Annotated[Optional[SortField], typer.Option("--sort", "-s", help="Sort field.")] = None,
    ascending: Annotated[
        Optional[bool],
        typer.Option("--asc/--desc", help="Sort direction."),
    ] = None,
) -> None:
    """Show the personal list of the signed-in account."""

    async def flow(container: Container, context: CliContext) -> None:
        machine = _machine(container, sort, ascending)
        with closing(machine):
            await _require_session(container, "my-list")
            await machine.enter_personal_list()
            await machine.wait_idle()
            _check_snapshot(machine, "my-list")
            rows = machine.snapshot.rows

        if context.json_output:
            _emit("my-list", {"rows": [render.row_to_dict(row) for row in rows]})
        else:
            render.render_rows(rows, f"Personal list ({len(rows)})", show_status=True)

    _run("my-list", flow)


@app.command("details")
def details_command(
    identifier: Annotated[str, typer.Argument(help="Title identifier, e.g. v17.")],
    characters: Annotated[bool, typer.Option("--characters", help="Include characters.")] = False,
    stores: Annotated[bool, typer.Option("--stores", help="Include store links.")] = False,
) -> None:
    """Show details of one title."""

    async def flow(container: Container, context: CliContext) -> None:
        service = container.detail_service()
        details = await service.fetch_details(identifier)
        if details is None:
            raise create_validation_error(
                f"No title found for {identifier}",
                field="identifier",
                operation="details",
            )
        cast = await service.fetch_characters_for_title(identifier) if characters else ()
        links = await service.fetch_store_links(identifier) if stores else ()

        entry_status = None
        session = await container.session_manager().restore()
        if session is not None and session.can_read_list:
            entry_status = await container.reconciler().fetch_entry_status(session, identifier)

        if context.json_output:
            _emit("details", render.details_to_dict(details, cast, links, entry_status))
        else:
            render.render_details(details, cast, links, entry_status)

    _run("details", flow)


@app.command("whoami")
def whoami_command() -> None:
    """Validate the API token and show the account behind it."""

    async def flow(container: Container, context: CliContext) -> None:
        session = await _require_session(container, "whoami")
        if context.json_output:
            _emit("whoami", render.session_to_dict(session))
        else:
            render.render_session(session)

    _run("whoami", flow)


@app.command("stats")
def stats_command() -> None:
    """Show catalog-wide counters."""

    async def flow(container: Container, context: CliContext) -> None:
        stats = await container.detail_service().fetch_statistics()
        if context.json_output:
            _emit("stats", stats)
        else:
            render.render_statistics(stats)

    _run("stats", flow)


@app.command("add")
def add_command(
    identifier: Annotated[str, typer.Argument(help="Title identifier.")],
    status: Annotated[
        str,
        typer.Option("--status", help="Initial status label."),
    ] = DEFAULT_ADD_STATUS.name.lower(),
) -> None:
    """Add a title to the personal list."""
    target = _parse_status(status)

    async def flow(container: Container, context: CliContext) -> None:
        with closing(container.browsing_state_machine()) as machine:
            await _require_session(container, "add")
            await machine.add_to_list(identifier, target)
            await machine.wait_idle()
        _report("add", context, identifier, target)

    _run("add", flow)


@app.command("set-status")
def set_status_command(
    identifier: Annotated[str, typer.Argument(help="Title identifier.")],
    status: Annotated[str, typer.Argument(help="New status label.")],
) -> None:
    """Change the status label of a listed title."""
    target = _parse_status(status)

    async def flow(container: Container, context: CliContext) -> None:
        with closing(container.browsing_state_machine()) as machine:
            await _require_session(container, "set-status")
            await machine.update_status(identifier, target)
            await machine.wait_idle()
        _report("set-status", context, identifier, target)

    _run("set-status", flow)


@app.command("remove")
def remove_command(
    identifier: Annotated[str, typer.Argument(help="Title identifier.")],
) -> None:
    """Remove a title from the personal list."""

    async def flow(container: Container, context: CliContext) -> None:
        with closing(container.browsing_state_machine()) as machine:
            await _require_session(container, "remove")
            await machine.remove_from_list(identifier)
            await machine.wait_idle()
        _report("remove", context, identifier, None)

    _run("remove", flow)


def _report(command: str, context: CliContext, identifier: str, status: ListStatus | None) -> None:
    if context.json_output:
        _emit(
            command,
            {"id": identifier, "status": status.name.lower() if status is not None else None},
        )
    elif status is None:
        render.console.print(f"Removed {identifier} from your list")
    else:
        render.console.print(f"{identifier}: {status.display_name}")


if __name__ == "__main__":
    app()
