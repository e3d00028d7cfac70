"""Rich rendering and JSON shaping of command results."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict
from typing import Any

from rich.console import Console
from rich.table import Table

from vnbrowse.core.details import CatalogStatistics, CharacterSummary, StoreLink, TitleDetails
from vnbrowse.services.personal_list import ListEntryStatus, ResultRow
from vnbrowse.services.session import AuthenticatedSession

console = Console()


def _rating(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "-"


def row_to_dict(row: ResultRow) -> dict[str, Any]:
    return {
        "id": row.entry.id,
        "title": row.entry.title,
        "rating": row.entry.rating,
        "in_list": row.in_list,
        "status": row.status.name.lower() if row.status is not None else None,
        "display_status": row.display_status.name.lower(),
        "thumbnail": row.entry.cover_image.thumbnail_url if row.entry.cover_image else None,
    }


def render_rows(rows: Sequence[ResultRow], title: str, *, show_status: bool = False) -> None:
    if not rows:
        console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="green")
    table.add_column("Rating", style="yellow", justify="right")
    table.add_column("In list", style="blue")
    if show_status:
        table.add_column("Status", style="magenta")

    for row in rows:
        cells = [
            row.entry.id,
            row.entry.title or "[dim](untitled)[/dim]",
            _rating(row.entry.rating),
            "yes" if row.in_list else "",
        ]
        if show_status:
            cells.append(row.display_status.display_name)
        table.add_row(*cells)
    console.print(table)


def details_to_dict(
    details: TitleDetails,
    characters: Iterable[CharacterSummary] = (),
    stores: Iterable[StoreLink] = (),
    entry_status: ListEntryStatus | None = None,
) -> dict[str, Any]:
    data = asdict(details)
    data["characters"] = [asdict(character) for character in characters]
    data["stores"] = [asdict(link) for link in stores]
    if entry_status is not None:
        data["list"] = {
            "in_list": entry_status.in_list,
            "labels": list(entry_status.labels),
            "status": entry_status.status.name.lower() if entry_status.status else None,
        }
    return data


def render_details(
    details: TitleDetails,
    characters: Sequence[CharacterSummary] = (),
    stores: Sequence[StoreLink] = (),
    entry_status: ListEntryStatus | None = None,
) -> None:
    entry = details.entry
    console.print(f"[bold green]{entry.title}[/bold green] [dim]({entry.id})[/dim]")
    console.print(f"Rating: {_rating(entry.rating)}    Released: {details.released or '-'}")
    if details.developers:
        console.print("Developers: " + ", ".join(dev.name for dev in details.developers))
    if entry_status is not None:
        state = entry_status.display_status.display_name if entry_status.in_list else "not listed"
        console.print(f"Your list: {state}")
    if details.description:
        console.print()
        console.print(details.description, highlight=False, markup=False)

    if details.tags:
        tags = sorted(details.tags, key=lambda tag: tag.rating or 0, reverse=True)
        console.print()
        console.print("Tags: " + ", ".join(tag.name for tag in tags[:15]))

    if characters:
        table = Table(title="Characters")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="green")
        table.add_column("Original", style="dim")
        for character in characters:
            table.add_row(character.id, character.name, character.original or "")
        console.print(table)

    if stores:
        table = Table(title="Stores")
        table.add_column("Store", style="green")
        table.add_column("Release", style="dim")
        table.add_column("URL", style="blue")
        for link in stores:
            table.add_row(link.label, link.release_title or "", link.url)
        console.print(table)


def render_statistics(stats: CatalogStatistics) -> None:
    table = Table(title="Catalog statistics")
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="yellow", justify="right")
    for name, value in asdict(stats).items():
        table.add_row(name.capitalize(), f"{value:,}")
    console.print(table)


def session_to_dict(session: AuthenticatedSession) -> dict[str, Any]:
    return {
        "user_id": session.user_id,
        "username": session.username,
        "permissions": sorted(session.permissions),
    }


def render_session(session: AuthenticatedSession) -> None:
    name = session.username or session.user_id
    console.print(f"Signed in as [bold]{name}[/bold] ({session.user_id})")
    permissions = ", ".join(sorted(session.permissions)) or "none"
    console.print(f"Permissions: {permissions}")
