"""Client-side ordering for the personal list.

The personal list endpoint cannot sort by title fields, so ordering in
personal list mode is computed locally. Search results are never re-sorted
here; they keep the remote order.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from vnbrowse.core.models import CatalogEntry, SortDirection, SortField, SortState

_CHUNKS = re.compile(r"(\d+)")


def _natural_key(text: str) -> tuple[tuple[int, int | str], ...]:
    parts = _CHUNKS.split(text.casefold())
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in parts if part)


def _title_key(entry: CatalogEntry) -> tuple[int, tuple[tuple[int, int | str], ...]]:
    title = entry.title.strip()
    # Titles starting with a digit come first
    starts_with_digit = 0 if title[:1].isdigit() else 1
    return starts_with_digit, _natural_key(title)


def sort_entries(
    entries: Sequence[CatalogEntry],
    sort: SortState,
) -> tuple[CatalogEntry, ...]:
    """Return ``entries`` ordered by ``sort``.

    ``DEFAULT`` keeps the given order. Fields without local data
    (released, votecount) keep the given order before the direction is
    applied. Missing ratings sort as -1.
    """
    if sort.field is SortField.DEFAULT:
        return tuple(entries)

    if sort.field is SortField.TITLE:
        ordered = sorted(entries, key=_title_key)
    elif sort.field is SortField.RATING:
        ordered = sorted(
            entries,
            key=lambda entry: entry.rating if entry.rating is not None else -1.0,
        )
    elif sort.field is SortField.ID:
        ordered = sorted(entries, key=lambda entry: _natural_key(entry.id))
    else:
        ordered = list(entries)

    if sort.direction is SortDirection.DESC:
        ordered.reverse()
    return tuple(ordered)
