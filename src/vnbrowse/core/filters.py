"""Filter expression building.

The catalog query protocol takes a nested list expression: a leaf is
``[field, operator, value]`` and a branch is ``["and" | "or", *children]``.
Clause order matters to the remote, so the builder always emits clauses in
the same sequence.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from vnbrowse.core.identifiers import EntityKind, normalize_identifier
from vnbrowse.core.models import (
    QueryDescriptor,
    QueryKind,
    SortDirection,
    SortField,
    SortState,
)

FilterExpression = list[Any]

# Cheap clause that yields the default ordered slice
DEFAULT_SLICE_CLAUSE: FilterExpression = ["id", ">=", "v1"]


def _primary_clause(descriptor: QueryDescriptor) -> FilterExpression:
    if descriptor.kind is QueryKind.TAG and descriptor.tag_id:
        return ["tag", "=", normalize_identifier(descriptor.tag_id, EntityKind.TAG)]
    if descriptor.kind is QueryKind.DEVELOPER and descriptor.developer_id:
        developer = normalize_identifier(descriptor.developer_id, EntityKind.PRODUCER)
        return ["developer", "=", ["id", "=", developer]]
    term = descriptor.term.strip()
    if term:
        return ["search", "=", term]
    return list(DEFAULT_SLICE_CLAUSE)


def build_filter_expression(descriptor: QueryDescriptor) -> FilterExpression:
    """Translate a descriptor into the remote filter expression.

    Clauses are emitted as: primary, languages, original language,
    screenshots, description. A single clause is returned unwrapped.
    """
    clauses: list[FilterExpression] = [_primary_clause(descriptor)]
    filters = descriptor.filters

    if len(filters.languages) == 1:
        clauses.append(["lang", "=", filters.languages[0]])
    elif filters.languages:
        clauses.append(["or", *(["lang", "=", code] for code in filters.languages)])

    if filters.original_language:
        clauses.append(["olang", "=", filters.original_language])
    if filters.only_with_screenshots:
        clauses.append(["has_screenshot", "=", True])
    if filters.only_with_description:
        clauses.append(["has_description", "=", True])

    if len(clauses) == 1:
        return clauses[0]
    return ["and", *clauses]


def build_identifier_filter(
    identifiers: Iterable[str],
    field: str = "id",
) -> FilterExpression:
    """Equality filter over a set of identifiers.

    One identifier gives a plain leaf, several give an OR of leaves.
    Callers are responsible for batching.

    Raises:
        ValueError: If ``identifiers`` is empty.
    """
    ids = list(identifiers)
    if not ids:
        raise ValueError("At least one identifier is required")
    if len(ids) == 1:
        return [field, "=", ids[0]]
    return ["or", *([field, "=", identifier] for identifier in ids)]


def build_sort_parameters(sort: SortState) -> tuple[str | None, bool | None]:
    """Return ``(sort, reverse)`` request parameters.

    The default field sends neither; the stored direction is left untouched.
    """
    if sort.field is SortField.DEFAULT:
        return None, None
    return sort.field.value, sort.direction is SortDirection.DESC
