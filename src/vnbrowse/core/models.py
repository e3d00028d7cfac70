"""Domain models for query intent and decoded catalog records.

All models are immutable. State changes produce new values through the
``with_*`` helpers so that a holder of an old value never observes a
partial update.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class QueryKind(str, Enum):
    """What the primary clause of a search matches on."""

    TEXT = "text"
    TAG = "tag"
    DEVELOPER = "developer"


class SortField(str, Enum):
    """Sortable fields. ``DEFAULT`` lets the remote choose."""

    DEFAULT = "default"
    TITLE = "title"
    RELEASED = "released"
    RATING = "rating"
    VOTECOUNT = "votecount"
    ID = "id"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> SortDirection:
        return SortDirection.ASC if self is SortDirection.DESC else SortDirection.DESC


def _dedupe_codes(codes: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for code in codes:
        normalized = code.strip().lower()
        if normalized and normalized not in seen:
            seen.append(normalized)
    return tuple(seen)


@dataclass(frozen=True)
class FilterState:
    """Language and content filters applied on top of the primary clause.

    ``languages`` keeps first-seen order so the generated expression is
    deterministic.
    """

    languages: tuple[str, ...] = ()
    original_language: str | None = None
    only_with_screenshots: bool = False
    only_with_description: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "languages", _dedupe_codes(self.languages))
        if self.original_language is not None:
            code = self.original_language.strip().lower()
            object.__setattr__(self, "original_language", code or None)

    @property
    def active_count(self) -> int:
        return (
            (1 if self.languages else 0)
            + (1 if self.original_language else 0)
            + int(self.only_with_screenshots)
            + int(self.only_with_description)
        )


@dataclass(frozen=True)
class SortState:
    """Sort selection.

    The direction is kept even when ``field`` is ``DEFAULT`` so that it
    survives a later change of field.
    """

    field: SortField = SortField.DEFAULT
    direction: SortDirection = SortDirection.DESC

    def with_field(self, sort_field: SortField) -> SortState:
        return replace(self, field=sort_field)

    def toggled(self) -> SortState:
        return replace(self, direction=self.direction.toggled())


@dataclass(frozen=True)
class QueryDescriptor:
    """Immutable description of one search intent."""

    kind: QueryKind = QueryKind.TEXT
    term: str = ""
    tag_id: str | None = None
    developer_id: str | None = None
    filters: FilterState = field(default_factory=FilterState)
    sort: SortState = field(default_factory=SortState)
    label: str | None = field(default=None, compare=False)

    @classmethod
    def text(
        cls,
        term: str,
        filters: FilterState | None = None,
        sort: SortState | None = None,
    ) -> QueryDescriptor:
        return cls(
            kind=QueryKind.TEXT,
            term=term.strip(),
            filters=filters or FilterState(),
            sort=sort or SortState(),
        )

    @classmethod
    def for_tag(
        cls,
        tag_id: str,
        name: str | None = None,
        filters: FilterState | None = None,
        sort: SortState | None = None,
    ) -> QueryDescriptor:
        return cls(
            kind=QueryKind.TAG,
            tag_id=tag_id,
            filters=filters or FilterState(),
            sort=sort or SortState(),
            label=name,
        )

    @classmethod
    def for_developer(
        cls,
        developer_id: str,
        name: str | None = None,
        filters: FilterState | None = None,
        sort: SortState | None = None,
    ) -> QueryDescriptor:
        return cls(
            kind=QueryKind.DEVELOPER,
            developer_id=developer_id,
            filters=filters or FilterState(),
            sort=sort or SortState(),
            label=name,
        )

    def with_sort(self, sort: SortState) -> QueryDescriptor:
        return replace(self, sort=sort)

    def with_filters(self, filters: FilterState) -> QueryDescriptor:
        return replace(self, filters=filters)


@dataclass(frozen=True)
class CoverImage:
    thumbnail_url: str | None
    full_url: str | None
    explicitness: float | None = None


@dataclass(frozen=True)
class CatalogEntry:
    """One title as shown in a result list.

    ``rating`` stays ``None`` when the remote withholds it; it is never
    coerced to zero.
    """

    id: str
    title: str
    rating: float | None = None
    cover_image: CoverImage | None = None

    @property
    def is_placeholder(self) -> bool:
        return not self.title.strip()

    @classmethod
    def placeholder(cls, identifier: str) -> CatalogEntry:
        return cls(id=identifier, title="")


@dataclass(frozen=True)
class QueryPage(Generic[T]):
    """One page of a paginated read. ``more`` is False when absent."""

    results: tuple[T, ...] = ()
    more: bool = False


@dataclass(frozen=True)
class AuthInfo:
    """Result of token introspection."""

    user_id: str
    username: str
    permissions: frozenset[str] = frozenset()
