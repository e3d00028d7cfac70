"""Tagged-variant decoding of remote records.

Remote records vary in shape: identifiers arrive as strings or integers,
personal list rows sometimes embed the title record and sometimes carry
nothing but an identifier, labels arrive as ints, digit strings or objects.
Everything coming off the wire passes through this module and leaves as
one of a small closed set of internal types, so later stages never check
for optional fields.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from vnbrowse.core.identifiers import EntityKind, try_normalize_identifier
from vnbrowse.core.models import AuthInfo, CatalogEntry, CoverImage, QueryPage
from vnbrowse.shared.constants import (
    DEFAULT_DISPLAY_STATUS,
    STATUS_LABEL_IDS,
    ListStatus,
)

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def decode_query_page(payload: Any) -> QueryPage[Any]:
    """Normalize a ``{results, more}`` envelope.

    Non-list ``results`` become empty and a missing ``more`` is False.
    """
    if not isinstance(payload, Mapping):
        return QueryPage()
    results = payload.get("results")
    if not isinstance(results, list):
        results = []
    return QueryPage(results=tuple(results), more=payload.get("more") is True)


def decode_cover_image(raw: Any) -> CoverImage | None:
    if not isinstance(raw, Mapping):
        return None
    full_url = _text(raw.get("url")) or None
    thumbnail_url = _text(raw.get("thumbnail")) or full_url
    if thumbnail_url is None:
        return None
    explicitness = raw.get("sexual")
    return CoverImage(
        thumbnail_url=thumbnail_url,
        full_url=full_url or thumbnail_url,
        explicitness=float(explicitness) if _is_number(explicitness) else None,
    )


def decode_catalog_entry(record: Any) -> CatalogEntry | None:
    """Decode a title record, or a bare identifier into a placeholder.

    Returns None when no usable identifier is present.
    """
    if not isinstance(record, Mapping):
        identifier = try_normalize_identifier(record, EntityKind.TITLE)
        return CatalogEntry.placeholder(identifier) if identifier else None

    identifier = try_normalize_identifier(record.get("id"), EntityKind.TITLE)
    if identifier is None:
        logger.debug("Dropping title record without identifier: %r", record)
        return None
    rating = record.get("rating")
    return CatalogEntry(
        id=identifier,
        title=_text(record.get("title")),
        rating=float(rating) if _is_number(rating) else None,
        cover_image=decode_cover_image(record.get("image")),
    )


def decode_catalog_entries(records: Iterable[Any]) -> tuple[CatalogEntry, ...]:
    entries = (decode_catalog_entry(record) for record in records)
    return tuple(entry for entry in entries if entry is not None)


# =============================================================================
# Personal list records
# =============================================================================


def _label_id(raw: Any) -> int | None:
    if isinstance(raw, Mapping):
        raw = raw.get("id")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        digits = _NON_DIGITS.sub("", raw)
        return int(digits) if digits else None
    return None


def extract_label_ids(labels: Any) -> tuple[int, ...]:
    """Return label ids in first-seen order, ignoring unusable items."""
    if not isinstance(labels, list):
        return ()
    seen: list[int] = []
    for raw in labels:
        label = _label_id(raw)
        if label is not None and label not in seen:
            seen.append(label)
    return tuple(seen)


def derive_status(labels: Iterable[int]) -> ListStatus | None:
    """Pick the status from a label set.

    The six status labels are scanned in ascending order and the first one
    present wins, so ``[4, 2]`` yields FINISHED.
    """
    present = set(labels)
    for label in STATUS_LABEL_IDS:
        if label in present:
            return ListStatus(label)
    return None


def display_status(status: ListStatus | None) -> ListStatus:
    """Status to show in the UI. Never written back."""
    return status if status is not None else DEFAULT_DISPLAY_STATUS


@dataclass(frozen=True)
class EmbeddedListRecord:
    """List row whose title record came back populated."""

    entry: CatalogEntry
    labels: tuple[int, ...] = ()

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def status(self) -> ListStatus | None:
        return derive_status(self.labels)


@dataclass(frozen=True)
class BareListRecord:
    """List row that only identifies its title; needs hydration."""

    id: str
    labels: tuple[int, ...] = ()

    @property
    def entry(self) -> CatalogEntry:
        return CatalogEntry.placeholder(self.id)

    @property
    def status(self) -> ListStatus | None:
        return derive_status(self.labels)


ListRecord = Union[EmbeddedListRecord, BareListRecord]


def decode_list_record(record: Any) -> ListRecord | None:
    """Decode one personal list row into a tagged variant."""
    if not isinstance(record, Mapping):
        identifier = try_normalize_identifier(record, EntityKind.TITLE)
        return BareListRecord(id=identifier) if identifier else None

    nested = record.get("vn")
    identifier = try_normalize_identifier(record.get("id"), EntityKind.TITLE)
    if identifier is None and isinstance(nested, Mapping):
        identifier = try_normalize_identifier(nested.get("id"), EntityKind.TITLE)
    if identifier is None and nested is not None and not isinstance(nested, Mapping):
        identifier = try_normalize_identifier(nested, EntityKind.TITLE)
    if identifier is None:
        logger.debug("Dropping list record without identifier: %r", record)
        return None

    labels = extract_label_ids(record.get("labels"))
    if isinstance(nested, Mapping):
        entry = decode_catalog_entry({**nested, "id": identifier})
        if entry is not None and not entry.is_placeholder:
            return EmbeddedListRecord(entry=entry, labels=labels)
    return BareListRecord(id=identifier, labels=labels)


def decode_identifier_set(records: Iterable[Any]) -> frozenset[str]:
    """Collect normalized title identifiers from membership rows."""
    identifiers: set[str] = set()
    for record in records:
        raw = record.get("id") if isinstance(record, Mapping) else record
        identifier = try_normalize_identifier(raw, EntityKind.TITLE)
        if identifier is not None:
            identifiers.add(identifier)
    return frozenset(identifiers)


# =============================================================================
# Auth info
# =============================================================================


def decode_auth_info(payload: Any) -> AuthInfo | None:
    if not isinstance(payload, Mapping):
        return None
    user_id = try_normalize_identifier(payload.get("id"), EntityKind.USER)
    if user_id is None:
        return None
    permissions = payload.get("permissions")
    if not isinstance(permissions, list):
        permissions = []
    return AuthInfo(
        user_id=user_id,
        username=_text(payload.get("username")),
        permissions=frozenset(p.strip().lower() for p in permissions if isinstance(p, str)),
    )
