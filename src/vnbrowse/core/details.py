"""Decoded shapes for detail views: titles, characters, traits, tags,
release store links and catalog statistics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from vnbrowse.core.decoding import decode_catalog_entry, decode_cover_image
from vnbrowse.core.identifiers import EntityKind, try_normalize_identifier
from vnbrowse.core.models import CatalogEntry, CoverImage
from vnbrowse.shared.constants import StatsKeys, StoreLinks


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_text(value: Any) -> str | None:
    return _text(value) or None


def _number(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def _records(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


@dataclass(frozen=True)
class TagRef:
    id: str
    name: str
    category: str | None = None
    rating: float | None = None
    spoiler: int = 0


@dataclass(frozen=True)
class RelatedTitle:
    id: str
    title: str
    relation: str | None = None


@dataclass(frozen=True)
class ProducerRef:
    id: str
    name: str
    original: str | None = None


@dataclass(frozen=True)
class TitleDetails:
    entry: CatalogEntry
    description: str | None = None
    released: str | None = None
    screenshots: tuple[CoverImage, ...] = ()
    tags: tuple[TagRef, ...] = ()
    relations: tuple[RelatedTitle, ...] = ()
    developers: tuple[ProducerRef, ...] = ()


@dataclass(frozen=True)
class TraitRef:
    id: str
    name: str
    group_name: str | None = None
    spoiler: int = 0


@dataclass(frozen=True)
class CharacterTitleLink:
    id: str
    title: str
    role: str | None = None


@dataclass(frozen=True)
class CharacterSummary:
    id: str
    name: str
    original: str | None = None
    image: CoverImage | None = None


@dataclass(frozen=True)
class CharacterDetails:
    summary: CharacterSummary
    description: str | None = None
    traits: tuple[TraitRef, ...] = ()
    titles: tuple[CharacterTitleLink, ...] = ()


@dataclass(frozen=True)
class StoreLink:
    url: str
    label: str
    source: str | None = None
    release_id: str | None = None
    release_title: str | None = None


@dataclass(frozen=True)
class CatalogStatistics:
    titles: int = 0
    tags: int = 0
    releases: int = 0
    producers: int = 0
    staff: int = 0
    characters: int = 0
    traits: int = 0


def _spoiler(value: Any) -> int:
    level = _number(value)
    return int(level) if level is not None else 0


def decode_tag_ref(record: Mapping[str, Any]) -> TagRef | None:
    identifier = try_normalize_identifier(record.get("id"), EntityKind.TAG)
    name = _text(record.get("name"))
    if identifier is None or not name:
        return None
    return TagRef(
        id=identifier,
        name=name,
        category=_optional_text(record.get("category")),
        rating=_number(record.get("rating")),
        spoiler=_spoiler(record.get("spoiler")),
    )


def decode_trait_ref(record: Mapping[str, Any]) -> TraitRef | None:
    identifier = try_normalize_identifier(record.get("id"), EntityKind.TRAIT)
    if identifier is None:
        return None
    return TraitRef(
        id=identifier,
        name=_text(record.get("name")),
        group_name=_optional_text(record.get("group_name")),
        spoiler=_spoiler(record.get("spoiler")),
    )


def decode_title_details(record: Any) -> TitleDetails | None:
    """Decode a merged core + supplemental title record."""
    if not isinstance(record, Mapping):
        return None
    entry = decode_catalog_entry(record)
    if entry is None:
        return None

    screenshots = tuple(
        image
        for image in (decode_cover_image(raw) for raw in _records(record.get("screenshots")))
        if image is not None
    )
    tags = tuple(
        tag for tag in (decode_tag_ref(raw) for raw in _records(record.get("tags"))) if tag
    )
    relations: list[RelatedTitle] = []
    for raw in _records(record.get("relations")):
        identifier = try_normalize_identifier(raw.get("id"), EntityKind.TITLE)
        if identifier is not None:
            relations.append(
                RelatedTitle(
                    id=identifier,
                    title=_text(raw.get("title")),
                    relation=_optional_text(raw.get("relation")),
                ),
            )
    developers: list[ProducerRef] = []
    for raw in _records(record.get("developers")):
        identifier = try_normalize_identifier(raw.get("id"), EntityKind.PRODUCER)
        if identifier is not None:
            developers.append(
                ProducerRef(
                    id=identifier,
                    name=_text(raw.get("name")),
                    original=_optional_text(raw.get("original")),
                ),
            )

    return TitleDetails(
        entry=entry,
        description=_optional_text(record.get("description")),
        released=_optional_text(record.get("released")),
        screenshots=screenshots,
        tags=tags,
        relations=tuple(relations),
        developers=tuple(developers),
    )


def decode_character_summary(record: Any) -> CharacterSummary | None:
    """Characters need both an identifier and a name to be listed."""
    if not isinstance(record, Mapping):
        return None
    identifier = try_normalize_identifier(record.get("id"), EntityKind.CHARACTER)
    name = _text(record.get("name"))
    if identifier is None or not name:
        return None
    return CharacterSummary(
        id=identifier,
        name=name,
        original=_optional_text(record.get("original")),
        image=decode_cover_image(record.get("image")),
    )


def decode_character_summaries(records: Iterable[Any]) -> tuple[CharacterSummary, ...]:
    summaries = (decode_character_summary(record) for record in records)
    return tuple(summary for summary in summaries if summary is not None)


def decode_character_details(record: Any) -> CharacterDetails | None:
    summary = decode_character_summary(record)
    if summary is None:
        return None
    decoded = (decode_trait_ref(raw) for raw in _records(record.get("traits")))
    traits = tuple(trait for trait in decoded if trait)
    titles: list[CharacterTitleLink] = []
    for raw in _records(record.get("vns")):
        identifier = try_normalize_identifier(raw.get("id"), EntityKind.TITLE)
        if identifier is not None:
            titles.append(
                CharacterTitleLink(
                    id=identifier,
                    title=_text(raw.get("title")),
                    role=_optional_text(raw.get("role")),
                ),
            )
    return CharacterDetails(
        summary=summary,
        description=_optional_text(record.get("description")),
        traits=traits,
        titles=tuple(titles),
    )


def _is_allowed_store(source: str, label: str) -> bool:
    source, label = source.lower(), label.lower()
    return any(store in source or store in label for store in StoreLinks.ALLOWED_LABELS)


def decode_store_links(releases: Iterable[Any]) -> tuple[StoreLink, ...]:
    """Flatten release external links into known store links.

    Links are kept only for recognized stores and de-duplicated on
    url and label, case-insensitively, in release order.
    """
    links: list[StoreLink] = []
    seen: set[str] = set()
    for release in releases:
        if not isinstance(release, Mapping):
            continue
        release_id = try_normalize_identifier(release.get("id"), EntityKind.RELEASE)
        release_title = _optional_text(release.get("title"))
        for raw in _records(release.get("extlinks")):
            url = _text(raw.get("url"))
            if not url:
                continue
            source = _optional_text(raw.get("name"))
            label = _text(raw.get("label")) or source or "External Link"
            if not _is_allowed_store(source or "", label):
                continue
            dedupe_key = f"{url.lower()}|{label.lower()}"
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            links.append(
                StoreLink(
                    url=url,
                    label=label,
                    source=source,
                    release_id=release_id,
                    release_title=release_title,
                ),
            )
    return tuple(links)


def decode_statistics(payload: Any) -> CatalogStatistics:
    """Read each counter from the first candidate key holding a number."""
    if not isinstance(payload, Mapping):
        return CatalogStatistics()

    def read(candidates: tuple[str, ...]) -> int:
        for key in candidates:
            value = _number(payload.get(key))
            if value is not None:
                return int(value)
        return 0

    return CatalogStatistics(
        **{name: read(candidates) for name, candidates in StatsKeys.CANDIDATES.items()},
    )
