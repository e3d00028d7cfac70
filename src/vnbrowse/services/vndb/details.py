"""Detail reads: title details, characters, traits, tags, store links and
catalog statistics.

These reads sit beside the browsing flow. Enrichment helpers such as
:meth:`CatalogDetailService.prefetch_core_details` and
:meth:`CatalogDetailService.fetch_tag_categories` are best-effort: a
failure degrades what can be shown, never the primary result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from vnbrowse.core.details import (
    CatalogStatistics,
    CharacterDetails,
    CharacterSummary,
    StoreLink,
    TagRef,
    TitleDetails,
    TraitRef,
    decode_character_details,
    decode_character_summaries,
    decode_statistics,
    decode_store_links,
    decode_tag_ref,
    decode_title_details,
    decode_trait_ref,
)
from vnbrowse.core.filters import build_identifier_filter
from vnbrowse.core.identifiers import (
    EntityKind,
    normalize_identifier,
    numeric_part,
    try_normalize_identifier,
)
from vnbrowse.services.vndb.gateway import CatalogQuery, CatalogQueryGateway
from vnbrowse.services.vndb.request_shapes import RequestShape
from vnbrowse.shared.constants import CacheNamespace, Endpoint, Fields, Paging
from vnbrowse.shared.errors import RejectedRequest, VnBrowseError

logger = logging.getLogger(__name__)


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class CatalogDetailService:
    """Detail and metadata reads built on :class:`CatalogQueryGateway`."""

    def __init__(self, gateway: CatalogQueryGateway) -> None:
        self.gateway = gateway

    # =========================================================================
    # Titles
    # =========================================================================

    async def _fetch_title_record(self, identifier: str, fields: str) -> dict[str, Any] | None:
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        page = await self.gateway.read(
            CacheNamespace.DETAILS,
            Endpoint.TITLES,
            CatalogQuery(filters=["id", "=", vn_id], fields=fields, results=1),
            operation="fetch_title_record",
        )
        first = page.results[0] if page.results else None
        return first if isinstance(first, dict) else None

    async def fetch_core_details(self, identifier: str) -> TitleDetails | None:
        """Title, rating, cover, description and release date."""
        record = await self._fetch_title_record(identifier, Fields.TITLE_CORE)
        return decode_title_details(record) if record else None

    async def fetch_details(self, identifier: str) -> TitleDetails | None:
        """Core and supplemental fields fetched concurrently and merged.

        Returns None when the title does not exist.
        """
        core, supplement = await asyncio.gather(
            self._fetch_title_record(identifier, Fields.TITLE_CORE),
            self._fetch_title_record(identifier, Fields.TITLE_SUPPLEMENT),
        )
        if core is None:
            return None
        return decode_title_details({**core, **(supplement or {})})

    async def prefetch_core_details(self, identifier: str) -> None:
        """Warm the cache for a title that is likely to be opened next."""
        try:
            await self._fetch_title_record(identifier, Fields.TITLE_CORE)
        except (VnBrowseError, ValueError) as e:
            logger.debug("Prefetch of %s skipped: %s", identifier, e)

    async def fetch_store_links(self, identifier: str) -> tuple[StoreLink, ...]:
        """Store links across all releases of a title, newest release first."""
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        page = await self.gateway.read(
            CacheNamespace.RELEASES,
            Endpoint.RELEASES,
            CatalogQuery(
                filters=["vn", "=", ["id", "=", vn_id]],
                fields=Fields.RELEASE_LINKS,
                results=Paging.RELATED_PAGE_SIZE,
                sort="released",
                reverse=True,
            ),
            operation="fetch_store_links",
        )
        return decode_store_links(page.results)

    # =========================================================================
    # Characters
    # =========================================================================

    async def fetch_characters_for_title(self, identifier: str) -> tuple[CharacterSummary, ...]:
        """Characters appearing in a title.

        The nested character fields on the title record are tried first.
        When they are rejected or empty the character endpoint is queried
        with each known filter form until one is accepted.
        """
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)

        for prefix in Fields.CHARACTER_NESTED_PREFIXES:
            try:
                page = await self.gateway.read(
                    CacheNamespace.CHARACTERS,
                    Endpoint.TITLES,
                    CatalogQuery(
                        filters=["id", "=", vn_id],
                        fields=Fields.nested_characters(prefix),
                        results=1,
                    ),
                    operation="fetch_nested_characters",
                )
            except RejectedRequest:
                continue
            first = page.results[0] if page.results else None
            if isinstance(first, dict):
                characters = decode_character_summaries(first.get(prefix) or [])
                if characters:
                    return characters

        number = numeric_part(vn_id)
        filter_forms: list[list[Any]] = [
            ["vn", "=", ["id", "=", vn_id]],
            ["vn", "=", vn_id],
            ["vns", "=", ["id", "=", vn_id]],
            ["vn", "=", number],
            ["vn", "=", ["id", "=", number]],
            ["vns", "=", ["id", "=", number]],
        ]
        shapes = [
            RequestShape(
                f"character-filter-{index}",
                CatalogQuery(
                    filters=form,
                    fields=Fields.CHARACTER_LIST,
                    results=Paging.RELATED_PAGE_SIZE,
                    sort="name",
                    reverse=False,
                ).to_payload(),
            )
            for index, form in enumerate(filter_forms)
        ]
        try:
            page = await self.gateway.read_variants(
                CacheNamespace.CHARACTERS,
                Endpoint.CHARACTERS,
                shapes,
                operation="fetch_characters_for_title",
                max_attempts=len(shapes),
            )
        except RejectedRequest:
            logger.debug("No accepted character filter form for %s", vn_id)
            return ()
        return decode_character_summaries(page.results)

    async def fetch_character_details(self, identifier: str) -> CharacterDetails | None:
        character_id = normalize_identifier(identifier, EntityKind.CHARACTER)
        page = await self.gateway.read(
            CacheNamespace.CHARACTERS,
            Endpoint.CHARACTERS,
            CatalogQuery(
                filters=["id", "=", character_id],
                fields=Fields.CHARACTER_DETAIL,
                results=1,
            ),
            operation="fetch_character_details",
        )
        return decode_character_details(page.results[0]) if page.results else None

    async def fetch_characters_by_trait(self, identifier: str) -> tuple[CharacterDetails, ...]:
        """Characters carrying a trait, with the titles they appear in."""
        trait_id = normalize_identifier(identifier, EntityKind.TRAIT)
        page = await self.gateway.read(
            CacheNamespace.CHARACTERS,
            Endpoint.CHARACTERS,
            CatalogQuery(
                filters=["trait", "=", trait_id],
                fields=Fields.CHARACTER_BY_TRAIT,
                results=Paging.RELATED_PAGE_SIZE,
            ),
            operation="fetch_characters_by_trait",
        )
        details = (decode_character_details(record) for record in page.results)
        return tuple(detail for detail in details if detail is not None)

    # =========================================================================
    # Tag and trait metadata
    # =========================================================================

    async def _fetch_metadata(
        self,
        identifiers: Iterable[str],
        kind: EntityKind,
        path: str,
        fields: str,
    ) -> list[Any]:
        ids = sorted(
            {
                identifier
                for identifier in (try_normalize_identifier(raw, kind) for raw in identifiers)
                if identifier is not None
            },
        )
        records: list[Any] = []
        for batch in _chunks(ids, Paging.IDENTIFIER_BATCH_SIZE):
            page = await self.gateway.read(
                CacheNamespace.METADATA,
                path,
                CatalogQuery(
                    filters=build_identifier_filter(batch),
                    fields=fields,
                    results=len(batch),
                ),
                operation="fetch_metadata",
            )
            records.extend(page.results)
        return records

    async def fetch_tag_metadata(self, identifiers: Iterable[str]) -> dict[str, TagRef]:
        records = await self._fetch_metadata(
            identifiers,
            EntityKind.TAG,
            Endpoint.TAGS,
            Fields.TAG_METADATA,
        )
        tags = (decode_tag_ref(record) for record in records if isinstance(record, dict))
        return {tag.id: tag for tag in tags if tag is not None}

    async def fetch_trait_metadata(self, identifiers: Iterable[str]) -> dict[str, TraitRef]:
        records = await self._fetch_metadata(
            identifiers,
            EntityKind.TRAIT,
            Endpoint.TRAITS,
            Fields.TRAIT_METADATA,
        )
        traits = (decode_trait_ref(record) for record in records if isinstance(record, dict))
        return {trait.id: trait for trait in traits if trait is not None}

    async def fetch_tag_categories(self, identifiers: Iterable[str]) -> dict[str, str]:
        """Tag id to category. Empty when the lookup fails."""
        try:
            metadata = await self.fetch_tag_metadata(identifiers)
        except VnBrowseError as e:
            logger.debug("Tag metadata enrichment failed: %s", e)
            return {}
        return {tag_id: tag.category for tag_id, tag in metadata.items() if tag.category}

    async def fetch_trait_groups(self, identifiers: Iterable[str]) -> dict[str, str]:
        """Trait id to group name. Empty when the lookup fails."""
        try:
            metadata = await self.fetch_trait_metadata(identifiers)
        except VnBrowseError as e:
            logger.debug("Trait metadata enrichment failed: %s", e)
            return {}
        return {trait_id: trait.group_name or "Other" for trait_id, trait in metadata.items()}

    # =========================================================================
    # Statistics
    # =========================================================================

    async def fetch_statistics(self) -> CatalogStatistics:
        payload = await self.gateway.cached_json(
            CacheNamespace.STATS,
            "GET",
            Endpoint.STATS,
            operation="fetch_statistics",
        )
        return decode_statistics(payload)
