"""Infinite-scroll pagination.

:class:`PaginationController` owns the accumulated result sequence for one
browsing surface. ``replace`` starts a new query from page one and
``append_next`` loads the following page of the active query. Every
``replace`` bumps a generation counter; a fetch that completes after its
generation has been superseded is discarded rather than cancelled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from vnbrowse.core.models import CatalogEntry, QueryDescriptor, QueryPage, SortState
from vnbrowse.core.sorting import sort_entries
from vnbrowse.services.vndb.gateway import CatalogQueryGateway
from vnbrowse.shared.constants import Fields, Paging
from vnbrowse.shared.errors import VnBrowseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageOutcome:
    """Result of a committed fetch."""

    descriptor: QueryDescriptor
    page: int
    entries: tuple[CatalogEntry, ...]
    added: tuple[CatalogEntry, ...]
    has_more: bool
    replaced: bool


class PaginationController:
    """Accumulates pages of search results for the active descriptor.

    Args:
        gateway: Gateway used for title queries
        page_size: Results per page
        fields: Field selection for result rows
    """

    def __init__(
        self,
        gateway: CatalogQueryGateway,
        page_size: int = Paging.SEARCH_PAGE_SIZE,
        fields: str = Fields.TITLE_LIST,
    ) -> None:
        self.gateway = gateway
        self.page_size = page_size
        self.fields = fields
        self._page = 0
        self._has_more = True
        self._accumulated: tuple[CatalogEntry, ...] = ()
        self._fetched_order: tuple[CatalogEntry, ...] = ()
        self._active: QueryDescriptor | None = None
        self._generation = 0
        self._pending = 0

    @property
    def page(self) -> int:
        return self._page

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def accumulated(self) -> tuple[CatalogEntry, ...]:
        return self._accumulated

    @property
    def active_descriptor(self) -> QueryDescriptor | None:
        return self._active

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def generation(self) -> int:
        return self._generation

    async def _fetch(
        self,
        descriptor: QueryDescriptor,
        page: int,
        generation: int,
    ) -> QueryPage[CatalogEntry] | None:
        self._pending += 1
        try:
            return await self.gateway.query_titles(
                descriptor,
                page=page,
                page_size=self.page_size,
                fields=self.fields,
            )
        except VnBrowseError:
            if generation != self._generation:
                logger.debug("Discarding failure of superseded page %d fetch", page)
                return None
            raise
        finally:
            self._pending -= 1

    async def replace(self, descriptor: QueryDescriptor) -> PageOutcome | None:
        """Load page one of ``descriptor``, discarding previous results.

        Returns:
            The committed outcome, or None if a newer fetch superseded this one.

        Raises:
            VnBrowseError: When the fetch fails and is still current.
        """
        self._generation += 1
        generation = self._generation
        self._active = descriptor

        try:
            result = await self._fetch(descriptor, 1, generation)
        except VnBrowseError:
            self._accumulated = self._fetched_order = ()
            self._page = 0
            self._has_more = False
            raise
        if result is None or generation != self._generation:
            return None

        entries = _dedupe(result.results)
        self._accumulated = self._fetched_order = entries
        self._page = 1
        self._has_more = result.more
        return PageOutcome(
            descriptor=descriptor,
            page=1,
            entries=entries,
            added=entries,
            has_more=result.more,
            replaced=True,
        )

    async def append_next(self, descriptor: QueryDescriptor | None = None) -> PageOutcome | None:
        """Load the next page of the active descriptor.

        A no-op returning None when a fetch is already pending, when no
        more pages exist or when ``descriptor`` is not the active one. With
        nothing active yet, ``descriptor`` becomes active and page one loads.
        """
        if self._pending or not self._has_more:
            return None
        if self._active is None:
            if descriptor is None:
                return None
            self._active = descriptor
        elif descriptor is not None and descriptor != self._active:
            return None

        active = self._active
        generation = self._generation
        next_page = self._page + 1
        result = await self._fetch(active, next_page, generation)
        if result is None or generation != self._generation:
            return None

        known = {entry.id for entry in self._accumulated}
        added = tuple(entry for entry in _dedupe(result.results) if entry.id not in known)
        self._accumulated = self._fetched_order = self._accumulated + added
        self._page = next_page
        self._has_more = result.more
        return PageOutcome(
            descriptor=active,
            page=next_page,
            entries=self._accumulated,
            added=added,
            has_more=result.more,
            replaced=next_page == 1,
        )

    def load(self, entries: Iterable[CatalogEntry]) -> tuple[CatalogEntry, ...]:
        """Adopt a fully fetched sequence (personal list mode).

        Pending search fetches are superseded and no further pages exist.
        """
        self._generation += 1
        self._accumulated = self._fetched_order = _dedupe(entries)
        self._page = 1
        self._has_more = False
        return self._accumulated

    def reorder(self, sort: SortState) -> tuple[CatalogEntry, ...]:
        """Re-sort the accumulation locally without fetching.

        Sorting always starts from the fetched order, so the default field
        restores it.
        """
        self._accumulated = sort_entries(self._fetched_order, sort)
        return self._accumulated

    def invalidate(self) -> None:
        """Discard whatever fetch is currently in flight."""
        self._generation += 1


def _dedupe(entries: Iterable[CatalogEntry]) -> tuple[CatalogEntry, ...]:
    seen: set[str] = set()
    unique: list[CatalogEntry] = []
    for entry in entries:
        if entry.id not in seen:
            seen.add(entry.id)
            unique.append(entry)
    return tuple(unique)
