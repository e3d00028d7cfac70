"""Personal list reconciliation.

Two independent reads feed the "already in my list" view:

- the membership set, an identifiers-only paged read used to badge search
  results
- the full list, a heavier paged read that becomes the personal list view

Rows of the full list arrive either with their title record embedded or as
bare identifiers. Bare rows are hydrated through batched lookups and keep
their placeholder form when the lookup has no match, so the list count
stays accurate.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

from vnbrowse.core.decoding import (
    ListRecord,
    decode_list_record,
    derive_status,
    display_status,
)
from vnbrowse.core.identifiers import EntityKind, normalize_identifier
from vnbrowse.core.models import CatalogEntry
from vnbrowse.services.session import AuthenticatedSession
from vnbrowse.services.vndb.gateway import CatalogQueryGateway
from vnbrowse.shared.constants import Fields, ListStatus, Paging, Permission
from vnbrowse.shared.errors import RejectedRequest, create_permission_error
from vnbrowse.shared.logging import log_operation_success

logger = logging.getLogger(__name__)

StatusMap = Mapping[str, Optional[ListStatus]]

EMPTY_STATUSES: StatusMap = MappingProxyType({})


@dataclass(frozen=True)
class PersonalListView:
    """Hydrated personal list plus the status of every row."""

    entries: tuple[CatalogEntry, ...] = ()
    statuses: StatusMap = field(default_factory=lambda: EMPTY_STATUSES)

    @property
    def identifiers(self) -> frozenset[str]:
        return frozenset(entry.id for entry in self.entries)


@dataclass(frozen=True)
class ListEntryStatus:
    in_list: bool
    labels: tuple[int, ...] = ()
    status: ListStatus | None = None

    @property
    def display_status(self) -> ListStatus:
        return display_status(self.status)


@dataclass(frozen=True)
class ResultRow:
    """A result entry annotated with its personal list membership."""

    entry: CatalogEntry
    in_list: bool = False
    status: ListStatus | None = None

    @property
    def display_status(self) -> ListStatus:
        return display_status(self.status)


def _require_read(session: AuthenticatedSession, operation: str) -> None:
    if not session.can_read_list:
        raise create_permission_error(Permission.LIST_READ, operation)


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class PersonalListReconciler:
    """Builds membership sets and the hydrated personal list view.

    Args:
        gateway: Gateway used for every read
        max_pages: Upper bound on pages read per paged fetch
        page_size: Rows per personal list page
        hydration_batch_size: Identifiers per hydration lookup
    """

    def __init__(
        self,
        gateway: CatalogQueryGateway,
        max_pages: int = Paging.MAX_PERSONAL_LIST_PAGES,
        page_size: int = Paging.PERSONAL_LIST_PAGE_SIZE,
        hydration_batch_size: int = Paging.IDENTIFIER_BATCH_SIZE,
    ) -> None:
        self.gateway = gateway
        self.max_pages = max_pages
        self.page_size = page_size
        self.hydration_batch_size = min(hydration_batch_size, Paging.IDENTIFIER_BATCH_SIZE)

    async def fetch_membership(self, session: AuthenticatedSession) -> frozenset[str]:
        """Identifiers of every title in the caller's list."""
        _require_read(session, "fetch_membership")
        identifiers: set[str] = set()
        for page in range(1, self.max_pages + 1):
            result = await self.gateway.fetch_membership_page(
                session.token,
                session.user_id,
                page=page,
                page_size=self.page_size,
            )
            identifiers.update(result.results)
            if not result.more:
                break
        else:
            logger.warning("Membership fetch stopped at the %d page limit", self.max_pages)
        return frozenset(identifiers)

    async def _fetch_records(self, session: AuthenticatedSession) -> list[ListRecord]:
        records: list[ListRecord] = []
        seen: set[str] = set()
        for page in range(1, self.max_pages + 1):
            result = await self.gateway.fetch_personal_list_page(
                session.token,
                session.user_id,
                page=page,
                page_size=self.page_size,
            )
            for record in result.results:
                if record.id not in seen:
                    seen.add(record.id)
                    records.append(record)
            if not result.more:
                break
        else:
            logger.warning("Personal list fetch stopped at the %d page limit", self.max_pages)
        return records

    async def hydrate(self, entries: Sequence[CatalogEntry]) -> tuple[CatalogEntry, ...]:
        """Replace placeholder entries with looked-up title records.

        Placeholders without a match are kept as they are.
        """
        missing = list(dict.fromkeys(entry.id for entry in entries if entry.is_placeholder))
        if not missing:
            return tuple(entries)

        hydrated: dict[str, CatalogEntry] = {}
        for batch in _chunks(missing, self.hydration_batch_size):
            for found in await self.gateway.lookup_titles_by_ids(batch):
                hydrated[normalize_identifier(found.id, EntityKind.TITLE)] = found

        unmatched = len(set(missing) - hydrated.keys())
        if unmatched:
            logger.debug("%d list entries kept as placeholders after hydration", unmatched)
        return tuple(
            hydrated.get(entry.id, entry) if entry.is_placeholder else entry for entry in entries
        )

    async def fetch_full_list(self, session: AuthenticatedSession) -> PersonalListView:
        """Every row of the caller's list, hydrated, in remote order."""
        _require_read(session, "fetch_full_list")
        started = time.perf_counter()

        records = await self._fetch_records(session)
        entries = await self.hydrate([record.entry for record in records])
        statuses = MappingProxyType({record.id: record.status for record in records})

        log_operation_success(
            logger,
            "fetch_full_list",
            (time.perf_counter() - started) * 1000,
            result_info={
                "count": len(entries),
                "placeholders": sum(1 for entry in entries if entry.is_placeholder),
            },
        )
        return PersonalListView(entries=entries, statuses=statuses)

    async def fetch_entry_status(
        self,
        session: AuthenticatedSession,
        identifier: str,
    ) -> ListEntryStatus:
        """Membership and labels of one title.

        A filtered lookup is tried first. When the remote rejects the
        filter, the list is scanned page by page, and when that is
        rejected too only membership is reported.
        """
        _require_read(session, "fetch_entry_status")
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)

        try:
            raw = await self.gateway.query_personal_list(
                session.token,
                session.user_id,
                fields=Fields.PERSONAL_LIST_LABELS_ONLY,
                page_size=1,
                filters=["id", "=", vn_id],
            )
            return _status_from_records(raw.results, vn_id)
        except RejectedRequest:
            logger.debug("Filtered list lookup rejected; scanning list for %s", vn_id)

        try:
            return await self._scan_for_entry(session, vn_id)
        except RejectedRequest:
            logger.debug("List scan rejected; falling back to membership for %s", vn_id)

        membership = await self.fetch_membership(session)
        return ListEntryStatus(in_list=vn_id in membership)

    async def _scan_for_entry(self, session: AuthenticatedSession, vn_id: str) -> ListEntryStatus:
        for page in range(1, self.max_pages + 1):
            raw = await self.gateway.query_personal_list(
                session.token,
                session.user_id,
                fields=Fields.PERSONAL_LIST_LABELS_ONLY,
                page=page,
                page_size=self.page_size,
            )
            found = _status_from_records(raw.results, vn_id)
            if found.in_list or not raw.more:
                return found
        return ListEntryStatus(in_list=False)

    @staticmethod
    def annotate(
        entries: Iterable[CatalogEntry],
        membership: frozenset[str],
        statuses: StatusMap = EMPTY_STATUSES,
    ) -> tuple[ResultRow, ...]:
        """Pair each entry with its membership and status."""
        return tuple(
            ResultRow(
                entry=entry,
                in_list=entry.id in membership or entry.id in statuses,
                status=statuses.get(entry.id),
            )
            for entry in entries
        )


def _status_from_records(records: Iterable[object], vn_id: str) -> ListEntryStatus:
    for raw in records:
        record = decode_list_record(raw)
        if record is not None and record.id == vn_id:
            return ListEntryStatus(
                in_list=True,
                labels=record.labels,
                status=derive_status(record.labels),
            )
    return ListEntryStatus(in_list=False)
