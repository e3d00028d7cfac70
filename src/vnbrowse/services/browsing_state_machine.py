"""List browsing state machine.

This module provides the top-level controller of the browsing surface. It
owns the active query descriptor, debounces live-typed search, reacts to
tag and developer selection, and switches between search results and the
caller's personal list.

Every asynchronous flow captures a generation token when it starts and
commits its result only if no newer flow has started since. Superseded
requests are never cancelled; their late results are discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from vnbrowse.config.models import BrowsingSettings
from vnbrowse.core.identifiers import EntityKind, normalize_identifier
from vnbrowse.core.models import (
    FilterState,
    QueryDescriptor,
    SortDirection,
    SortField,
    SortState,
)
from vnbrowse.services.debounce import Debouncer
from vnbrowse.services.pagination import PaginationController
from vnbrowse.services.personal_list import (
    EMPTY_STATUSES,
    PersonalListReconciler,
    ResultRow,
    StatusMap,
)
from vnbrowse.services.session import AuthenticatedSession, SessionManager
from vnbrowse.shared.constants import BASE_MILLISECOND, DEFAULT_ADD_STATUS, ListStatus
from vnbrowse.shared.errors import (
    AuthenticationFailure,
    ErrorCode,
    VnBrowseError,
    describe_error,
)

logger = logging.getLogger(__name__)


class BrowsingPhase(str, Enum):
    """Loading phase of the result surface."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class BrowsingMode(str, Enum):
    """Which result set is shown."""

    SEARCH = "search"
    PERSONAL_LIST = "personal_list"


@dataclass(frozen=True)
class BrowsingSnapshot:
    """Immutable view of the browsing surface published to subscribers."""

    phase: BrowsingPhase = BrowsingPhase.IDLE
    mode: BrowsingMode = BrowsingMode.SEARCH
    descriptor: QueryDescriptor | None = None
    rows: tuple[ResultRow, ...] = ()
    has_more: bool = False
    loading_more: bool = False
    error: str | None = None
    term: str = ""
    filters: FilterState = field(default_factory=FilterState)
    sort: SortState = field(default_factory=SortState)
    membership: frozenset[str] = frozenset()
    recent_searches: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Loaded with zero rows. Not an error."""
        return self.phase is BrowsingPhase.LOADED and not self.rows


SnapshotListener = Callable[[BrowsingSnapshot], None]


def default_filters(settings: BrowsingSettings) -> FilterState:
    return FilterState(
        languages=tuple(settings.default_languages),
        original_language=settings.default_original_language,
        only_with_screenshots=settings.only_with_screenshots,
        only_with_description=settings.only_with_description,
    )


def default_sort(settings: BrowsingSettings) -> SortState:
    return SortState(
        field=SortField(settings.default_sort_field),
        direction=SortDirection(settings.default_sort_direction),
    )


class ListBrowsingStateMachine:
    """Coordinates search, filters, sort, infinite scroll and list mode.

    Args:
        pagination: Accumulator for the visible result sequence
        reconciler: Personal list reads and result annotation
        sessions: Session owner; its changes drive membership refreshes
        settings: Browsing settings (debounce, defaults, recent searches)
    """

    def __init__(
        self,
        pagination: PaginationController,
        reconciler: PersonalListReconciler,
        sessions: SessionManager,
        settings: BrowsingSettings | None = None,
    ) -> None:
        self.pagination = pagination
        self.reconciler = reconciler
        self.sessions = sessions
        self.settings = settings or BrowsingSettings()

        self._mode = BrowsingMode.SEARCH
        self._phase = BrowsingPhase.IDLE
        self._error: str | None = None
        self._loading_more = False
        self._term = ""
        self._filters = default_filters(self.settings)
        self._sort = default_sort(self.settings)
        self._last_search: QueryDescriptor | None = None
        self._membership: frozenset[str] = frozenset()
        self._statuses: StatusMap = EMPTY_STATUSES
        self._recent: tuple[str, ...] = ()

        self._generation = 0
        self._membership_generation = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[SnapshotListener] = []
        self._closed = False

        self._debouncer: Debouncer[str] = Debouncer(
            self.settings.debounce_ms * BASE_MILLISECOND,
            self._on_debounce_elapsed,
        )
        self._unsubscribe_session = sessions.subscribe(self._on_session_changed)
        self._snapshot = self._build_snapshot()

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def snapshot(self) -> BrowsingSnapshot:
        return self._snapshot

    @property
    def mode(self) -> BrowsingMode:
        return self._mode

    @property
    def phase(self) -> BrowsingPhase:
        return self._phase

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener``; it receives every published snapshot."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _build_snapshot(self) -> BrowsingSnapshot:
        in_search = self._mode is BrowsingMode.SEARCH
        return BrowsingSnapshot(
            phase=self._phase,
            mode=self._mode,
            descriptor=self.pagination.active_descriptor if in_search else None,
            rows=self.reconciler.annotate(
                self.pagination.accumulated,
                self._membership,
                self._statuses,
            ),
            has_more=self.pagination.has_more if in_search else False,
            loading_more=self._loading_more,
            error=self._error,
            term=self._term,
            filters=self._filters,
            sort=self._sort,
            membership=self._membership,
            recent_searches=self._recent,
        )

    def _publish(self) -> None:
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._closed

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fail(self, generation: int, error: VnBrowseError) -> None:
        refused = error.code is not ErrorCode.AUTHENTICATION_REQUIRED
        if isinstance(error, AuthenticationFailure) and refused:
            self.sessions.handle_authentication_failure()
        if not self._is_current(generation):
            logger.debug("Discarding failure of superseded flow: %s", error)
            return
        self._phase = BrowsingPhase.ERROR
        self._error = describe_error(error)
        self._loading_more = False
        self._publish()

    # =========================================================================
    # Search mode
    # =========================================================================

    def _search_base(self) -> QueryDescriptor:
        if self._last_search is not None:
            return self._last_search
        return QueryDescriptor.text(self._term, self._filters, self._sort)

    async def _replace(self, descriptor: QueryDescriptor) -> None:
        generation = self._next_generation()
        self._mode = BrowsingMode.SEARCH
        self._last_search = descriptor
        self._phase = BrowsingPhase.LOADING
        self._error = None
        self._loading_more = False
        self._publish()

        try:
            outcome = await self.pagination.replace(descriptor)
        except VnBrowseError as e:
            self._fail(generation, e)
            return
        if outcome is None or not self._is_current(generation):
            logger.debug("Discarding superseded results for %r", descriptor)
            return

        self._phase = BrowsingPhase.LOADED
        self._publish()

    def on_term_changed(self, term: str) -> None:
        """Record typed input and restart the quiet-period timer.

        Ignored for fetching while the personal list is shown.
        """
        self._term = term
        self._publish()
        if self._mode is BrowsingMode.PERSONAL_LIST:
            return
        self._debouncer.schedule(term)

    async def _on_debounce_elapsed(self, term: str) -> None:
        if self._mode is not BrowsingMode.SEARCH or self._closed:
            return
        await self._replace(QueryDescriptor.text(term, self._filters, self._sort))

    async def submit_search(self, term: str) -> None:
        """Search immediately and remember the term."""
        self._debouncer.cancel()
        self._term = term
        self._remember_search(term)
        self._statuses = EMPTY_STATUSES
        await self._replace(QueryDescriptor.text(term, self._filters, self._sort))

    def _remember_search(self, term: str) -> None:
        term = term.strip()
        limit = self.settings.recent_search_limit
        if not term or limit <= 0:
            return
        others = tuple(item for item in self._recent if item.casefold() != term.casefold())
        self._recent = ((term,) + others)[:limit]

    async def select_tag(self, tag_id: str, name: str | None = None) -> None:
        self._debouncer.cancel()
        self._statuses = EMPTY_STATUSES
        descriptor = QueryDescriptor.for_tag(
            normalize_identifier(tag_id, EntityKind.TAG),
            name,
            self._filters,
            self._sort,
        )
        await self._replace(descriptor)

    async def select_developer(self, developer_id: str, name: str | None = None) -> None:
        self._debouncer.cancel()
        self._statuses = EMPTY_STATUSES
        descriptor = QueryDescriptor.for_developer(
            normalize_identifier(developer_id, EntityKind.PRODUCER),
            name,
            self._filters,
            self._sort,
        )
        await self._replace(descriptor)

    async def on_scroll_boundary_visible(self) -> bool:
        """Load the next page when the end of the results comes into view.

        Returns:
            True when a page was appended.
        """
        if (
            self._mode is not BrowsingMode.SEARCH
            or self._phase in (BrowsingPhase.LOADING, BrowsingPhase.ERROR)
            or self.pagination.is_loading
            or not self.pagination.has_more
        ):
            return False

        generation = self._generation
        self._loading_more = True
        self._publish()
        try:
            outcome = await self.pagination.append_next()
        except VnBrowseError as e:
            self._fail(generation, e)
            return False
        if not self._is_current(generation):
            return False

        self._loading_more = False
        self._publish()
        return outcome is not None

    # =========================================================================
    # Sort and filters
    # =========================================================================

    async def _apply_sort(self, sort: SortState) -> None:
        self._sort = sort
        if self._mode is BrowsingMode.PERSONAL_LIST:
            self.pagination.reorder(sort)
            self._publish()
            return
        await self._replace(self._search_base().with_sort(sort))

    async def change_sort_field(self, sort_field: SortField) -> None:
        """Select a sort field. Title sorts start ascending."""
        sort = self._sort.with_field(sort_field)
        if sort_field is SortField.TITLE:
            sort = replace(sort, direction=SortDirection.ASC)
        await self._apply_sort(sort)

    async def toggle_sort_direction(self) -> None:
        await self._apply_sort(self._sort.toggled())

    async def apply_filters(self, filters: FilterState) -> None:
        """Apply ``filters``. In list mode they are stored for the next search."""
        self._filters = filters
        if self._mode is BrowsingMode.PERSONAL_LIST:
            self._publish()
            return
        await self._replace(self._search_base().with_filters(filters))

    async def reset_filters(self) -> None:
        await self.apply_filters(default_filters(self.settings))

    async def navigate_home(self) -> None:
        """Clear the term, restore default filters and sort, load the default slice."""
        self._debouncer.cancel()
        self._term = ""
        self._filters = default_filters(self.settings)
        self._sort = default_sort(self.settings)
        self._statuses = EMPTY_STATUSES
        await self._replace(QueryDescriptor.text("", self._filters, self._sort))

    # =========================================================================
    # Personal list mode
    # =========================================================================

    async def enter_personal_list(self) -> None:
        """Show the caller's full list, sorted locally."""
        self._debouncer.cancel()
        self._mode = BrowsingMode.PERSONAL_LIST
        await self._load_personal_list()

    async def _load_personal_list(self) -> None:
        generation = self._next_generation()
        self.pagination.invalidate()
        self._phase = BrowsingPhase.LOADING
        self._error = None
        self._loading_more = False
        self._publish()

        try:
            session = self.sessions.require_read("enter_personal_list")
            view = await self.reconciler.fetch_full_list(session)
        except VnBrowseError as e:
            self._fail(generation, e)
            return
        if not self._is_current(generation) or self._mode is not BrowsingMode.PERSONAL_LIST:
            logger.debug("Discarding superseded personal list")
            return

        self._statuses = view.statuses
        self.pagination.load(view.entries)
        self.pagination.reorder(self._sort)
        self._phase = BrowsingPhase.LOADED
        self._publish()

    async def refresh_personal_list(self) -> None:
        """Re-read the list, bypassing cached pages."""
        if self._mode is not BrowsingMode.PERSONAL_LIST:
            return
        self.reconciler.gateway.invalidate_personal_list()
        await self._load_personal_list()

    async def return_to_search(self) -> None:
        """Leave list mode and re-run the last search."""
        self._statuses = EMPTY_STATUSES
        descriptor = self._search_base().with_filters(self._filters).with_sort(self._sort)
        self._term = descriptor.term
        await self._replace(descriptor)

    # =========================================================================
    # Session and membership
    # =========================================================================

    def _on_session_changed(self, session: AuthenticatedSession | None) -> None:
        self._membership_generation += 1
        if session is None:
            self._membership = frozenset()
            self._statuses = EMPTY_STATUSES
            if self._mode is BrowsingMode.PERSONAL_LIST:
                self._mode = BrowsingMode.SEARCH
                self._spawn(self.return_to_search())
            self._publish()
            return
        if session.can_read_list:
            self._spawn(self._refresh_membership(session, self._membership_generation))

    async def _refresh_membership(self, session: AuthenticatedSession, generation: int) -> None:
        try:
            membership = await self.reconciler.fetch_membership(session)
        except AuthenticationFailure:
            self.sessions.handle_authentication_failure()
            return
        except VnBrowseError as e:
            logger.debug("Membership fetch failed; keeping last known set: %s", e)
            return

        if generation != self._membership_generation or self._closed:
            return
        self._membership = membership
        self._publish()

    # =========================================================================
    # Personal list writes
    # =========================================================================

    async def _write(
        self,
        operation: str,
        action: Callable[[str], Coroutine[Any, Any, None]],
    ) -> None:
        session = self.sessions.require_write(operation)
        try:
            await action(session.token)
        except AuthenticationFailure:
            self.sessions.handle_authentication_failure()
            raise
        # Any in-flight membership read predates this write
        self._membership_generation += 1

    async def _after_write(self) -> None:
        if self._mode is BrowsingMode.PERSONAL_LIST:
            await self._load_personal_list()
        else:
            self._publish()

    async def add_to_list(self, identifier: str, status: ListStatus = DEFAULT_ADD_STATUS) -> None:
        """Add a title to the caller's list.

        Raises:
            VnBrowseError: Missing session, missing ``listwrite`` or a
                failed write.
        """
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        gateway = self.reconciler.gateway
        await self._write("add_to_list", lambda token: gateway.add_to_list(token, vn_id, status))
        self._membership = self._membership | {vn_id}
        self._statuses = MappingProxyType({**self._statuses, vn_id: status})
        await self._after_write()

    async def update_status(self, identifier: str, status: ListStatus) -> None:
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        gateway = self.reconciler.gateway
        await self._write("update_status", lambda token: gateway.set_status(token, vn_id, status))
        self._membership = self._membership | {vn_id}
        self._statuses = MappingProxyType({**self._statuses, vn_id: status})
        await self._after_write()

    async def remove_from_list(self, identifier: str) -> None:
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        gateway = self.reconciler.gateway
        await self._write("remove_from_list", lambda token: gateway.remove_from_list(token, vn_id))
        self._membership = self._membership - {vn_id}
        self._statuses = MappingProxyType(
            {key: value for key, value in self._statuses.items() if key != vn_id},
        )
        await self._after_write()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or background flow is outstanding."""
        while self._debouncer.busy or self._tasks:
            await self._debouncer.wait()
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop reacting to input. Late results are discarded."""
        self._closed = True
        self._debouncer.cancel()
        self._unsubscribe_session()
        self._generation += 1
        self._membership_generation += 1
