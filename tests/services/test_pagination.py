"""Tests for PaginationController, including out-of-order completion."""

import asyncio

import pytest

from vnbrowse.core.models import CatalogEntry, QueryDescriptor, SortDirection, SortField, SortState
from vnbrowse.services.pagination import PaginationController
from vnbrowse.shared.errors import TransportFailure


class Gate:
    """Transport handler that parks every request until released."""

    def __init__(self):
        self.pending = []

    def __call__(self, call):
        future = asyncio.get_running_loop().create_future()
        self.pending.append((call, future))
        return future

    async def wait_for(self, count):
        while len(self.pending) < count:
            await asyncio.sleep(0)

    def release(self, index, reply):
        _, future = self.pending[index]
        future.set_result(reply)


def _titles(*ids):
    return [{"id": identifier, "title": f"Title {identifier}"} for identifier in ids]


@pytest.fixture
def pagination(gateway):
    return PaginationController(gateway, page_size=2)


@pytest.fixture
def gate(transport):
    gate = Gate()
    transport.handler = gate
    return gate


class TestReplaceAndAppend:
    """Sequential loading."""

    @pytest.mark.asyncio
    async def test_replace_loads_page_one(self, pagination, transport):
        # Given
        transport.enqueue(transport.page(_titles("v1", "v2"), more=True))

        # When
        outcome = await pagination.replace(QueryDescriptor.text("a"))

        # Then
        assert outcome.replaced is True
        assert outcome.page == 1
        assert [entry.id for entry in pagination.accumulated] == ["v1", "v2"]
        assert pagination.has_more is True
        assert transport.calls[0].json_body["page"] == 1
        assert transport.calls[0].json_body["results"] == 2

    @pytest.mark.asyncio
    async def test_append_adds_next_page_without_duplicates(self, pagination, transport):
        # Given
        transport.enqueue(
            transport.page(_titles("v1", "v2"), more=True),
            transport.page(_titles("v2", "v3"), more=False),
        )
        await pagination.replace(QueryDescriptor.text("a"))

        # When
        outcome = await pagination.append_next()

        # Then
        assert [entry.id for entry in outcome.added] == ["v3"]
        assert [entry.id for entry in pagination.accumulated] == ["v1", "v2", "v3"]
        assert pagination.page == 2
        assert pagination.has_more is False
        assert transport.calls[1].json_body["page"] == 2

    @pytest.mark.asyncio
    async def test_append_is_noop_when_exhausted(self, pagination, transport):
        transport.enqueue(transport.page(_titles("v1"), more=False))
        await pagination.replace(QueryDescriptor.text("a"))

        assert await pagination.append_next() is None
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_append_ignores_foreign_descriptor(self, pagination, transport):
        transport.enqueue(transport.page(_titles("v1"), more=True))
        await pagination.replace(QueryDescriptor.text("a"))

        assert await pagination.append_next(QueryDescriptor.text("b")) is None
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_append_with_nothing_active_loads_page_one(self, pagination, transport):
        transport.enqueue(transport.page(_titles("v1"), more=True))

        outcome = await pagination.append_next(QueryDescriptor.text("a"))

        assert outcome.page == 1
        assert outcome.replaced is True
        assert pagination.active_descriptor == QueryDescriptor.text("a")

    @pytest.mark.asyncio
    async def test_append_without_anything_active(self, pagination, transport):
        assert await pagination.append_next() is None
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_current_failure_raises_and_resets(self, pagination, transport):
        transport.enqueue(transport.page(_titles("v1"), more=True), transport.failure(500))
        await pagination.replace(QueryDescriptor.text("a"))

        with pytest.raises(TransportFailure):
            await pagination.replace(QueryDescriptor.text("b"))

        assert pagination.accumulated == ()
        assert pagination.has_more is False
        assert pagination.is_loading is False


class TestOutOfOrderCompletion:
    """Only the newest query may commit."""

    @pytest.mark.asyncio
    async def test_older_replace_completing_last_is_discarded(self, pagination, gate, transport):
        # Given: two searches in flight
        first = asyncio.create_task(pagination.replace(QueryDescriptor.text("a")))
        await gate.wait_for(1)
        second = asyncio.create_task(pagination.replace(QueryDescriptor.text("b")))
        await gate.wait_for(2)

        # When: the newer one completes first
        gate.release(1, transport.page(_titles("v20")))
        newer = await second
        gate.release(0, transport.page(_titles("v10")))
        older = await first

        # Then
        assert older is None
        assert newer.descriptor == QueryDescriptor.text("b")
        assert [entry.id for entry in pagination.accumulated] == ["v20"]
        assert pagination.active_descriptor == QueryDescriptor.text("b")

    @pytest.mark.asyncio
    async def test_append_for_superseded_query_is_discarded(self, pagination, gate, transport):
        # Given: page one of A loaded, page two of A in flight
        load = asyncio.create_task(pagination.replace(QueryDescriptor.text("a")))
        await gate.wait_for(1)
        gate.release(0, transport.page(_titles("v1", "v2"), more=True))
        await load
        append = asyncio.create_task(pagination.append_next())
        await gate.wait_for(2)

        # When: B replaces A before A's page two lands
        replace = asyncio.create_task(pagination.replace(QueryDescriptor.text("b")))
        await gate.wait_for(3)
        gate.release(2, transport.page(_titles("v9")))
        await replace
        gate.release(1, transport.page(_titles("v3", "v4"), more=True))

        # Then
        assert await append is None
        assert [entry.id for entry in pagination.accumulated] == ["v9"]
        assert pagination.page == 1

    @pytest.mark.asyncio
    async def test_append_while_loading_is_noop(self, pagination, gate, transport):
        load = asyncio.create_task(pagination.replace(QueryDescriptor.text("a")))
        await gate.wait_for(1)

        assert pagination.is_loading is True
        assert await pagination.append_next() is None

        gate.release(0, transport.page(_titles("v1"), more=True))
        await load
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_superseded_failure_is_swallowed(self, pagination, gate, transport):
        first = asyncio.create_task(pagination.replace(QueryDescriptor.text("a")))
        await gate.wait_for(1)
        second = asyncio.create_task(pagination.replace(QueryDescriptor.text("b")))
        await gate.wait_for(2)

        gate.release(0, transport.failure(500))
        assert await first is None
        gate.release(1, transport.page(_titles("v5")))
        await second

        assert [entry.id for entry in pagination.accumulated] == ["v5"]

    @pytest.mark.asyncio
    async def test_invalidate_discards_in_flight_fetch(self, pagination, gate, transport):
        load = asyncio.create_task(pagination.replace(QueryDescriptor.text("a")))
        await gate.wait_for(1)

        pagination.invalidate()
        gate.release(0, transport.page(_titles("v1")))

        assert await load is None
        assert pagination.accumulated == ()


class TestLocalOrdering:
    """Personal list adoption and re-sorting."""

    def test_load_dedupes_and_closes_paging(self, pagination):
        entries = [CatalogEntry("v2", "B"), CatalogEntry("v1", "A"), CatalogEntry("v2", "B")]

        loaded = pagination.load(entries)

        assert [entry.id for entry in loaded] == ["v2", "v1"]
        assert pagination.has_more is False

    def test_reorder_and_restore(self, pagination):
        # Given
        pagination.load([CatalogEntry("v2", "Beta", 50.0), CatalogEntry("v1", "Alpha", 90.0)])

        # When
        by_title = pagination.reorder(SortState(SortField.TITLE, SortDirection.ASC))
        restored = pagination.reorder(SortState(SortField.DEFAULT, SortDirection.ASC))

        # Then
        assert [entry.id for entry in by_title] == ["v1", "v2"]
        assert [entry.id for entry in restored] == ["v2", "v1"]

    def test_load_supersedes_pending_search(self, pagination):
        before = pagination.generation
        pagination.load([])
        assert pagination.generation == before + 1
