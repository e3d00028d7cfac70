"""Tests for CatalogDetailService."""

import pytest

from vnbrowse.services.vndb.details import CatalogDetailService
from vnbrowse.shared.errors import ErrorCode, TransportFailure


@pytest.fixture
def service(gateway):
    return CatalogDetailService(gateway)


class TestFetchDetails:
    """Core and supplemental records are merged."""

    @pytest.mark.asyncio
    async def test_merges_core_and_supplement(self, service, transport):
        # Given
        def handler(call):
            if "description" in call.json_body["fields"]:
                return transport.page(
                    [{"id": "v17", "title": "Ever17", "description": "Sea", "rating": 88}],
                )
            return transport.page(
                [{"id": "v17", "tags": [{"id": 1, "name": "Mystery"}]}],
            )

        transport.handler = handler

        # When
        details = await service.fetch_details("17")

        # Then
        assert details.entry.title == "Ever17"
        assert details.description == "Sea"
        assert details.tags[0].name == "Mystery"
        assert all(call.json_body["filters"] == ["id", "=", "v17"] for call in transport.calls)

    @pytest.mark.asyncio
    async def test_unknown_title(self, service, transport):
        transport.handler = lambda call: transport.page([])
        assert await service.fetch_details("v999") is None

    @pytest.mark.asyncio
    async def test_core_details_only(self, service, transport):
        transport.enqueue(transport.page([{"id": "v2", "title": "Two", "released": "2001"}]))
        details = await service.fetch_core_details("v2")
        assert details.released == "2001"
        assert len(transport.calls) == 1


class TestPrefetch:
    @pytest.mark.asyncio
    async def test_warms_cache(self, service, transport):
        transport.enqueue(transport.page([{"id": "v2", "title": "Two"}]))

        await service.prefetch_core_details("v2")
        details = await service.fetch_core_details("v2")

        assert details.entry.title == "Two"
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, service, transport):
        transport.enqueue(transport.failure(500))
        await service.prefetch_core_details("v2")


class TestCharacters:
    """Nested fields first, then the character endpoint filter forms."""

    @pytest.mark.asyncio
    async def test_nested_characters(self, service, transport):
        transport.enqueue(
            transport.page([{"id": "v17", "characters": [{"id": 1, "name": "Tsugumi"}]}]),
        )

        characters = await service.fetch_characters_for_title("v17")

        assert [character.id for character in characters] == ["c1"]
        assert transport.calls[0].path == "/vn"

    @pytest.mark.asyncio
    async def test_falls_through_to_endpoint_forms(self, service, transport):
        # Given: both nested prefixes rejected, first two filter forms rejected
        transport.enqueue(
            transport.failure(400),
            transport.failure(400),
            transport.failure(400),
            transport.failure(400),
            transport.page([{"id": "c4", "name": "Sora"}]),
        )

        # When
        characters = await service.fetch_characters_for_title("v17")

        # Then
        character_calls = transport.calls_to("/character")
        assert len(character_calls) == 3
        assert character_calls[0].json_body["filters"] == ["vn", "=", ["id", "=", "v17"]]
        assert character_calls[2].json_body["filters"] == ["vns", "=", ["id", "=", "v17"]]
        assert [character.name for character in characters] == ["Sora"]

    @pytest.mark.asyncio
    async def test_no_form_accepted(self, service, transport):
        transport.enqueue(*[transport.failure(400) for _ in range(8)])
        assert await service.fetch_characters_for_title("v17") == ()
        assert len(transport.calls_to("/character")) == 6

    @pytest.mark.asyncio
    async def test_server_error_propagates(self, service, transport):
        transport.enqueue(transport.failure(503))
        with pytest.raises(TransportFailure):
            await service.fetch_characters_for_title("v17")

    @pytest.mark.asyncio
    async def test_character_details(self, service, transport):
        transport.enqueue(transport.page([{"id": "c4", "name": "Sora", "traits": [{"id": 2}]}]))
        details = await service.fetch_character_details("4")
        assert transport.calls[0].json_body["filters"] == ["id", "=", "c4"]
        assert details.traits[0].id == "i2"

    @pytest.mark.asyncio
    async def test_characters_by_trait(self, service, transport):
        transport.enqueue(transport.page([{"id": "c4", "name": "Sora"}, {"id": "c5"}]))
        characters = await service.fetch_characters_by_trait("i2")
        assert transport.calls[0].json_body["filters"] == ["trait", "=", "i2"]
        assert [character.summary.id for character in characters] == ["c4"]


class TestMetadata:
    @pytest.mark.asyncio
    async def test_tag_categories(self, service, transport):
        transport.enqueue(
            transport.page(
                [
                    {"id": "g1", "name": "Mystery", "category": "cont"},
                    {"id": "g2", "name": "Nukige", "category": None},
                ],
            ),
        )

        categories = await service.fetch_tag_categories(["2", "g1", "bogus"])

        assert transport.calls[0].json_body["filters"] == [
            "or",
            ["id", "=", "g1"],
            ["id", "=", "g2"],
        ]
        assert categories == {"g1": "cont"}

    @pytest.mark.asyncio
    async def test_tag_categories_degrade_to_empty(self, service, transport):
        transport.enqueue(transport.failure(500))
        assert await service.fetch_tag_categories(["g1"]) == {}

    @pytest.mark.asyncio
    async def test_trait_groups_default_to_other(self, service, transport):
        transport.enqueue(
            transport.page(
                [{"id": "i1", "name": "Kind", "group_name": "Personality"}, {"id": "i2"}],
            ),
        )
        groups = await service.fetch_trait_groups(["i1", "i2"])
        assert groups == {"i1": "Personality", "i2": "Other"}

    @pytest.mark.asyncio
    async def test_metadata_is_batched(self, service, transport):
        transport.enqueue(transport.page([]), transport.page([]))
        await service.fetch_tag_metadata([f"g{n}" for n in range(1, 151)])
        assert [call.json_body["results"] for call in transport.calls] == [100, 50]


class TestStoreLinksAndStats:
    @pytest.mark.asyncio
    async def test_store_links_query(self, service, transport):
        transport.enqueue(
            transport.page(
                [{"id": "r1", "extlinks": [{"url": "https://gog.com/x", "label": "GOG"}]}],
            ),
        )

        links = await service.fetch_store_links("v17")

        body = transport.calls[0].json_body
        assert transport.calls[0].path == "/release"
        assert body["filters"] == ["vn", "=", ["id", "=", "v17"]]
        assert body["sort"] == "released"
        assert body["reverse"] is True
        assert links[0].label == "GOG"

    @pytest.mark.asyncio
    async def test_statistics(self, service, transport):
        transport.enqueue(transport.ok({"vn": 5, "chars": 7}))

        stats = await service.fetch_statistics()
        again = await service.fetch_statistics()

        assert transport.calls[0].method == "GET"
        assert stats.titles == 5
        assert stats == again
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_statistics_rate_limited(self, service, transport):
        transport.enqueue(transport.failure(429))
        with pytest.raises(TransportFailure) as exc_info:
            await service.fetch_statistics()
        assert exc_info.value.code == ErrorCode.API_RATE_LIMIT
