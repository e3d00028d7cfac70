"""Tests for ordered request-shape fallback."""

import pytest

from vnbrowse.services.vndb.request_shapes import RequestShape, run_shape_variants
from vnbrowse.shared.errors import ErrorCode, RejectedRequest, TransportFailure

SHAPES = (
    RequestShape("rich", {"v": 1}),
    RequestShape("plain", {"v": 2}),
    RequestShape("legacy", {"v": 3}),
)


class Sender:
    def __init__(self, outcomes):
        self.outcomes = dict(outcomes)
        self.sent = []

    async def __call__(self, shape):
        self.sent.append(shape.name)
        outcome = self.outcomes.get(shape.name, "ok")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestRunShapeVariants:
    """Shape fallback behavior."""

    @pytest.mark.asyncio
    async def test_first_shape_success(self):
        send = Sender({})
        assert await run_shape_variants(SHAPES, send) == "ok"
        assert send.sent == ["rich"]

    @pytest.mark.asyncio
    async def test_rejection_moves_to_next_shape(self):
        # Given
        send = Sender({"rich": RejectedRequest("bad field", status_code=400)})

        # When
        result = await run_shape_variants(SHAPES, send)

        # Then
        assert result == "ok"
        assert send.sent == ["rich", "plain"]

    @pytest.mark.asyncio
    async def test_attempts_are_capped(self):
        # Given: every shape is rejected
        send = Sender(
            {name: RejectedRequest(name, status_code=400) for name in ("rich", "plain", "legacy")},
        )

        # When / Then: the default cap stops after two shapes
        with pytest.raises(RejectedRequest, match="plain"):
            await run_shape_variants(SHAPES, send)
        assert send.sent == ["rich", "plain"]

    @pytest.mark.asyncio
    async def test_larger_cap_tries_all_shapes(self):
        send = Sender(
            {
                "rich": RejectedRequest("r", status_code=400),
                "plain": RejectedRequest("p", status_code=422),
            },
        )
        assert await run_shape_variants(SHAPES, send, max_attempts=3) == "ok"
        assert send.sent == ["rich", "plain", "legacy"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_not_retried(self):
        failure = TransportFailure(ErrorCode.API_SERVER_ERROR, "down", status_code=500)
        send = Sender({"rich": failure})
        with pytest.raises(TransportFailure):
            await run_shape_variants(SHAPES, send)
        assert send.sent == ["rich"]

    @pytest.mark.asyncio
    async def test_no_shapes(self):
        with pytest.raises(ValueError):
            await run_shape_variants((), Sender({}))
