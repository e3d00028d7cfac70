"""Ordered request-shape variants.

Some request payloads use fields or forms that not every deployment of the
remote accepts. Call sites list the shapes they can send, richest first, and
:func:`run_shape_variants` tries them in order. Only a rejected request
(client-error status) moves on to the next shape; any other failure
surfaces immediately. The number of attempts is capped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from vnbrowse.shared.constants import Paging
from vnbrowse.shared.errors import RejectedRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RequestShape:
    name: str
    payload: Any


async def run_shape_variants(
    shapes: Sequence[RequestShape],
    send: Callable[[RequestShape], Awaitable[T]],
    max_attempts: int = Paging.SHAPE_ATTEMPT_CAP,
) -> T:
    """Send each shape until one succeeds.

    Returns:
        The first successful result.

    Raises:
        RejectedRequest: The last rejection once every allowed shape failed.
        ValueError: If no shapes were given.
    """
    if not shapes:
        raise ValueError("At least one request shape is required")

    *fallible, last = shapes[: max(1, max_attempts)]
    for shape in fallible:
        try:
            return await send(shape)
        except RejectedRequest as e:
            logger.debug(
                "Request shape '%s' rejected with status %s, trying next shape",
                shape.name,
                e.status_code,
            )
    return await send(last)
