"""Entity identifier normalization.

Every record the catalog returns is keyed by a prefixed identifier such as
``v17`` or ``c1234``, but the remote is not consistent about the form: some
endpoints return bare integers, some return strings with or without the
prefix, and casing varies. All identity comparisons in vnbrowse go through
:func:`normalize_identifier` so that ``12``, ``"12"``, ``"v12"`` and ``"V12"``
collapse onto the same key.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

_PREFIXED = re.compile(r"^([a-z])(\d+)$")
_DIGITS = re.compile(r"^\d+$")


class EntityKind(str, Enum):
    """Identifier namespaces and their prefixes."""

    TITLE = "v"
    CHARACTER = "c"
    TRAIT = "i"
    RELEASE = "r"
    TAG = "g"
    PRODUCER = "p"
    USER = "u"


def normalize_identifier(raw: Any, kind: EntityKind = EntityKind.TITLE) -> str:
    """Return the canonical identifier for ``raw``.

    Integers become ``<prefix><value>``. Strings are stripped and lowercased,
    and the prefix is added only when missing. The function is idempotent.

    Raises:
        ValueError: If ``raw`` is empty, a boolean or otherwise not an identifier.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Not an identifier: {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"Not an identifier: {raw!r}")
        return f"{kind.value}{raw}"
    if isinstance(raw, float) and raw.is_integer() and raw >= 0:
        return f"{kind.value}{int(raw)}"
    if not isinstance(raw, str):
        raise ValueError(f"Not an identifier: {raw!r}")

    text = raw.strip().lower()
    if not text:
        raise ValueError("Identifier is empty")
    if _DIGITS.match(text):
        return f"{kind.value}{int(text)}"
    match = _PREFIXED.match(text)
    if match is None:
        raise ValueError(f"Not an identifier: {raw!r}")
    return f"{match.group(1)}{int(match.group(2))}"


def try_normalize_identifier(
    raw: Any,
    kind: EntityKind = EntityKind.TITLE,
) -> str | None:
    """Like :func:`normalize_identifier` but returns ``None`` on bad input."""
    try:
        return normalize_identifier(raw, kind)
    except ValueError:
        return None


def numeric_part(identifier: str) -> int:
    """Return the numeric part of a normalized identifier."""
    return int(identifier[1:])
