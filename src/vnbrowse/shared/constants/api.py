"""
Catalog API Constants

Endpoints, field selections and paging limits for the visual novel
catalog API (kana).
"""

from typing import ClassVar

from .system import BASE_MINUTE


class APIConfig:
    """Transport level configuration."""

    BASE_URL = "https://api.vndb.org/kana"
    TIMEOUT = 30
    USER_AGENT = "vnbrowse/0.1"
    AUTH_SCHEME = "Token"

    # Public budget: 200 requests per 5 minutes
    RATE_LIMIT_REQUESTS = 200
    RATE_LIMIT_PERIOD = 5 * BASE_MINUTE


class Endpoint:
    """Remote endpoint paths."""

    TITLES = "/vn"
    CHARACTERS = "/character"
    TAGS = "/tag"
    TRAITS = "/trait"
    RELEASES = "/release"
    PRODUCERS = "/producer"
    PERSONAL_LIST = "/ulist"
    AUTH_INFO = "/authinfo"
    STATS = "/stats"

    @staticmethod
    def personal_list_entry(identifier: str) -> str:
        return f"/ulist/{identifier}"


class Paging:
    """Page sizes and loop bounds."""

    SEARCH_PAGE_SIZE = 20
    PERSONAL_LIST_PAGE_SIZE = 100
    MAX_PERSONAL_LIST_PAGES = 40
    # Practical cap for identifier-set lookups
    IDENTIFIER_BATCH_SIZE = 100
    RELATED_PAGE_SIZE = 100
    SHAPE_ATTEMPT_CAP = 2


class Fields:
    """Comma separated field selections."""

    TITLE_LIST = "id, title, rating, image.url, image.thumbnail, image.sexual"
    TITLE_CORE = (
        "id, title, rating, image.url, image.thumbnail, image.sexual, "
        "description, released"
    )
    TITLE_SUPPLEMENT = (
        "id, screenshots.url, screenshots.thumbnail, "
        "tags.id, tags.name, tags.category, tags.spoiler, tags.rating, "
        "relations.id, relations.title, relations.relation, "
        "developers.id, developers.name, developers.original"
    )
    PERSONAL_LIST_WITH_LABELS = (
        "id, labels.id, labels.label, vn.id, vn.title, vn.rating, "
        "vn.image.id, vn.image.url, vn.image.thumbnail, vn.image.sexual"
    )
    PERSONAL_LIST_MINIMAL = (
        "id, vn.id, vn.title, vn.rating, vn.image.id, vn.image.url, "
        "vn.image.thumbnail, vn.image.sexual"
    )
    PERSONAL_LIST_LABELS_ONLY = "id, labels.id, labels.label"
    MEMBERSHIP = "id"
    CHARACTER_LIST = "id, name, original, image.url, image.thumbnail, image.sexual"
    CHARACTER_DETAIL = (
        "id, name, original, description, image.url, image.thumbnail, image.sexual, "
        "traits.id, traits.name, traits.spoiler, vns.id, vns.title, vns.role"
    )
    CHARACTER_BY_TRAIT = (
        "id, name, original, image.url, image.thumbnail, image.sexual, vns.id, vns.title"
    )
    CHARACTER_NESTED_PREFIXES: ClassVar[tuple[str, ...]] = ("characters", "chars")

    @staticmethod
    def nested_characters(prefix: str) -> str:
        """Title field selection embedding characters under ``prefix``."""
        return ", ".join(
            ["id"]
            + [
                f"{prefix}.{name}"
                for name in (
                    "id",
                    "name",
                    "original",
                    "image.url",
                    "image.thumbnail",
                    "image.sexual",
                )
            ],
        )

    TAG_METADATA = "id, name, category"
    TRAIT_METADATA = "id, name, group_name"
    RELEASE_LINKS = (
        "id, title, released, official, freeware, "
        "extlinks.url, extlinks.label, extlinks.name, extlinks.id"
    )


class StoreLinks:
    """Release store links that are surfaced to the user."""

    ALLOWED_LABELS: ClassVar[frozenset[str]] = frozenset(
        {"steam", "jast usa", "jast", "gog", "mangagamer"},
    )


class StatsKeys:
    """Alternative spellings the stats endpoint has used for each counter."""

    CANDIDATES: ClassVar[dict[str, tuple[str, ...]]] = {
        "titles": ("vn", "vns", "visual_novels", "visualNovels"),
        "tags": ("tags", "tag"),
        "releases": ("releases", "release"),
        "producers": ("producers", "producer"),
        "staff": ("staff",),
        "characters": ("chars", "characters", "character"),
        "traits": ("traits", "trait"),
    }
