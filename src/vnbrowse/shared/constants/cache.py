"""
Cache Configuration Constants

TTL and namespace names shared by the response cache and the gateway.
"""

from .system import BASE_MINUTE


class CacheConfig:
    """Response cache constants."""

    # All read caches share one fixed TTL
    TTL = 5 * BASE_MINUTE
    KEY_SEPARATOR = ":"


class CacheNamespace:
    """Cache namespaces, one per family of reads."""

    SEARCH = "search"
    LOOKUP = "lookup"
    PERSONAL_LIST = "personal-list"
    DETAILS = "details"
    CHARACTERS = "characters"
    METADATA = "metadata"
    RELEASES = "releases"
    STATS = "stats"
