"""Browsing configuration model.

Page sizes, debounce timing and the default query state restored by
"home".
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from vnbrowse.shared.constants import Browsing, Paging

_SORT_FIELDS = ("default", "title", "released", "rating", "votecount", "id")
_SORT_DIRECTIONS = ("asc", "desc")


class BrowsingSettings(BaseModel):
    """Search, pagination and personal list behavior."""

    page_size: int = Field(
        default=Paging.SEARCH_PAGE_SIZE,
        gt=0,
        le=100,
        description="Results per search page",
    )
    debounce_ms: int = Field(
        default=Browsing.DEBOUNCE_MS,
        ge=0,
        description="Quiet period before a typed search is issued",
    )
    personal_list_page_size: int = Field(
        default=Paging.PERSONAL_LIST_PAGE_SIZE,
        gt=0,
        le=100,
        description="Results per personal list page",
    )
    max_personal_list_pages: int = Field(
        default=Paging.MAX_PERSONAL_LIST_PAGES,
        gt=0,
        description="Upper bound on personal list pages fetched",
    )
    hydration_batch_size: int = Field(
        default=Paging.IDENTIFIER_BATCH_SIZE,
        gt=0,
        le=100,
        description="Identifiers per hydration lookup",
    )
    recent_search_limit: int = Field(
        default=Browsing.RECENT_SEARCH_LIMIT,
        ge=0,
        description="Number of recent search terms remembered",
    )

    # Default query state
    default_sort_field: str = Field(default="default", description="Initial sort field")
    default_sort_direction: str = Field(default="desc", description="Initial sort direction")
    default_languages: list[str] = Field(
        default_factory=list,
        description="Language filter applied on home",
    )
    default_original_language: str | None = Field(
        default=None,
        description="Original language filter applied on home",
    )
    only_with_screenshots: bool = Field(default=False)
    only_with_description: bool = Field(default=False)

    @field_validator("default_sort_field")
    @classmethod
    def _check_sort_field(cls, value: str) -> str:
        value = value.lower()
        if value not in _SORT_FIELDS:
            msg = f"default_sort_field must be one of {', '.join(_SORT_FIELDS)}"
            raise ValueError(msg)
        return value

    @field_validator("default_sort_direction")
    @classmethod
    def _check_sort_direction(cls, value: str) -> str:
        value = value.lower()
        if value not in _SORT_DIRECTIONS:
            msg = "default_sort_direction must be 'asc' or 'desc'"
            raise ValueError(msg)
        return value


__all__ = ["BrowsingSettings"]
