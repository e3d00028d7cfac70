"""Tests for filter expression building.

Clause order is part of the remote contract, so these tests assert exact
tree shapes.
"""

import pytest

from vnbrowse.core.filters import (
    DEFAULT_SLICE_CLAUSE,
    build_filter_expression,
    build_identifier_filter,
    build_sort_parameters,
)
from vnbrowse.core.models import (
    FilterState,
    QueryDescriptor,
    QueryKind,
    SortDirection,
    SortField,
    SortState,
)


class TestPrimaryClause:
    def test_text_term_alone_is_unwrapped(self):
        # Given
        descriptor = QueryDescriptor.text("Steins;Gate")

        # When
        expression = build_filter_expression(descriptor)

        # Then
        assert expression == ["search", "=", "Steins;Gate"]

    def test_blank_term_gives_default_slice(self):
        expression = build_filter_expression(QueryDescriptor.text("   "))
        assert expression == DEFAULT_SLICE_CLAUSE == ["id", ">=", "v1"]

    def test_default_slice_is_a_copy(self):
        expression = build_filter_expression(QueryDescriptor.text(""))
        expression.append("mutated")
        assert DEFAULT_SLICE_CLAUSE == ["id", ">=", "v1"]

    def test_tag_clause_normalizes_identifier(self):
        expression = build_filter_expression(QueryDescriptor.for_tag("32", "Romance"))
        assert expression == ["tag", "=", "g32"]

    def test_developer_clause_uses_nested_relation(self):
        expression = build_filter_expression(QueryDescriptor.for_developer("P98"))
        assert expression == ["developer", "=", ["id", "=", "p98"]]

    def test_tag_takes_precedence_over_term(self):
        descriptor = QueryDescriptor(
            kind=QueryKind.TAG,
            term="ignored",
            tag_id="g1",
        )
        assert build_filter_expression(descriptor) == ["tag", "=", "g1"]


class TestFilterClauses:
    def test_text_with_two_languages(self):
        # Given
        descriptor = QueryDescriptor.text(
            "Steins;Gate",
            filters=FilterState(languages=("en", "ja")),
        )

        # When
        expression = build_filter_expression(descriptor)

        # Then
        assert expression == [
            "and",
            ["search", "=", "Steins;Gate"],
            ["or", ["lang", "=", "en"], ["lang", "=", "ja"]],
        ]

    def test_single_language_is_a_leaf(self):
        descriptor = QueryDescriptor.text("x", filters=FilterState(languages=("EN",)))
        assert build_filter_expression(descriptor) == [
            "and",
            ["search", "=", "x"],
            ["lang", "=", "en"],
        ]

    def test_all_filters_in_fixed_order(self):
        descriptor = QueryDescriptor.for_tag(
            "g7",
            filters=FilterState(
                languages=("en", "en", "de"),
                original_language="JA",
                only_with_screenshots=True,
                only_with_description=True,
            ),
        )
        assert build_filter_expression(descriptor) == [
            "and",
            ["tag", "=", "g7"],
            ["or", ["lang", "=", "en"], ["lang", "=", "de"]],
            ["olang", "=", "ja"],
            ["has_screenshot", "=", True],
            ["has_description", "=", True],
        ]

    def test_false_toggles_are_omitted(self):
        descriptor = QueryDescriptor.text(
            "",
            filters=FilterState(only_with_screenshots=False, only_with_description=True),
        )
        assert build_filter_expression(descriptor) == [
            "and",
            ["id", ">=", "v1"],
            ["has_description", "=", True],
        ]


class TestIdentifierFilter:
    def test_single_identifier(self):
        assert build_identifier_filter(["v1"]) == ["id", "=", "v1"]

    def test_several_identifiers(self):
        expected = ["or", ["id", "=", "v1"], ["id", "=", "v2"]]
        assert build_identifier_filter(["v1", "v2"]) == expected

    def test_empty_is_rejected(self):
        with pytest.raises(ValueError):
            build_identifier_filter([])


class TestSortParameters:
    def test_default_field_sends_nothing(self):
        sort = SortState(SortField.DEFAULT, SortDirection.ASC)
        assert build_sort_parameters(sort) == (None, None)

    @pytest.mark.parametrize(
        ("direction", "reverse"),
        [(SortDirection.DESC, True), (SortDirection.ASC, False)],
    )
    def test_field_and_direction(self, direction, reverse):
        assert build_sort_parameters(SortState(SortField.RATING, direction)) == ("rating", reverse)
