"""End-to-end filtering tests, run against SQLite and against the in-memory source."""

import pytest

from fastapi_getitems import GetItemsFilter, GetItemsRequest
from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.models import ArrayMode, FilterLogic, FilterOperator
from tests.models import BookField


def filter_ids(manager, source, *filters):
    result = manager.get_items(source, GetItemsRequest(filters=list(filters)))
    return [book.id for book in result.items]


def node(field, operator=FilterOperator.EQ, value=None, **kwargs):
    return GetItemsFilter(field=field, operator=operator, value=value, **kwargs)


class TestEquality:
    def test_eq(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.PAGES, value="300")) == [2, 5]

    def test_eq_null(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.PRICE)) == [2]

    def test_neq_null(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.PRICE, FilterOperator.NEQ))
        assert ids == [1, 3, 4, 5]

    def test_neq_keeps_missing_values(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.PRICE, FilterOperator.NEQ, "20"))
        assert ids == [2, 3, 4, 5]

    def test_enum_by_name_and_value(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.GENRE, value="SCIENCE")) == [1, 2]
        assert filter_ids(manager, book_source, node(BookField.GENRE, value="history")) == [3]

    def test_boolean(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.AVAILABLE, value="0")) == [3]

    def test_datetime_same_millisecond(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.PUBLISHED_AT, value="2024-01-01T10:00:00.123")
        )
        assert ids == [1]

    def test_datetime_with_offset(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(BookField.PUBLISHED_AT, value="2024-01-01T11:00:00.123+01:00"),
        )
        assert ids == [1]

    def test_datetime_next_millisecond_does_not_match(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.PUBLISHED_AT, value="2024-01-01T10:00:00.124")
        )
        assert ids == []

    def test_flexible_uuid(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.REF, value="{1234-5678}")) == [1]


class TestComparisons:
    def test_numeric(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.PAGES, FilterOperator.LT, "200"))
        assert ids == [1, 4]

    def test_optional_numeric_skips_missing(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.PRICE, FilterOperator.LTE, "35.5"))
        assert ids == [1, 3, 4]

    def test_temporal(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.PUBLISHED_AT, FilterOperator.GTE, "2023-01-01")
        )
        assert ids == [1, 2]

    def test_enum_ordinal(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.PRIORITY, FilterOperator.GTE, "MEDIUM")
        )
        assert ids == [1, 2, 5]

    def test_enum_definition_order(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.GENRE, FilterOperator.GT, "FICTION"))
        assert ids == [1, 2, 3]

    def test_string_comparison_matches_nothing(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.TITLE, FilterOperator.GT, "A"))
        assert ids == []


class TestStrings:
    def test_starts_with(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.STARTS_WITH, "Python")
        )
        assert ids == [1]

    def test_ends_with(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.ENDS_WITH, "Python")
        )
        assert ids == [5]

    def test_contains(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.CONTAINS, "Deep")
        )
        assert ids == [2]

    def test_contains_values_is_membership(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.PAGES, operator=FilterOperator.CONTAINS, values=["90", "420"]
            ),
        )
        assert ids == [3, 4]

    def test_not_contains_values(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.PAGES, operator=FilterOperator.NOT_CONTAINS, values=["90", "420"]
            ),
        )
        assert ids == [1, 2, 5]

    def test_istarts_with(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.ISTARTS_WITH, "the")
        )
        assert ids == [5]

    def test_iends_with(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.IENDS_WITH, "DIVE")
        )
        assert ids == [2]

    def test_icontains(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.ICONTAINS, "PYTHON")
        )
        assert ids == [1, 5]

    def test_inot_contains(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.INOT_CONTAINS, "python")
        )
        assert ids == [2, 3, 4]

    def test_percent_matches_literally(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.ICONTAINS, "%")
        )
        assert ids == [4]

    def test_underscore_matches_literally(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.TITLE, FilterOperator.ICONTAINS, "_")
        )
        assert ids == []


class TestFlags:
    @pytest.mark.parametrize(
        "operator,expected",
        [
            (FilterOperator.FLAG, [1, 5]),
            (FilterOperator.NOT_FLAG, [3, 4]),
            (FilterOperator.ANY_FLAG, [1, 2, 5]),
            (FilterOperator.NOT_ANY_FLAG, [2, 3, 4]),
        ],
    )
    def test_int_mask(self, manager, book_source, operator, expected):
        ids = filter_ids(manager, book_source, node(BookField.PERMISSIONS, operator, "3"))
        assert ids == expected

    def test_enum_mask(self, manager, book_source):
        # MEDIUM = 0b10 is set in MEDIUM (2) and HIGH (3)
        ids = filter_ids(
            manager, book_source, node(BookField.PRIORITY, FilterOperator.FLAG, "MEDIUM")
        )
        assert ids == [1, 2, 5]

    def test_boolean_flag(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.AVAILABLE, FilterOperator.NOT_FLAG, "true")
        )
        assert ids == [3]


class TestRelationships:
    def test_scalar_relationship(self, manager, book_source):
        ids = filter_ids(manager, book_source, node(BookField.AUTHOR_NAME, value="Ada"))
        assert ids == [1, 5]

    def test_optional_field_behind_relationship(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.AUTHOR_COUNTRY, FilterOperator.NEQ, "UK")
        )
        assert ids == [3]

    def test_named_transform(self, manager, book_source):
        ids = filter_ids(
            manager, book_source, node(BookField.AUTHOR_FULL_NAME, value="Alan Turing")
        )
        assert ids == [2]

    def test_named_transform_case_insensitive(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(BookField.AUTHOR_FULL_NAME, FilterOperator.ICONTAINS, "LOVELACE"),
        )
        assert ids == [1, 5]

    def test_collection_any(self, manager, book_source):
        assert filter_ids(manager, book_source, node(BookField.TAG, value="math")) == [3, 5]

    def test_collection_all(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(BookField.TAG, FilterOperator.NEQ, "sql", array_mode=ArrayMode.ALL),
        )
        # book 4 has no tags
        assert ids == [3, 4]

    def test_collection_membership(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.TAG, operator=FilterOperator.CONTAINS, values=["history", "python"]
            ),
        )
        assert ids == [1, 3, 5]

    def test_contains_all(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.TAG, operator=FilterOperator.CONTAINS_ALL, values=["python", "sql"]
            ),
        )
        assert ids == [1, 5]

    def test_contains_all_missing_value(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.TAG,
                operator=FilterOperator.CONTAINS_ALL,
                values=["python", "history"],
            ),
        )
        assert ids == []

    def test_contains_all_repeated_values_count_once(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.TAG, operator=FilterOperator.CONTAINS_ALL, values=["sql", "sql"]
            ),
        )
        assert ids == [1, 2, 5]

    def test_not_contains_all(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            GetItemsFilter(
                field=BookField.TAG,
                operator=FilterOperator.NOT_CONTAINS_ALL,
                values=["python", "sql"],
            ),
        )
        assert ids == [2, 3, 4]


class TestLogic:
    def test_or_siblings(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(BookField.PAGES, value="90"),
            node(BookField.PAGES, value="420", logic=FilterLogic.OR),
        )
        assert ids == [3, 4]

    def test_nested_group(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(BookField.TITLE, FilterOperator.STARTS_WITH, "Python"),
            GetItemsFilter(
                logic=FilterLogic.OR,
                filters=[
                    node(BookField.PAGES, FilterOperator.GTE, "300"),
                    node(BookField.GENRE, value="FICTION"),
                ],
            ),
        )
        assert ids == [1, 5]

    def test_own_condition_or_children(self, manager, book_source):
        ids = filter_ids(
            manager,
            book_source,
            node(
                BookField.AVAILABLE,
                value="false",
                filters=[node(BookField.PAGES, FilterOperator.LT, "100")],
                filters_logic=FilterLogic.OR,
            ),
        )
        assert ids == [3, 4]

    def test_no_filters_returns_everything(self, manager, book_source):
        assert filter_ids(manager, book_source) == [1, 2, 3, 4, 5]


class TestConfigurationErrors:
    def test_second_collection(self, manager, book_source):
        with pytest.raises(ConfigurationError):
            filter_ids(manager, book_source, node(BookField.TAG_BOOK_TITLE, value="x"))

    def test_unknown_field(self, manager, book_source):
        with pytest.raises(ConfigurationError):
            filter_ids(manager, book_source, node(BookField.UNKNOWN, value="x"))
