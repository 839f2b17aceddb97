"""FilterBuilder API for creating filter trees with a fluent interface."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from fastapi_getitems.models import ArrayMode, FilterLogic, FilterOperator, GetItemsFilter

Scalar = Union[str, int, float, bool, date, datetime, Enum]


class FieldBuilder:
    """
    Builder for a single field's filter condition.

    Provides a fluent interface for building filter conditions on a specific field.
    """

    def __init__(
        self,
        filter_builder: "FilterBuilder",
        field: Any,
        logic: FilterLogic = FilterLogic.AND,
        array_mode: ArrayMode = ArrayMode.ANY,
    ):
        """
        Initialize FieldBuilder.

        Args:
            filter_builder: Parent FilterBuilder instance
            field: Field key to build the filter for
            logic: How the filter combines with the previous one
            array_mode: Quantifier used when the field's path crosses a collection
        """
        self._filter_builder = filter_builder
        self._field = field
        self._logic = logic
        self._array_mode = array_mode

    def _add_filter(
        self,
        operator: FilterOperator,
        value: Optional[Scalar] = None,
        values: Optional[Iterable[Scalar]] = None,
    ) -> "FilterBuilder":
        """Add a filter and return the parent builder."""
        self._filter_builder._filters.append(
            GetItemsFilter(
                field=self._field,
                operator=operator,
                value=None if value is None else self._to_str(value),
                values=None if values is None else [self._to_str(v) for v in values],
                logic=self._logic,
                array_mode=self._array_mode,
            )
        )
        return self._filter_builder

    @staticmethod
    def _to_str(value: Scalar) -> str:
        """Convert a value to string representation."""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return str(value)

    def eq(self, value: Optional[Scalar]) -> "FilterBuilder":
        """
        Equal to. ``None`` matches members without a value.

        Args:
            value: Value to compare against

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.EQ, value)

    def neq(self, value: Optional[Scalar]) -> "FilterBuilder":
        """
        Not equal to. ``None`` matches members holding a value.

        Args:
            value: Value to compare against

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.NEQ, value)

    def is_null(self) -> "FilterBuilder":
        return self._add_filter(FilterOperator.EQ)

    def is_not_null(self) -> "FilterBuilder":
        return self._add_filter(FilterOperator.NEQ)

    def lt(self, value: Scalar) -> "FilterBuilder":
        """Less than (numeric, temporal, enum ordinal)."""
        return self._add_filter(FilterOperator.LT, value)

    def lte(self, value: Scalar) -> "FilterBuilder":
        """Less than or equal to."""
        return self._add_filter(FilterOperator.LTE, value)

    def gt(self, value: Scalar) -> "FilterBuilder":
        """Greater than."""
        return self._add_filter(FilterOperator.GT, value)

    def gte(self, value: Scalar) -> "FilterBuilder":
        """Greater than or equal to."""
        return self._add_filter(FilterOperator.GTE, value)

    def starts_with(self, prefix: str) -> "FilterBuilder":
        """
        Starts with prefix (case-sensitive, subject to the database collation).

        Args:
            prefix: String prefix to match

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.STARTS_WITH, prefix)

    def ends_with(self, suffix: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.ENDS_WITH, suffix)

    def contains(self, substring: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.CONTAINS, substring)

    def not_contains(self, substring: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.NOT_CONTAINS, substring)

    def istarts_with(self, prefix: str) -> "FilterBuilder":
        """
        Starts with prefix, case-insensitive.

        Rendered by the configured case-insensitive provider.

        Args:
            prefix: String prefix to match

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.ISTARTS_WITH, prefix)

    def iends_with(self, suffix: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.IENDS_WITH, suffix)

    def icontains(self, substring: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.ICONTAINS, substring)

    def inot_contains(self, substring: str) -> "FilterBuilder":
        return self._add_filter(FilterOperator.INOT_CONTAINS, substring)

    def in_(self, values: Iterable[Scalar]) -> "FilterBuilder":
        """
        Member is one of the values.

        Args:
            values: Values to match against

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.CONTAINS, values=values)

    def not_in(self, values: Iterable[Scalar]) -> "FilterBuilder":
        """
        Member is none of the values.

        Args:
            values: Values to exclude

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.NOT_CONTAINS, values=values)

    def contains_all(self, values: Iterable[Scalar]) -> "FilterBuilder":
        """
        Collection holds every one of the values.

        Args:
            values: Values that must all be present

        Returns:
            FilterBuilder: Parent builder for chaining
        """
        return self._add_filter(FilterOperator.CONTAINS_ALL, values=values)

    def not_contains_all(self, values: Iterable[Scalar]) -> "FilterBuilder":
        return self._add_filter(FilterOperator.NOT_CONTAINS_ALL, values=values)

    def flag(self, mask: Union[int, Enum]) -> "FilterBuilder":
        """All bits of the mask are set."""
        return self._add_filter(FilterOperator.FLAG, mask)

    def not_flag(self, mask: Union[int, Enum]) -> "FilterBuilder":
        """No bit of the mask is set."""
        return self._add_filter(FilterOperator.NOT_FLAG, mask)

    def any_flag(self, mask: Union[int, Enum]) -> "FilterBuilder":
        """At least one bit of the mask is set."""
        return self._add_filter(FilterOperator.ANY_FLAG, mask)

    def not_any_flag(self, mask: Union[int, Enum]) -> "FilterBuilder":
        """Not all bits of the mask are set."""
        return self._add_filter(FilterOperator.NOT_ANY_FLAG, mask)


class FilterBuilder:
    """
    Fluent builder for creating filter trees.

    Example usage:
        filters = (
            FilterBuilder()
            .where(BookField.PAGES).gte(100)
            .or_group(
                FilterBuilder()
                .where(BookField.TITLE).istarts_with("the")
                .where(BookField.TAGS, array_mode=ArrayMode.ALL).neq("draft")
            )
            .build()
        )

    This creates a list of GetItemsFilter objects for GetItemsRequest.filters.
    """

    def __init__(self):
        """Initialize an empty FilterBuilder."""
        self._filters: List[GetItemsFilter] = []

    def where(self, field: Any, array_mode: ArrayMode = ArrayMode.ANY) -> FieldBuilder:
        """
        Start building a filter ANDed with the previous one.

        Args:
            field: Field key to filter on
            array_mode: Quantifier used when the field's path crosses a collection

        Returns:
            FieldBuilder: Builder for the field's filter condition
        """
        return FieldBuilder(self, field, FilterLogic.AND, array_mode)

    def or_where(self, field: Any, array_mode: ArrayMode = ArrayMode.ANY) -> FieldBuilder:
        """
        Start building a filter ORed with the previous one.

        Args:
            field: Field key to filter on
            array_mode: Quantifier used when the field's path crosses a collection

        Returns:
            FieldBuilder: Builder for the field's filter condition
        """
        return FieldBuilder(self, field, FilterLogic.OR, array_mode)

    def group(self, builder: "FilterBuilder", logic: FilterLogic = FilterLogic.AND) -> "FilterBuilder":
        """
        Add the filters of another builder as one parenthesized group.

        Args:
            builder: Builder holding the grouped filters
            logic: How the group combines with the previous filter

        Returns:
            FilterBuilder: Self for chaining
        """
        nested = builder.build()
        if nested:
            self._filters.append(GetItemsFilter(logic=logic, filters=nested))
        return self

    def or_group(self, builder: "FilterBuilder") -> "FilterBuilder":
        """Add a group ORed with the previous filter."""
        return self.group(builder, FilterLogic.OR)

    def add_filter(
        self,
        field: Any,
        operator: FilterOperator,
        value: Optional[str] = None,
        values: Optional[List[str]] = None,
        logic: FilterLogic = FilterLogic.AND,
    ) -> "FilterBuilder":
        """
        Add a filter directly.

        Args:
            field: Field key
            operator: Filter operator
            value: Filter value as string
            values: Filter values as strings
            logic: How the filter combines with the previous one

        Returns:
            FilterBuilder: Self for chaining
        """
        self._filters.append(
            GetItemsFilter(field=field, operator=operator, value=value, values=values, logic=logic)
        )
        return self

    def add_filters(self, filters: List[GetItemsFilter]) -> "FilterBuilder":
        """
        Add multiple filters at once.

        Args:
            filters: List of GetItemsFilter objects to add

        Returns:
            FilterBuilder: Self for chaining
        """
        self._filters.extend(filters)
        return self

    def build(self) -> Optional[List[GetItemsFilter]]:
        """
        Build and return the list of filters.

        Returns:
            Optional[List[GetItemsFilter]]: List of filters, or None if empty
        """
        return list(self._filters) if self._filters else None

    def __len__(self) -> int:
        """Return the number of filters."""
        return len(self._filters)

    def __bool__(self) -> bool:
        """Return True if there are any filters."""
        return bool(self._filters)
