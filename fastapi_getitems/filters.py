"""Predicate compiler with strategy pattern for operator handling."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from fastapi_getitems.coercion import parse_value
from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.expressions import (
    FALSE,
    TRUE,
    BitTest,
    Compare,
    CountEquals,
    InSet,
    IsNull,
    Match,
    Predicate,
    Quantified,
    Related,
    conjoin,
    disjoin,
    negate,
)
from fastapi_getitems.fields import FieldAccessor, PropertyPathResolver, ResolvedPath
from fastapi_getitems.matchers import CaseInsensitiveMatcher
from fastapi_getitems.models import ArrayMode, FilterLogic, FilterOperator, GetItemsFilter

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
TEMPORAL = "temporal"
ENUM = "enum"
BOOLEAN = "boolean"
STRING = "string"
OTHER = "other"

EQUALITY_PRECISION = timedelta(milliseconds=1)

CONTAINS_ALL_OPERATORS = (FilterOperator.CONTAINS_ALL, FilterOperator.NOT_CONTAINS_ALL)


@dataclass(frozen=True)
class Operand:
    """Parsed filter value(s) plus the case-insensitive matcher in effect."""

    value: Any
    values: Optional[Tuple[Any, ...]]
    matcher: CaseInsensitiveMatcher


# Type alias for operator strategy functions
OperatorStrategyFn = Callable[[FieldAccessor, Operand], Predicate]


def category_of(python_type: Optional[type]) -> str:
    """
    Classify a python type for operator dispatch.

    Args:
        python_type: Python type of a field

    Returns:
        str: One of numeric, temporal, enum, boolean, string or other
    """
    if not isinstance(python_type, type):
        return OTHER
    if python_type is bool:
        return BOOLEAN
    if issubclass(python_type, Enum):
        return ENUM
    if issubclass(python_type, (datetime, date)):
        return TEMPORAL
    if issubclass(python_type, (int, float, Decimal)):
        return NUMERIC
    if issubclass(python_type, str):
        return STRING
    return OTHER


def is_integral(python_type: Optional[type]) -> bool:
    """True for int and for enums whose members all have int values."""
    if not isinstance(python_type, type) or python_type is bool:
        return False
    if issubclass(python_type, Enum):
        return all(isinstance(m.value, int) for m in python_type.__members__.values())
    return issubclass(python_type, int)


def as_int(value: Any) -> int:
    if isinstance(value, Enum):
        return int(value.value)
    return int(value)


def ordinal(member: Enum) -> int:
    """Ordering rank of an enum member: its int value, else its definition index."""
    if isinstance(member.value, int) and not isinstance(member.value, bool):
        return member.value
    return list(type(member)).index(member)


def truncate_to_precision(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def _guard(field: FieldAccessor, predicate: Predicate) -> Predicate:
    """Require an optional member to hold a value before testing it."""
    if not field.nullable:
        return predicate
    return conjoin(negate(IsNull(field)), predicate)


def _membership(field: FieldAccessor, operand: Operand) -> Predicate:
    return _guard(field, InSet(field, operand.values or ()))


# --- Strategy functions for each filter operator ---


def _strategy_neq(field: FieldAccessor, operand: Operand) -> Predicate:
    if operand.value is None:
        return negate(IsNull(field))
    condition = Compare(field, "ne", operand.value)
    if field.nullable:
        return disjoin(IsNull(field), condition)
    return condition


def _strategy_eq(field: FieldAccessor, operand: Operand) -> Predicate:
    if operand.value is not None and category_of(field.python_type) == TEMPORAL:
        if isinstance(operand.value, datetime):
            low = truncate_to_precision(operand.value)
            in_range = conjoin(
                Compare(field, "ge", low),
                Compare(field, "lt", low + EQUALITY_PRECISION),
            )
            return _guard(field, in_range)
        return _guard(field, Compare(field, "eq", operand.value))
    return negate(_strategy_neq(field, operand))


def _comparison(op: str) -> OperatorStrategyFn:
    def strategy(field: FieldAccessor, operand: Operand) -> Predicate:
        if category_of(field.python_type) not in (NUMERIC, TEMPORAL, ENUM):
            return FALSE
        if operand.value is None:
            return FALSE
        return _guard(field, Compare(field, op, operand.value))

    return strategy


def _string_match(mode: str) -> OperatorStrategyFn:
    def strategy(field: FieldAccessor, operand: Operand) -> Predicate:
        if operand.values or operand.value is None:
            return FALSE
        if category_of(field.python_type) != STRING:
            return FALSE
        return _guard(field, Match(field, mode, operand.value))

    return strategy


def _strategy_contains(field: FieldAccessor, operand: Operand) -> Predicate:
    if operand.values:
        return _membership(field, operand)
    if category_of(field.python_type) != STRING or operand.value is None:
        return FALSE
    return _guard(field, Match(field, "contains", operand.value))


def _strategy_not_contains(field: FieldAccessor, operand: Operand) -> Predicate:
    return negate(_strategy_contains(field, operand))


def _case_insensitive_match(mode: str) -> OperatorStrategyFn:
    def strategy(field: FieldAccessor, operand: Operand) -> Predicate:
        operand.matcher.ensure_available()
        if operand.values or operand.value is None:
            return FALSE
        if category_of(field.python_type) != STRING:
            return FALSE
        return _guard(field, Match(field, mode, operand.value, operand.matcher))

    return strategy


def _strategy_inot_contains(field: FieldAccessor, operand: Operand) -> Predicate:
    return negate(_case_insensitive_match("contains")(field, operand))


def _require_values(operand: Operand) -> None:
    if not operand.values:
        raise ConfigurationError(
            "contains_all and not_contains_all only work with a values list, not a single value."
        )


def _strategy_contains_all(field: FieldAccessor, operand: Operand) -> Predicate:
    _require_values(operand)
    return _membership(field, operand)


def _strategy_not_contains_all(field: FieldAccessor, operand: Operand) -> Predicate:
    _require_values(operand)
    return negate(_membership(field, operand))


def _flag(mode: str, boolean_op: str) -> OperatorStrategyFn:
    def strategy(field: FieldAccessor, operand: Operand) -> Predicate:
        if operand.value is None:
            return FALSE
        if category_of(field.python_type) == BOOLEAN:
            return _guard(field, Compare(field, boolean_op, operand.value))
        if not is_integral(field.python_type):
            return FALSE
        return _guard(field, BitTest(field, as_int(operand.value), mode))

    return strategy


# Strategy registry: maps FilterOperator -> handler function
OPERATOR_STRATEGIES: Dict[FilterOperator, OperatorStrategyFn] = {
    FilterOperator.EQ: _strategy_eq,
    FilterOperator.NEQ: _strategy_neq,
    FilterOperator.LT: _comparison("lt"),
    FilterOperator.LTE: _comparison("le"),
    FilterOperator.GT: _comparison("gt"),
    FilterOperator.GTE: _comparison("ge"),
    FilterOperator.STARTS_WITH: _string_match("startswith"),
    FilterOperator.ENDS_WITH: _string_match("endswith"),
    FilterOperator.CONTAINS: _strategy_contains,
    FilterOperator.NOT_CONTAINS: _strategy_not_contains,
    FilterOperator.ISTARTS_WITH: _case_insensitive_match("startswith"),
    FilterOperator.IENDS_WITH: _case_insensitive_match("endswith"),
    FilterOperator.ICONTAINS: _case_insensitive_match("contains"),
    FilterOperator.INOT_CONTAINS: _strategy_inot_contains,
    FilterOperator.CONTAINS_ALL: _strategy_contains_all,
    FilterOperator.NOT_CONTAINS_ALL: _strategy_not_contains_all,
    FilterOperator.FLAG: _flag("all", "eq"),
    FilterOperator.NOT_FLAG: _flag("none", "ne"),
    FilterOperator.ANY_FLAG: _flag("any", "eq"),
    FilterOperator.NOT_ANY_FLAG: _flag("not_all", "ne"),
}


def combine(left: Predicate, right: Predicate, logic: FilterLogic) -> Predicate:
    if logic == FilterLogic.OR:
        return disjoin(left, right)
    return conjoin(left, right)


def id_set_predicate(
    id_field: Optional[FieldAccessor],
    ids: Optional[Iterable[Any]],
    except_ids: Optional[Iterable[Any]],
) -> Predicate:
    """
    Build inclusion/exclusion predicates from id lists.

    Args:
        id_field: Identifier accessor of the entity
        ids: Only keep entities with these ids
        except_ids: Drop entities with these ids

    Returns:
        Predicate: Membership predicate (TRUE when both lists are empty)

    Raises:
        ConfigurationError: If ids are given without an identifier field
    """
    include = tuple(dict.fromkeys(ids or ()))
    exclude = tuple(dict.fromkeys(except_ids or ()))
    if not include and not exclude:
        return TRUE
    if id_field is None:
        raise ConfigurationError(
            "An id field must be provided when using ids or except_ids "
            "(e.g. id_field='id')."
        )
    predicate: Predicate = TRUE
    if include:
        predicate = InSet(id_field, include)
    if exclude:
        predicate = conjoin(predicate, negate(InSet(id_field, exclude)))
    return predicate


class PredicateCompiler:
    """
    Compiles filter trees into one predicate.

    Uses the strategy pattern to dispatch operators. Custom strategies can be
    registered to extend or override operators.
    """

    def __init__(self, resolver: PropertyPathResolver, matcher: CaseInsensitiveMatcher):
        """
        Initialize PredicateCompiler.

        Args:
            resolver: Resolves field keys to accessor paths
            matcher: Case-insensitive matcher selected by the options
        """
        self.resolver = resolver
        self.matcher = matcher

    def compile(self, filters: Optional[List[GetItemsFilter]]) -> Predicate:
        """
        Compile sibling filters, folding each onto the previous with its own logic.

        Args:
            filters: Filter nodes (None or empty compiles to TRUE)

        Returns:
            Predicate: Combined predicate
        """
        result: Optional[Predicate] = None
        for node in filters or ():
            predicate = self.compile_node(node)
            result = predicate if result is None else combine(result, predicate, node.logic)
        return TRUE if result is None else result

    def compile_node(self, node: GetItemsFilter) -> Predicate:
        nested = self.compile(node.filters) if node.filters else None
        if node.field is None:
            return TRUE if nested is None else nested

        path = self.resolver.resolve(node.field)
        if path is None:
            logger.debug("Field %s maps to an empty path; only nested filters apply", node.field)
            return TRUE if nested is None else nested

        own = self.field_predicate(node, path)
        if nested is None:
            return own
        return combine(own, nested, node.filters_logic)

    def field_predicate(self, node: GetItemsFilter, path: ResolvedPath) -> Predicate:
        """
        Build the predicate of a node's own field, wrapped in its relationship scopes.

        Args:
            node: Filter node with a field
            path: Resolved path of the node's field

        Returns:
            Predicate: Predicate relative to the root entity
        """
        operand = self.operand(node, path.leaf)
        collection = path.collection_scope

        count: Optional[Tuple[int, bool]] = None
        if collection is not None and node.operator in CONTAINS_ALL_OPERATORS and operand.values:
            inner = _membership(path.leaf, operand)
            count = (len(operand.values), node.operator == FilterOperator.NOT_CONTAINS_ALL)
        else:
            inner = OPERATOR_STRATEGIES[node.operator](path.leaf, operand)

        for scope in reversed(path.scopes):
            if not scope.is_collection:
                inner = Related(scope.accessor, inner)
            elif count is not None:
                inner = CountEquals(scope.accessor, inner, count[0], negate=count[1])
            else:
                quantifier = "all" if node.array_mode == ArrayMode.ALL else "any"
                inner = Quantified(scope.accessor, quantifier, inner)
        return inner

    def operand(self, node: GetItemsFilter, leaf: FieldAccessor) -> Operand:
        value = parse_value(node.value, leaf.python_type, field=node.field, length=leaf.length)
        values = None
        if node.values:
            parsed = (
                parse_value(v, leaf.python_type, field=node.field, length=leaf.length)
                for v in node.values
            )
            values = tuple(dict.fromkeys(parsed))
        return Operand(value=value, values=values, matcher=self.matcher)

    @staticmethod
    def register_strategy(operator: FilterOperator, strategy: OperatorStrategyFn) -> None:
        """
        Register a custom strategy for an operator.

        Args:
            operator: The FilterOperator to register for
            strategy: A callable with signature (field, operand) -> Predicate

        Example:
            def exact_eq(field, operand):
                return Compare(field, "eq", operand.value)

            PredicateCompiler.register_strategy(FilterOperator.EQ, exact_eq)
        """
        OPERATOR_STRATEGIES[operator] = strategy
