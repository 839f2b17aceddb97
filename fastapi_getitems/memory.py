"""In-memory evaluation of compiled queries over Python objects."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Sequence

from fastapi_getitems.expressions import (
    BIT_TESTS,
    COMPARATORS,
    And,
    BitTest,
    CompiledQuery,
    Compare,
    Constant,
    CountEquals,
    InSet,
    IsNull,
    Match,
    Not,
    Or,
    OrderKey,
    Predicate,
    Quantified,
    Related,
)
from fastapi_getitems.fields import FieldAccessor
from fastapi_getitems.filters import as_int, ordinal


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _read(field: FieldAccessor, owner: Any) -> Any:
    return _normalize(field.read(owner))


def _matches(member: str, mode: str, value: str) -> bool:
    if mode == "startswith":
        return member.startswith(value)
    if mode == "endswith":
        return member.endswith(value)
    return value in member


def evaluate(predicate: Predicate, item: Any) -> bool:
    """
    Evaluate a predicate against one object.

    Args:
        predicate: Predicate relative to ``item``
        item: Entity instance

    Returns:
        bool: Whether the object satisfies the predicate
    """
    if isinstance(predicate, Constant):
        return predicate.value
    if isinstance(predicate, And):
        return evaluate(predicate.left, item) and evaluate(predicate.right, item)
    if isinstance(predicate, Or):
        return evaluate(predicate.left, item) or evaluate(predicate.right, item)
    if isinstance(predicate, Not):
        return not evaluate(predicate.operand, item)
    if isinstance(predicate, IsNull):
        return _read(predicate.field, item) is None

    if isinstance(predicate, Compare):
        member = _read(predicate.field, item)
        if predicate.op in ("eq", "ne"):
            return COMPARATORS[predicate.op](member, predicate.value)
        if member is None:
            return False
        if isinstance(member, Enum):
            return COMPARATORS[predicate.op](ordinal(member), ordinal(predicate.value))
        return COMPARATORS[predicate.op](member, predicate.value)

    if isinstance(predicate, InSet):
        return _read(predicate.field, item) in predicate.values

    if isinstance(predicate, Match):
        member = _read(predicate.field, item)
        if member is None:
            return False
        if predicate.case_insensitive:
            return _matches(member.casefold(), predicate.mode, predicate.value.casefold())
        return _matches(member, predicate.mode, predicate.value)

    if isinstance(predicate, BitTest):
        member = _read(predicate.field, item)
        if member is None:
            return False
        return BIT_TESTS[predicate.mode](as_int(member) & predicate.mask, predicate.mask)

    if isinstance(predicate, Related):
        related = predicate.relation.read(item)
        return related is not None and evaluate(predicate.inner, related)

    if isinstance(predicate, Quantified):
        elements = predicate.relation.read(item) or ()
        if predicate.quantifier == "all":
            return all(evaluate(predicate.inner, e) for e in elements)
        return any(evaluate(predicate.inner, e) for e in elements)

    if isinstance(predicate, CountEquals):
        elements = predicate.relation.read(item) or ()
        matching = sum(1 for e in elements if evaluate(predicate.inner, e))
        return (matching != predicate.count) if predicate.negate else (matching == predicate.count)

    raise TypeError(f"Cannot evaluate predicate of type {type(predicate).__name__}")


def _sort_value(key: OrderKey, item: Any) -> Any:
    owner = item
    for scope in key.path.scopes:
        owner = scope.accessor.read(owner)
        if owner is None:
            return None
    return _read(key.path.leaf, owner)


def _sort_key(key: OrderKey):
    def extract(item: Any):
        value = _sort_value(key, item)
        if isinstance(value, Enum):
            value = ordinal(value)
        return (False, 0) if value is None else (True, value)

    return extract


def order(items: Iterable[Any], ordering: Sequence[OrderKey]) -> List[Any]:
    """
    Sort objects by an ordering.

    Sorting is stable: keys are applied from last to first. ``None`` sorts
    before any value in ascending order.
    """
    result = list(items)
    for key in reversed(ordering):
        result.sort(key=_sort_key(key), reverse=key.descending)
    return result


def apply(items: Iterable[Any], compiled: CompiledQuery) -> List[Any]:
    """Filter and order objects by a compiled query."""
    matching = (item for item in items if evaluate(compiled.predicate, item))
    return order(matching, compiled.ordering)
