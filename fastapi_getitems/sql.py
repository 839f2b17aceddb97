"""Lowering of compiled queries to SQLAlchemy statements."""

from enum import Enum
from typing import Any, Callable, List

from sqlalchemy import ColumnElement, Select, and_, case, false, func, not_, or_, true
from sqlalchemy.orm import RelationshipProperty
from sqlmodel import select

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
from fastapi_getitems.filters import ordinal
from fastapi_getitems.matchers import LIKE_ESCAPE, like_pattern


def _is_enum(field: FieldAccessor) -> bool:
    return isinstance(field.python_type, type) and issubclass(field.python_type, Enum)


def _members_where(enum_cls: type, test: Callable[[Enum], bool]) -> List[Enum]:
    return [member for member in enum_cls if test(member)]


def _in_or_false(column: ColumnElement[Any], values: List[Any]) -> ColumnElement[bool]:
    if not values:
        return false()
    return column.in_(values)


def _relationship(owner: type, relation: FieldAccessor) -> RelationshipProperty:
    return getattr(owner, relation.name).property


class SqlLowering:
    """
    Lowers predicate trees to SQLAlchemy boolean clauses.

    Enum members stored by name cannot be ordered or masked in SQL, so enum
    comparisons and bit tests are expanded into ``IN`` lists of the matching
    members, and enum sort keys become a ``CASE`` over the member ordinals.
    """

    def column(self, owner: type, field: FieldAccessor) -> ColumnElement[Any]:
        """Resolve a field on a mapped class (or through its named transform)."""
        return field.read(owner)

    def lower(self, predicate: Predicate, owner: type) -> ColumnElement[bool]:
        """
        Lower a predicate to a SQLAlchemy clause.

        Args:
            predicate: Predicate relative to ``owner``
            owner: Mapped class the predicate's fields belong to

        Returns:
            ColumnElement[bool]: Boolean clause
        """
        if isinstance(predicate, Constant):
            return true() if predicate.value else false()
        if isinstance(predicate, And):
            return and_(self.lower(predicate.left, owner), self.lower(predicate.right, owner))
        if isinstance(predicate, Or):
            return or_(self.lower(predicate.left, owner), self.lower(predicate.right, owner))
        if isinstance(predicate, Not):
            return not_(self.lower(predicate.operand, owner))
        if isinstance(predicate, IsNull):
            return self.column(owner, predicate.field).is_(None)
        if isinstance(predicate, Compare):
            return self._compare(predicate, owner)
        if isinstance(predicate, InSet):
            return _in_or_false(self.column(owner, predicate.field), list(predicate.values))
        if isinstance(predicate, Match):
            return self._match(predicate, owner)
        if isinstance(predicate, BitTest):
            return self._bit_test(predicate, owner)
        if isinstance(predicate, Related):
            target = predicate.relation.target
            return getattr(owner, predicate.relation.name).has(self.lower(predicate.inner, target))
        if isinstance(predicate, Quantified):
            return self._quantified(predicate, owner)
        if isinstance(predicate, CountEquals):
            return self._count_equals(predicate, owner)
        raise TypeError(f"Cannot lower predicate of type {type(predicate).__name__}")

    def _compare(self, predicate: Compare, owner: type) -> ColumnElement[bool]:
        column = self.column(owner, predicate.field)
        compare = COMPARATORS[predicate.op]
        if _is_enum(predicate.field) and predicate.op not in ("eq", "ne"):
            rank = ordinal(predicate.value)
            members = _members_where(
                predicate.field.python_type, lambda m: compare(ordinal(m), rank)
            )
            return _in_or_false(column, members)
        return compare(column, predicate.value)

    def _match(self, predicate: Match, owner: type) -> ColumnElement[bool]:
        column = self.column(owner, predicate.field)
        pattern = like_pattern(predicate.value, predicate.mode)
        if predicate.matcher is not None:
            return predicate.matcher.match(column, pattern)
        return column.like(pattern, escape=LIKE_ESCAPE)

    def _bit_test(self, predicate: BitTest, owner: type) -> ColumnElement[bool]:
        column = self.column(owner, predicate.field)
        test = BIT_TESTS[predicate.mode]
        mask = predicate.mask
        if _is_enum(predicate.field):
            members = _members_where(
                predicate.field.python_type, lambda m: test(int(m.value) & mask, mask)
            )
            return _in_or_false(column, members)
        return test(column.op("&")(mask), mask)

    def _quantified(self, predicate: Quantified, owner: type) -> ColumnElement[bool]:
        relation = getattr(owner, predicate.relation.name)
        inner = self.lower(predicate.inner, predicate.relation.target)
        if predicate.quantifier == "all":
            return not_(relation.any(not_(inner)))
        return relation.any(inner)

    def _count_equals(self, predicate: CountEquals, owner: type) -> ColumnElement[bool]:
        prop = _relationship(owner, predicate.relation)
        target = predicate.relation.target
        conditions = [prop.primaryjoin]
        local_froms = [prop.mapper.local_table]
        if prop.secondary is not None:
            conditions.append(prop.secondaryjoin)
            local_froms.append(prop.secondary)
        conditions.append(self.lower(predicate.inner, target))

        matching = (
            select(func.count())
            .select_from(*local_froms)
            .where(*conditions)
            .correlate_except(*local_froms)
            .scalar_subquery()
        )
        if predicate.negate:
            return matching != predicate.count
        return matching == predicate.count

    def sort_column(self, owner: type, field: FieldAccessor) -> ColumnElement[Any]:
        """Column to sort by; enums sort by ordinal rather than by stored name."""
        column = self.column(owner, field)
        if not _is_enum(field):
            return column
        return case(*[(column == member, ordinal(member)) for member in field.python_type])

    def order_by(self, key: OrderKey, owner: type) -> ColumnElement[Any]:
        """
        Lower an order key.

        Keys through scalar relationships become correlated scalar subqueries
        selecting the related value.
        """
        if not key.path.scopes:
            expression = self.sort_column(owner, key.path.leaf)
        else:
            conditions = []
            local_froms = []
            current = owner
            for scope in key.path.scopes:
                prop = _relationship(current, scope.accessor)
                conditions.append(prop.primaryjoin)
                local_froms.append(prop.mapper.local_table)
                if prop.secondary is not None:
                    conditions.append(prop.secondaryjoin)
                    local_froms.append(prop.secondary)
                current = scope.accessor.target
            expression = (
                select(self.sort_column(current, key.path.leaf))
                .where(*conditions)
                .correlate_except(*local_froms)
                .limit(1)
                .scalar_subquery()
            )
        return expression.desc() if key.descending else expression.asc()


_lowering = SqlLowering()


def build_statement(query: Select, model: type, compiled: CompiledQuery) -> Select:
    """
    Apply a compiled query to a base statement.

    Args:
        query: Base select of ``model``
        model: Root mapped class
        compiled: Compiled predicate and ordering

    Returns:
        Select: Filtered and ordered statement
    """
    if not (isinstance(compiled.predicate, Constant) and compiled.predicate.value):
        query = query.where(_lowering.lower(compiled.predicate, model))
    if compiled.ordering:
        query = query.order_by(*(_lowering.order_by(key, model) for key in compiled.ordering))
    return query


def count_statement(query: Select) -> Select:
    """Count rows of a filtered statement."""
    return select(func.count()).select_from(query.order_by(None).subquery())
