"""Typed predicate and ordering tree produced by the compilers.

The tree is backend independent: ``fastapi_getitems.sql`` lowers it to
SQLAlchemy expressions and ``fastapi_getitems.memory`` evaluates it over Python
objects. Field references are ``FieldAccessor`` objects relative to the current
owner; relationship nodes (``Related``, ``Quantified``, ``CountEquals``) switch
the owner to the related class for their inner predicate.
"""

import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi_getitems.fields import FieldAccessor, ResolvedPath
from fastapi_getitems.matchers import CaseInsensitiveMatcher, like_pattern

COMPARISON_SYMBOLS = {"eq": "==", "ne": "!=", "lt": "<", "le": "<=", "gt": ">", "ge": ">="}

COMPARATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}

BIT_TESTS: Dict[str, Callable[[Any, int], Any]] = {
    "all": lambda masked, mask: masked == mask,
    "none": lambda masked, mask: masked == 0,
    "any": lambda masked, mask: masked != 0,
    "not_all": lambda masked, mask: masked != mask,
}


class Predicate:
    """Base class of predicate nodes."""

    def __and__(self, other: "Predicate") -> "Predicate":
        return conjoin(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return disjoin(self, other)

    def __invert__(self) -> "Predicate":
        return negate(self)


@dataclass(frozen=True)
class Constant(Predicate):
    value: bool

    def __str__(self) -> str:
        return "TRUE" if self.value else "FALSE"


TRUE = Constant(True)
FALSE = Constant(False)


@dataclass(frozen=True)
class And(Predicate):
    left: Predicate
    right: Predicate

    def __str__(self) -> str:
        return f"({self.left} AND {self.right})"


@dataclass(frozen=True)
class Or(Predicate):
    left: Predicate
    right: Predicate

    def __str__(self) -> str:
        return f"({self.left} OR {self.right})"


@dataclass(frozen=True)
class Not(Predicate):
    operand: Predicate

    def __str__(self) -> str:
        return f"NOT {self.operand}"


@dataclass(frozen=True)
class IsNull(Predicate):
    field: FieldAccessor

    def __str__(self) -> str:
        return f"{self.field} IS NULL"


@dataclass(frozen=True)
class Compare(Predicate):
    """Binary comparison; ``op`` is one of eq, ne, lt, le, gt, ge."""

    field: FieldAccessor
    op: str
    value: Any

    def __str__(self) -> str:
        return f"{self.field} {COMPARISON_SYMBOLS[self.op]} {self.value!r}"


@dataclass(frozen=True)
class InSet(Predicate):
    field: FieldAccessor
    values: Tuple[Any, ...]

    def __str__(self) -> str:
        return f"{self.field} IN ({', '.join(repr(v) for v in self.values)})"


@dataclass(frozen=True)
class Match(Predicate):
    """
    String match; ``mode`` is startswith, endswith or contains.

    A ``matcher`` makes the match case-insensitive through a provider; without
    one the match is case-sensitive.
    """

    field: FieldAccessor
    mode: str
    value: str
    matcher: Optional[CaseInsensitiveMatcher] = None

    @property
    def case_insensitive(self) -> bool:
        return self.matcher is not None

    def __str__(self) -> str:
        if self.matcher is None:
            return f"{self.field}.{self.mode}({self.value!r})"
        pattern = like_pattern(self.value, self.mode)
        return f"{self.field} ILIKE[{self.matcher.provider.value}] {pattern!r}"


@dataclass(frozen=True)
class BitTest(Predicate):
    """
    Bitwise flag test; ``mode`` is one of:

    - all: (member & mask) == mask
    - none: (member & mask) == 0
    - any: (member & mask) != 0
    - not_all: (member & mask) != mask
    """

    field: FieldAccessor
    mask: int
    mode: str

    def __str__(self) -> str:
        test = {"all": "== {m}", "none": "== 0", "any": "!= 0", "not_all": "!= {m}"}[self.mode]
        return f"({self.field} & {self.mask}) {test.format(m=self.mask)}"


@dataclass(frozen=True)
class Related(Predicate):
    """Inner predicate evaluated on a scalar (to-one) relationship."""

    relation: FieldAccessor
    inner: Predicate

    def __str__(self) -> str:
        return f"{self.relation}.has({self.inner})"


@dataclass(frozen=True)
class Quantified(Predicate):
    """Inner predicate evaluated on the elements of a collection; ``quantifier`` is any or all."""

    relation: FieldAccessor
    quantifier: str
    inner: Predicate

    def __str__(self) -> str:
        return f"{self.relation}.{self.quantifier}({self.inner})"


@dataclass(frozen=True)
class CountEquals(Predicate):
    """Number of collection elements matching ``inner`` equals (or, negated, differs from) ``count``."""

    relation: FieldAccessor
    inner: Predicate
    count: int
    negate: bool = False

    def __str__(self) -> str:
        symbol = "!=" if self.negate else "=="
        return f"count({self.relation} WHERE {self.inner}) {symbol} {self.count}"


def conjoin(left: Predicate, right: Predicate) -> Predicate:
    """AND two predicates, folding constants."""
    if isinstance(left, Constant):
        return right if left.value else FALSE
    if isinstance(right, Constant):
        return left if right.value else FALSE
    return And(left, right)


def disjoin(left: Predicate, right: Predicate) -> Predicate:
    """OR two predicates, folding constants."""
    if isinstance(left, Constant):
        return TRUE if left.value else right
    if isinstance(right, Constant):
        return TRUE if right.value else left
    return Or(left, right)


def negate(predicate: Predicate) -> Predicate:
    """NOT a predicate, folding constants and double negation."""
    if isinstance(predicate, Constant):
        return FALSE if predicate.value else TRUE
    if isinstance(predicate, Not):
        return predicate.operand
    return Not(predicate)


@dataclass(frozen=True)
class OrderKey:
    path: ResolvedPath
    descending: bool = False

    def __str__(self) -> str:
        return f"{self.path} {'DESC' if self.descending else 'ASC'}"


@dataclass(frozen=True)
class CompiledQuery:
    """Predicate and ordering composed for one request."""

    predicate: Predicate = TRUE
    ordering: Tuple[OrderKey, ...] = ()

    def __str__(self) -> str:
        text = f"WHERE {self.predicate}"
        if self.ordering:
            text += " ORDER BY " + ", ".join(str(key) for key in self.ordering)
        return text
