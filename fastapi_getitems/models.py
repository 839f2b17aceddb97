"""fastapi-getitems request and result models"""

from enum import StrEnum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class FilterOperator(StrEnum):
    """Filter operators"""

    EQ = "eq"  # equals
    NEQ = "neq"  # not equals
    LT = "lt"  # less than (numeric, temporal, enum ordinal)
    LTE = "lte"  # less than or equal
    GT = "gt"  # greater than
    GTE = "gte"  # greater than or equal

    STARTS_WITH = "starts_with"  # case-sensitive prefix
    ENDS_WITH = "ends_with"  # case-sensitive suffix
    CONTAINS = "contains"  # substring, or membership when `values` is set
    NOT_CONTAINS = "not_contains"

    ISTARTS_WITH = "istarts_with"  # case-insensitive, provider specific
    IENDS_WITH = "iends_with"
    ICONTAINS = "icontains"
    INOT_CONTAINS = "inot_contains"

    CONTAINS_ALL = "contains_all"  # every value present in a collection
    NOT_CONTAINS_ALL = "not_contains_all"

    FLAG = "flag"  # (member & mask) == mask
    NOT_FLAG = "not_flag"  # (member & mask) == 0
    ANY_FLAG = "any_flag"  # (member & mask) != 0
    NOT_ANY_FLAG = "not_any_flag"  # (member & mask) != mask


class FilterLogic(StrEnum):
    """How a filter combines with the previous one"""

    AND = "and"
    OR = "or"


class ArrayMode(StrEnum):
    """How a filter crossing a collection is quantified"""

    ANY = "any"
    ALL = "all"


class SortingOrder(StrEnum):
    """Sorting orders"""

    ASC = "asc"
    DESC = "desc"


class PaginationStrategy(StrEnum):
    """
    How pagination metadata is computed.

    EXPENSIVE runs a separate count concurrently with the page fetch and needs a
    data source able to open independent sessions. CHEAP fetches one extra row to
    detect a next page. NONE only returns the requested rows.
    """

    EXPENSIVE = "expensive"
    CHEAP = "cheap"
    NONE = "none"


K = TypeVar("K")
I = TypeVar("I")  # noqa: E741
T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 25
DEFAULT_SKIP = 0


class GetItemsFilter(BaseModel, Generic[K]):
    """
    A filter node.

    A node either targets a field (``field`` set) or only groups nested filters.
    ``logic`` combines the node with its previous sibling and is ignored on the
    first sibling; ``filters_logic`` combines the node's own condition with the
    result of its nested ``filters``.

    Example:
        # name starts with "A" OR (age >= 18 AND active)
        [
            GetItemsFilter(field=F.NAME, operator=FilterOperator.STARTS_WITH, value="A"),
            GetItemsFilter(
                logic=FilterLogic.OR,
                filters=[
                    GetItemsFilter(field=F.AGE, operator=FilterOperator.GTE, value="18"),
                    GetItemsFilter(field=F.ACTIVE, operator=FilterOperator.EQ, value="true"),
                ],
            ),
        ]
    """

    model_config = ConfigDict(frozen=True)

    field: Optional[K] = None
    operator: FilterOperator = FilterOperator.EQ
    value: Optional[str] = None
    values: Optional[List[str]] = None
    logic: FilterLogic = FilterLogic.AND
    filters: Optional[List["GetItemsFilter[K]"]] = None
    filters_logic: FilterLogic = FilterLogic.AND
    array_mode: ArrayMode = ArrayMode.ANY


GetItemsFilter.model_rebuild()


class GetItemsSorter(BaseModel, Generic[K]):
    """Sort key"""

    model_config = ConfigDict(frozen=True)

    field: K
    order: SortingOrder = SortingOrder.ASC


class GetItemsRequest(BaseModel, Generic[K, I]):
    """
    Filtering, sorting and pagination request.

    ``skip`` is an extra offset applied after the page offset. ``total_count``
    is an optional precomputed total that spares the count query in
    EXPENSIVE mode.
    """

    model_config = ConfigDict(frozen=True)

    ids: Optional[List[I]] = None
    except_ids: Optional[List[I]] = None
    page: int = Field(default=DEFAULT_PAGE, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    skip: int = Field(default=DEFAULT_SKIP, ge=0)
    filters: Optional[List[GetItemsFilter[K]]] = None
    sort: Optional[List[GetItemsSorter[K]]] = None
    total_count: Optional[int] = Field(default=None, ge=0)


class PaginatedData(BaseModel, Generic[T]):
    """Paginated result"""

    items: List[T]
    page: int
    page_size: int
    total_count: Optional[int] = None
    total_pages: Optional[int] = None
    has_next_page: Optional[bool] = None
    debug_view: Optional[str] = None
