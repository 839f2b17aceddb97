"""fastapi-getitems: declarative filtering, sorting and pagination for FastAPI + SQLModel."""

from . import models as models  # noqa: F401
from .builder import FieldBuilder, FilterBuilder  # noqa: F401
from .coercion import parse_flexible_uuid, parse_value  # noqa: F401
from .config import (  # noqa: F401
    GetItemsOptions,
    OptionsPresets,
    configure_default,
    get_default_options,
    reset_default,
)
from .errors import ConfigurationError, FilterValueError, GetItemsError  # noqa: F401
from .expressions import CompiledQuery  # noqa: F401
from .fields import (  # noqa: F401
    FieldAccessor,
    PropertyPathResolver,
    TransformedField,
    register_fields,
)
from .filters import OPERATOR_STRATEGIES, PredicateCompiler  # noqa: F401
from .handlers import install_exception_handlers  # noqa: F401
from .manager import GetItemsManager, get_items, get_items_async  # noqa: F401
from .matchers import CaseInsensitiveProvider  # noqa: F401
from .models import (  # noqa: F401
    ArrayMode,
    FilterLogic,
    FilterOperator,
    GetItemsFilter,
    GetItemsRequest,
    GetItemsSorter,
    PaginatedData,
    PaginationStrategy,
    SortingOrder,
)
from .pagination import PaginationEngine  # noqa: F401
from .sorting import SortCompiler  # noqa: F401
from .sources import (  # noqa: F401
    AsyncSessionFactorySource,
    AsyncSessionSource,
    DataSource,
    MemorySource,
    SessionFactorySource,
    SessionSource,
)

__all__ = [
    # Main class
    "GetItemsManager",
    "get_items",
    "get_items_async",
    # Compilers and engines
    "PredicateCompiler",
    "SortCompiler",
    "PaginationEngine",
    "PropertyPathResolver",
    "CompiledQuery",
    # Strategy registry
    "OPERATOR_STRATEGIES",
    # Data sources
    "DataSource",
    "SessionSource",
    "SessionFactorySource",
    "AsyncSessionSource",
    "AsyncSessionFactorySource",
    "MemorySource",
    # Fields
    "FieldAccessor",
    "TransformedField",
    "register_fields",
    # Values
    "parse_value",
    "parse_flexible_uuid",
    # Builder
    "FilterBuilder",
    "FieldBuilder",
    # Configuration
    "GetItemsOptions",
    "OptionsPresets",
    "CaseInsensitiveProvider",
    "configure_default",
    "get_default_options",
    "reset_default",
    # Errors
    "GetItemsError",
    "ConfigurationError",
    "FilterValueError",
    "install_exception_handlers",
    # Models
    "GetItemsFilter",
    "GetItemsSorter",
    "GetItemsRequest",
    "PaginatedData",
    "FilterOperator",
    "FilterLogic",
    "ArrayMode",
    "SortingOrder",
    "PaginationStrategy",
    # Module
    "models",
]
