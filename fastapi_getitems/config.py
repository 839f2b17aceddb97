"""Configuration classes for fastapi-getitems."""

import threading
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.matchers import (
    CaseInsensitiveMatcher,
    CaseInsensitiveProvider,
    resolve_matcher,
)
from fastapi_getitems.models import PaginationStrategy

# A named transform receives the owner of the transformed segment (the mapped
# class when lowering to SQL, the entity instance in memory) and returns its value.
Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class GetItemsOptions:
    """
    Options for GetItems queries.

    Attributes:
        pagination: How pagination metadata is computed (default: CHEAP)
        case_insensitive: Provider used by the i* operators (default: POSTGRESQL)
        transforms: Named transforms for fields listed in a model's
            ``__query_transforms__``
        debug: If True, attach a rendering of the composed query to the result

    Example:
        options = GetItemsOptions(
            pagination=PaginationStrategy.EXPENSIVE,
            case_insensitive=CaseInsensitiveProvider.SQLITE,
            transforms={"full_name": lambda a: a.first_name + " " + a.last_name},
        )
    """

    pagination: PaginationStrategy = PaginationStrategy.CHEAP
    case_insensitive: CaseInsensitiveProvider = CaseInsensitiveProvider.POSTGRESQL
    transforms: Mapping[str, Transform] = field(default_factory=dict, hash=False)
    debug: bool = False

    matcher: CaseInsensitiveMatcher = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        """Validate configuration values and resolve the case-insensitive matcher."""
        try:
            pagination = PaginationStrategy(self.pagination)
        except ValueError as e:
            raise ConfigurationError(f"Unknown pagination strategy '{self.pagination}'.") from e
        for name, transform in self.transforms.items():
            if not callable(transform):
                raise ConfigurationError(f"Transform '{name}' must be callable.")
        object.__setattr__(self, "pagination", pagination)
        object.__setattr__(self, "transforms", MappingProxyType(dict(self.transforms)))
        object.__setattr__(self, "matcher", resolve_matcher(self.case_insensitive))
        object.__setattr__(self, "case_insensitive", self.matcher.provider)

    def with_overrides(self, **changes: Any) -> "GetItemsOptions":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


_default_options = GetItemsOptions()
_default_lock = threading.Lock()


def get_default_options() -> GetItemsOptions:
    """Return the process-wide default options."""
    return _default_options


def configure_default(options: Optional[GetItemsOptions] = None, **overrides: Any) -> GetItemsOptions:
    """
    Install process-wide default options.

    Call once at application startup. The new value is built completely before
    it is published, so concurrent readers see either the old or the new options.

    Args:
        options: Options to install (default: built-in defaults)
        **overrides: Fields to override on ``options``

    Returns:
        GetItemsOptions: The installed options
    """
    global _default_options
    with _default_lock:
        installed = options if options is not None else GetItemsOptions()
        if overrides:
            installed = installed.with_overrides(**overrides)
        _default_options = installed
    return installed


def reset_default() -> None:
    """Restore the built-in default options."""
    global _default_options
    with _default_lock:
        _default_options = GetItemsOptions()


class OptionsPresets:
    """Pre-defined GetItemsOptions for common setups."""

    @staticmethod
    def default() -> GetItemsOptions:
        """Cheap pagination, PostgreSQL ILIKE."""
        return GetItemsOptions()

    @staticmethod
    def exact_totals() -> GetItemsOptions:
        """Expensive pagination: exact total count and total pages."""
        return GetItemsOptions(pagination=PaginationStrategy.EXPENSIVE)

    @staticmethod
    def debug() -> GetItemsOptions:
        """Attach the composed query to every result."""
        return GetItemsOptions(debug=True)

    @staticmethod
    def sqlite(pagination: PaginationStrategy = PaginationStrategy.CHEAP) -> GetItemsOptions:
        """
        Options for SQLite databases.

        Args:
            pagination: Pagination strategy to use
        """
        return GetItemsOptions(
            pagination=pagination,
            case_insensitive=CaseInsensitiveProvider.SQLITE,
        )
