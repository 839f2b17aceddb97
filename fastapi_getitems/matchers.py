"""Case-insensitive pattern matchers, one per database provider."""

from enum import StrEnum
from typing import Any, Dict

from sqlalchemy import ColumnElement, func

from fastapi_getitems.errors import ConfigurationError

LIKE_ESCAPE = "\\"


class CaseInsensitiveProvider(StrEnum):
    """Database providers for case-insensitive operators"""

    POSTGRESQL = "postgresql"  # ILIKE
    SQLSERVER = "sqlserver"  # LIKE under a case-insensitive collation
    SQLITE = "sqlite"  # LIKE, case-insensitive for ASCII
    LOWER = "lower"  # lower(column) LIKE lower(pattern), any backend
    NONE = "none"  # case-insensitive operators unavailable


def escape_like(value: str) -> str:
    """
    Escape LIKE wildcards so the value only matches literally.

    Args:
        value: Raw filter value

    Returns:
        str: Value with ``\\``, ``%``, ``_`` and ``[`` escaped by ``\\``
    """
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
        .replace("[", LIKE_ESCAPE + "[")
    )


def like_pattern(value: str, mode: str) -> str:
    """Build an escaped LIKE pattern for a startswith/endswith/contains match."""
    escaped = escape_like(value)
    if mode == "startswith":
        return f"{escaped}%"
    if mode == "endswith":
        return f"%{escaped}"
    return f"%{escaped}%"


class CaseInsensitiveMatcher:
    """Renders a case-insensitive LIKE match for one provider."""

    available = True

    def __init__(self, provider: CaseInsensitiveProvider):
        self.provider = provider

    def match(self, column: ColumnElement[Any], pattern: str) -> ColumnElement[bool]:
        raise NotImplementedError

    def ensure_available(self) -> None:
        """Raise ConfigurationError if this provider cannot render case-insensitive matches."""
        if not self.available:
            raise ConfigurationError(
                f"Case-insensitive operators (istarts_with, iends_with, icontains, "
                f"inot_contains) are unavailable with provider '{self.provider}'. "
                f"Configure GetItemsOptions.case_insensitive with one of: "
                f"{', '.join(p for p in CaseInsensitiveProvider if p != self.provider)}."
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider.value!r})"


class ILikeMatcher(CaseInsensitiveMatcher):
    def match(self, column: ColumnElement[Any], pattern: str) -> ColumnElement[bool]:
        return column.ilike(pattern, escape=LIKE_ESCAPE)


class LikeMatcher(CaseInsensitiveMatcher):
    def match(self, column: ColumnElement[Any], pattern: str) -> ColumnElement[bool]:
        return column.like(pattern, escape=LIKE_ESCAPE)


class LowerLikeMatcher(CaseInsensitiveMatcher):
    def match(self, column: ColumnElement[Any], pattern: str) -> ColumnElement[bool]:
        return func.lower(column).like(pattern.lower(), escape=LIKE_ESCAPE)


class UnavailableMatcher(CaseInsensitiveMatcher):
    available = False

    def match(self, column: ColumnElement[Any], pattern: str) -> ColumnElement[bool]:
        self.ensure_available()
        raise AssertionError("unreachable")


MATCHERS: Dict[CaseInsensitiveProvider, CaseInsensitiveMatcher] = {
    CaseInsensitiveProvider.POSTGRESQL: ILikeMatcher(CaseInsensitiveProvider.POSTGRESQL),
    CaseInsensitiveProvider.SQLSERVER: LikeMatcher(CaseInsensitiveProvider.SQLSERVER),
    CaseInsensitiveProvider.SQLITE: LikeMatcher(CaseInsensitiveProvider.SQLITE),
    CaseInsensitiveProvider.LOWER: LowerLikeMatcher(CaseInsensitiveProvider.LOWER),
    CaseInsensitiveProvider.NONE: UnavailableMatcher(CaseInsensitiveProvider.NONE),
}


def resolve_matcher(provider: CaseInsensitiveProvider) -> CaseInsensitiveMatcher:
    """
    Resolve the matcher for a provider.

    Args:
        provider: Provider name or enum member

    Returns:
        CaseInsensitiveMatcher: Matcher registered for the provider

    Raises:
        ConfigurationError: If the provider is unknown
    """
    try:
        return MATCHERS[CaseInsensitiveProvider(provider)]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"Unknown case-insensitive provider '{provider}'.") from e
