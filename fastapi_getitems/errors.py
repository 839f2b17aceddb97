"""Exceptions raised by fastapi-getitems."""

from typing import Any, Optional


class GetItemsError(Exception):
    """Base class for all fastapi-getitems errors."""


class ConfigurationError(GetItemsError):
    """
    Raised when a request cannot be compiled with the given setup.

    Configuration errors are raised before any I/O happens: a missing mapper or
    identifier field, an unknown path segment, a path crossing more than one
    collection, an unregistered named transform, an unavailable case-insensitive
    provider, or a pagination strategy the data source cannot run.
    """


class FilterValueError(GetItemsError, ValueError):
    """
    Raised when a raw filter value cannot be parsed into the field's type.

    Attributes:
        field: Field key of the filter that carried the value (if known)
        value: The raw value that failed to parse
        target_type: Python type the value was parsed into
    """

    def __init__(
        self,
        message: str,
        *,
        field: Any = None,
        value: Optional[str] = None,
        target_type: Optional[type] = None,
    ):
        super().__init__(message)
        self.field = field
        self.value = value
        self.target_type = target_type

    def with_field(self, field: Any) -> "FilterValueError":
        """Return a copy of this error bound to a filter field."""
        if self.field is not None or field is None:
            return self
        return FilterValueError(
            f"Invalid value for field '{field_label(field)}': {self}",
            field=field,
            value=self.value,
            target_type=self.target_type,
        )


def field_label(field: Any) -> str:
    return str(getattr(field, "value", field))
