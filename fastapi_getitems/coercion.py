"""Parsing of raw string filter values into typed values."""

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from dateutil.parser import isoparse, parse

from fastapi_getitems.errors import FilterValueError

_NON_HEX = re.compile(r"[^0-9a-fA-F]")
# Free-form dates need a month name or a separated day, month and year
_DATE_TEXT = re.compile(r"[A-Za-z]|\d[-/]\d")
_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


def _fail(raw: str, target: type, reason: str = "") -> FilterValueError:
    message = f"Cannot parse {raw!r} as {target.__name__}"
    if reason:
        message = f"{message}: {reason}"
    return FilterValueError(message, value=raw, target_type=target)


def _numeric_text(raw: str, target: type) -> str:
    if "_" in raw:
        raise _fail(raw, target, "digit separators are not allowed")
    return raw.strip()


def _parse_int(raw: str) -> int:
    text = _numeric_text(raw, int)
    try:
        return int(text)
    except ValueError as e:
        raise _fail(raw, int) from e


def _parse_float(raw: str) -> float:
    text = _numeric_text(raw, float)
    try:
        value = float(text)
    except ValueError as e:
        raise _fail(raw, float) from e
    if not math.isfinite(value):
        raise _fail(raw, float, "expected a finite number")
    return value


def _parse_decimal(raw: str) -> Decimal:
    text = _numeric_text(raw, Decimal)
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise _fail(raw, Decimal) from e
    if not value.is_finite():
        raise _fail(raw, Decimal, "expected a finite number")
    return value


def _parse_bool(raw: str) -> bool:
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise _fail(raw, bool, "expected true, false, 1 or 0")


def _parse_datetime(raw: str) -> datetime:
    """
    Parse a datetime and normalize it to naive UTC.

    Aware values are converted to UTC; naive values are taken as UTC already.
    """
    try:
        value = isoparse(raw.strip())
    except ValueError as e:
        if not _DATE_TEXT.search(raw):
            raise _fail(raw, datetime) from e
        try:
            value = parse(raw)
        except (ValueError, OverflowError) as e:
            raise _fail(raw, datetime) from e
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_date(raw: str) -> date:
    try:
        return _parse_datetime(raw).date()
    except FilterValueError as e:
        raise _fail(raw, date) from e


def parse_flexible_uuid(raw: str) -> UUID:
    """
    Leniently parse a UUID.

    All non-hex characters are dropped, the rest is uppercased and truncated to
    32 digits or right-padded with zeros to 32 digits. Input without hex digits
    gives the nil UUID.

    Example:
        parse_flexible_uuid("{1234-5678}") == UUID("12345678-0000-0000-0000-000000000000")
    """
    hex_digits = _NON_HEX.sub("", raw).upper()
    if not hex_digits:
        return UUID(int=0)
    return UUID(hex=hex_digits[:32].ljust(32, "0"))


def _parse_enum(raw: str, enum_cls: type) -> Enum:
    value = raw.strip()
    try:
        return enum_cls[value]
    except KeyError:
        pass
    for candidate in (value, _maybe_int(value)):
        if candidate is None:
            continue
        try:
            return enum_cls(candidate)
        except ValueError:
            continue
    names = ", ".join(enum_cls.__members__)
    raise _fail(raw, enum_cls, f"expected one of {names}")


def _maybe_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def _parse_char(raw: str) -> str:
    if len(raw) != 1:
        raise _fail(raw, str, "expected a single character")
    return raw


PARSERS: Dict[type, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: _parse_int,
    float: _parse_float,
    Decimal: _parse_decimal,
    datetime: _parse_datetime,
    date: _parse_date,
    UUID: parse_flexible_uuid,
}


def parse_value(
    raw: Optional[str],
    target_type: Optional[type],
    *,
    field: Any = None,
    length: Optional[int] = None,
) -> Any:
    """
    Parse a raw filter value into ``target_type``.

    Args:
        raw: Raw string value (None parses to None)
        target_type: Python type of the filtered member
        field: Field key, attached to parse errors
        length: Declared string length; 1 means a single character is required

    Returns:
        Any: Typed value, or ``raw`` unchanged for unknown target types

    Raises:
        FilterValueError: If ``raw`` is malformed for ``target_type``
    """
    if raw is None:
        return None
    if target_type is None:
        return raw
    try:
        if target_type is str:
            return _parse_char(raw) if length == 1 else raw
        if isinstance(target_type, type) and issubclass(target_type, Enum):
            return _parse_enum(raw, target_type)
        parser = PARSERS.get(target_type)
        if parser is None:
            return raw
        return parser(raw)
    except FilterValueError as e:
        raise e.with_field(field) from e.__cause__
