"""Tests for parsing raw filter values."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

import pytest

from fastapi_getitems.coercion import parse_flexible_uuid, parse_value
from fastapi_getitems.errors import FilterValueError
from tests.models import BookField, Genre, Priority


class TestNumbers:
    def test_int(self):
        assert parse_value(" 42 ", int) == 42

    def test_float_is_culture_invariant(self):
        assert parse_value("3.5", float) == 3.5
        with pytest.raises(FilterValueError):
            parse_value("3,5", float)

    def test_decimal(self):
        assert parse_value("10.25", Decimal) == Decimal("10.25")

    def test_malformed_int(self):
        with pytest.raises(FilterValueError) as exc_info:
            parse_value("abc", int)
        assert exc_info.value.value == "abc"
        assert exc_info.value.target_type is int

    @pytest.mark.parametrize("target", [int, float, Decimal])
    def test_digit_separators_rejected(self, target):
        with pytest.raises(FilterValueError, match="digit separators"):
            parse_value("1_000", target)

    @pytest.mark.parametrize("target", [float, Decimal])
    @pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
    def test_non_finite_rejected(self, target, raw):
        with pytest.raises(FilterValueError, match="finite"):
            parse_value(raw, target)


class TestBooleans:
    @pytest.mark.parametrize("raw", ["true", "TRUE", "1"])
    def test_true(self, raw):
        assert parse_value(raw, bool) is True

    @pytest.mark.parametrize("raw", ["false", "False", "0"])
    def test_false(self, raw):
        assert parse_value(raw, bool) is False

    def test_other_words_rejected(self):
        with pytest.raises(FilterValueError):
            parse_value("yes", bool)


class TestTemporal:
    def test_naive_datetime_taken_as_utc(self):
        assert parse_value("2024-01-01T10:00:00", datetime) == datetime(2024, 1, 1, 10)

    def test_aware_datetime_normalized_to_utc(self):
        parsed = parse_value("2024-01-01T12:30:00+02:00", datetime)
        assert parsed == datetime(2024, 1, 1, 10, 30)
        assert parsed.tzinfo is None

    def test_non_iso_datetime(self):
        assert parse_value("Jan 2 2024 08:00", datetime) == datetime(2024, 1, 2, 8)

    def test_date(self):
        assert parse_value("2024-03-05", date) == date(2024, 3, 5)

    def test_malformed_datetime(self):
        with pytest.raises(FilterValueError):
            parse_value("not a date", datetime)

    @pytest.mark.parametrize("raw", ["1", "42", "3.5"])
    def test_bare_numbers_are_not_dates(self, raw):
        with pytest.raises(FilterValueError):
            parse_value(raw, datetime)

    def test_slashed_date(self):
        assert parse_value("03/05/2024", date) == date(2024, 3, 5)


class TestEnums:
    def test_by_name(self):
        assert parse_value("SCIENCE", Genre) is Genre.SCIENCE

    def test_by_value(self):
        assert parse_value("history", Genre) is Genre.HISTORY

    def test_int_enum_by_number(self):
        assert parse_value("2", Priority) is Priority.MEDIUM

    def test_unknown_member_lists_names(self):
        with pytest.raises(FilterValueError, match="FICTION, SCIENCE, HISTORY"):
            parse_value("poetry", Genre)


class TestStrings:
    def test_plain_string_unchanged(self):
        assert parse_value("anything", str) == "anything"

    def test_single_character(self):
        assert parse_value("P", str, length=1) == "P"

    def test_single_character_rejects_longer_input(self):
        with pytest.raises(FilterValueError):
            parse_value("PY", str, length=1)


class TestFlexibleUuid:
    def test_braced_short_input_is_padded(self):
        assert parse_flexible_uuid("{1234-5678}") == UUID("12345678-0000-0000-0000-000000000000")

    def test_long_input_is_truncated(self):
        raw = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee-ffff"
        assert parse_flexible_uuid(raw) == UUID("AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE")

    def test_no_hex_digits_gives_nil(self):
        assert parse_flexible_uuid("xyz") == UUID(int=0)

    def test_dispatched_for_uuid_type(self):
        assert parse_value("12345678", UUID) == UUID("12345678-0000-0000-0000-000000000000")


class TestNullAndUnknown:
    def test_none_yields_none(self):
        assert parse_value(None, int) is None

    def test_unknown_type_returns_raw(self):
        assert parse_value("raw", list) == "raw"

    def test_no_type_returns_raw(self):
        assert parse_value("raw", None) == "raw"


class TestErrorField:
    def test_field_attached_to_error(self):
        with pytest.raises(FilterValueError) as exc_info:
            parse_value("many", int, field=BookField.PAGES)
        assert exc_info.value.field is BookField.PAGES
        assert "Invalid value for field 'pages'" in str(exc_info.value)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_value("many", int)
