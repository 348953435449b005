"""
Unit tests for value classification and format matching.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.core.schema.classifier import (
    classify,
    compile_format,
    is_date,
    is_datetime,
    match_format,
    matches_format,
    parse_number,
)


@pytest.mark.unit
class TestClassify:
    """Tests for classify()"""

    def test_string_tag_always_present(self):
        assert "string" in classify("anything at all")
        assert classify("") == {"string"}
        assert classify("   ") == {"string"}

    def test_one_is_number_and_boolean(self):
        assert classify("1") == {"string", "number", "boolean"}

    def test_decimal_and_negative_numbers(self):
        assert "number" in classify("-12.5")
        assert "number" in classify("3e4")

    def test_nan_and_infinity_are_not_numbers(self):
        assert "number" not in classify("NaN")
        assert "number" not in classify("inf")
        assert "number" not in classify("-Infinity")

    def test_underscored_digits_are_not_numbers(self):
        assert "number" not in classify("1_000")

    @pytest.mark.parametrize("value", ["true", "FALSE", "Yes", "no", "y", "N", "0"])
    def test_boolean_values(self, value):
        assert "boolean" in classify(value)

    def test_iso_date(self):
        assert classify("2024-01-15") == {"string", "date"}

    def test_us_date(self):
        assert "date" in classify("01/15/2024")

    def test_impossible_calendar_date_rejected(self):
        assert "date" not in classify("2024-02-30")

    def test_datetime_is_not_a_date(self):
        tags = classify("2024-01-15 10:30:00")
        assert "datetime" in tags
        assert "date" not in tags

    def test_iso_datetime_with_millis(self):
        assert "datetime" in classify("2024-01-15T10:30:00.123Z")

    def test_email(self):
        assert "email" in classify("a.b+c@example.co.uk")
        assert "email" not in classify("not-an-email@")

    def test_url(self):
        assert "url" in classify("https://example.com/path?q=1")
        assert "url" not in classify("ftp://example.com")

    def test_uuid_any_case(self):
        assert "uuid" in classify("6F1C1C1E-59D4-4A52-9D0E-0C5BD7F3B1A2")

    def test_value_is_trimmed(self):
        assert "number" in classify("  42  ")

    @given(st.integers(min_value=-10**12, max_value=10**12))
    def test_property_integers_are_numbers(self, number):
        assert "number" in classify(str(number))

    @given(st.text())
    def test_property_classify_never_raises(self, value):
        assert "string" in classify(value)


@pytest.mark.unit
class TestFormats:
    """Tests for format token compilation and matching"""

    def test_compile_tokens_to_strptime(self):
        assert compile_format("MM/DD/YYYY")[1] == "%m/%d/%Y"
        assert compile_format("YYYY-MM-DDTHH:mm:ss.SSSZ")[1] == "%Y-%m-%dT%H:%M:%S.%fZ"

    def test_raw_strptime_format_passes_through(self):
        assert compile_format("%d.%m.%Y")[1] == "%d.%m.%Y"
        assert matches_format("15.01.2024", "%d.%m.%Y")

    def test_width_is_enforced(self):
        assert not matches_format("2024-1-5", "YYYY-MM-DD")

    def test_match_format_returns_first_match(self):
        assert match_format("01-02-2024", ["MM-DD-YYYY", "DD-MM-YYYY"]) == "MM-DD-YYYY"
        assert match_format("25-02-2024", ["MM-DD-YYYY", "DD-MM-YYYY"]) == "DD-MM-YYYY"
        assert match_format("garbage", ["YYYY-MM-DD"]) is None

    def test_is_date_with_custom_formats(self):
        assert is_date("2024/01/15")
        assert not is_date("2024/01/15", formats=["YYYY-MM-DD"])

    def test_is_datetime(self):
        assert is_datetime("01/15/2024 08:00:00")
        assert not is_datetime("01/15/2024")


@pytest.mark.unit
class TestParseNumber:
    def test_parses_finite_values(self):
        assert parse_number("42") == 42.0
        assert parse_number(" -0.5 ") == -0.5

    def test_rejects_non_numbers(self):
        assert parse_number("abc") is None
        assert parse_number("") is None
        assert parse_number("nan") is None
