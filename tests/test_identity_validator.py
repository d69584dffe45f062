"""Tests for national id, phone and email helpers."""

from datetime import date

import pytest

from chair_tracker.identity_validator import (
    calculate_age,
    compute_check_digit,
    format_duration,
    format_national_id,
    format_phone,
    validate_email,
    validate_national_id,
    validate_phone,
)

VALID_IDS = ["12.345.678-5", "11.111.111-1", "7.654.321-6", "10.000.013-K", "1.000.030-0"]


class TestCheckDigit:
    """Tests for the modulus-11 check character."""

    def test_known_values(self):
        assert compute_check_digit("12345678") == "5"
        assert compute_check_digit("11111111") == "1"
        assert compute_check_digit("7654321") == "6"

    def test_ten_maps_to_k(self):
        assert compute_check_digit("10000013") == "K"

    def test_eleven_maps_to_zero(self):
        assert compute_check_digit("1000030") == "0"


class TestValidateNationalId:
    """Tests for validate_national_id."""

    @pytest.mark.parametrize("value", VALID_IDS)
    def test_valid_ids(self, value):
        assert validate_national_id(value)

    @pytest.mark.parametrize("value", VALID_IDS)
    def test_any_other_check_character_fails(self, value):
        clean = value.replace(".", "").replace("-", "")
        for symbol in "0123456789K":
            if symbol == clean[-1]:
                continue
            assert not validate_national_id(clean[:-1] + symbol)

    def test_separators_and_case_are_ignored(self):
        assert validate_national_id("12345678-5")
        assert validate_national_id(" 12 345 678 5 ")
        assert validate_national_id("10.000.013-k")

    def test_body_length(self):
        assert not validate_national_id("123456-0")
        assert not validate_national_id("123456789-1")

    def test_rejects_garbage(self):
        assert not validate_national_id("")
        assert not validate_national_id("abcdefgh-1")
        assert not validate_national_id("12.345.678-X")


class TestFormatNationalId:
    """Tests for format_national_id."""

    def test_groups_body_from_the_right(self):
        assert format_national_id("123456785") == "12.345.678-5"
        assert format_national_id("76543216") == "7.654.321-6"

    def test_uppercases_check_character(self):
        assert format_national_id("10000013k") == "10.000.013-K"

    def test_empty_and_single_character(self):
        assert format_national_id("") == ""
        assert format_national_id("1") == "1"

    def test_partial_input_while_typing(self):
        assert format_national_id("12") == "1-2"
        assert format_national_id("1234") == "123-4"
        assert format_national_id("12345") == "1.234-5"

    @pytest.mark.parametrize("value", ["123456785", "1-2", "12.34", "10000013k", "7.654.321-6"])
    def test_reformatting_is_stable(self, value):
        once = format_national_id(value)
        assert format_national_id(once) == once


class TestPhone:
    """Tests for phone validation and formatting."""

    @pytest.mark.parametrize("value", ["+56 9 1234 5678", "56912345678", "912345678", "12345678"])
    def test_valid_shapes(self, value):
        assert validate_phone(value)

    @pytest.mark.parametrize("value", ["", "1234567", "812345678", "57912345678", "+1 555 123 4567"])
    def test_invalid_shapes(self, value):
        assert not validate_phone(value)

    @pytest.mark.parametrize("value", ["+56 9 1234 5678", "56912345678", "912345678", "12345678"])
    def test_accepted_shapes_normalize(self, value):
        assert format_phone(value) == "+56 9 1234 5678"

    def test_unrecognized_passes_through(self):
        assert format_phone("+1 (555) 123") == "+1 (555) 123"

    def test_empty(self):
        assert format_phone("") == ""


class TestEmail:
    def test_valid(self):
        assert validate_email("camila.rojas@email.com")

    def test_invalid(self):
        assert not validate_email("camila.rojas@email")
        assert not validate_email("camila rojas@email.com")
        assert not validate_email("")


class TestCalculateAge:
    """Tests for calendar-aware age."""

    def test_birthday_already_passed(self):
        assert calculate_age("1990-03-10", today=date(2024, 5, 14)) == 34

    def test_birthday_later_this_year(self):
        assert calculate_age("1990-12-01", today=date(2024, 5, 14)) == 33

    def test_birthday_today(self):
        assert calculate_age(date(2000, 5, 14), today=date(2024, 5, 14)) == 24

    def test_day_before_birthday(self):
        assert calculate_age("2000-05-15", today=date(2024, 5, 14)) == 23


class TestFormatDuration:
    def test_minutes_only(self):
        assert format_duration(0) == "0m"
        assert format_duration(45) == "45m"

    def test_hours_and_minutes(self):
        assert format_duration(60) == "1h 0m"
        assert format_duration(125) == "2h 5m"
