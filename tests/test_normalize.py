from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from backoffice.errors import ValidationError
from backoffice.services.normalize import (
    format_instant,
    normalize_external_id,
    normalize_text,
    parse_amount,
    parse_due_date,
    start_of_day,
    to_money,
)


@pytest.mark.parametrize("raw", [50, "50", "50.00", 50.0, Decimal("50.001")])
def test_parse_amount_is_numeric(raw):
    assert parse_amount(raw) == Decimal("50.00")


@pytest.mark.parametrize("raw", [None, "", "abc", 0, "-1", True, "NaN"])
def test_parse_amount_rejects_missing_or_invalid(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_amount("nope")


def test_parse_due_date_same_instant_in_different_forms():
    expected = datetime(2024, 3, 1)
    assert parse_due_date("2024-03-01") == expected
    assert parse_due_date("2024-03-01T00:00:00Z") == expected
    assert parse_due_date("2024-03-01T00:00:00.000Z") == expected
    assert parse_due_date(date(2024, 3, 1)) == expected
    assert parse_due_date(datetime(2024, 3, 1, tzinfo=timezone.utc)) == expected


def test_parse_due_date_naive_is_business_local_time():
    ny = ZoneInfo("America/New_York")
    # 2024-03-01 00:00 EST is 05:00 UTC
    assert parse_due_date("2024-03-01", ny) == datetime(2024, 3, 1, 5, 0)
    # aware input keeps its own offset
    assert parse_due_date("2024-03-01T00:00:00+00:00", ny) == datetime(2024, 3, 1)


def test_parse_due_date_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_due_date("next tuesday")
    with pytest.raises(ValidationError):
        parse_due_date(None)


def test_format_instant():
    assert format_instant(datetime(2024, 3, 1, 12, 30)) == "2024-03-01T12:30:00.000Z"


def test_text_and_external_id_normalization():
    assert normalize_text(None) == ""
    assert normalize_text("") == ""
    assert normalize_external_id("  ") is None
    assert normalize_external_id(None) is None
    assert normalize_external_id(" I1 ") == "I1"


def test_start_of_day_truncates_to_local_midnight():
    assert start_of_day(datetime(2024, 3, 10, 17, 45)) == datetime(2024, 3, 10)
    assert start_of_day(date(2024, 3, 10)) == datetime(2024, 3, 10)
    assert start_of_day("2024-03-10") == datetime(2024, 3, 10)

    ny = ZoneInfo("America/New_York")
    # 02:00 UTC on the 11th is still the 10th in New York
    as_of = datetime(2024, 3, 11, 2, 0, tzinfo=timezone.utc)
    assert start_of_day(as_of, ny) == datetime(2024, 3, 10, 5, 0)


def test_to_money():
    assert to_money(None) == Decimal("0.00")
    assert to_money(150.1) == Decimal("150.10")
    assert to_money(Decimal("7")) == Decimal("7.00")
