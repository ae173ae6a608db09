# backoffice/services/normalize.py
"""
Canonical parse/format helpers for invoice field values.

The same helper is applied to the stored value and to the incoming value
before any comparison, so "50", 50 and Decimal("50.00") are the same amount
and "2024-03-01" and "2024-03-01T00:00:00Z" are the same due date.

Instants are stored as naive UTC datetimes.
"""

from datetime import date, datetime, time, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Union

from backoffice.db.schema import INVOICE_STATUSES, InvoiceStatus
from backoffice.errors import ValidationError

CENT = Decimal("0.01")

DateLike = Union[datetime, date, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_amount(value: Any) -> Decimal:
    """Parse an amount into a positive Decimal rounded to cents."""
    if value is None or isinstance(value, bool):
        raise ValidationError("amount is required")

    if isinstance(value, float):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            raise ValidationError("amount is required")

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"amount must be a number, got {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"amount must be a finite number, got {value!r}")

    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"amount is out of range, got {value!r}")
    if amount <= 0:
        raise ValidationError("amount must be positive")
    return amount


def format_amount(value: Decimal) -> str:
    return str(parse_amount(value))


def parse_status(value: Any) -> str:
    if isinstance(value, InvoiceStatus):
        return value.value
    if value not in INVOICE_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(INVOICE_STATUSES)}, got {value!r}"
        )
    return value


def to_money(value: Any) -> Decimal:
    """Aggregate sums from the store (Decimal, float, int or None) as cents."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def coerce_datetime(value: Any) -> datetime:
    """
    Turn an ISO string / date / datetime into a datetime, keeping whatever
    tzinfo the input carried. Date-only inputs become midnight.
    """
    if value is None:
        raise ValidationError("due date is required")

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValidationError("due date is required")
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"due date must be an ISO 8601 date, got {value!r}")

    raise ValidationError(f"due date must be a date, got {type(value).__name__}")


def to_utc_naive(value: datetime, tz: tzinfo = timezone.utc) -> datetime:
    # naive values are wall-clock time in the business timezone
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_due_date(value: Any, tz: tzinfo = timezone.utc) -> datetime:
    return to_utc_naive(coerce_datetime(value), tz)


def format_instant(value: datetime) -> str:
    """ISO 8601 with millisecond precision and a Z suffix."""
    return value.isoformat(timespec="milliseconds") + "Z"


def normalize_text(value: Optional[Any]) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_external_id(value: Optional[Any]) -> Optional[str]:
    """Stored form of an external id: blank means "none" (NULL)."""
    text = normalize_text(value).strip()
    return text or None


def start_of_day(as_of: Optional[DateLike] = None, tz: tzinfo = timezone.utc) -> datetime:
    """
    Local midnight of as_of's calendar day in tz, returned as naive UTC.
    as_of defaults to now.
    """
    if isinstance(as_of, str):
        as_of = coerce_datetime(as_of)

    if as_of is None:
        local_day = datetime.now(tz).date()
    elif isinstance(as_of, datetime):
        if as_of.tzinfo is not None:
            as_of = as_of.astimezone(tz)
        local_day = as_of.date()
    elif isinstance(as_of, date):
        local_day = as_of
    else:
        raise ValidationError(f"as_of must be a date, got {type(as_of).__name__}")

    midnight = datetime.combine(local_day, time.min).replace(tzinfo=tz)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)
