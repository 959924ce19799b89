"""
Formatting helpers shared by services and serializers.
Money is always handled as Decimal with two decimals; datetimes are UTC-naive.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, timezone
from typing import Any, Optional, Union

CENTS = Decimal('0.01')


def to_decimal(value: Union[int, float, Decimal, str, None], default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert user input to Decimal.

    Returns `default` for None / empty strings and raises ValueError
    when the value is not a number.
    """
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return default
    try:
        if isinstance(value, str):
            value = value.strip().replace(',', '.')
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Invalid numeric value: {value!r}')


def money(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """Quantize a monetary value to cents (ROUND_HALF_UP)."""
    if value is None:
        return Decimal('0.00')
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    """Current time in UTC (naive, canonical for storage)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO-8601 (None passthrough)."""
    if value is None:
        return None
    return value.isoformat()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "...Z" or "...+HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    s = value.strip()
    if not s:
        return None
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_json_safe(value: Any) -> Any:
    """Recursively convert Decimals and datetimes so the value can be stored as JSON."""
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
