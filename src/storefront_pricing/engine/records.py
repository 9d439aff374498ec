"""
Record parsing helpers.

Backing-store rows arrive as loosely typed dicts (CSV strings, JSON values,
blank cells). These helpers turn a single field into a typed value or raise
ValueError so the caller can reject the whole record.
"""
import math
from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Any, Optional


def is_blank(value: Any) -> bool:
    """True for None, NaN, and empty/whitespace strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() in ('', 'nan', 'None', 'null'):
        return True
    return False


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean from a store value."""
    if is_blank(value):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on', 't')


def parse_optional_str(value: Any) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if is_blank(value):
        return None
    return str(value).strip()


def parse_float(value: Any, field_name: str) -> float:
    """Parse a required number; raises ValueError on blank or non-numeric."""
    if is_blank(value):
        raise ValueError(f"{field_name} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be numeric") from None
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"{field_name} must be a finite number")
    return number


def parse_optional_float(value: Any, field_name: str) -> Optional[float]:
    """Parse optional number."""
    if is_blank(value):
        return None
    return parse_float(value, field_name)


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    """Parse optional integer. Accepts '5' and '5.0'."""
    number = parse_optional_float(value, field_name)
    if number is None:
        return None
    if number != int(number):
        raise ValueError(f"{field_name} must be a whole number")
    return int(number)


def parse_list(value: Any) -> tuple[str, ...]:
    """Parse a list column: a real list, or a '|' / ',' separated string."""
    if is_blank(value):
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        text = str(value)
        separator = '|' if '|' in text else ','
        items = text.split(separator)
    return tuple(str(item).strip() for item in items if not is_blank(item))


def to_naive(moment: datetime) -> datetime:
    """Drop timezone info after converting aware datetimes to UTC."""
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def parse_datetime(value: Any, field_name: str, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an optional date bound.

    Date-only values ('2025-12-31') cover the whole day: as a start bound they
    mean midnight, as an end bound (end_of_day=True) they mean 23:59:59.999999.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return to_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)

    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end_of_day else time.min)
        return to_naive(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO date (YYYY-MM-DD)") from None


def within_window(moment: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Inclusive window check; a missing bound is unbounded on that side."""
    moment = to_naive(moment)
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def round_money(value: float) -> float:
    """Round to the smallest currency unit (2 decimals), half away from zero."""
    quantized = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    return float(quantized)


def ceil_money(value: float) -> float:
    """Round up to the smallest currency unit."""
    quantized = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_CEILING)
    return float(quantized)
