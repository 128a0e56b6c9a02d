"""
Value rendering helpers shared by the format encoders and the query layer.

Numbers render as plain decimal text in source units with no rounding;
timestamps render as UTC ISO-8601 with millisecond precision.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional


def is_blank(value: Any) -> bool:
    """True for None and empty or whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def format_number(value: Any) -> str:
    """
    Render a numeric value as plain decimal text.

    Integral floats drop the trailing ".0" (1.0 -> "1"), other floats use
    their shortest round-trip form, Decimals render in fixed notation and
    strings pass through unchanged.
    """
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp into an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), ISO-8601 strings and
    epoch milliseconds. Returns None for blank or unparseable input.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Any) -> Optional[str]:
    """Render a timestamp as YYYY-MM-DDTHH:MM:SS.mmmZ, or None."""
    dt = parse_timestamp(value)
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
