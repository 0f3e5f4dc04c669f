"""
Date helpers: YYYY-MM values used by the education and experience validators,
and ISO-8601 timestamps used by calendar events.
"""

import re
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

YEAR_MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_year_month(value: Optional[str]) -> Optional[Tuple[int, int]]:
    if not value or not isinstance(value, str):
        return None
    match = YEAR_MONTH_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def is_year_month_order_valid(start: str, end: Optional[str]) -> bool:
    """End must not precede start. Unparseable values are left to the format check."""
    if not end:
        return True
    parsed_start = parse_year_month(start)
    parsed_end = parse_year_month(end)
    if not parsed_start or not parsed_end:
        return True
    return parsed_end >= parsed_start


def parse_iso_datetime(value: Union[str, datetime]) -> datetime:
    """
    Timezone-aware datetime from an ISO-8601 string or datetime.

    A trailing "Z" is accepted and naive values are taken as UTC.
    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Invalid date")
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc_iso(value: Union[str, datetime]) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-05-01T01:00:00.000Z."""
    parsed = parse_iso_datetime(value).astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"
