"""Parsing and display helpers for the loosely formatted date strings stored on
risks, treatments and workshops (ISO, dd/mm/yyyy and dd MMM yyyy)."""

import math
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

NOT_SPECIFIED = "Not specified"
INVALID_DATE = "Invalid date"

MONTH_ABBREVIATIONS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
_MONTH_LOOKUP = {name.lower(): index + 1 for index, name in enumerate(MONTH_ABBREVIATIONS)}

_DAY_MONTH_YEAR = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_DAY_MONTHNAME_YEAR = re.compile(r"^(\d{2}) ([A-Za-z]{3}) (\d{4})$")

DateInput = Union[str, date, datetime, None]


def _parse_iso(text: str) -> Optional[datetime]:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _build(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_date(value: DateInput) -> Optional[datetime]:
    """Parse a stored date value; returns None instead of raising."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    parsed = _parse_iso(text)
    if parsed is not None:
        return parsed

    match = _DAY_MONTH_YEAR.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _build(year, month, day)

    match = _DAY_MONTHNAME_YEAR.match(text)
    if match:
        day, month_name, year = match.groups()
        month = _MONTH_LOOKUP.get(month_name.lower())
        if month is None:
            return None
        return _build(int(year), month, int(day))

    return None


def _is_placeholder(value: DateInput) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and (not value.strip() or value.strip() == NOT_SPECIFIED)


def format_date(value: DateInput) -> str:
    """Render as "dd MMM yyyy" (en-GB), e.g. "15 Jan 2024"."""
    if _is_placeholder(value):
        return NOT_SPECIFIED
    parsed = parse_date(value)
    if parsed is None:
        return INVALID_DATE
    return f"{parsed.day:02d} {MONTH_ABBREVIATIONS[parsed.month - 1]} {parsed.year:04d}"


def to_date_input_value(value: DateInput) -> str:
    """yyyy-mm-dd for date picker inputs, or "" when the value is unusable."""
    if _is_placeholder(value):
        return ""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d")


def get_relative_time(value: DateInput, now: Optional[datetime] = None) -> str:
    """Coarse "N days/weeks/months/years ago" label, or "" when unparseable."""
    if _is_placeholder(value):
        return ""
    parsed = parse_date(value)
    if parsed is None:
        return ""

    if now is None:
        now = datetime.now(timezone.utc) if parsed.tzinfo else datetime.now()
    elif now.tzinfo is None and parsed.tzinfo is not None:
        now = now.replace(tzinfo=timezone.utc)
    elif now.tzinfo is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)

    diff_seconds = abs((now - parsed).total_seconds())
    diff_days = math.ceil(diff_seconds / 86400)

    if diff_days == 1:
        return "1 day ago"
    if diff_days < 7:
        return f"{diff_days} days ago"
    if diff_days < 30:
        return f"{math.ceil(diff_days / 7)} weeks ago"
    if diff_days < 365:
        return f"{math.ceil(diff_days / 30)} months ago"
    return f"{math.ceil(diff_days / 365)} years ago"


def is_today_or_later(value: DateInput, today: Optional[date] = None) -> bool:
    parsed = parse_date(value)
    if parsed is None:
        return False
    today = today or date.today()
    return parsed.date() >= today
