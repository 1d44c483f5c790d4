"""Date helpers for spreadsheet uploads.

Schedule and invoice sheets carry dates in whatever shape the exporting
system produced: real date cells, Excel serial numbers, ISO strings,
``21-Jan-2026`` or ``21/01/2026``. Everything is reduced to a calendar day
(:class:`datetime.date`) so comparisons never drift across time zones.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any

EXCEL_EPOCH = date(1899, 12, 30)  # Day zero of the Excel 1900 date system
SERIAL_MIN = 30000  # ~1982-02
SERIAL_MAX = 80000  # ~2119-01

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_ISO_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
_NUMERIC_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})(?:\s+.*)?$")
_MONTH_NAME_RE = re.compile(r"^(\d{1,2})[-\s]+([A-Za-z]{3,9})[-\s]+(\d{2}|\d{4})(?:\s+.*)?$")
_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")


def to_calendar_day(value: date | datetime) -> date:
    """Return the local calendar day for ``value``.

    Aware datetimes are converted to local time first; naive ones are taken
    as already local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def make_date_strict(year: int, month: int, day: int) -> date | None:
    """Build a date, returning ``None`` instead of rolling over invalid days."""
    if not 1900 <= year <= 2200:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def excel_serial_to_date(serial: float) -> date | None:
    whole_days = int(serial)  # Fractional part is the time of day
    if not SERIAL_MIN <= whole_days <= SERIAL_MAX:
        return None
    return EXCEL_EPOCH + timedelta(days=whole_days)


def _parse_month_name(text: str) -> date | None:
    match = _MONTH_NAME_RE.match(text)
    if not match:
        return None
    month = MONTHS.get(match.group(2).lower())
    if month is None:
        return None
    year_text = match.group(3)
    year = int(year_text)
    if len(year_text) == 2:
        year += 2000  # Operational range only
    return make_date_strict(year, month, int(match.group(1)))


def _parse_numeric(text: str, prefer_day_first: bool) -> date | None:
    match = _NUMERIC_RE.match(text)
    if not match:
        return None
    first, second, year = (int(part) for part in match.groups())
    day_first = make_date_strict(year, second, first)
    month_first = make_date_strict(year, first, second)
    if prefer_day_first:
        return day_first or month_first
    return month_first or day_first


def parse_date_value(value: Any, prefer_day_first: bool = True) -> date | None:
    """Parse a spreadsheet cell into a calendar day, or ``None`` if invalid."""

    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return to_calendar_day(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return excel_serial_to_date(value)

    text = str(value).strip()
    if not text:
        return None

    if _SERIAL_RE.match(text):
        # Numeric text is only ever a serial; anything else is rejected
        return excel_serial_to_date(float(text))

    iso = _ISO_RE.match(text.split("T")[0].strip())
    if iso:
        year, month, day = (int(part) for part in iso.groups())
        return make_date_strict(year, month, day)

    return _parse_month_name(text) or _parse_numeric(text, prefer_day_first)


def parse_time_value(value: Any) -> str | None:
    """Normalise a delivery time cell to ``HH:MM`` text where possible."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime("%H:%M")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    text = str(value).strip()
    return text or None


__all__ = [
    "excel_serial_to_date",
    "make_date_strict",
    "parse_date_value",
    "parse_time_value",
    "to_calendar_day",
]
