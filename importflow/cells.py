"""
cells.py — typed values out of raw spreadsheet cells

A cell can arrive as a native date/datetime (workbook date cells), a number
(date serials, identifiers, volumes), a string, or nothing at all. Everything
here is lenient: unreadable values become None instead of raising, so one bad
row never aborts an import.
"""

from __future__ import annotations

import numbers
from datetime import date, datetime
from typing import Any

import pandas as pd

# Serial 25569 is the unix epoch.
SERIAL_ORIGIN = "1899-12-30"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def serial_to_date(serial: float) -> date | None:
    try:
        parsed = pd.to_datetime(float(serial), unit="D", origin=SERIAL_ORIGIN, errors="coerce")
    except (OverflowError, ValueError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def _parse_date_text(text: str) -> date | None:
    parsed = pd.to_datetime(text.strip(), errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def normalize_date(value: Any) -> date | None:
    """
    Resolve a raw cell into a calendar date.

    Native dates pass through (datetimes are truncated to their date part),
    numbers are read as spreadsheet serials, strings go through the general
    date parser. Blank or unparseable input gives None.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_number(value):
        return serial_to_date(value)
    if isinstance(value, str):
        return _parse_date_text(value)
    return None


def required_date(value: Any, today: date) -> date:
    """Like normalize_date, but falls back to today instead of None."""
    resolved = normalize_date(value)
    return resolved if resolved is not None else today


def optional_date(value: Any) -> date | None:
    return normalize_date(value)


def cell_text(value: Any) -> str | None:
    """Render a cell as trimmed text; integral floats lose their trailing .0."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if _is_number(value) and not isinstance(value, int):
        number = float(value)
        if number.is_integer():
            return str(int(number))
    return str(value).strip()


def cell_value(value: Any, default: Any) -> Any:
    """Passthrough for descriptive cells: numbers stay numbers, anything else becomes text."""
    if is_blank(value):
        return default
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return int(value)
    if _is_number(value):
        number = float(value)
        return int(number) if number.is_integer() else number
    return cell_text(value)
