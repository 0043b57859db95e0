"""
String, name, substance and date normalization utilities.

This module provides the normalization functions used throughout the intake
core so that identity matching and substance comparison operate on
consistent values regardless of how the source system formatted them.
"""

import re
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

DateLike = Union[date, datetime, str, None]

NONE_SUBSTANCE = "none"


def normalize_string(s: Optional[str]) -> str:
    """
    Normalize string for case-insensitive comparison.

    Args:
        s: Input string to normalize

    Returns:
        Lowercase string with surrounding whitespace removed and inner
        whitespace collapsed to a single space
    """
    if not s:
        return ""
    return re.sub(r'\s+', ' ', s.strip().lower())


def parse_full_name(full_name: Optional[str]) -> dict:
    """
    Split a full name into first, middle and last components.

    A single token is treated as a last name. With three or more tokens,
    everything between the first and last token is the middle part.

    Args:
        full_name: Name as printed on a report or stored on a test record

    Returns:
        Dictionary with 'first', 'middle' (or None) and 'last' keys
    """
    parts = (full_name or "").split()

    if not parts:
        return {'first': '', 'middle': None, 'last': ''}
    if len(parts) == 1:
        return {'first': '', 'middle': None, 'last': parts[0]}
    if len(parts) == 2:
        return {'first': parts[0], 'middle': None, 'last': parts[1]}

    return {
        'first': parts[0],
        'middle': ' '.join(parts[1:-1]),
        'last': parts[-1],
    }


def normalize_substance(substance: Optional[str]) -> str:
    """Normalize a substance code to its lowercase stored form."""
    if not substance:
        return ""
    return substance.strip().lower()


def clean_substances(substances: Optional[Iterable[str]]) -> List[str]:
    """
    Normalize a substance list, dropping blanks and the 'none' sentinel.

    Order of first appearance is preserved and duplicates are removed.
    """
    cleaned: List[str] = []
    for substance in substances or []:
        value = normalize_substance(substance)
        if value and value != NONE_SUBSTANCE and value not in cleaned:
            cleaned.append(value)
    return cleaned


def to_calendar_date(value: DateLike) -> Optional[date]:
    """
    Reduce a date-like value to a calendar date.

    Accepts ``date``/``datetime`` objects and strings in ISO 8601 (with or
    without a time component) or US formats. Any time-of-day component is
    discarded.

    Args:
        value: Date, datetime, string or None

    Returns:
        The calendar date, or None when the value is absent or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    date_str = str(value).strip()
    if not date_str:
        return None

    # ISO timestamps as stored by the record store ('2025-01-15T14:30:00.000Z')
    iso_day = date_str.split('T')[0]

    formats = ['%Y-%m-%d', '%m/%d/%Y', '%Y/%m/%d', '%m-%d-%Y']
    for fmt in formats:
        try:
            return datetime.strptime(iso_day, fmt).date()
        except ValueError:
            continue

    return None
