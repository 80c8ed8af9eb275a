"""Date parsing utilities for coverage and record payloads."""

from __future__ import annotations

import logging
from datetime import date, datetime

logger = logging.getLogger(__name__)

# Reasonable date bounds for insured birth dates and coverage periods
MIN_VALID_YEAR = 1900
MAX_VALID_YEAR = 9999


def parse_flexible_date(value: str | date | datetime | None) -> date | None:
    """Parse a calendar date from multiple common formats with validation.

    Supports the following inputs:
    - ``date`` and ``datetime`` instances (datetimes are truncated to the date)
    - ISO 8601: YYYY-MM-DD (e.g., 2024-01-15)
    - ISO 8601 timestamps: YYYY-MM-DDTHH:MM:SS[Z|+HH:MM]
    - US format: MM/DD/YYYY (e.g., 01/15/2024)
    - Compact: YYYYMMDD (e.g., 20240115)

    Invalid calendar dates (Feb 30) and years outside 1900-9999 are
    rejected rather than raising, since every date on a coverage is
    optional and a bad one only makes the rules that need it decline.

    Examples:
        >>> parse_flexible_date("2024-01-15")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("01/15/2024")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("2024-01-15T10:30:00Z")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("2024-02-30") is None
        True
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()

    formats = [
        "%Y-%m-%d",  # ISO 8601
        "%m/%d/%Y",  # US format
        "%Y%m%d",  # Compact
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            # strptime raises ValueError for invalid dates like Feb 30
            continue
        if MIN_VALID_YEAR <= parsed.year <= MAX_VALID_YEAR:
            return parsed.date()

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable date: {text[:40]}")
        return None

    if parsed.year < MIN_VALID_YEAR:
        return None
    return parsed.date()
