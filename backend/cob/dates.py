"""Calendar helpers for age, elapsed-month and coverage-period math."""
from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

Clock = Callable[[], datetime]

# Stand-ins for an open-ended coverage period
DISTANT_PAST = date.min
FAR_FUTURE = date.max


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``.

    Uses calendar subtraction, so a person born on 1986-10-18 is still 39
    on 2026-10-17 and turns 40 the following day.
    """
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def months_between(start: date, end: date) -> int:
    """Calendar months from ``start`` to ``end``, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def verification_cutoff(now: datetime, days: int) -> datetime:
    """Oldest verification time still considered current.

    A verification stamped strictly before the cutoff is stale. The record
    store's worklist query and the lazy status transition both use it.
    """
    return now - timedelta(days=days)


def date_ranges_overlap(
    start1: date | None,
    end1: date | None,
    start2: date | None,
    end2: date | None,
) -> bool:
    """Inclusive overlap test; a missing start or end is open-ended."""
    start1 = start1 or DISTANT_PAST
    end1 = end1 or FAR_FUTURE
    start2 = start2 or DISTANT_PAST
    end2 = end2 or FAR_FUTURE
    return start1 <= end2 and start2 <= end1
