"""Exam calendar policy: which dates may be scheduled.

Pure functions over dates and an ``ExamWindowConfig``; nothing here reads the
clock, so identical inputs always give identical answers.
"""

from datetime import date, timedelta
from typing import Optional

from exam_portal.models.exam_window import ExamWindowConfig

# Applicants are never seated sooner than this many days after registering
BUFFER_DAYS = 2

SATURDAY = 5


def is_weekend(day: date) -> bool:
    return day.weekday() >= SATURDAY


def skip_weekend(day: date) -> date:
    """Return ``day`` or the Monday after it when it falls on a weekend."""
    while is_weekend(day):
        day += timedelta(days=1)
    return day


def eligible_on_or_after(candidate: date, window: ExamWindowConfig) -> Optional[date]:
    """
    First schedulable business day on or after ``candidate``.

    - Weekends are skipped.
    - Dates before window.start_date snap forward to it (then skip weekends again).
    - None when the result would fall after window.end_date.
    """
    candidate = skip_weekend(candidate)

    if window.start_date is not None and candidate < window.start_date:
        candidate = skip_weekend(window.start_date)

    if window.end_date is not None and candidate > window.end_date:
        return None

    return candidate


def next_eligible_date(from_date: date, window: ExamWindowConfig) -> Optional[date]:
    """
    Earliest exam date for an applicant registering on ``from_date``.

    Applies the fixed registration buffer, then the weekend and window rules.
    None means the window holds no further dates.
    """
    return eligible_on_or_after(from_date + timedelta(days=BUFFER_DAYS), window)


def is_schedulable(day: date, window: ExamWindowConfig) -> bool:
    """True when ``day`` is a weekday inside the window bounds."""
    if is_weekend(day):
        return False
    if window.start_date is not None and day < window.start_date:
        return False
    if window.end_date is not None and day > window.end_date:
        return False
    return True
