"""Tests for the exam calendar policy"""

from datetime import date, timedelta

import pytest

from exam_portal.models.exam_window import ExamWindowConfig
from exam_portal.services.exam_calendar import (
    eligible_on_or_after,
    is_schedulable,
    is_weekend,
    next_eligible_date,
)

OPEN_ENDED = ExamWindowConfig(registration_open=True)


@pytest.mark.parametrize(
    "registered, expected",
    [
        (date(2025, 6, 2), date(2025, 6, 4)),  # Mon -> Wed
        (date(2025, 6, 4), date(2025, 6, 6)),  # Wed -> Fri
        (date(2025, 6, 5), date(2025, 6, 9)),  # Thu -> Sat, skipped to Mon
        (date(2025, 6, 6), date(2025, 6, 9)),  # Fri -> Sun, skipped to Mon
        (date(2025, 6, 7), date(2025, 6, 9)),  # Sat -> Mon
    ],
)
def test_two_day_buffer_then_weekend_skip(registered, expected):
    assert next_eligible_date(registered, OPEN_ENDED) == expected


def test_never_returns_weekend():
    start = date(2025, 1, 1)
    for offset in range(400):
        result = next_eligible_date(start + timedelta(days=offset), OPEN_ENDED)
        assert result is not None
        assert not is_weekend(result)


def test_snaps_to_window_start():
    window = ExamWindowConfig(start_date=date(2025, 7, 1), end_date=date(2025, 7, 31))

    assert next_eligible_date(date(2025, 6, 2), window) == date(2025, 7, 1)


def test_window_start_on_weekend_moves_to_monday():
    # 2025-07-05 is a Saturday
    window = ExamWindowConfig(start_date=date(2025, 7, 5))

    assert next_eligible_date(date(2025, 6, 2), window) == date(2025, 7, 7)


def test_past_window_end_has_no_date():
    window = ExamWindowConfig(start_date=date(2025, 6, 2), end_date=date(2025, 6, 13))

    assert next_eligible_date(date(2025, 6, 12), window) is None
    # Friday end date is still eligible from a Wednesday registration
    assert next_eligible_date(date(2025, 6, 11), window) == date(2025, 6, 13)


def test_weekend_skip_past_window_end():
    # Ends on a Saturday; Friday registration lands on Sunday -> Monday, past the end
    window = ExamWindowConfig(end_date=date(2025, 6, 14))

    assert next_eligible_date(date(2025, 6, 13), window) is None


def test_deterministic():
    window = ExamWindowConfig(start_date=date(2025, 6, 2), end_date=date(2025, 6, 30))

    results = {next_eligible_date(date(2025, 6, 5), window) for _ in range(10)}
    assert results == {date(2025, 6, 9)}


def test_eligible_on_or_after_has_no_buffer():
    assert eligible_on_or_after(date(2025, 6, 4), OPEN_ENDED) == date(2025, 6, 4)
    assert eligible_on_or_after(date(2025, 6, 7), OPEN_ENDED) == date(2025, 6, 9)


def test_is_schedulable():
    window = ExamWindowConfig(start_date=date(2025, 6, 2), end_date=date(2025, 6, 13))

    assert is_schedulable(date(2025, 6, 2), window)
    assert is_schedulable(date(2025, 6, 13), window)
    assert not is_schedulable(date(2025, 6, 7), window)
    assert not is_schedulable(date(2025, 5, 30), window)
    assert not is_schedulable(date(2025, 6, 16), window)
