"""Tests for ExamWindowService"""

from datetime import date

import pytest
from pydantic import ValidationError

from exam_portal.models import ExamSession, ExamWindowConfig, SessionStatus
from exam_portal.services.exam_window_service import CLOSED_MESSAGE


def test_missing_settings_means_closed(window_service):
    window = window_service.current()

    assert window == ExamWindowConfig.closed()
    assert window.registration_open is False


def test_update_creates_singleton_then_edits_it(window_service):
    created = window_service.update(registration_open=True, seats_per_day=30)
    updated = window_service.update(registration_message="See you on exam day")

    assert created.registration_open is True
    assert updated.registration_open is True
    assert updated.seats_per_day == 30
    assert updated.message == "See you on exam day"
    assert updated.seats_per_session == 15


def test_update_defaults_seats_per_day(window_service):
    assert window_service.update(registration_open=True).seats_per_day == 40


def test_update_rejects_inverted_range(window_service):
    with pytest.raises(ValueError):
        window_service.update(
            exam_start_date=date(2025, 6, 13), exam_end_date=date(2025, 6, 2)
        )


def test_update_rejects_unknown_field(window_service):
    with pytest.raises(ValueError):
        window_service.update(students_per_day=10)


def test_window_snapshot_is_immutable(open_window):
    with pytest.raises(ValidationError):
        open_window.seats_per_day = 10


def test_auto_close_before_end_is_noop(window_service, open_window):
    outcome = window_service.auto_close(today=date(2025, 6, 13))

    assert outcome.closed is False
    assert window_service.current().registration_open is True


def test_auto_close_without_end_date_is_noop(window_service):
    window_service.update(registration_open=True)

    assert window_service.auto_close(today=date(2030, 1, 1)).closed is False


def test_auto_close_after_end(window_service, open_window, slot_allocator, _db_session):
    open_day = slot_allocator.ensure_sessions(date(2025, 6, 12), open_window)
    full_day = slot_allocator.ensure_sessions(date(2025, 6, 13), open_window)
    full = full_day[ExamSession.MORNING]
    full.current_count = full.max_capacity
    full.status = SessionStatus.FULL.value
    _db_session.add(full)
    _db_session.commit()

    outcome = window_service.auto_close(today=date(2025, 6, 14))

    assert outcome.closed is True
    assert outcome.sessions_closed == 3
    window = window_service.current()
    assert window.registration_open is False
    assert window.message == CLOSED_MESSAGE

    statuses = {
        (s.exam_date, s.session): s.status
        for day in (date(2025, 6, 12), date(2025, 6, 13))
        for s in slot_allocator.get_sessions(day).values()
    }
    assert statuses[(date(2025, 6, 13), "morning")] == SessionStatus.FULL.value
    assert statuses[(date(2025, 6, 13), "afternoon")] == SessionStatus.CLOSED.value
    assert all(
        statuses[(date(2025, 6, 12), s.value)] == SessionStatus.CLOSED.value
        for s in open_day
    )
