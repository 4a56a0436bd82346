"""Tests for RegistrationCompletion.commit"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import func, select

from exam_portal.models import (
    Account,
    ApplicantProfile,
    ExamSession,
    Registration,
    RegistrationStatus,
    SlotSession,
)
from exam_portal.services.outcomes import ErrorKind
from exam_portal.utils.security import verify_password

EMAIL = "applicant@example.com"


def _count(db, model) -> int:
    return db.exec(select(func.count()).select_from(model)).one()


@pytest.fixture
def begun(registration_stage, open_window, make_submission):
    """Begin a registration on Monday 2025-06-02 and return its code"""

    def _begin(email: str = EMAIL, **overrides) -> str:
        outcome = registration_stage.begin(make_submission(email=email, **overrides))
        assert outcome.success is True
        return outcome.code

    return _begin


def test_commit_assigns_first_seat(
    registration_completion, begun, _db_session, code_challenge
):
    code = begun()

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.success is True
    assert outcome.status == RegistrationStatus.ASSIGNED.value
    assert outcome.assigned_exam_date == date(2025, 6, 4)
    assert outcome.assigned_session is ExamSession.MORNING

    account = _db_session.get(Account, outcome.account_id)
    assert account.is_verified
    assert account.username == "Juan Santos Dela Cruz"
    assert verify_password("s3cret-pass", account.password_hash)

    registration = _db_session.get(Registration, outcome.registration_id)
    assert registration.school_year == "2025-2026"
    assert registration.semester == "1st"
    assert registration.registration_date == date(2025, 6, 2)

    profile = _db_session.get(ApplicantProfile, registration.profile_id)
    assert profile.account_id == account.id
    assert profile.preferred_courses == [
        "BS Computer Science",
        "BS Nursing",
        "BS Accountancy",
    ]
    assert profile.profile_image.startswith(b"\x89PNG")

    # Stage is gone once committed
    assert code_challenge.load_stage(EMAIL) is None


def test_commit_with_wrong_code_propagates_mismatch(
    registration_completion, begun, _db_session
):
    code = begun()
    wrong = "000000" if code != "000000" else "111111"

    outcome = registration_completion.commit(EMAIL, wrong)

    assert outcome.error is ErrorKind.MISMATCH
    assert _count(_db_session, Registration) == 0


def test_commit_without_stage_is_not_found(registration_completion, open_window):
    assert registration_completion.commit(EMAIL, "123456").error is ErrorKind.NOT_FOUND


def test_twenty_first_commit_gets_afternoon(registration_completion, begun):
    outcomes = []
    for i in range(21):
        email = f"applicant{i}@example.com"
        outcomes.append(registration_completion.commit(email, begun(email=email)))

    assert all(o.assigned_exam_date == date(2025, 6, 4) for o in outcomes)
    assert [o.assigned_session for o in outcomes[:20]] == [ExamSession.MORNING] * 20
    assert outcomes[20].assigned_session is ExamSession.AFTERNOON


def test_commit_without_capacity_stays_registered(
    registration_completion, window_service, begun, _db_session, code_challenge
):
    code = begun()
    # Window ends before the earliest eligible exam date
    window_service.update(exam_end_date=date(2025, 6, 3))

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.success is True
    assert outcome.status == RegistrationStatus.REGISTERED.value
    assert outcome.assigned_exam_date is None
    registration = _db_session.get(Registration, outcome.registration_id)
    assert registration.assigned_session is None
    assert _count(_db_session, SlotSession) == 0
    assert code_challenge.load_stage(EMAIL) is None


def test_failed_commit_rolls_back_and_retry_succeeds(
    registration_completion, begun, _db_session, code_challenge, monkeypatch
):
    code = begun()
    real_commit = _db_session.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(_db_session, "commit", flaky_commit)

    failed = registration_completion.commit(EMAIL, code)

    assert failed.success is False
    assert failed.error is ErrorKind.FATAL
    assert code_challenge.load_stage(EMAIL) is not None
    assert _count(_db_session, ApplicantProfile) == 0
    assert _count(_db_session, Registration) == 0
    assert _count(_db_session, SlotSession) == 0
    account = _db_session.exec(select(Account).where(Account.email == EMAIL)).one()
    assert account.is_verified is False

    retried = registration_completion.commit(EMAIL, code)

    assert retried.success is True
    assert retried.assigned_exam_date == date(2025, 6, 4)
    assert _count(_db_session, Registration) == 1
    morning = _db_session.exec(
        select(SlotSession).where(SlotSession.session == "morning")
    ).one()
    assert morning.current_count == 1


def test_commit_after_lost_stage_delete_is_already_verified(
    registration_completion, begun, _db_session, code_challenge
):
    code = begun()
    stage = code_challenge.load_stage(EMAIL)
    assert registration_completion.commit(EMAIL, code).success is True

    # Simulate a stage that survived the first commit
    code_challenge.save_stage(stage)

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.error is ErrorKind.ALREADY_VERIFIED
    assert _count(_db_session, Registration) == 1
    assert code_challenge.load_stage(EMAIL) is None


def test_commit_recreates_missing_account(
    registration_completion, begun, account_service, _db_session
):
    code = begun()
    account_service.delete_account(account_service.get_by_email(EMAIL))

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.success is True
    account = account_service.get_by_email(EMAIL)
    assert account.id == outcome.account_id
    assert account.is_verified


def test_commit_uses_preferred_session_when_available(
    registration_completion, begun, slot_allocator, open_window, _db_session
):
    slot_allocator.ensure_sessions(date(2025, 6, 10), open_window)
    _db_session.commit()
    code = begun(
        selected_exam_date=date(2025, 6, 10),
        selected_exam_session=ExamSession.AFTERNOON,
    )

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.assigned_exam_date == date(2025, 6, 10)
    assert outcome.assigned_session is ExamSession.AFTERNOON


def test_commit_creates_preferred_session_when_missing(registration_completion, begun):
    code = begun(
        selected_exam_date=date(2025, 6, 9),
        selected_exam_session=ExamSession.AFTERNOON,
    )

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.assigned_exam_date == date(2025, 6, 9)
    assert outcome.assigned_session is ExamSession.AFTERNOON


def test_commit_ignores_preferred_date_in_the_past(
    registration_completion, begun, window_service, slot_allocator, _db_session, clock
):
    window = window_service.update(exam_start_date=date(2025, 5, 26))
    slot_allocator.ensure_sessions(date(2025, 5, 28), window)
    _db_session.commit()
    code = begun(
        selected_exam_date=date(2025, 5, 28),
        selected_exam_session=ExamSession.MORNING,
    )

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.success is True
    assert outcome.assigned_exam_date >= clock().date()
    assert outcome.assigned_exam_date == date(2025, 6, 4)
    assert outcome.assigned_session is ExamSession.MORNING
    past = slot_allocator.get_session(date(2025, 5, 28), ExamSession.MORNING)
    assert past.current_count == 0


def test_commit_skips_preferred_date_inside_buffer(registration_completion, begun):
    code = begun(
        selected_exam_date=date(2025, 6, 3),
        selected_exam_session=ExamSession.AFTERNOON,
    )

    outcome = registration_completion.commit(EMAIL, code)

    assert outcome.assigned_exam_date == date(2025, 6, 5)
    assert outcome.assigned_session is ExamSession.MORNING


def test_commit_defaults_academic_period(
    registration_completion,
    window_service,
    registration_stage,
    make_submission,
    _db_session,
):
    window_service.update(registration_open=True, exam_end_date=date(2025, 6, 30))
    code = registration_stage.begin(make_submission()).code

    outcome = registration_completion.commit(EMAIL, code)

    registration = _db_session.get(Registration, outcome.registration_id)
    assert registration.school_year == "2025-2026"
    assert registration.semester == "1st"
