"""Shared test configuration and fixtures for exam portal tests"""

import logging
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from exam_portal import models  # noqa: F401  registers the tables
from exam_portal.backends.expiring_store import InMemoryExpiringStore, get_stage_store
from exam_portal.config import config
from exam_portal.main import app
from exam_portal.models.database import get_db
from exam_portal.models.staged_registration import ApplicantSubmission
from exam_portal.services.account_service import AccountService
from exam_portal.services.code_challenge import CodeChallenge
from exam_portal.services.email_service import get_mailer
from exam_portal.services.exam_window_service import ExamWindowService
from exam_portal.services.registration_completion import RegistrationCompletion
from exam_portal.services.registration_stage import RegistrationStage
from exam_portal.services.slot_allocator import SlotAllocator
from tests.config import test_config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# 2025-06-02 is a Monday
MONDAY = date(2025, 6, 2)


class FakeClock:
    """Settable clock usable both as a datetime source and a seconds source."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def timestamp(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMailer:
    """Records verification codes instead of sending them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_code(self, email: str, code: str, name: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"email": email, "code": code, "name": name})
        return True

    def last_code(self, email: str) -> str:
        return [m["code"] for m in self.sent if m["email"] == email][-1]


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Apply test configuration values for the duration of each test"""
    monkeypatch.setitem(config, "admin_api_key", test_config["admin_api_key"])
    monkeypatch.setitem(config, "bcrypt_rounds", test_config["bcrypt_rounds"])
    monkeypatch.setitem(config, "environment", "test")


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so several sessions can share one database"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'exam_portal_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def _db_session(engine):
    """Private DB session for fixtures only.

    Prefer the service fixtures in tests; reach for this one only to inspect
    persisted rows.
    """
    session = Session(engine)
    yield session
    session.close()


@pytest.fixture
def store(clock):
    return InMemoryExpiringStore(clock=clock.timestamp)


@pytest.fixture
def code_challenge(store, clock):
    return CodeChallenge(
        store,
        clock=clock,
        max_attempts=5,
        stage_ttl_seconds=20 * 60,
        rate_window_seconds=20 * 60,
        begin_send_ceiling=20,
        resend_ceiling=3,
    )


@pytest.fixture
def account_service(_db_session, clock):
    return AccountService(_db_session, clock=clock)


@pytest.fixture
def window_service(_db_session, clock):
    return ExamWindowService(_db_session, clock=clock)


@pytest.fixture
def slot_allocator(_db_session, clock):
    return SlotAllocator(_db_session, clock=clock)


@pytest.fixture
def registration_stage(_db_session, store, clock, code_challenge):
    return RegistrationStage(
        _db_session,
        store,
        clock=clock,
        challenge=code_challenge,
        bcrypt_rounds=test_config["bcrypt_rounds"],
    )


@pytest.fixture
def registration_completion(_db_session, store, clock, code_challenge, slot_allocator):
    return RegistrationCompletion(
        _db_session,
        store,
        clock=clock,
        challenge=code_challenge,
        allocator=slot_allocator,
    )


@pytest.fixture
def open_window(window_service):
    """Open registration for the two business weeks starting MONDAY"""
    return window_service.update(
        registration_open=True,
        academic_year="2025-2026",
        semester="1st",
        exam_start_date=MONDAY,
        exam_end_date=MONDAY + timedelta(days=11),
        seats_per_day=40,
    )


@pytest.fixture
def make_submission():
    """Factory for valid applicant submissions"""

    def _make(email: str = "applicant@example.com", **overrides) -> ApplicantSubmission:
        data = {
            "last_name": "Dela Cruz",
            "first_name": "Juan",
            "middle_name": "Santos",
            "email": email,
            "password": "s3cret-pass",
            "password_confirmation": "s3cret-pass",
            "gender": "Male",
            "age": 18,
            "phone": "09171234567",
            "address": "123 Rizal Street, Quezon City",
            "school_name": "Quezon City Science High School",
            "parent_name": "Maria Dela Cruz",
            "parent_phone": "09181234567",
            "preferred_courses": ["BS Computer Science", "BS Nursing", "BS Accountancy"],
            "profile_image": b"\x89PNG\r\n\x1a\n\x00\x00fake-image",
            "profile_image_content_type": "image/png",
        }
        data.update(overrides)
        return ApplicantSubmission(**data)

    return _make


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(_db_session, store, mailer):
    """Test client wired to the test database, in-memory store and fake mailer"""
    original_overrides = app.dependency_overrides.copy()

    def get_test_db():
        return _db_session

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_stage_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)
