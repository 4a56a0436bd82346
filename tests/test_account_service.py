"""Tests for AccountService"""

import uuid

import pytest
from sqlmodel import select

from exam_portal.models import Account, ApplicantProfile


def _shadow(account_service, email):
    return account_service.upsert_shadow(email, "Shadow Applicant", "$2b$04$hash")


def test_upsert_shadow_normalizes_email(account_service):
    account = _shadow(account_service, "  Mixed.Case@Example.COM ")

    assert account.email == "mixed.case@example.com"
    assert account.is_verified is False
    assert account_service.get_by_email("MIXED.CASE@example.com").id == account.id


def test_upsert_shadow_refuses_verified_account(account_service, _db_session, clock):
    account = _shadow(account_service, "a@example.com")
    account.email_verified_at = clock()
    _db_session.add(account)
    _db_session.commit()

    with pytest.raises(ValueError):
        _shadow(account_service, "a@example.com")


def test_is_abandoned_after_twenty_minutes(account_service, clock):
    account = _shadow(account_service, "a@example.com")

    clock.advance(minutes=20)
    assert account_service.is_abandoned(account) is False

    clock.advance(seconds=1)
    assert account_service.is_abandoned(account) is True


def test_purge_abandoned_dry_run_keeps_accounts(account_service, _db_session, clock):
    _shadow(account_service, "old@example.com")
    clock.advance(hours=25)

    outcome = account_service.purge_abandoned(older_than_hours=24, dry_run=True)

    assert outcome.dry_run is True
    assert outcome.emails == ["old@example.com"]
    assert len(_db_session.exec(select(Account)).all()) == 1


def test_purge_abandoned_only_removes_stale_profileless_unverified(
    account_service, _db_session, clock
):
    _shadow(account_service, "old@example.com")
    verified = _shadow(account_service, "verified@example.com")
    verified.email_verified_at = clock()
    _db_session.add(verified)
    with_profile = _shadow(account_service, "profile@example.com")
    _db_session.add(
        ApplicantProfile(
            id=uuid.uuid4(),
            account_id=with_profile.id,
            last_name="Reyes",
            first_name="Ana",
            gender="Female",
            age=17,
            phone="09170000000",
            address="Manila",
            school_name="Manila High",
            parent_name="Jose Reyes",
            parent_phone="09180000000",
            preferred_courses=["A", "B", "C"],
        )
    )
    _db_session.commit()
    clock.advance(hours=25)
    _shadow(account_service, "recent@example.com")

    outcome = account_service.purge_abandoned(older_than_hours=24)

    assert outcome.emails == ["old@example.com"]
    remaining = {a.email for a in _db_session.exec(select(Account)).all()}
    assert remaining == {
        "verified@example.com",
        "profile@example.com",
        "recent@example.com",
    }
