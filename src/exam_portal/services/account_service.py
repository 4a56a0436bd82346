"""Account Service - shadow and verified account database operations"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from exam_portal.config import config
from exam_portal.models.account import Account
from exam_portal.models.applicant_profile import ApplicantProfile
from exam_portal.models.staged_registration import normalize_email
from exam_portal.services.outcomes import CleanupOutcome
from exam_portal.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class AccountService:
    """Service for handling account operations"""

    def __init__(
        self,
        db_session: Session,
        clock: Callable[[], datetime] = utcnow,
        abandon_after_minutes: Optional[int] = None,
    ):
        self.db = db_session
        self._clock = clock
        self.abandon_after = timedelta(
            minutes=abandon_after_minutes or config["stage_ttl_minutes"]
        )

    def get_by_email(self, email: str) -> Optional[Account]:
        """
        Get an account by email address

        Args:
            email: Email address, matched case-insensitively

        Returns:
            Account if found, None otherwise
        """
        statement = select(Account).where(Account.email == normalize_email(email))
        return self.db.exec(statement).first()

    def get_profile(self, account: Account) -> Optional[ApplicantProfile]:
        statement = select(ApplicantProfile).where(
            ApplicantProfile.account_id == account.id
        )
        return self.db.exec(statement).first()

    def is_abandoned(self, account: Account) -> bool:
        """True for an unverified account created longer ago than the stage TTL."""
        if account.is_verified:
            return False
        return self._clock() - ensure_utc(account.created_at) > self.abandon_after

    def upsert_shadow(self, email: str, username: str, password_hash: str) -> Account:
        """
        Create or refresh the unverified account reserving ``email``.

        Concurrent begins for the same address collapse onto one row: the loser
        of the insert race rolls back and picks up the winner's account.

        Raises:
            ValueError: if the account is already verified
        """
        email = normalize_email(email)
        now = self._clock()
        account = self.get_by_email(email)

        if account is not None and account.is_verified:
            raise ValueError(f"Account {account.id} is already verified")

        if account is None:
            account = Account(
                email=email,
                username=username,
                password_hash=password_hash,
                created_at=now,
                updated_at=now,
            )
            self.db.add(account)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info("Shadow account created concurrently, reusing it")
                account = self.get_by_email(email)
                if account is None:
                    raise
                if account.is_verified:
                    raise ValueError(f"Account {account.id} is already verified")
            else:
                self.db.refresh(account)
                logger.info(f"Shadow account created: {account.id}")
                return account

        account.username = username
        account.password_hash = password_hash
        account.updated_at = now
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        logger.info(f"Shadow account refreshed: {account.id}")
        return account

    def delete_account(self, account: Account) -> None:
        """Delete an account and commit"""
        try:
            self.db.delete(account)
            self.db.commit()
            logger.info(f"Account deleted: {account.id}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting account {account.id}: {e}")
            raise

    def purge_abandoned(
        self, older_than_hours: Optional[int] = None, dry_run: bool = False
    ) -> CleanupOutcome:
        """
        Delete unverified accounts without a profile older than the threshold.

        Args:
            older_than_hours: Age threshold, defaults to config cleanup_after_hours
            dry_run: Only report what would be deleted

        Returns:
            CleanupOutcome listing the affected email addresses
        """
        hours = (
            older_than_hours
            if older_than_hours is not None
            else config["cleanup_after_hours"]
        )
        cutoff = self._clock() - timedelta(hours=hours)

        statement = (
            select(Account)
            .outerjoin(ApplicantProfile, ApplicantProfile.account_id == Account.id)
            .where(
                Account.email_verified_at.is_(None),
                ApplicantProfile.id.is_(None),
                Account.created_at < cutoff,
            )
            .order_by(Account.created_at.asc())
        )
        accounts = self.db.exec(statement).all()
        outcome = CleanupOutcome(dry_run=dry_run, emails=[a.email for a in accounts])

        if dry_run or not accounts:
            logger.info(
                f"Abandoned account cleanup found {outcome.count} account(s), "
                f"dry_run={dry_run}"
            )
            return outcome

        try:
            for account in accounts:
                self.db.delete(account)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error purging abandoned accounts: {e}")
            raise

        logger.info(f"Deleted {outcome.count} abandoned account(s) older than {hours}h")
        return outcome
