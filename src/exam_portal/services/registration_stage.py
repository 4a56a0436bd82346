"""Registration Stage - first half of the applicant registration workflow

Begins a registration by reserving the email with an unverified shadow account
and staging the submission behind a verification code, and re-sends codes
for stages that are still live. Code delivery is left to the caller.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session

from exam_portal.backends.expiring_store import KeyedExpiringStore
from exam_portal.config import config
from exam_portal.models.exam_window import ExamWindowConfig
from exam_portal.models.staged_registration import ApplicantSubmission, normalize_email
from exam_portal.services.account_service import AccountService
from exam_portal.services.code_challenge import CodeChallenge
from exam_portal.services.exam_window_service import ExamWindowService
from exam_portal.services.outcomes import ErrorKind, StageOutcome
from exam_portal.utils.security import hash_password
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class RegistrationStage:
    """Begin and re-send staged registrations"""

    def __init__(
        self,
        db_session: Session,
        store: KeyedExpiringStore,
        clock: Callable[[], datetime] = utcnow,
        challenge: Optional[CodeChallenge] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self.db = db_session
        self._clock = clock
        self.challenge = challenge or CodeChallenge(store, clock=clock)
        self.accounts = AccountService(db_session, clock=clock)
        self.windows = ExamWindowService(db_session, clock=clock)
        self.bcrypt_rounds = bcrypt_rounds or config["bcrypt_rounds"]

    def begin(
        self,
        submission: ApplicantSubmission,
        window: Optional[ExamWindowConfig] = None,
    ) -> StageOutcome:
        """
        Stage a registration and return the code to deliver.

        Args:
            submission: Validated applicant form
            window: Window snapshot; read from the settings row when omitted

        Returns:
            StageOutcome with the code and stage on success, otherwise one of
            REGISTRATION_CLOSED, DUPLICATE_VERIFIED_EMAIL or RATE_LIMITED
        """
        window = window or self.windows.current()
        if not window.registration_open:
            return StageOutcome.failure(ErrorKind.REGISTRATION_CLOSED)

        email = normalize_email(submission.email)
        account = self.accounts.get_by_email(email)
        if account is not None and account.is_verified:
            return StageOutcome.failure(ErrorKind.DUPLICATE_VERIFIED_EMAIL)

        if self.challenge.is_rate_limited(email):
            logger.info("Registration start refused: send rate limit reached")
            return StageOutcome.failure(ErrorKind.RATE_LIMITED)

        if account is not None and self.accounts.is_abandoned(account):
            logger.info(f"Removing abandoned shadow account {account.id}")
            self.accounts.delete_account(account)

        password_hash = hash_password(submission.password, rounds=self.bcrypt_rounds)
        try:
            self.accounts.upsert_shadow(email, submission.full_name, password_hash)
        except ValueError:
            # Verified by a concurrent commit since the check above
            return StageOutcome.failure(ErrorKind.DUPLICATE_VERIFIED_EMAIL)

        stage = self.challenge.issue(submission, password_hash)
        logger.info("Registration staged, verification code issued")
        return StageOutcome(success=True, code=stage.code, stage=stage)

    def resend(self, email: str) -> StageOutcome:
        """
        Issue a new code for a live stage.

        Returns:
            StageOutcome with the new code, otherwise NOT_FOUND, ALREADY_VERIFIED,
            EXPIRED or RATE_LIMITED
        """
        email = normalize_email(email)
        account = self.accounts.get_by_email(email)
        if account is None:
            return StageOutcome.failure(ErrorKind.NOT_FOUND)
        if account.is_verified:
            return StageOutcome.failure(ErrorKind.ALREADY_VERIFIED)
        if self.accounts.is_abandoned(account):
            logger.info(f"Shadow account {account.id} expired before resend")
            self.challenge.discard(email)
            self.accounts.delete_account(account)
            return StageOutcome.failure(ErrorKind.EXPIRED)

        outcome = self.challenge.resend(email)
        if outcome.error is ErrorKind.NOT_FOUND:
            return StageOutcome.failure(ErrorKind.EXPIRED)
        if outcome.success:
            logger.info("Verification code re-sent")
        return outcome
