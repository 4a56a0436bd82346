"""Registration Completion - second half of the applicant registration workflow

Turns a verified staged registration into durable records in a single
transaction: promotes the shadow account, creates the applicant profile and
the registration, and reserves an exam seat when one is available.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from exam_portal.backends.expiring_store import KeyedExpiringStore
from exam_portal.models.account import Account
from exam_portal.models.applicant_profile import ApplicantProfile
from exam_portal.models.exam_window import ExamWindowConfig
from exam_portal.models.registration import Registration, RegistrationStatus
from exam_portal.models.staged_registration import StagedRegistration, normalize_email
from exam_portal.services.account_service import AccountService
from exam_portal.services.code_challenge import CodeChallenge
from exam_portal.services.exam_window_service import ExamWindowService
from exam_portal.services.outcomes import CommitOutcome, ErrorKind, ReservationOutcome
from exam_portal.services.slot_allocator import SlotAllocator
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_SEMESTER = "1st"


class RegistrationCompletion:
    """Commit verified registrations"""

    def __init__(
        self,
        db_session: Session,
        store: KeyedExpiringStore,
        clock: Callable[[], datetime] = utcnow,
        challenge: Optional[CodeChallenge] = None,
        allocator: Optional[SlotAllocator] = None,
    ):
        self.db = db_session
        self._clock = clock
        self.challenge = challenge or CodeChallenge(store, clock=clock)
        self.allocator = allocator or SlotAllocator(db_session, clock=clock)
        self.accounts = AccountService(db_session, clock=clock)
        self.windows = ExamWindowService(db_session, clock=clock)

    def commit(self, email: str, code: str) -> CommitOutcome:
        """
        Verify ``code`` and persist the staged registration.

        Verification failures are returned unchanged. A registration with no
        seat available is still committed with status ``registered``. Any
        storage error rolls the whole transaction back, keeps the stage and
        returns FATAL so the same call can be retried.
        """
        email = normalize_email(email)
        verification = self.challenge.verify(email, code)
        if not verification.success:
            return CommitOutcome.failure(verification.error)

        stage = verification.stage
        window = self.windows.current()
        today = self._clock().date()

        try:
            account = self.accounts.get_by_email(email)
            if account is not None and account.is_verified:
                if self.accounts.get_profile(account) is not None:
                    # An earlier commit went through but its stage survived
                    self.db.rollback()
                    self._discard_stage(email)
                    return CommitOutcome.failure(ErrorKind.ALREADY_VERIFIED)

            account = self._promote_account(account, stage)
            profile = self._create_profile(account, stage)
            registration = self._create_registration(profile, window, today)

            reservation = self._reserve(stage, today, window)
            if reservation.success:
                registration.status = RegistrationStatus.ASSIGNED.value
                registration.assigned_exam_date = reservation.exam_date
                registration.assigned_session = reservation.session.value
                self.db.add(registration)
            else:
                logger.warning(
                    f"No exam seat available for registration {registration.id}, "
                    f"left as registered"
                )

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Registration commit rolled back: {e}")
            return CommitOutcome.failure(ErrorKind.FATAL)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Unexpected error committing registration: {e}")
            raise

        self._discard_stage(email)
        logger.info(
            f"Registration {registration.id} committed with status {registration.status}"
        )
        return CommitOutcome(
            success=True,
            account_id=account.id,
            registration_id=registration.id,
            status=registration.status,
            assigned_exam_date=reservation.exam_date,
            assigned_session=reservation.session,
        )

    def _promote_account(
        self, account: Optional[Account], stage: StagedRegistration
    ) -> Account:
        now = self._clock()
        if account is None:
            # Shadow account removed by cleanup while the stage was still live
            logger.info("Recreating missing account from staged registration")
            account = Account(
                email=stage.email, username="", password_hash="", created_at=now
            )

        account.username = stage.full_name
        account.password_hash = stage.password_hash
        account.email_verified_at = now
        account.updated_at = now
        self.db.add(account)
        self.db.flush()
        return account

    def _create_profile(
        self, account: Account, stage: StagedRegistration
    ) -> ApplicantProfile:
        profile = ApplicantProfile(
            account_id=account.id,
            last_name=stage.last_name,
            first_name=stage.first_name,
            middle_name=stage.middle_name,
            gender=stage.gender,
            age=stage.age,
            phone=stage.phone,
            address=stage.address,
            school_name=stage.school_name,
            parent_name=stage.parent_name,
            parent_phone=stage.parent_phone,
            preferred_courses=list(stage.preferred_courses),
            profile_image=stage.profile_image,
            profile_image_content_type=stage.profile_image_content_type,
            created_at=self._clock(),
        )
        self.db.add(profile)
        self.db.flush()
        return profile

    def _create_registration(
        self, profile: ApplicantProfile, window: ExamWindowConfig, today: date
    ) -> Registration:
        now = self._clock()
        registration = Registration(
            profile_id=profile.id,
            school_year=window.academic_year or f"{today.year}-{today.year + 1}",
            semester=window.semester or DEFAULT_SEMESTER,
            registration_date=today,
            status=RegistrationStatus.REGISTERED.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(registration)
        self.db.flush()
        return registration

    def _reserve(
        self, stage: StagedRegistration, today: date, window: ExamWindowConfig
    ) -> ReservationOutcome:
        """Preferred date and session when it has room, else the earliest seat."""
        selected = stage.selected_exam_date
        if selected and stage.selected_exam_session:
            preferred = self.allocator.reserve_preferred(
                selected, stage.selected_exam_session, today, window
            )
            if preferred is not None:
                return preferred

        # A selected date in the past never moves the search before today
        from_date = max(selected, today) if selected else today
        return self.allocator.reserve_seat(from_date, window)

    def _discard_stage(self, email: str) -> None:
        try:
            self.challenge.discard(email)
        except redis.RedisError as e:
            # Durable records are committed; a surviving stage is handled on retry
            logger.error(f"Failed to delete staged registration after commit: {e}")
