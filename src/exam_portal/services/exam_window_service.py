"""Exam Window Service - reads and maintains the registration settings singleton"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

from sqlmodel import Session, select

from exam_portal.config import config
from exam_portal.models.exam_window import ExamRegistrationSettings, ExamWindowConfig
from exam_portal.services.outcomes import AutoCloseOutcome
from exam_portal.services.slot_allocator import SlotAllocator
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CLOSED_MESSAGE = "REGISTRATION CLOSED - Exam period has ended"

UPDATABLE_FIELDS = {
    "registration_open",
    "academic_year",
    "semester",
    "exam_start_date",
    "exam_end_date",
    "seats_per_day",
    "registration_message",
}


class ExamWindowService:
    """Service for the administrator-managed exam registration window"""

    def __init__(self, db_session: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db_session
        self._clock = clock

    def get_settings(self) -> Optional[ExamRegistrationSettings]:
        statement = select(ExamRegistrationSettings).order_by(
            ExamRegistrationSettings.id.asc()
        )
        return self.db.exec(statement).first()

    def current(self) -> ExamWindowConfig:
        """Snapshot of the window; a missing settings row means registration is closed."""
        settings = self.get_settings()
        if settings is None:
            return ExamWindowConfig.closed()
        return ExamWindowConfig.from_settings(settings)

    def update(self, **changes: Any) -> ExamWindowConfig:
        """
        Apply ``changes`` to the settings row, creating it on first write.

        Args:
            **changes: Any of the ExamRegistrationSettings fields listed in
                UPDATABLE_FIELDS

        Returns:
            The window after the update

        Raises:
            ValueError: on unknown fields, negative seats or an inverted date range
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

        settings = self.get_settings()
        if settings is None:
            settings = ExamRegistrationSettings(
                seats_per_day=config["default_seats_per_day"],
                created_at=self._clock(),
            )

        # Validate the merged result before touching the row
        merged = {name: getattr(settings, name) for name in UPDATABLE_FIELDS}
        merged.update(changes)
        if merged["seats_per_day"] is None or merged["seats_per_day"] < 0:
            raise ValueError("seats_per_day must be zero or more")
        start, end = merged["exam_start_date"], merged["exam_end_date"]
        if start is not None and end is not None and start > end:
            raise ValueError("exam_start_date must not be after exam_end_date")

        for name, value in changes.items():
            setattr(settings, name, value)

        settings.updated_at = self._clock()
        try:
            self.db.add(settings)
            self.db.commit()
            self.db.refresh(settings)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating registration settings: {e}")
            raise

        logger.info(f"Registration settings updated: {sorted(changes)}")
        return ExamWindowConfig.from_settings(settings)

    def auto_close(self, today: Optional[date] = None) -> AutoCloseOutcome:
        """
        Close registration once the exam period has ended.

        When ``today`` is past the window end, registration is switched off,
        the closed message is set and every open session up to the end date is
        marked closed. Full sessions keep their status.
        """
        today = today or self._clock().date()
        settings = self.get_settings()
        if settings is None or settings.exam_end_date is None:
            return AutoCloseOutcome(closed=False)

        end_date = settings.exam_end_date
        if today <= end_date:
            return AutoCloseOutcome(closed=False, end_date=end_date)

        try:
            settings.registration_open = False
            settings.registration_message = CLOSED_MESSAGE
            settings.updated_at = self._clock()
            self.db.add(settings)
            sessions_closed = SlotAllocator(self.db, clock=self._clock).close_open_sessions(
                end_date
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error auto-closing registration: {e}")
            raise

        logger.info(
            f"Registration auto-closed: exam period ended {end_date}, "
            f"{sessions_closed} session(s) closed"
        )
        return AutoCloseOutcome(
            closed=True, sessions_closed=sessions_closed, end_date=end_date
        )
