"""Slot allocator: finds an exam session with free seats and reserves one.

- Sessions are created lazily, morning and afternoon together, with
  seats_per_day split evenly between them.
- Morning is preferred over afternoon; dates advance one business day at a
  time inside the exam window.
- A seat is taken with a single conditional UPDATE guarded by the count the
  caller observed (compare-and-swap), which also flips the session to full
  when it reaches capacity. Lost races are retried a bounded number of times.

The allocator never commits; the caller owns the transaction.
"""

import enum
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from exam_portal.models.exam_window import ExamWindowConfig
from exam_portal.models.registration import ExamSession
from exam_portal.models.slot_session import SESSION_HOURS, SessionStatus, SlotSession
from exam_portal.services.exam_calendar import (
    eligible_on_or_after,
    is_schedulable,
    next_eligible_date,
)
from exam_portal.services.outcomes import ReservationOutcome
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


# Roughly one year of calendar days; guarantees the search terminates
MAX_DAY_ITERATIONS = 370

# Lost compare-and-swap races tolerated on one session before giving up
MAX_CAS_RETRIES = 5

SESSION_PREFERENCE = (ExamSession.MORNING, ExamSession.AFTERNOON)


class ClaimStatus(enum.Enum):
    CLAIMED = "claimed"
    UNAVAILABLE = "unavailable"
    CONFLICT = "conflict"


class SlotAllocator:
    """Service for creating exam sessions and reserving seats in them."""

    def __init__(
        self,
        db_session: Session,
        max_day_iterations: int = MAX_DAY_ITERATIONS,
        max_cas_retries: int = MAX_CAS_RETRIES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db_session
        self.max_day_iterations = max_day_iterations
        self.max_cas_retries = max_cas_retries
        self._clock = clock

    # Queries
    def get_sessions(self, exam_date: date) -> Dict[ExamSession, SlotSession]:
        """Sessions stored for a date, keyed by session type, read fresh from the database."""
        stmt = (
            select(SlotSession)
            .where(SlotSession.exam_date == exam_date)
            .execution_options(populate_existing=True)
        )
        return {ExamSession(row.session): row for row in self.db.exec(stmt).all()}

    def get_session(self, exam_date: date, session: ExamSession) -> Optional[SlotSession]:
        stmt = (
            select(SlotSession)
            .where(
                SlotSession.exam_date == exam_date,
                SlotSession.session == session.value,
            )
            .execution_options(populate_existing=True)
        )
        return self.db.exec(stmt).first()

    def list_available(
        self,
        from_date: date,
        to_date: Optional[date] = None,
        limit: int = 100,
    ) -> List[SlotSession]:
        """Return open sessions with free seats on or after ``from_date``, earliest first."""
        stmt = select(SlotSession).where(
            SlotSession.exam_date >= from_date,
            SlotSession.status == SessionStatus.OPEN.value,
            SlotSession.current_count < SlotSession.max_capacity,
        )
        if to_date is not None:
            stmt = stmt.where(SlotSession.exam_date <= to_date)
        stmt = stmt.order_by(SlotSession.exam_date.asc(), SlotSession.start_time.asc())
        return list(self.db.exec(stmt.limit(limit)).all())

    # Session creation
    def ensure_sessions(
        self, exam_date: date, window: ExamWindowConfig
    ) -> Dict[ExamSession, SlotSession]:
        """
        Fetch the sessions for a date, creating any that are missing.

        Concurrent callers may race to create the same date; the insert skips
        rows that already exist so the loser simply reads the winner's rows.
        When the window allows no seats per session nothing is created.
        """
        sessions = self.get_sessions(exam_date)
        missing = [s for s in SESSION_PREFERENCE if s not in sessions]
        if not missing or window.seats_per_session < 1:
            return sessions

        self._insert_missing(exam_date, missing, window.seats_per_session)
        logger.info(
            f"Created {', '.join(s.value for s in missing)} session(s) for {exam_date} "
            f"with {window.seats_per_session} seats each"
        )
        return self.get_sessions(exam_date)

    def _insert_missing(
        self, exam_date: date, missing: List[ExamSession], capacity: int
    ) -> None:
        now = self._clock()
        rows = [
            {
                "id": uuid.uuid4(),
                "exam_date": exam_date,
                "session": session.value,
                "start_time": SESSION_HOURS[session][0],
                "end_time": SESSION_HOURS[session][1],
                "max_capacity": capacity,
                "current_count": 0,
                "status": SessionStatus.OPEN.value,
                "created_at": now,
                "updated_at": now,
            }
            for session in missing
        ]

        table = SlotSession.__table__
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(table).values(rows)
            stmt = stmt.on_conflict_do_nothing(index_elements=["exam_date", "session"])
        elif dialect == "sqlite":
            stmt = sqlite.insert(table).values(rows)
            stmt = stmt.on_conflict_do_nothing(index_elements=["exam_date", "session"])
        else:
            stmt = insert(table).values(rows)
        self.db.exec(stmt)

    # Seat claims
    def _compare_and_increment(self, slot_id: uuid.UUID, observed_count: int) -> bool:
        """Take one seat if the row still holds ``observed_count`` and has room."""
        new_count = SlotSession.current_count + 1
        stmt = (
            update(SlotSession)
            .where(
                SlotSession.id == slot_id,
                SlotSession.current_count == observed_count,
                SlotSession.current_count < SlotSession.max_capacity,
                SlotSession.status == SessionStatus.OPEN.value,
            )
            .values(
                current_count=new_count,
                status=case(
                    (new_count >= SlotSession.max_capacity, SessionStatus.FULL.value),
                    else_=SessionStatus.OPEN.value,
                ),
                updated_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.exec(stmt)
        return result.rowcount == 1

    def _reload(self, slot_id: uuid.UUID) -> Optional[SlotSession]:
        stmt = (
            select(SlotSession)
            .where(SlotSession.id == slot_id)
            .execution_options(populate_existing=True)
        )
        return self.db.exec(stmt).first()

    def claim(self, slot: SlotSession) -> Tuple[ClaimStatus, int]:
        """
        Reserve one seat in ``slot``.

        Returns the claim status and the number of compare-and-swap races lost
        along the way. CONFLICT means the retry budget ran out while the
        session still appeared to have room.
        """
        conflicts = 0
        current: Optional[SlotSession] = slot
        for _ in range(self.max_cas_retries + 1):
            if current is None or not current.has_available_seats:
                return ClaimStatus.UNAVAILABLE, conflicts

            if self._compare_and_increment(current.id, current.current_count):
                self._reload(current.id)
                return ClaimStatus.CLAIMED, conflicts

            conflicts += 1
            logger.info(
                f"Lost seat race on {current.exam_date} {current.session} "
                f"(observed {current.current_count}/{current.max_capacity}), retrying"
            )
            current = self._reload(current.id)

        return ClaimStatus.CONFLICT, conflicts

    def reserve_preferred(
        self,
        exam_date: date,
        session: ExamSession,
        from_date: date,
        window: ExamWindowConfig,
    ) -> Optional[ReservationOutcome]:
        """
        Reserve a seat in exactly the requested session when it has room.

        The requested date must be schedulable and no earlier than the next
        eligible date for an applicant registering on ``from_date``. The day's
        sessions are created when missing. Returns None otherwise, or when the
        session is full; the caller then falls back to ``reserve_seat``.
        """
        earliest = next_eligible_date(from_date, window)
        if earliest is None or exam_date < earliest:
            return None
        if not is_schedulable(exam_date, window):
            return None

        slot = self.ensure_sessions(exam_date, window).get(session)
        if slot is None or not slot.has_available_seats:
            return None

        status, conflicts = self.claim(slot)
        if status is not ClaimStatus.CLAIMED:
            return None

        logger.info(f"Reserved preferred seat: {exam_date} {session.value}")
        return ReservationOutcome(
            success=True, exam_date=exam_date, session=session, conflicts=conflicts
        )

    def reserve_seat(
        self, from_date: date, window: ExamWindowConfig
    ) -> ReservationOutcome:
        """
        Reserve the earliest available seat for an applicant registering on ``from_date``.

        - Starts at the calendar policy's next eligible date.
        - Tries morning then afternoon, creating the day's sessions if needed.
        - Advances one business day when both are unavailable.
        - Gives up with NO_CAPACITY past the window end, after
          ``max_day_iterations`` days, or when a session keeps losing races.
        """
        candidate = next_eligible_date(from_date, window)
        conflicts = 0

        for _ in range(self.max_day_iterations):
            if candidate is None:
                logger.warning(
                    f"No exam capacity left in window for registration date {from_date}"
                )
                return ReservationOutcome.no_capacity(conflicts)

            sessions = self.ensure_sessions(candidate, window)
            for session in SESSION_PREFERENCE:
                slot = sessions.get(session)
                if slot is None:
                    continue

                status, lost = self.claim(slot)
                conflicts += lost
                if status is ClaimStatus.CLAIMED:
                    logger.info(f"Reserved seat: {candidate} {session.value}")
                    return ReservationOutcome(
                        success=True,
                        exam_date=candidate,
                        session=session,
                        conflicts=conflicts,
                    )
                if status is ClaimStatus.CONFLICT:
                    logger.warning(
                        f"Giving up on {candidate} {session.value} after "
                        f"{lost} lost seat races"
                    )
                    return ReservationOutcome.no_capacity(conflicts)

            candidate = eligible_on_or_after(candidate + timedelta(days=1), window)

        logger.warning(
            f"Seat search from {from_date} exhausted {self.max_day_iterations} days"
        )
        return ReservationOutcome.no_capacity(conflicts)

    # Maintenance
    def close_open_sessions(self, through: date) -> int:
        """Mark every open session dated on or before ``through`` as closed."""
        stmt = (
            update(SlotSession)
            .where(
                SlotSession.exam_date <= through,
                SlotSession.status == SessionStatus.OPEN.value,
            )
            .values(status=SessionStatus.CLOSED.value, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        return self.db.exec(stmt).rowcount
