"""Exam slot session SQLModel models"""

import enum
import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from exam_portal.models.registration import ExamSession


class SessionStatus(str, enum.Enum):
    OPEN = "open"
    FULL = "full"
    CLOSED = "closed"


# Sitting hours for each session, local exam-center time
SESSION_HOURS = {
    ExamSession.MORNING: (time(8, 0), time(11, 0)),
    ExamSession.AFTERNOON: (time(13, 0), time(16, 0)),
}


class SlotSession(SQLModel, table=True):
    """One morning or afternoon sitting on one exam date.

    ``current_count`` only moves through the guarded update in
    ``SlotAllocator``; ``status`` is ``full`` exactly when the session is at
    capacity.
    """

    __tablename__ = "slot_sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    exam_date: date = Field(index=True)
    session: str = Field(sa_column=Column(String(20), nullable=False))
    start_time: time
    end_time: time

    max_capacity: int = Field(sa_column=Column(Integer, nullable=False))
    current_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    status: str = Field(
        default=SessionStatus.OPEN.value,
        sa_column=Column(
            String(20), nullable=False, server_default=SessionStatus.OPEN.value
        ),
    )

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    __table_args__ = (
        UniqueConstraint("exam_date", "session", name="uq_slot_sessions_date_session"),
        CheckConstraint(
            "session IN ('morning', 'afternoon')", name="ck_slot_sessions_session"
        ),
        CheckConstraint(
            "status IN ('open', 'full', 'closed')", name="ck_slot_sessions_status"
        ),
        CheckConstraint("max_capacity >= 0", name="ck_slot_sessions_capacity_ge_0"),
        CheckConstraint("current_count >= 0", name="ck_slot_sessions_count_ge_0"),
        CheckConstraint(
            "current_count <= max_capacity", name="ck_slot_sessions_count_le_capacity"
        ),
    )

    @property
    def has_available_seats(self) -> bool:
        return (
            self.status == SessionStatus.OPEN.value
            and self.current_count < self.max_capacity
        )

    @property
    def available_seats(self) -> int:
        return max(self.max_capacity - self.current_count, 0)
