"""SQLModel Registration model"""

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlmodel import Field, SQLModel


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "registered"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class ExamSession(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class Registration(SQLModel, table=True):
    """Exam registration of an applicant profile.

    ``assigned`` rows always carry both the exam date and the session they
    hold a seat in.
    """

    __tablename__ = "registrations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    profile_id: uuid.UUID = Field(
        foreign_key="applicant_profiles.id",
        unique=True,
        index=True,
        ondelete="CASCADE",
    )
    school_year: str
    semester: str
    registration_date: date
    status: str = Field(
        default=RegistrationStatus.REGISTERED.value,
        sa_column=Column(
            String(20),
            nullable=False,
            server_default=RegistrationStatus.REGISTERED.value,
        ),
    )
    assigned_exam_date: Optional[date] = Field(default=None, index=True)
    assigned_session: Optional[str] = Field(
        default=None, sa_column=Column(String(20), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('registered', 'assigned', 'completed')",
            name="ck_registrations_status",
        ),
        CheckConstraint(
            "assigned_session IS NULL OR assigned_session IN ('morning', 'afternoon')",
            name="ck_registrations_session",
        ),
        CheckConstraint(
            "status <> 'assigned' OR "
            "(assigned_exam_date IS NOT NULL AND assigned_session IS NOT NULL)",
            name="ck_registrations_assigned_has_slot",
        ),
    )
