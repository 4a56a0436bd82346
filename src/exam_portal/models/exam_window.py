"""Exam registration settings model and the window value read from it"""

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel

DEFAULT_SEATS_PER_DAY = 40


class ExamRegistrationSettings(SQLModel, table=True):
    """Administrator-managed singleton row gating registration"""

    __tablename__ = "exam_registration_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    registration_open: bool = Field(default=False)
    academic_year: Optional[str] = None  # e.g. "2025-2026"
    semester: Optional[str] = None  # "1st", "2nd" or "Summer"
    exam_start_date: Optional[date] = None
    exam_end_date: Optional[date] = None
    seats_per_day: int = Field(default=DEFAULT_SEATS_PER_DAY)
    registration_message: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )


class ExamWindowConfig(BaseModel):
    """Immutable snapshot of the registration settings for one operation.

    - start_date/end_date: optional inclusive bounds on schedulable exam dates
    - seats_per_day: split evenly between the morning and afternoon sessions
    - registration_open: gate checked before any registration is staged
    """

    model_config = ConfigDict(frozen=True)

    registration_open: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    seats_per_day: int = PydanticField(default=DEFAULT_SEATS_PER_DAY, ge=0)
    message: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[str] = None

    @classmethod
    def closed(cls) -> "ExamWindowConfig":
        """Window used when no settings row exists."""
        return cls(registration_open=False, seats_per_day=0)

    @classmethod
    def from_settings(cls, row: ExamRegistrationSettings) -> "ExamWindowConfig":
        return cls(
            registration_open=row.registration_open,
            start_date=row.exam_start_date,
            end_date=row.exam_end_date,
            seats_per_day=row.seats_per_day,
            message=row.registration_message,
            academic_year=row.academic_year,
            semester=row.semester,
        )

    @property
    def seats_per_session(self) -> int:
        return self.seats_per_day // 2
