"""SQLModel ApplicantProfile model"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class ApplicantProfile(SQLModel, table=True):
    """Demographic record of a verified applicant, one per account"""

    __tablename__ = "applicant_profiles"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(
        foreign_key="accounts.id", unique=True, index=True, ondelete="CASCADE"
    )
    last_name: str
    first_name: str
    middle_name: Optional[str] = None
    gender: str
    age: int
    phone: str
    address: str
    school_name: str
    parent_name: str
    parent_phone: str
    preferred_courses: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    profile_image: Optional[bytes] = Field(
        default=None, sa_column=Column(LargeBinary, nullable=True)
    )
    profile_image_content_type: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
