"""Pydantic models for applicant submissions and staged registrations"""

import base64
import re
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import (
    BaseModel,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from exam_portal.models.registration import ExamSession

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    return email.strip().lower()


class ApplicantDetails(BaseModel):
    """Applicant profile fields shared by submissions and staged registrations."""

    last_name: str = Field(min_length=1, max_length=255)
    first_name: str = Field(min_length=1, max_length=255)
    middle_name: Optional[str] = Field(default=None, max_length=255)
    email: str = Field(max_length=255)
    gender: Literal["Male", "Female"]
    age: int = Field(ge=1, le=120)
    phone: str
    address: str = Field(min_length=1, max_length=500)
    school_name: str = Field(min_length=1, max_length=255)
    parent_name: str = Field(min_length=1, max_length=255)
    parent_phone: str = Field(min_length=1, max_length=20)
    preferred_courses: List[str] = Field(min_length=3, max_length=3)
    selected_exam_date: Optional[date] = None
    selected_exam_session: Optional[ExamSession] = None
    profile_image: bytes = Field(min_length=1)
    profile_image_content_type: Optional[str] = None

    @field_validator("last_name", "first_name", "school_name", "parent_name", "address")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("middle_name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = normalize_email(v)
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email address '{v}'")
        return v

    @field_validator("phone")
    @classmethod
    def _validate_phone(cls, v: str) -> str:
        v = v.strip()
        if len(v) != 11 or not v.isdigit():
            raise ValueError("phone must be exactly 11 digits")
        return v

    @field_validator("preferred_courses")
    @classmethod
    def _trim_courses(cls, v: List[str]) -> List[str]:
        trimmed = [c.strip() for c in v]
        if any(not c for c in trimmed):
            raise ValueError("preferred courses must not be blank")
        if any(len(c) > 255 for c in trimmed):
            raise ValueError("preferred course names must be at most 255 characters")
        return trimmed

    @field_validator("profile_image", mode="before")
    @classmethod
    def _decode_image(cls, v):
        # Staged payloads travel through JSON with the image base64-encoded
        if isinstance(v, str):
            return base64.b64decode(v.encode("ascii"), validate=True)
        return v

    @field_serializer("profile_image", when_used="json")
    def _encode_image(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)


class ApplicantSubmission(ApplicantDetails):
    """Registration form as submitted by the applicant, password in clear."""

    password: str = Field(min_length=8)
    password_confirmation: str

    @model_validator(mode="after")
    def _validate_password(self):
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        if len(self.password.encode()) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return self


class StagedRegistration(ApplicantDetails):
    """Pending registration held in the expiring store until its code is verified."""

    password_hash: str
    code: str = Field(pattern=r"^\d{6}$")
    attempts: int = Field(default=0, ge=0)
    created_at: datetime

    @classmethod
    def from_submission(
        cls,
        submission: ApplicantSubmission,
        password_hash: str,
        code: str,
        created_at: datetime,
    ) -> "StagedRegistration":
        details = submission.model_dump(exclude={"password", "password_confirmation"})
        return cls(
            **details,
            password_hash=password_hash,
            code=code,
            attempts=0,
            created_at=created_at,
        )
