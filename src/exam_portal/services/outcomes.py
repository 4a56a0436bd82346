"""Typed outcomes of the registration workflow.

Expected user-facing failures are returned as values carrying an ``ErrorKind``
rather than raised, so callers can branch on them without exception handling.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from exam_portal.models.registration import ExamSession
from exam_portal.models.staged_registration import StagedRegistration


class ErrorKind(str, enum.Enum):
    REGISTRATION_CLOSED = "registration_closed"
    DUPLICATE_VERIFIED_EMAIL = "duplicate_verified_email"
    RATE_LIMITED = "rate_limited"
    EXPIRED = "expired"
    ALREADY_VERIFIED = "already_verified"
    NOT_FOUND = "not_found"
    MISMATCH = "mismatch"
    LOCKED = "locked"
    NO_CAPACITY = "no_capacity"
    TRANSIENT_CONFLICT = "transient_conflict"
    FATAL = "fatal"


@dataclass
class StageOutcome:
    """Result of beginning a registration or re-sending its code."""

    success: bool
    error: Optional[ErrorKind] = None
    code: Optional[str] = None
    stage: Optional[StagedRegistration] = None

    @classmethod
    def failure(cls, error: ErrorKind) -> "StageOutcome":
        return cls(success=False, error=error)


@dataclass
class VerifyOutcome:
    success: bool
    error: Optional[ErrorKind] = None
    stage: Optional[StagedRegistration] = None
    attempts_remaining: Optional[int] = None


@dataclass
class ReservationOutcome:
    """Seat reserved by the allocator, or why none was.

    ``conflicts`` counts lost compare-and-swap races, including ones that were
    retried successfully.
    """

    success: bool
    exam_date: Optional[date] = None
    session: Optional[ExamSession] = None
    error: Optional[ErrorKind] = None
    conflicts: int = 0

    @classmethod
    def no_capacity(cls, conflicts: int = 0) -> "ReservationOutcome":
        return cls(success=False, error=ErrorKind.NO_CAPACITY, conflicts=conflicts)


@dataclass
class CommitOutcome:
    success: bool
    error: Optional[ErrorKind] = None
    account_id: Optional[uuid.UUID] = None
    registration_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    assigned_exam_date: Optional[date] = None
    assigned_session: Optional[ExamSession] = None

    @classmethod
    def failure(cls, error: ErrorKind) -> "CommitOutcome":
        return cls(success=False, error=error)


@dataclass
class AutoCloseOutcome:
    closed: bool
    sessions_closed: int = 0
    end_date: Optional[date] = None


@dataclass
class CleanupOutcome:
    """Abandoned shadow accounts found by a cleanup run, and whether they were removed."""

    dry_run: bool
    emails: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.emails)
