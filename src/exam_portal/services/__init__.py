"""Registration workflow services"""

from exam_portal.services.account_service import AccountService
from exam_portal.services.code_challenge import CodeChallenge
from exam_portal.services.email_service import RegistrationEmailService
from exam_portal.services.exam_window_service import ExamWindowService
from exam_portal.services.outcomes import (
    AutoCloseOutcome,
    CleanupOutcome,
    CommitOutcome,
    ErrorKind,
    ReservationOutcome,
    StageOutcome,
    VerifyOutcome,
)
from exam_portal.services.registration_completion import RegistrationCompletion
from exam_portal.services.registration_stage import RegistrationStage
from exam_portal.services.slot_allocator import SlotAllocator

__all__ = [
    "AccountService",
    "AutoCloseOutcome",
    "CleanupOutcome",
    "CodeChallenge",
    "CommitOutcome",
    "ErrorKind",
    "ExamWindowService",
    "RegistrationCompletion",
    "RegistrationEmailService",
    "RegistrationStage",
    "ReservationOutcome",
    "SlotAllocator",
    "StageOutcome",
    "VerifyOutcome",
]
