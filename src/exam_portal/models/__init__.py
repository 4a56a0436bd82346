"""Database models for the exam portal"""

from exam_portal.models.account import Account
from exam_portal.models.applicant_profile import ApplicantProfile
from exam_portal.models.exam_window import ExamRegistrationSettings, ExamWindowConfig
from exam_portal.models.registration import ExamSession, Registration, RegistrationStatus
from exam_portal.models.slot_session import SessionStatus, SlotSession
from exam_portal.models.staged_registration import ApplicantSubmission, StagedRegistration

__all__ = [
    "Account",
    "ApplicantProfile",
    "ApplicantSubmission",
    "ExamRegistrationSettings",
    "ExamSession",
    "ExamWindowConfig",
    "Registration",
    "RegistrationStatus",
    "SessionStatus",
    "SlotSession",
    "StagedRegistration",
]
