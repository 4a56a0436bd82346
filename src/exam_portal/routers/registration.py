"""Applicant registration endpoints"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from sqlmodel import Session
from starlette.datastructures import UploadFile

from exam_portal.backends.expiring_store import KeyedExpiringStore, get_stage_store
from exam_portal.config import config
from exam_portal.models.database import get_db
from exam_portal.models.staged_registration import ApplicantSubmission
from exam_portal.services.code_challenge import CodeChallenge
from exam_portal.services.email_service import RegistrationEmailService, get_mailer
from exam_portal.services.exam_calendar import BUFFER_DAYS
from exam_portal.services.exam_window_service import ExamWindowService
from exam_portal.services.outcomes import ErrorKind
from exam_portal.services.registration_completion import RegistrationCompletion
from exam_portal.services.registration_stage import RegistrationStage
from exam_portal.services.slot_allocator import SlotAllocator
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/register", tags=["Registration"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024

# Form keys that are not plain applicant fields
NON_FIELD_KEYS = {
    "profile",
    "profile_image",
    "profile_image_content_type",
    "preferred_courses",
}

ERROR_STATUS = {
    ErrorKind.REGISTRATION_CLOSED: status.HTTP_403_FORBIDDEN,
    ErrorKind.DUPLICATE_VERIFIED_EMAIL: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_VERIFIED: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.EXPIRED: status.HTTP_410_GONE,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorKind.LOCKED: status.HTTP_423_LOCKED,
    ErrorKind.NO_CAPACITY: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSIENT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.FATAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_MESSAGES = {
    ErrorKind.REGISTRATION_CLOSED: "Registration is currently closed.",
    ErrorKind.DUPLICATE_VERIFIED_EMAIL: (
        "This email is already registered. Please log in instead."
    ),
    ErrorKind.ALREADY_VERIFIED: "This email has already been verified. Please log in.",
    ErrorKind.RATE_LIMITED: (
        "Too many codes requested. Please wait before requesting a new code."
    ),
    ErrorKind.EXPIRED: "Your registration has expired. Please start again.",
    ErrorKind.NOT_FOUND: "No pending registration found. Please start again.",
    ErrorKind.MISMATCH: "Invalid verification code. Please try again.",
    ErrorKind.LOCKED: (
        "Too many invalid attempts. Please start your registration again."
    ),
    ErrorKind.NO_CAPACITY: "No exam seats are available.",
    ErrorKind.TRANSIENT_CONFLICT: (
        "Exam seats are busy right now. Please try again."
    ),
    ErrorKind.FATAL: "Failed to complete registration. Please try again.",
}


class EmailRequest(BaseModel):
    email: str = Field(..., max_length=255)


class CodeRequest(BaseModel):
    email: str = Field(..., max_length=255)
    code: str = Field(..., min_length=6, max_length=6)


def error_response(
    kind: ErrorKind, message: Optional[str] = None, **extra
) -> JSONResponse:
    body = {"error": kind.value, "message": message or ERROR_MESSAGES[kind]}
    body.update(extra)
    return JSONResponse(status_code=ERROR_STATUS[kind], content=body)


async def _read_profile_image(upload) -> Tuple[bytes, str]:
    if not isinstance(upload, UploadFile):
        raise HTTPException(status_code=400, detail="Profile image is required")
    if upload.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=400, detail="Profile image must be a JPEG, PNG or GIF"
        )
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=400, detail="Profile image is required")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=400, detail="Profile image must be at most 5 MB"
        )
    return data, upload.content_type


@router.get("/status")
async def registration_status(db: Session = Depends(get_db)):
    """Whether registration is open, and the exam window applicants can be seated in"""
    window = ExamWindowService(db).current()
    return {
        "registration_open": window.registration_open,
        "message": window.message,
        "academic_year": window.academic_year,
        "semester": window.semester,
        "exam_start_date": window.start_date,
        "exam_end_date": window.end_date,
        "seats_per_day": window.seats_per_day,
    }


@router.get("/sessions")
async def available_sessions(db: Session = Depends(get_db)):
    """Existing exam sessions that still have free seats, earliest first"""
    window = ExamWindowService(db).current()
    allocator = SlotAllocator(db)
    earliest = utcnow().date() + timedelta(days=BUFFER_DAYS)
    if window.start_date is not None and window.start_date > earliest:
        earliest = window.start_date

    sessions = allocator.list_available(earliest, to_date=window.end_date)
    return {
        "sessions": [
            {
                "exam_date": s.exam_date,
                "session": s.session,
                "start_time": s.start_time,
                "end_time": s.end_time,
                "available_seats": s.available_seats,
            }
            for s in sessions
        ]
    }


@router.post("/start", status_code=status.HTTP_201_CREATED)
async def start_registration(
    request: Request,
    db: Session = Depends(get_db),
    store: KeyedExpiringStore = Depends(get_stage_store),
    mailer: RegistrationEmailService = Depends(get_mailer),
):
    """Stage an applicant's registration and email the verification code"""
    form_data = await request.form()
    image, content_type = await _read_profile_image(form_data.get("profile"))

    fields = {
        key: value
        for key, value in form_data.items()
        if key not in NON_FIELD_KEYS and value != ""
    }
    try:
        submission = ApplicantSubmission(
            **fields,
            preferred_courses=form_data.getlist("preferred_courses"),
            profile_image=image,
            profile_image_content_type=content_type,
        )
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_error",
                "message": "Invalid registration data",
                "fields": errors,
            },
        )

    stage = RegistrationStage(db, store)
    window = stage.windows.current()
    outcome = stage.begin(submission, window=window)
    if not outcome.success:
        message = None
        if outcome.error is ErrorKind.REGISTRATION_CLOSED:
            message = window.message
        return error_response(outcome.error, message)

    email_sent = await mailer.send_code(
        submission.email, outcome.code, submission.full_name
    )
    response = {
        "success": True,
        "email": submission.email,
        "email_sent": email_sent,
        "message": "Verification code sent to your email.",
    }
    if not email_sent:
        response["message"] = (
            "We could not send the verification email. "
            "Please try resending the code."
        )
        if config["environment"] != "production":
            response["dev_verification_code"] = outcome.code
    return response


@router.post("/resend")
async def resend_code(
    request: EmailRequest,
    db: Session = Depends(get_db),
    store: KeyedExpiringStore = Depends(get_stage_store),
    mailer: RegistrationEmailService = Depends(get_mailer),
):
    """Issue and email a new verification code"""
    outcome = RegistrationStage(db, store).resend(request.email)
    if not outcome.success:
        return error_response(outcome.error)

    email_sent = await mailer.send_code(
        outcome.stage.email, outcome.code, outcome.stage.full_name
    )
    response = {
        "success": True,
        "email_sent": email_sent,
        "message": "A new verification code has been sent to your email.",
    }
    if not email_sent and config["environment"] != "production":
        response["dev_verification_code"] = outcome.code
    return response


@router.post("/verify")
async def verify_code(
    request: CodeRequest,
    store: KeyedExpiringStore = Depends(get_stage_store),
):
    """Check a verification code without completing the registration"""
    outcome = CodeChallenge(store).verify(request.email, request.code)
    if not outcome.success:
        extra = {}
        if outcome.attempts_remaining is not None:
            extra["attempts_remaining"] = outcome.attempts_remaining
        return error_response(outcome.error, **extra)
    return {"success": True, "message": "Verification code accepted."}


@router.post("/complete", status_code=status.HTTP_201_CREATED)
async def complete_registration(
    request: CodeRequest,
    db: Session = Depends(get_db),
    store: KeyedExpiringStore = Depends(get_stage_store),
):
    """Verify the code and create the applicant's account, profile and registration"""
    outcome = RegistrationCompletion(db, store).commit(request.email, request.code)
    if not outcome.success:
        return error_response(outcome.error)

    if outcome.assigned_exam_date is not None:
        message = (
            f"Registration complete. Your exam is on "
            f"{outcome.assigned_exam_date.isoformat()} "
            f"({outcome.assigned_session.value} session)."
        )
    else:
        message = (
            "Registration complete. No exam seat is available yet; "
            "the guidance office will assign your schedule."
        )

    return {
        "success": True,
        "message": message,
        "account_id": str(outcome.account_id),
        "registration_id": str(outcome.registration_id),
        "status": outcome.status,
        "assigned_exam_date": outcome.assigned_exam_date,
        "assigned_session": outcome.assigned_session,
    }
