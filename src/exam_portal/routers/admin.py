"""Admin router for registration maintenance"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from exam_portal.config import config
from exam_portal.models.database import get_db
from exam_portal.services.account_service import AccountService
from exam_portal.services.exam_window_service import ExamWindowService


def require_admin_key(
    x_admin_key: str = Header(..., description="Admin API key for authentication"),
) -> None:
    expected_key = config.get("admin_api_key")

    if not expected_key or x_admin_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin API key"
        )


router = APIRouter(
    prefix="/admin/registration",
    tags=["Admin"],
    dependencies=[Depends(require_admin_key)],
)


class SettingsUpdate(BaseModel):
    registration_open: Optional[bool] = None
    academic_year: Optional[str] = Field(default=None, max_length=20)
    semester: Optional[str] = Field(default=None, max_length=20)
    exam_start_date: Optional[date] = None
    exam_end_date: Optional[date] = None
    seats_per_day: Optional[int] = Field(default=None, ge=0)
    registration_message: Optional[str] = None


@router.get("/settings")
async def get_settings(db: Session = Depends(get_db)):
    """Current exam registration window"""
    return ExamWindowService(db).current().model_dump()


@router.put("/settings")
async def update_settings(request: SettingsUpdate, db: Session = Depends(get_db)):
    """
    Update the exam registration window.

    Only fields present in the request body are changed.
    """
    try:
        window = ExamWindowService(db).update(**request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return window.model_dump()


@router.post("/auto-close")
async def auto_close_registration(
    today: Optional[date] = Query(default=None, description="Override today's date"),
    db: Session = Depends(get_db),
):
    """Close registration and open sessions once the exam period has ended"""
    outcome = ExamWindowService(db).auto_close(today)
    return {
        "closed": outcome.closed,
        "sessions_closed": outcome.sessions_closed,
        "exam_end_date": outcome.end_date,
    }


@router.post("/cleanup")
async def cleanup_abandoned_accounts(
    hours: Optional[int] = Query(default=None, ge=0, description="Age threshold in hours"),
    dry_run: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    """Delete unverified accounts that never completed registration"""
    outcome = AccountService(db).purge_abandoned(
        older_than_hours=hours, dry_run=dry_run
    )
    return {
        "dry_run": outcome.dry_run,
        "count": outcome.count,
        "emails": outcome.emails,
    }
