"""Meeting application generation trigger."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from meetapp_api.db.session import get_db
from meetapp_api.enums import ApplicationStatus
from meetapp_api.generation.scheduler import GenerationScheduler
from meetapp_api.models import MeetingApplication

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meeting-applications", tags=["meeting-applications"])


class GenerateRequest(BaseModel):
    """Generation trigger request."""

    meeting_application_id: int = Field(..., ge=1)
    user_id: Optional[int] = Field(None, ge=1)


class GenerateResponse(BaseModel):
    success: bool
    message: str
    meeting_application_id: int
    latest_status: int


def get_scheduler() -> GenerationScheduler:
    return GenerationScheduler()


@router.post("/generate", response_model=GenerateResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_meeting_application(
    request_data: GenerateRequest,
    db: Session = Depends(get_db),
    scheduler: GenerationScheduler = Depends(get_scheduler),
):
    """Mark the application as generating and enqueue generation."""
    application = db.get(MeetingApplication, request_data.meeting_application_id)
    if not application:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Meeting application {request_data.meeting_application_id} not found",
        )

    if application.latest_status != ApplicationStatus.GENERATING:
        application.add_status(ApplicationStatus.GENERATING, system_text="Generation started")
        application.start_generation = datetime.utcnow()
    application.end_generation = None
    db.commit()

    try:
        scheduler.start_generation(application.id, False, request_data.user_id)
    except Exception as e:
        logger.error(
            f"Failed to enqueue generation of meeting application {application.id}: {e}",
            extra={"meeting_application_id": application.id},
            exc_info=True,
        )
        application.add_status(
            ApplicationStatus.ERROR,
            user_text="Generation could not be started",
            system_text=f"Failed to enqueue generation: {e}",
        )
        application.end_generation = datetime.utcnow()
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Generation queue is unavailable",
            headers={"Retry-After": "30"},
        )

    return GenerateResponse(
        success=True,
        message="Generation started",
        meeting_application_id=application.id,
        latest_status=int(application.latest_status),
    )
