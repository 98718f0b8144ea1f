"""Inbound callback of the registry service."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from meetapp_api.db.session import get_db
from meetapp_api.generation.factory import build_resumer
from meetapp_api.generation.resume import CallbackPayload, GenerationResumer
from meetapp_api.models import RegistryMessage
from meetapp_api.utils.metrics import registry_callbacks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/registry-message", tags=["registry"])


class CallbackRequest(BaseModel):
    """Registry report about a fetched (or failed) message body."""

    message_id: int
    message_uuid: str
    status: Literal["success", "error"]
    error: Optional[str] = None
    meeting_application_id: Optional[int] = Field(None, ge=1)


def get_resumer(db: Session = Depends(get_db)) -> GenerationResumer:
    return build_resumer(db)


@router.post("/callback")
async def registry_message_callback(
    callback: CallbackRequest,
    db: Session = Depends(get_db),
    resumer: GenerationResumer = Depends(get_resumer),
):
    """Resolve the message request and resume generation when nothing is pending."""
    message = db.get(RegistryMessage, callback.message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Message {callback.message_id} not found",
        )

    registry_callbacks.labels(status=callback.status).inc()
    logger.info(
        f"Registry callback for message {callback.message_id}: {callback.status}",
        extra={"message_id": callback.message_id, "meeting_application_id": callback.meeting_application_id},
    )

    try:
        resumer.handle_callback(
            CallbackPayload(
                message_id=callback.message_id,
                message_uuid=callback.message_uuid,
                succeeded=callback.status == "success",
                error=callback.error,
                meeting_application_id=callback.meeting_application_id,
            )
        )
    except Exception as e:
        logger.error(f"Failed to process registry callback: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Failed to process callback"},
        )

    return {"success": True, "message": "Callback processed"}
