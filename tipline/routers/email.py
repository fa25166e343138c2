"""Contact form endpoint."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks
from pydantic import BaseModel, EmailStr, Field

from tipline.services.email_service import email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email", tags=["Email"])


class ContactRequest(BaseModel):
    """Request model for the contact form."""

    name: str = Field(min_length=1)
    email: EmailStr
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


@router.post("/send")
async def send_contact_email(
    request: ContactRequest,
    background_tasks: BackgroundTasks,
) -> Dict[str, Any]:
    """Forward a contact form message to the admin inbox."""
    background_tasks.add_task(
        email_service.send_contact_to_admin,
        request.name,
        request.email,
        request.subject,
        request.message,
    )
    logger.info(f"Queued contact email from {request.email}")

    return {
        "success": True,
        "message": "Email sent successfully",
    }
