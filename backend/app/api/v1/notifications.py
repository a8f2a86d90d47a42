import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from app.core.mail import EmailAttachment
from app.core.middleware import validation_message
from app.models.notification import (
    EmailSentResponse,
    ManuscriptNotification,
    SubmissionEmailRequest,
)
from app.services.notification_service import NotificationService

router = APIRouter(tags=["Notifications"])


def get_notification_service() -> NotificationService:
    return NotificationService()


@router.post("/send-submission-email", response_model=EmailSentResponse)
def send_submission_email(
    body: SubmissionEmailRequest,
    service: NotificationService = Depends(get_notification_service),
):
    """
    把已上传到 Storage 的投稿文件作为附件发给编辑部（reply-to 为作者）。
    """
    result = service.send_submission_email(body)
    return {"success": True, "id": result.message_id}


@router.post("/send-manuscript-email", response_model=EmailSentResponse)
async def send_manuscript_email(
    title: str = Form(...),
    manuscript_type: str = Form(""),
    abstract: str = Form(""),
    keywords: str = Form(""),
    corresponding_author_name: str = Form(...),
    corresponding_author_email: str = Form(...),
    corresponding_author_affiliation: str = Form(""),
    corresponding_author_orcid: Optional[str] = Form(None),
    all_authors: Optional[str] = Form(None),
    cover_letter: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        note = ManuscriptNotification(
            title=title,
            manuscript_type=manuscript_type,
            abstract=abstract,
            keywords=keywords,
            corresponding_author_name=corresponding_author_name,
            corresponding_author_email=corresponding_author_email,
            corresponding_author_affiliation=corresponding_author_affiliation,
            corresponding_author_orcid=corresponding_author_orcid,
            all_authors=all_authors,
            cover_letter=cover_letter,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=validation_message(e.errors()))

    attachments: list[EmailAttachment] = []
    for f in files or []:
        content = await f.read()
        if not content:
            continue
        attachments.append(
            EmailAttachment(
                filename=f.filename or "attachment",
                content=content,
                content_type=f.content_type or "application/octet-stream",
            )
        )
    # smtplib / resend 都是阻塞调用
    result = await asyncio.to_thread(service.send_manuscript_email, note, attachments)
    return {"success": True, "id": result.message_id}


@router.post("/notify-manuscript-submission", response_model=EmailSentResponse)
def notify_manuscript_submission(
    body: ManuscriptNotification,
    service: NotificationService = Depends(get_notification_service),
):
    result = service.notify_manuscript_submission(body)
    return {"success": True, "id": result.message_id}
