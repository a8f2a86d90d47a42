from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from fastapi import HTTPException

from app.core.config import JournalConfig
from app.core.mail import EmailAttachment, EmailService, SendResult
from app.lib.api_client import supabase_admin
from app.models.notification import ManuscriptNotification, SubmissionEmailRequest
from app.services.storage_service import MANUSCRIPTS_BUCKET, download_bytes

logger = logging.getLogger("marinenotes.notifications")

TEMPLATE = "submission_notification"


def attachment_name_from_path(path: str) -> str:
    """
    submissions/<uid>/<timestamp>-<name> -> <name>
    """
    base = (path or "").rsplit("/", 1)[-1]
    head, sep, rest = base.partition("-")
    if sep and head.isdigit() and rest:
        return rest
    return base or "attachment"


def _guess_content_type(filename: str) -> str:
    lowered = filename.lower()
    if lowered.endswith(".pdf"):
        return "application/pdf"
    if lowered.endswith(".docx"):
        return "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    if lowered.endswith(".doc"):
        return "application/msword"
    return "application/octet-stream"


class NotificationService:
    """
    编辑部邮件通知（新投稿）。

    中文注释:
    - 三个入口（带存储附件 / 带上传附件 / 纯通知）共用同一套模板。
    - 附件下载失败只跳过该文件，不影响邮件发出。
    """

    def __init__(
        self,
        *,
        email_service: EmailService | None = None,
        journal: JournalConfig | None = None,
        client: Any | None = None,
    ):
        self.email = email_service or EmailService()
        self.journal = journal or JournalConfig.from_env()
        self.client = client or supabase_admin

    def _subject(self, title: str) -> str:
        return f"New Manuscript Submission: {title}"

    def _context(self, note: ManuscriptNotification, attachment_names: Iterable[str] = ()) -> dict[str, Any]:
        return {
            **note.model_dump(),
            "attachment_names": list(attachment_names),
            "journal_name": self.journal.name,
        }

    def _send(
        self,
        note: ManuscriptNotification,
        *,
        reply_to: Optional[str] = None,
        attachments: list[EmailAttachment] | None = None,
    ) -> SendResult:
        attachments = attachments or []
        result = self.email.send_template_email(
            to_email=self.journal.editorial_email,
            subject=self._subject(note.title),
            template_name=TEMPLATE,
            context=self._context(note, (a.filename for a in attachments)),
            reply_to=reply_to,
            attachments=attachments,
        )
        if not result.ok:
            logger.error("[Notify] submission email failed: %s", note.title)
            raise HTTPException(status_code=500, detail="Failed to send email")
        logger.info(
            "[Notify] submission email sent: %s (%s attachments, id=%s)",
            note.title,
            len(attachments),
            result.message_id,
        )
        return result

    def _download_attachments(self, paths: list[str]) -> list[EmailAttachment]:
        out: list[EmailAttachment] = []
        for path in paths:
            try:
                content = download_bytes(bucket=MANUSCRIPTS_BUCKET, path=path, client=self.client)
            except Exception as e:
                logger.warning("[Notify] skip attachment %s: %s", path, e)
                continue
            name = attachment_name_from_path(path)
            out.append(EmailAttachment(filename=name, content=content, content_type=_guess_content_type(name)))
        return out

    def send_submission_email(self, req: SubmissionEmailRequest) -> SendResult:
        note = ManuscriptNotification(
            title=req.title,
            manuscript_type=req.manuscript_type,
            corresponding_author_name=req.corresponding_author,
            corresponding_author_email=req.email,
            corresponding_author_affiliation=req.institution,
            corresponding_author_orcid=req.orcid,
            all_authors=req.authors,
            abstract=req.abstract,
            keywords=req.keywords,
            cover_letter=req.cover_letter,
        )
        attachments = self._download_attachments(req.file_paths)
        return self._send(note, reply_to=req.email, attachments=attachments)

    def send_manuscript_email(
        self, note: ManuscriptNotification, files: list[EmailAttachment]
    ) -> SendResult:
        return self._send(note, reply_to=note.corresponding_author_email, attachments=files)

    def notify_manuscript_submission(self, note: ManuscriptNotification) -> SendResult:
        return self._send(note, reply_to=note.corresponding_author_email)

    def notify_submission_created(self, submission: dict[str, Any]) -> None:
        """
        BackgroundTasks 入口：投稿入库后通知编辑部。失败只记日志。
        """
        note = ManuscriptNotification(
            title=str(submission.get("title") or ""),
            manuscript_type=str(submission.get("manuscript_type") or ""),
            corresponding_author_name=str(submission.get("corresponding_author_name") or ""),
            corresponding_author_email=str(submission.get("corresponding_author_email") or ""),
            corresponding_author_affiliation=str(submission.get("corresponding_author_affiliation") or ""),
            corresponding_author_orcid=submission.get("corresponding_author_orcid"),
            all_authors=submission.get("all_authors"),
            abstract=str(submission.get("abstract") or ""),
            keywords=str(submission.get("keywords") or ""),
            cover_letter=submission.get("cover_letter"),
            submission_id=str(submission.get("id") or "") or None,
        )
        try:
            self._send(note, reply_to=note.corresponding_author_email)
        except HTTPException:
            logger.error("[Notify] background notification for %s not delivered", note.submission_id)
