import asyncio
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from app.core.auth_utils import get_current_user
from app.core.middleware import validation_message
from app.models.submission import SubmissionCreate, TrackRequest
from app.services.notification_service import NotificationService
from app.services.submission_service import SubmissionFile, SubmissionService

router = APIRouter(tags=["Submissions"])


def get_submission_service() -> SubmissionService:
    return SubmissionService()


def get_notification_service() -> NotificationService:
    return NotificationService()


@router.post("/submissions", status_code=201)
async def create_submission(
    background_tasks: BackgroundTasks,
    title: str = Form(...),
    manuscript_type: str = Form(...),
    abstract: str = Form(...),
    keywords: str = Form(...),
    corresponding_author_name: str = Form(...),
    corresponding_author_email: str = Form(...),
    corresponding_author_affiliation: str = Form(...),
    corresponding_author_orcid: Optional[str] = Form(None),
    all_authors: str = Form(...),
    cover_letter: Optional[str] = Form(None),
    copyright_original_work: bool = Form(False),
    copyright_no_conflict: bool = Form(False),
    copyright_transfer_rights: bool = Form(False),
    copyright_creative_commons: bool = Form(False),
    copyright_signature: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    current_user: dict = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    作者投稿（multipart）：文件先入 Storage，再写 manuscript_submissions（status=pending）。

    中文注释: 编辑部通知走 BackgroundTasks，邮件失败不影响投稿结果。
    """
    try:
        payload = SubmissionCreate(
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
            copyright_original_work=copyright_original_work,
            copyright_no_conflict=copyright_no_conflict,
            copyright_transfer_rights=copyright_transfer_rights,
            copyright_creative_commons=copyright_creative_commons,
            copyright_signature=copyright_signature,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=validation_message(e.errors()))

    uploads: list[SubmissionFile] = []
    for f in files or []:
        content = await f.read()
        uploads.append(
            SubmissionFile(
                filename=f.filename or "manuscript",
                content=content,
                content_type=f.content_type or "application/octet-stream",
            )
        )

    # Storage 与 PostgREST 都是同步调用，放到线程池里执行
    created = await asyncio.to_thread(
        service.create, user_id=current_user["id"], payload=payload, files=uploads
    )
    background_tasks.add_task(notifier.notify_submission_created, created)
    return {"submission": created}


@router.get("/submissions/mine")
def list_my_submissions(
    current_user: dict = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
):
    return {"items": service.list_for_author(current_user["id"])}


@router.get("/submissions/{submission_id}")
def get_my_submission(
    submission_id: str,
    current_user: dict = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
):
    return {"submission": service.detail_for_author(user_id=current_user["id"], submission_id=submission_id)}


@router.post("/track-submission")
def track_submission(
    body: TrackRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    """
    公开进度查询（无需登录）
    """
    return {"submission": service.track(submission_id=body.submission_id, email=body.email)}
