import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.v1.ai_review import get_ai_client, run_ai_review
from app.core.ai_engine import AIReviewClient
from app.core.roles import has_any_role, require_editor
from app.models.review import (
    AIReviewRequest,
    EditorActionRequest,
    ReviewAction,
    SubmissionAIReviewRequest,
    UnlockRequest,
)
from app.services.editorial_service import (
    ActionResult,
    EditorialService,
    as_ai_note,
    available_actions,
    build_timeline,
)
from app.services.submission_service import SubmissionService

router = APIRouter(prefix="/editor", tags=["Editor Command Center"])


def get_editorial_service() -> EditorialService:
    return EditorialService()


def get_submission_service() -> SubmissionService:
    return SubmissionService()


def _is_admin(profile: dict) -> bool:
    return has_any_role(profile, ["admin"])


def _result(result: ActionResult) -> dict:
    return {"submission": result.submission, "review": result.review}


@router.get("/submissions")
def list_submissions(
    status: Optional[str] = Query(None),
    profile: dict = Depends(require_editor),
    service: EditorialService = Depends(get_editorial_service),
):
    """
    编辑工作台：全部投稿（新到旧）+ 各状态计数。
    """
    data = service.list_submissions(status)
    reviews = service.reviews_by_submission([str(r.get("id")) for r in data["items"]])
    items = []
    for row in data["items"]:
        row_reviews = reviews.get(str(row.get("id")), [])
        items.append(
            {
                **row,
                "review_count": len(row_reviews),
                "available_actions": available_actions(
                    row, row_reviews, profile["id"], is_admin=_is_admin(profile)
                ),
            }
        )
    return {"items": items, "counts": data["counts"], "total": data["total"]}


@router.get("/submissions/{submission_id}")
def get_submission(
    submission_id: str,
    profile: dict = Depends(require_editor),
    service: EditorialService = Depends(get_editorial_service),
    submissions: SubmissionService = Depends(get_submission_service),
):
    submission = service.get_submission(submission_id)
    reviews = service.list_reviews(submission_id)
    return {
        "submission": submission,
        "timeline": build_timeline(submission, reviews),
        "available_actions": available_actions(
            submission, reviews, profile["id"], is_admin=_is_admin(profile)
        ),
        "file_urls": submissions.file_urls(submission),
    }


@router.post("/submissions/{submission_id}/actions")
def perform_action(
    submission_id: str,
    body: EditorActionRequest,
    profile: dict = Depends(require_editor),
    service: EditorialService = Depends(get_editorial_service),
):
    result = service.apply_action(
        submission_id=submission_id,
        editor_id=profile["id"],
        action=body.action.value,
        comment=body.comment,
        reviewer_id=body.reviewer_id,
        is_admin=_is_admin(profile),
    )
    return _result(result)


@router.post("/submissions/{submission_id}/unlock")
def unlock_submission(
    submission_id: str,
    body: UnlockRequest,
    profile: dict = Depends(require_editor),
    service: EditorialService = Depends(get_editorial_service),
):
    result = service.unlock(
        submission_id=submission_id,
        editor_id=profile["id"],
        reason=body.reason,
        is_admin=_is_admin(profile),
    )
    return _result(result)


@router.post("/submissions/{submission_id}/ai-review")
async def ai_review_submission(
    submission_id: str,
    body: SubmissionAIReviewRequest | None = None,
    profile: dict = Depends(require_editor),
    service: EditorialService = Depends(get_editorial_service),
    client: AIReviewClient = Depends(get_ai_client),
):
    """
    对已入库投稿运行 AI 预审；save_as_note=true 时作为 note 写入审计记录（受状态机约束）。
    """
    submission = await asyncio.to_thread(service.get_submission, submission_id)
    req = AIReviewRequest(
        title=submission.get("title") or "",
        abstract=submission.get("abstract") or "",
        keywords=submission.get("keywords") or "",
        manuscript_type=submission.get("manuscript_type") or "",
        authors=submission.get("all_authors") or submission.get("corresponding_author_name") or "",
        cover_letter=submission.get("cover_letter"),
    )
    review = await run_ai_review(client, req)

    saved = None
    if body is not None and body.save_as_note:
        result = await asyncio.to_thread(
            service.apply_action,
            submission_id=submission_id,
            editor_id=profile["id"],
            action=ReviewAction.NOTE.value,
            comment=as_ai_note(review),
            is_admin=_is_admin(profile),
        )
        saved = result.review
    return {"review": review, "saved_note": saved}
