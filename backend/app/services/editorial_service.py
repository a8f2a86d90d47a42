from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import HTTPException

from app.lib.api_client import supabase_admin
from app.models.review import ReviewAction
from app.models.submission import SubmissionStatus, normalize_submission_status

logger = logging.getLogger("marinenotes.workflow")

AI_REVIEW_MARKERS = ("**", "As the AI Chief Editor")
AI_REVIEW_HEADING = "**AI Review**"

EDITOR_ACTIONS = [
    ReviewAction.NOTE.value,
    ReviewAction.ASSIGN_REVIEWER.value,
    ReviewAction.REQUEST_REVISION.value,
    ReviewAction.ACCEPT.value,
    ReviewAction.REJECT.value,
]

_ACTION_TARGET = {
    ReviewAction.REQUEST_REVISION.value: SubmissionStatus.REVISIONS_REQUESTED.value,
    ReviewAction.ACCEPT.value: SubmissionStatus.ACCEPTED.value,
    ReviewAction.REJECT.value: SubmissionStatus.REJECTED.value,
    ReviewAction.UNLOCK.value: SubmissionStatus.UNDER_REVIEW.value,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_ai_review(review: dict[str, Any]) -> bool:
    return review.get("action") == ReviewAction.NOTE.value and str(
        review.get("comment") or ""
    ).startswith(AI_REVIEW_MARKERS)


def as_ai_note(review_text: str) -> str:
    text = (review_text or "").strip()
    if text.startswith(AI_REVIEW_MARKERS):
        return text
    return f"{AI_REVIEW_HEADING}\n\n{text}"


def decision_by_other(reviews: list[dict[str, Any]], editor_id: str) -> bool:
    """
    最近一次 unlock 之后，是否有其他编辑做出了 accept/reject。

    中文注释: reviews 需按时间正序。
    """
    decided_by: set[str] = set()
    for review in reviews:
        action = review.get("action")
        if action == ReviewAction.UNLOCK.value:
            decided_by.clear()
        elif action in ReviewAction.decisions():
            decided_by.add(str(review.get("reviewer_id") or ""))
    return any(rid != str(editor_id) for rid in decided_by)


def available_actions(
    submission: dict[str, Any],
    reviews: list[dict[str, Any]],
    editor_id: str,
    *,
    is_admin: bool = False,
) -> list[str]:
    status = normalize_submission_status(submission.get("status"))
    # 终态稿件对所有编辑只保留 unlock
    if status in SubmissionStatus.finalized():
        return [ReviewAction.UNLOCK.value]
    if not is_admin and decision_by_other(reviews, editor_id):
        return []
    return list(EDITOR_ACTIONS)


def build_timeline(submission: dict[str, Any], reviews: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    时间线：先是一条“Received”，然后按时间正序列出审计记录。
    """
    timeline: list[dict[str, Any]] = [
        {
            "kind": "received",
            "label": "Received",
            "created_at": submission.get("created_at"),
            "comment": None,
            "reviewer_id": None,
            "is_ai_review": False,
        }
    ]
    for review in sorted(reviews, key=lambda r: str(r.get("created_at") or "")):
        try:
            label = ReviewAction(review.get("action")).label
        except ValueError:
            label = str(review.get("action") or "")
        timeline.append(
            {
                "kind": review.get("action"),
                "label": label,
                "created_at": review.get("created_at"),
                "comment": review.get("comment"),
                "reviewer_id": review.get("reviewer_id"),
                "is_ai_review": is_ai_review(review),
            }
        )
    return timeline


@dataclass(frozen=True)
class ActionResult:
    submission: dict[str, Any]
    review: dict[str, Any]


class EditorialService:
    """
    投稿状态机与审计日志（submission_reviews）写入服务。

    中文注释:
    - 状态流转规则只在这里校验，前端的按钮隐藏只是体验层。
    - 写入顺序：先改状态，再写审计；审计写失败则把状态改回去并返回 500，
      保证不存在“没有审计记录的状态变化”。审计记录只追加，从不删除。
    """

    def __init__(self, *, client: Any | None = None, clock: Callable[[], datetime] | None = None) -> None:
        self.client = client or supabase_admin
        self._clock = clock or _utcnow

    def _now(self) -> str:
        return self._clock().isoformat()

    # === 读取 ===

    def get_submission(self, submission_id: str) -> dict[str, Any]:
        try:
            resp = (
                self.client.table("manuscript_submissions")
                .select("*")
                .eq("id", submission_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("[Workflow] load submission %s failed: %s", submission_id, e)
            raise HTTPException(status_code=500, detail="Failed to load submission") from e
        rows = getattr(resp, "data", None) or []
        if not rows:
            raise HTTPException(status_code=404, detail="Submission not found")
        return rows[0]

    def list_reviews(self, submission_id: str) -> list[dict[str, Any]]:
        resp = (
            self.client.table("submission_reviews")
            .select("*")
            .eq("submission_id", submission_id)
            .order("created_at")
            .execute()
        )
        return list(getattr(resp, "data", None) or [])

    def reviews_by_submission(self, submission_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {sid: [] for sid in submission_ids}
        if not submission_ids:
            return grouped
        resp = (
            self.client.table("submission_reviews")
            .select("*")
            .in_("submission_id", submission_ids)
            .order("created_at")
            .execute()
        )
        for row in getattr(resp, "data", None) or []:
            grouped.setdefault(str(row.get("submission_id")), []).append(row)
        return grouped

    def list_submissions(self, status: Optional[str] = None) -> dict[str, Any]:
        try:
            resp = (
                self.client.table("manuscript_submissions")
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("[Workflow] list submissions failed: %s", e)
            raise HTTPException(status_code=500, detail="Failed to load submissions") from e
        rows = list(getattr(resp, "data", None) or [])

        counts = {s.value: 0 for s in SubmissionStatus}
        for row in rows:
            key = normalize_submission_status(row.get("status"))
            if key:
                counts[key] += 1

        if status:
            wanted = normalize_submission_status(status)
            if wanted is None:
                raise HTTPException(status_code=400, detail="Invalid status filter")
            rows = [r for r in rows if normalize_submission_status(r.get("status")) == wanted]
        return {"items": rows, "counts": counts, "total": len(rows)}

    # === 编辑动作 ===

    def apply_action(
        self,
        *,
        submission_id: str,
        editor_id: str,
        action: str,
        comment: Optional[str] = None,
        reviewer_id: Optional[str] = None,
        is_admin: bool = False,
    ) -> ActionResult:
        try:
            act = ReviewAction(action)
        except ValueError:
            raise HTTPException(status_code=400, detail="Unknown action")

        comment = (comment or "").strip() or None
        submission = self.get_submission(submission_id)
        reviews = self.list_reviews(submission_id)
        current = normalize_submission_status(submission.get("status")) or SubmissionStatus.PENDING.value
        finalized = current in SubmissionStatus.finalized()

        if act == ReviewAction.UNLOCK:
            if not comment:
                raise HTTPException(status_code=400, detail="Unlock reason is required")
            comment = f"Submission unlocked. Reason: {comment}"

        reopening = act == ReviewAction.UNLOCK and finalized
        if not is_admin and not reopening and decision_by_other(reviews, editor_id):
            raise HTTPException(
                status_code=409, detail="Another editor has already recorded a decision"
            )
        if act == ReviewAction.UNLOCK and not finalized:
            raise HTTPException(
                status_code=409, detail="Only accepted or rejected submissions can be unlocked"
            )
        if act != ReviewAction.UNLOCK and finalized:
            raise HTTPException(
                status_code=409, detail="Submission is finalized; unlock it before further actions"
            )
        if act == ReviewAction.NOTE and not comment:
            raise HTTPException(status_code=400, detail="Comment is required for a note")

        now = self._now()
        updates: dict[str, Any] = {}
        target = _ACTION_TARGET.get(act.value)
        if act == ReviewAction.ASSIGN_REVIEWER:
            updates["assigned_reviewer_id"] = reviewer_id or editor_id
            if current != SubmissionStatus.UNDER_REVIEW.value:
                target = SubmissionStatus.UNDER_REVIEW.value

        if target and target != current:
            allowed = SubmissionStatus.allowed_next(current)
            if target not in allowed:
                raise HTTPException(
                    status_code=409,
                    detail=f"Invalid transition: {current} -> {target}",
                )
        if target:
            updates["status"] = target
        if act in (ReviewAction.ACCEPT, ReviewAction.REJECT):
            updates["decision_date"] = now
        elif act == ReviewAction.UNLOCK:
            updates["decision_date"] = None

        updated = submission
        if updates:
            updates["updated_at"] = now
            updated = self._update_submission(submission_id, updates)

        review_row = {
            "submission_id": submission_id,
            "reviewer_id": editor_id,
            "action": act.value,
            "comment": comment,
            "created_at": now,
        }
        try:
            resp = self.client.table("submission_reviews").insert(review_row).execute()
            inserted = (getattr(resp, "data", None) or [review_row])[0]
        except Exception as e:
            logger.error("[Workflow] audit insert failed for %s/%s: %s", submission_id, act.value, e)
            if updates:
                self._revert(submission_id, submission, updates)
            raise HTTPException(status_code=500, detail="Failed to record editor action") from e

        logger.info(
            "[Workflow] %s by %s on %s: %s -> %s",
            act.value,
            editor_id,
            submission_id,
            current,
            updated.get("status"),
        )
        return ActionResult(submission=updated, review=inserted)

    def unlock(
        self, *, submission_id: str, editor_id: str, reason: str, is_admin: bool = False
    ) -> ActionResult:
        return self.apply_action(
            submission_id=submission_id,
            editor_id=editor_id,
            action=ReviewAction.UNLOCK.value,
            comment=reason,
            is_admin=is_admin,
        )

    def _update_submission(self, submission_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = (
                self.client.table("manuscript_submissions")
                .update(updates)
                .eq("id", submission_id)
                .execute()
            )
        except Exception as e:
            logger.error("[Workflow] status update failed for %s: %s", submission_id, e)
            raise HTTPException(status_code=500, detail="Failed to update submission") from e
        rows = getattr(resp, "data", None) or []
        if not rows:
            raise HTTPException(status_code=404, detail="Submission not found")
        return rows[0]

    def _revert(self, submission_id: str, before: dict[str, Any], updates: dict[str, Any]) -> None:
        restore = {k: before.get(k) for k in updates}
        try:
            self.client.table("manuscript_submissions").update(restore).eq("id", submission_id).execute()
        except Exception as e:
            # 中文注释: 回滚失败只能人工介入，至少保证日志里有完整上下文
            logger.critical(
                "[Workflow] revert failed for %s (wanted %s): %s", submission_id, restore, e
            )
