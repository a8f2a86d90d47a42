from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import HTTPException

from app.core.config import EditorConfig
from app.lib.api_client import supabase_admin
from app.models.submission import SubmissionCreate, SubmissionStatus
from app.services.db_errors import map_db_error
from app.services.editorial_service import EditorialService, build_timeline
from app.services.storage_service import (
    MANUSCRIPTS_BUCKET,
    create_signed_url,
    remove_objects,
    safe_filename,
    upload_bytes,
)

logger = logging.getLogger("marinenotes.submissions")

TRACKING_FIELDS = "id,title,manuscript_type,status,created_at,corresponding_author_name,corresponding_author_email"

SIGNED_URL_TTL_SEC = 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SubmissionFile:
    filename: str
    content: bytes
    content_type: str


def submission_file_path(user_id: str, filename: str, *, now: datetime, index: int = 0) -> str:
    # 同一次投稿内按序号区分，同名文件不会互相覆盖
    millis = int(now.timestamp() * 1000)
    return f"submissions/{user_id}/{millis}-{index}-{safe_filename(filename)}"


class SubmissionService:
    """
    作者投稿：创建、作者工作台读取、公开进度查询。
    """

    def __init__(
        self,
        *,
        client: Any | None = None,
        editor_config: EditorConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client or supabase_admin
        self.editor_config = editor_config or EditorConfig.from_env()
        self._clock = clock or _utcnow
        self.editorial = EditorialService(client=self.client, clock=self._clock)

    def create(
        self,
        *,
        user_id: str,
        payload: SubmissionCreate,
        files: list[SubmissionFile],
    ) -> dict[str, Any]:
        if not payload.copyright_confirmed:
            raise HTTPException(status_code=400, detail="Copyright agreement required")
        if not payload.copyright_signature.strip():
            raise HTTPException(status_code=400, detail="Signature required")
        if not files:
            raise HTTPException(status_code=400, detail="At least one manuscript file is required")

        limit = self.editor_config.submission_file_max_bytes
        for f in files:
            if not f.content:
                raise HTTPException(status_code=400, detail=f"Empty file: {f.filename}")
            if len(f.content) > limit:
                raise HTTPException(status_code=413, detail=f"File too large: {f.filename}")

        now = self._clock()
        paths: list[str] = []
        for index, f in enumerate(files):
            path = submission_file_path(user_id, f.filename, now=now, index=index)
            try:
                upload_bytes(
                    bucket=MANUSCRIPTS_BUCKET,
                    path=path,
                    content=f.content,
                    content_type=f.content_type or "application/octet-stream",
                    upsert=False,
                    client=self.client,
                )
            except Exception as e:
                logger.error("[Submission] upload failed for %s: %s", path, e)
                self._discard_uploads(paths)
                raise HTTPException(status_code=500, detail="Failed to upload manuscript file")
            paths.append(path)

        row = {
            "user_id": user_id,
            "title": payload.title,
            "manuscript_type": payload.manuscript_type.value,
            "abstract": payload.abstract,
            "keywords": payload.keywords,
            "corresponding_author_name": payload.corresponding_author_name,
            "corresponding_author_email": str(payload.corresponding_author_email),
            "corresponding_author_affiliation": payload.corresponding_author_affiliation,
            "corresponding_author_orcid": payload.corresponding_author_orcid,
            "all_authors": payload.all_authors,
            "cover_letter": payload.cover_letter,
            "copyright_agreed": True,
            "file_paths": paths,
            "status": SubmissionStatus.PENDING.value,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }
        try:
            resp = self.client.table("manuscript_submissions").insert(row).execute()
        except Exception as e:
            self._discard_uploads(paths)
            raise map_db_error(e, context="create submission") from e
        rows = getattr(resp, "data", None) or []
        if not rows:
            self._discard_uploads(paths)
            raise HTTPException(status_code=500, detail="Failed to create submission")
        created = rows[0]
        logger.info("[Submission] created %s by %s (%s files)", created.get("id"), user_id, len(paths))
        return created

    def _discard_uploads(self, paths: list[str]) -> None:
        if paths:
            logger.info("[Submission] removing %s orphaned uploads", len(paths))
        remove_objects(bucket=MANUSCRIPTS_BUCKET, paths=paths, client=self.client)

    def list_for_author(self, user_id: str) -> list[dict[str, Any]]:
        try:
            resp = (
                self.client.table("manuscript_submissions")
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("[Submission] list for %s failed: %s", user_id, e)
            raise HTTPException(status_code=500, detail="Failed to load submissions") from e
        rows = list(getattr(resp, "data", None) or [])
        reviews = self.editorial.reviews_by_submission([str(r.get("id")) for r in rows])
        return [
            {**row, "timeline": build_timeline(row, reviews.get(str(row.get("id")), []))}
            for row in rows
        ]

    def detail_for_author(self, *, user_id: str, submission_id: str) -> dict[str, Any]:
        submission = self.editorial.get_submission(submission_id)
        if str(submission.get("user_id") or "") != str(user_id):
            # 不暴露他人稿件是否存在
            raise HTTPException(status_code=404, detail="Submission not found")
        reviews = self.editorial.list_reviews(submission_id)
        return {**submission, "timeline": build_timeline(submission, reviews)}

    def file_urls(self, submission: dict[str, Any]) -> list[dict[str, str]]:
        out: list[dict[str, str]] = []
        for path in submission.get("file_paths") or []:
            try:
                signed = create_signed_url(
                    bucket=MANUSCRIPTS_BUCKET,
                    path=path,
                    expires_in=SIGNED_URL_TTL_SEC,
                    client=self.client,
                )
            except Exception as e:
                logger.warning("[Submission] signed url failed for %s: %s", path, e)
                continue
            out.append({"path": path, "url": signed.url})
        return out

    def track(self, *, submission_id: Optional[str], email: Optional[str]) -> dict[str, Any]:
        """
        公开进度查询：稿件编号 + 通讯作者邮箱（不区分大小写）都匹配才返回。
        """
        sid = (submission_id or "").strip()
        wanted_email = (email or "").strip().lower()
        if not sid or not wanted_email:
            raise HTTPException(status_code=400, detail="Submission ID and email are required")

        not_found = HTTPException(
            status_code=404, detail="Submission not found or email does not match"
        )
        try:
            resp = (
                self.client.table("manuscript_submissions")
                .select(TRACKING_FIELDS)
                .eq("id", sid)
                .limit(1)
                .execute()
            )
        except Exception as e:
            # 非法 uuid 等格式错误也按“未找到”处理，避免泄露内部信息
            logger.info("[Submission] track lookup failed for %s: %s", sid, e)
            raise not_found from e
        rows = getattr(resp, "data", None) or []
        if not rows:
            raise not_found
        row = dict(rows[0])
        stored_email = str(row.pop("corresponding_author_email", "") or "").strip().lower()
        if stored_email != wanted_email:
            raise not_found
        return row
