from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.article import ORCID_PATTERN


class SubmissionStatus(str, Enum):
    """
    投稿生命周期状态

    中文注释:
    - 状态流转规则集中在 allowed_next，API 层与前端都不允许自行拼规则。
    - accepted/rejected 为终态，只能通过 unlock 回到 under_review。
    """

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    REVISIONS_REQUESTED = "revisions_requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @classmethod
    def finalized(cls) -> set[str]:
        return {cls.ACCEPTED.value, cls.REJECTED.value}

    @classmethod
    def allowed_next(cls, current: str) -> set[str]:
        """
        - pending -> under_review / revisions_requested / accepted / rejected
        - under_review -> revisions_requested / accepted / rejected
        - revisions_requested -> under_review / revisions_requested / accepted / rejected
        - accepted / rejected -> under_review（仅 unlock）
        """
        c = (current or "").strip().lower()
        decisions = {
            cls.REVISIONS_REQUESTED.value,
            cls.ACCEPTED.value,
            cls.REJECTED.value,
        }
        if c == cls.PENDING.value:
            return {cls.UNDER_REVIEW.value, *decisions}
        if c == cls.UNDER_REVIEW.value:
            return set(decisions)
        if c == cls.REVISIONS_REQUESTED.value:
            return {cls.UNDER_REVIEW.value, *decisions}
        if c in cls.finalized():
            return {cls.UNDER_REVIEW.value}
        return set()


def normalize_submission_status(value: str | None) -> str | None:
    if value is None:
        return None
    v = str(value).strip().lower()
    try:
        return SubmissionStatus(v).value
    except ValueError:
        return None


class ManuscriptType(str, Enum):
    RESEARCH_ARTICLE = "research-article"
    REVIEW = "review"
    SHORT_COMMUNICATION = "short-communication"
    TECHNICAL_REPORT = "technical-report"
    FIELD_NOTES = "field-notes"
    OBSERVATIONAL_REPORTS = "observational-reports"
    CONSERVATION_NEWS = "conservation-news"
    CASE_STUDY = "case-study"
    METHODOLOGY = "methodology"


class SubmissionCreate(BaseModel):
    """作者投稿表单（文件另行上传）"""

    title: str = Field(..., min_length=1, max_length=500)
    manuscript_type: ManuscriptType
    abstract: str = Field(..., min_length=1, max_length=10000)
    keywords: str = Field(..., min_length=1, max_length=1000)
    corresponding_author_name: str = Field(..., min_length=1, max_length=300)
    corresponding_author_email: EmailStr
    corresponding_author_affiliation: str = Field(..., min_length=1, max_length=500)
    corresponding_author_orcid: Optional[str] = None
    all_authors: str = Field(..., min_length=1, max_length=2000)
    cover_letter: Optional[str] = Field(None, max_length=10000)

    copyright_original_work: bool = False
    copyright_no_conflict: bool = False
    copyright_transfer_rights: bool = False
    copyright_creative_commons: bool = False
    copyright_signature: str = ""

    @field_validator(
        "title",
        "abstract",
        "keywords",
        "corresponding_author_name",
        "corresponding_author_affiliation",
        "all_authors",
        mode="before",
    )
    @classmethod
    def _trim(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("corresponding_author_orcid", "cover_letter", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("corresponding_author_orcid")
    @classmethod
    def validate_orcid(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ORCID_PATTERN.match(value):
            raise ValueError("Invalid ORCID iD")
        return value

    @property
    def copyright_confirmed(self) -> bool:
        return all(
            (
                self.copyright_original_work,
                self.copyright_no_conflict,
                self.copyright_transfer_rights,
                self.copyright_creative_commons,
            )
        )


class TrackRequest(BaseModel):
    submission_id: Optional[str] = Field(None, alias="submissionId")
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
