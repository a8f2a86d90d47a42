from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewAction(str, Enum):
    NOTE = "note"
    REQUEST_REVISION = "request_revision"
    ACCEPT = "accept"
    REJECT = "reject"
    ASSIGN_REVIEWER = "assign_reviewer"
    UNLOCK = "unlock"

    @classmethod
    def decisions(cls) -> set[str]:
        return {cls.ACCEPT.value, cls.REJECT.value}

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]


_ACTION_LABELS = {
    ReviewAction.NOTE: "Note",
    ReviewAction.REQUEST_REVISION: "Revision Requested",
    ReviewAction.ACCEPT: "Accepted",
    ReviewAction.REJECT: "Rejected",
    ReviewAction.ASSIGN_REVIEWER: "Reviewer Assigned",
    ReviewAction.UNLOCK: "Unlocked",
}


class EditorActionRequest(BaseModel):
    action: ReviewAction
    comment: Optional[str] = Field(None, max_length=20000)
    reviewer_id: Optional[str] = None


class UnlockRequest(BaseModel):
    reason: str = Field("", max_length=5000)


class AIReviewRequest(BaseModel):
    title: str = Field(..., min_length=1)
    abstract: str = Field(..., min_length=1)
    keywords: str = ""
    manuscript_type: str = Field("", alias="manuscriptType")
    authors: str = ""
    cover_letter: Optional[str] = Field(None, alias="coverLetter")

    model_config = ConfigDict(populate_by_name=True)


class AIReviewResponse(BaseModel):
    review: str


class SubmissionAIReviewRequest(BaseModel):
    save_as_note: bool = False
