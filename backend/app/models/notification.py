from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmissionEmailRequest(BaseModel):
    """投稿表单提交后，前端请求把已上传文件作为附件发给编辑部。"""

    title: str = Field(..., min_length=1)
    manuscript_type: str = Field("", alias="manuscriptType")
    corresponding_author: str = Field(..., min_length=1, alias="correspondingAuthor")
    email: str = Field(..., min_length=3)
    institution: str = ""
    orcid: Optional[str] = None
    authors: str = ""
    abstract: str = ""
    keywords: str = ""
    cover_letter: Optional[str] = Field(None, alias="coverLetter")
    file_paths: list[str] = Field(default_factory=list, alias="filePaths")

    model_config = ConfigDict(populate_by_name=True)


class ManuscriptNotification(BaseModel):
    title: str = Field(..., min_length=1)
    manuscript_type: str = ""
    corresponding_author_name: str = Field(..., min_length=1)
    corresponding_author_email: str = Field(..., min_length=3)
    corresponding_author_affiliation: str = ""
    corresponding_author_orcid: Optional[str] = None
    all_authors: Optional[str] = None
    abstract: str = ""
    keywords: str = ""
    cover_letter: Optional[str] = None
    submission_id: Optional[str] = None


class EmailSentResponse(BaseModel):
    success: bool = True
    id: Optional[str] = None
