from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.doi import DOI_PATTERN
from app.core.sanitize import strip_html

ORCID_PATTERN = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")
_VOLUME_PATTERN = re.compile(r"^\d{1,4}$")

MAX_ORCID_IDS = 20


class ArticleType(str, Enum):
    """
    已发表文章类型（期刊目录展示用，与投稿类型 ManuscriptType 不同）。
    """

    RESEARCH_ARTICLE = "Research Article"
    REVIEW_ARTICLE = "Review Article"
    SHORT_COMMUNICATION = "Short Communication"
    TECHNICAL_REPORT = "Technical Report / Risk Assessment"
    CONSERVATION_NEWS = "Conservation News"
    FIELD_NOTES = "Field Notes"
    OBSERVATIONAL_REPORTS = "Observational Reports"
    CASE_STUDY = "Case Study"
    METHODOLOGY_PAPER = "Methodology Paper"


class ArticleMetrics(BaseModel):
    citations: int = Field(0, ge=0)
    downloads: int = Field(0, ge=0)
    views: int = Field(0, ge=0)
    altmetric_score: int = Field(0, ge=0)
    social_shares: int = Field(0, ge=0)


class Article(BaseModel):
    """合并视图中的一篇文章（静态目录或 articles 表）"""

    id: int
    doi: str
    title: str
    authors: str
    orcid_ids: list[str] = Field(default_factory=list)
    type: str
    publication_date: str
    pdf_url: Optional[str] = None
    resolver_url: Optional[str] = None
    volume: str
    issue: str
    abstract: str
    metrics: Optional[ArticleMetrics] = None
    source: Literal["static", "dynamic"] = "dynamic"

    model_config = ConfigDict(from_attributes=True)

    @field_validator("orcid_ids", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @field_validator("volume", "issue", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        return "" if value is None else str(value)


class ArticleValidationError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class ArticleInput(BaseModel):
    """
    编辑发布/更新时提交的文章元数据。

    中文注释:
    - 编辑面板历史上用 camelCase（orcidIds/publicationDate/pdfUrl），这里两种写法都接受。
    - 标题/作者/摘要先去 HTML 再做长度校验。
    """

    id: Optional[int] = None
    doi: Optional[str] = None
    title: str
    authors: str
    orcid_ids: list[str] = Field(default_factory=list, alias="orcidIds")
    type: ArticleType
    publication_date: date = Field(default_factory=date.today, alias="publicationDate")
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")
    volume: str
    issue: str
    abstract: str

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("title", "authors", "abstract", mode="before")
    @classmethod
    def _strip_markup(cls, value):
        if value is None:
            return value
        return strip_html(str(value))

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        if not 5 <= len(value) <= 500:
            raise ValueError("Title must be between 5 and 500 characters")
        return value

    @field_validator("authors")
    @classmethod
    def validate_authors(cls, value: str) -> str:
        if not 2 <= len(value) <= 1000:
            raise ValueError("Authors must be between 2 and 1000 characters")
        return value

    @field_validator("abstract")
    @classmethod
    def validate_abstract(cls, value: str) -> str:
        if not 20 <= len(value) <= 5000:
            raise ValueError("Abstract must be between 20 and 5000 characters")
        return value

    @field_validator("volume", "issue", mode="before")
    @classmethod
    def validate_volume_issue(cls, value, info):
        text = "" if value is None else str(value).strip()
        if not _VOLUME_PATTERN.match(text):
            raise ValueError(f"{info.field_name.capitalize()} must be 1-4 digits")
        return text

    @field_validator("doi", mode="before")
    @classmethod
    def validate_doi(cls, value):
        if value is None:
            return None
        text = str(value).strip().upper()
        if not text:
            return None
        if not DOI_PATTERN.match(text):
            raise ValueError("DOI must look like MNJ-YYYY-NNN")
        return text

    @field_validator("orcid_ids", mode="before")
    @classmethod
    def validate_orcid_ids(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        cleaned = [str(v).strip() for v in value if str(v).strip()]
        if len(cleaned) > MAX_ORCID_IDS:
            raise ValueError(f"At most {MAX_ORCID_IDS} ORCID iDs are allowed")
        for orcid in cleaned:
            if not ORCID_PATTERN.match(orcid):
                raise ValueError(f"Invalid ORCID iD: {orcid}")
        return cleaned

    @field_validator("publication_date", mode="before")
    @classmethod
    def _empty_date_is_today(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return date.today()
        return value

    @field_validator("pdf_url", mode="before")
    @classmethod
    def validate_pdf_url(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        if not text:
            return None
        if text.startswith(("http://", "https://", "/")):
            return text
        raise ValueError("PDF URL must be an http(s) URL or a site path")

    def to_row(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "authors": self.authors,
            "orcid_ids": list(self.orcid_ids),
            "type": self.type.value,
            "publication_date": self.publication_date.isoformat(),
            "pdf_url": self.pdf_url,
            "volume": self.volume,
            "issue": self.issue,
            "abstract": self.abstract,
        }


_FIELD_LABELS = {
    "title": "Title",
    "authors": "Authors",
    "abstract": "Abstract",
    "type": "Type",
    "volume": "Volume",
    "issue": "Issue",
    "doi": "DOI",
    "orcid_ids": "ORCID",
    "orcidIds": "ORCID",
    "publication_date": "Publication date",
    "publicationDate": "Publication date",
    "pdf_url": "PDF URL",
    "pdfUrl": "PDF URL",
    "id": "Article id",
}


def validate_article(payload: dict[str, Any] | None) -> ArticleInput:
    """
    校验并清洗文章元数据；失败时抛出 ArticleValidationError（携带第一个出错字段）。
    """
    try:
        return ArticleInput.model_validate(payload or {})
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc") or ("article",)
        field = str(loc[0])
        label = _FIELD_LABELS.get(field, field)
        if first.get("type") == "missing":
            message = f"{label} is required"
        elif first.get("type") == "value_error":
            message = str(first.get("ctx", {}).get("error") or first.get("msg"))
        elif field == "type":
            message = "Type must be one of: " + ", ".join(t.value for t in ArticleType)
        else:
            message = f"{label} is invalid"
        raise ArticleValidationError(field, message) from exc
