from __future__ import annotations

import base64
import binascii
import logging
import re
from collections import OrderedDict
from typing import Any, Iterable, Optional

from fastapi import HTTPException

from app.core.config import EditorConfig, JournalConfig
from app.core.doi import is_valid_doi, parse_doi
from app.core.static_catalog import load_static_articles
from app.lib.api_client import supabase_admin
from app.models.article import ArticleInput
from app.services.db_errors import map_db_error
from app.services.doi_service import DOIService
from app.services.storage_service import (
    ARTICLE_PDFS_BUCKET,
    get_public_url,
    is_safe_object_path,
    upload_bytes,
)

logger = logging.getLogger("marinenotes.articles")


def _doi_key(row: dict[str, Any]) -> str:
    return str(row.get("doi") or "").strip().upper()


_SLUG_UNSAFE = re.compile(r"[^a-z0-9]+")


def build_article_pdf_path(doi: str, title: Optional[str] = None) -> str:
    """
    文章 PDF 默认路径：`<year>/<doi>-<slug>.pdf`，slug 取标题前 60 个字符。
    """
    doi = (doi or "").strip().upper()
    parts = parse_doi(doi)
    if parts is None or not is_valid_doi(doi):
        raise HTTPException(status_code=400, detail="Invalid DOI format")
    slug = _SLUG_UNSAFE.sub("-", (title or "").lower()).strip("-")[:60].rstrip("-")
    name = f"{doi}-{slug}" if slug else doi
    return f"{parts[0]}/{name}.pdf"


def merge_articles(
    static: Iterable[dict[str, Any]], dynamic: Iterable[dict[str, Any]]
) -> list[dict[str, Any]]:
    """
    静态目录在前（保持原顺序），其后是 DOI 未出现过的动态记录。

    中文注释:
    - DOI 比较不区分大小写；静态目录优先。
    - 动态记录之间若重复，保留第一条。
    """
    merged: list[dict[str, Any]] = []
    seen: set[str] = set()
    for row in static:
        key = _doi_key(row)
        if key in seen:
            continue
        seen.add(key)
        merged.append({**row, "source": "static"})
    for row in dynamic:
        key = _doi_key(row)
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append({**row, "source": "dynamic"})
    return merged


def _publication_year(row: dict[str, Any]) -> Optional[int]:
    raw = str(row.get("publication_date") or "")
    if len(raw) >= 4 and raw[:4].isdigit():
        return int(raw[:4])
    return None


def _as_int(value: Any) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0


class ArticleService:
    """
    文章读写：公开目录/DOI 解析的合并读取，以及编辑发布通道的写入。
    """

    def __init__(
        self,
        *,
        client: Any | None = None,
        journal: JournalConfig | None = None,
        editor_config: EditorConfig | None = None,
        doi_service: DOIService | None = None,
        static_articles: list[dict[str, Any]] | None = None,
    ):
        self.client = client or supabase_admin
        self.journal = journal or JournalConfig.from_env()
        self.editor_config = editor_config or EditorConfig.from_env()
        self._static = static_articles if static_articles is not None else load_static_articles()
        self.doi_service = doi_service or DOIService(
            self.journal, client=self.client, static_articles=self._static
        )

    # === 读取 ===

    def fetch_dynamic(self) -> list[dict[str, Any]]:
        resp = self.client.table("articles").select("*").order("id").execute()
        return list(getattr(resp, "data", None) or [])

    def list_merged(self, *, strict: bool = False) -> list[dict[str, Any]]:
        """
        strict=False（公开读取）：articles 表读取失败时降级为只返回静态目录。
        strict=True（编辑通道）：直接报错。
        """
        try:
            dynamic = self.fetch_dynamic()
        except Exception as e:
            if strict:
                raise map_db_error(e, context="list articles") from e
            logger.warning("[Articles] dynamic read failed, serving static catalog only: %s", e)
            dynamic = []
        return merge_articles(self._static, dynamic)

    def find_by_doi(self, doi: str) -> Optional[dict[str, Any]]:
        wanted = (doi or "").strip().upper()
        if not wanted:
            return None
        for article in self.list_merged():
            if _doi_key(article) == wanted:
                return article
        return None

    def search(
        self,
        *,
        q: Optional[str] = None,
        article_type: Optional[str] = None,
        year: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        term = (q or "").strip().lower()
        wanted_type = (article_type or "").strip().lower()
        out: list[dict[str, Any]] = []
        for article in self.list_merged():
            if wanted_type and str(article.get("type") or "").lower() != wanted_type:
                continue
            if year and _publication_year(article) != year:
                continue
            if term:
                haystack = " ".join(
                    str(article.get(k) or "") for k in ("title", "authors", "abstract", "doi")
                ).lower()
                if term not in haystack:
                    continue
            out.append(article)
        return out

    def group_by_issue(self) -> list[dict[str, Any]]:
        groups: "OrderedDict[tuple[str, str], dict[str, Any]]" = OrderedDict()
        for article in self.list_merged():
            key = (str(article.get("volume") or ""), str(article.get("issue") or ""))
            group = groups.get(key)
            if group is None:
                group = {
                    "volume": key[0],
                    "issue": key[1],
                    "year": _publication_year(article),
                    "articles": [],
                }
                groups[key] = group
            group["articles"].append(article)
        return sorted(
            groups.values(),
            key=lambda g: (_as_int(g["volume"]), _as_int(g["issue"])),
            reverse=True,
        )

    # === 编辑写入 ===

    def publish(self, article: ArticleInput) -> dict[str, Any]:
        row = article.to_row()
        if article.doi:
            created = self.doi_service.insert_with_doi(row, article.doi)
        else:
            created = self.doi_service.allocate_and_insert(row)
        logger.info("[Articles] published %s", created.get("doi"))
        return created

    def update(self, article: ArticleInput) -> dict[str, Any]:
        if article.id is None:
            raise HTTPException(status_code=400, detail="Article id is required")
        if article.id < 0:
            # 静态目录（负数 id）不可修改
            raise HTTPException(status_code=400, detail="Static catalog articles cannot be edited")
        try:
            resp = (
                self.client.table("articles")
                .update(article.to_row())
                .eq("id", article.id)
                .execute()
            )
        except Exception as e:
            raise map_db_error(e, context=f"update article {article.id}") from e
        rows = getattr(resp, "data", None) or []
        if not rows:
            raise HTTPException(status_code=404, detail="Article not found")
        logger.info("[Articles] updated id=%s doi=%s", article.id, rows[0].get("doi"))
        return rows[0]

    def upload_pdf(self, *, file_name: str, file_data: str) -> str:
        """
        上传 base64 编码的 PDF 到公开的 article-pdfs 桶，返回公开 URL。
        """
        path = (file_name or "").strip()
        if not is_safe_object_path(path):
            raise HTTPException(status_code=400, detail="Invalid file name")
        if not path.lower().endswith(".pdf"):
            path = f"{path}.pdf"

        payload = (file_data or "").strip()
        # data URL 前缀（data:application/pdf;base64,）
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="Invalid PDF data")

        limit = self.editor_config.pdf_max_bytes
        if len(content) > limit:
            raise HTTPException(
                status_code=413, detail=f"PDF exceeds {limit // (1024 * 1024)} MB limit"
            )
        if not content.startswith(b"%PDF-"):
            raise HTTPException(status_code=400, detail="File is not a PDF")

        try:
            upload_bytes(
                bucket=ARTICLE_PDFS_BUCKET,
                path=path,
                content=content,
                content_type="application/pdf",
                upsert=True,
                public=True,
                client=self.client,
            )
            url = get_public_url(bucket=ARTICLE_PDFS_BUCKET, path=path, client=self.client)
        except Exception as e:
            logger.error("[Articles] PDF upload failed for %s: %s", path, e)
            raise HTTPException(status_code=500, detail="Failed to upload PDF")
        logger.info("[Articles] uploaded PDF %s (%s bytes)", path, len(content))
        return url
