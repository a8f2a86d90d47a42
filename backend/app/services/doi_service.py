from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from fastapi import HTTPException
from postgrest.exceptions import APIError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from app.core.config import JournalConfig
from app.core.doi import format_doi, parse_doi, resolver_url
from app.core.static_catalog import load_static_articles
from app.lib.api_client import supabase_admin
from app.services.db_errors import is_unique_violation, map_db_error

logger = logging.getLogger("marinenotes.doi")

MAX_ALLOCATION_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DOIConflict(Exception):
    """并发发布时抢到了同一个序号。"""


def highest_sequence(dois: Iterable[Optional[str]], year: int) -> int:
    best = 0
    for doi in dois:
        parsed = parse_doi(doi)
        if parsed and parsed[0] == year and parsed[1] > best:
            best = parsed[1]
    return best


class DOIService:
    """
    MNJ DOI 签发。

    中文注释:
    - 下一个序号 = 当年（静态目录 ∪ articles 表）最大序号 + 1，当年没有则从 1 开始。
    - 发布时不信任“先查后写”：唯一索引冲突时重新计算并重试，最多 5 次。
    - 编辑显式指定的 DOI 不会被改号，冲突直接返回 409。
    """

    def __init__(
        self,
        config: Optional[JournalConfig] = None,
        *,
        client: Any | None = None,
        clock: Callable[[], datetime] | None = None,
        static_articles: list[dict[str, Any]] | None = None,
    ):
        self.config = config or JournalConfig.from_env()
        self.client = client or supabase_admin
        self._clock = clock or _utcnow
        self._static = static_articles if static_articles is not None else load_static_articles()

    def current_year(self) -> int:
        return self._clock().year

    def _dynamic_dois(self, year: int) -> list[str]:
        resp = self.client.table("articles").select("doi").eq("doi_year", year).execute()
        rows = getattr(resp, "data", None) or []
        return [str(r.get("doi") or "") for r in rows]

    def next_sequence(self, year: int | None = None) -> int:
        year = year or self.current_year()
        static_max = highest_sequence((a.get("doi") for a in self._static), year)
        try:
            dynamic_max = highest_sequence(self._dynamic_dois(year), year)
        except Exception as e:
            raise map_db_error(e, context="read issued DOIs") from e
        return max(static_max, dynamic_max) + 1

    def next_doi(self, year: int | None = None) -> tuple[str, int]:
        year = year or self.current_year()
        seq = self.next_sequence(year)
        return format_doi(year, seq, self.config.doi_prefix), seq

    def _row_with_doi(self, row: dict[str, Any], doi: str) -> dict[str, Any]:
        year, seq = parse_doi(doi) or (None, None)
        return {
            **row,
            "doi": doi,
            "doi_year": year,
            "doi_sequence": seq,
            "resolver_url": resolver_url(doi, self.config.domain),
        }

    def _insert(self, row: dict[str, Any]) -> dict[str, Any]:
        resp = self.client.table("articles").insert(row).execute()
        rows = getattr(resp, "data", None) or []
        if not rows:
            raise HTTPException(status_code=500, detail="Database error")
        return rows[0]

    def insert_with_doi(self, row: dict[str, Any], doi: str) -> dict[str, Any]:
        doi = doi.strip().upper()
        if any(str(a.get("doi") or "").upper() == doi for a in self._static):
            raise HTTPException(status_code=409, detail="DOI already exists")
        try:
            return self._insert(self._row_with_doi(row, doi))
        except HTTPException:
            raise
        except Exception as e:
            raise map_db_error(e, context=f"publish {doi}") from e

    def _attempt_allocation(self, row: dict[str, Any]) -> dict[str, Any]:
        doi, _ = self.next_doi()
        try:
            return self._insert(self._row_with_doi(row, doi))
        except APIError as e:
            if is_unique_violation(e):
                logger.info("[DOI] %s taken concurrently, renumbering", doi)
                raise DOIConflict(doi) from e
            raise

    def allocate_and_insert(self, row: dict[str, Any]) -> dict[str, Any]:
        """
        计算下一个 DOI 并写入 articles；遇到唯一冲突重新编号。
        """
        retrying = Retrying(
            retry=retry_if_exception_type(DOIConflict),
            stop=stop_after_attempt(MAX_ALLOCATION_ATTEMPTS),
            reraise=True,
        )
        try:
            created = retrying(self._attempt_allocation, row)
        except DOIConflict as e:
            logger.error("[DOI] allocation gave up after %s attempts", MAX_ALLOCATION_ATTEMPTS)
            raise HTTPException(status_code=409, detail="DOI already exists") from e
        except HTTPException:
            raise
        except Exception as e:
            raise map_db_error(e, context="publish article") from e
        logger.info("[DOI] issued %s", created.get("doi"))
        return created
