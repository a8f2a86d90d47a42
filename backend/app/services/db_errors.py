from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException
from postgrest.exceptions import APIError

logger = logging.getLogger("marinenotes.db")

UNIQUE_VIOLATION = "23505"

# 中文注释: 只向客户端返回简短的错误类别，原始数据库报错只进日志。
_PG_ERRORS: dict[str, tuple[int, str]] = {
    UNIQUE_VIOLATION: (409, "DOI already exists"),
    "23502": (400, "Missing required field"),
    "23514": (400, "Invalid field value"),
    "22P02": (400, "Invalid field format"),
    "22001": (400, "Field value too long"),
}


def error_code(error: BaseException) -> Optional[str]:
    code: Any = getattr(error, "code", None)
    if code:
        return str(code)
    return None


def is_unique_violation(error: BaseException) -> bool:
    if error_code(error) == UNIQUE_VIOLATION:
        return True
    lowered = str(error).lower()
    return "duplicate key" in lowered or "unique constraint" in lowered


def map_db_error(error: BaseException, *, context: str) -> HTTPException:
    """
    把 PostgREST/Postgres 错误映射成对外的 HTTPException。
    """
    code = error_code(error) if isinstance(error, APIError) else None
    if code is None and is_unique_violation(error):
        code = UNIQUE_VIOLATION
    if code in _PG_ERRORS:
        status, message = _PG_ERRORS[code]
        logger.warning("[DB] %s rejected (%s): %s", context, code, error)
        return HTTPException(status_code=status, detail=message)
    logger.error("[DB] %s failed: %s", context, error)
    return HTTPException(status_code=500, detail="Database error")
