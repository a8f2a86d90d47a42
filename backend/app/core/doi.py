"""
MNJ DOI 格式工具

格式: <PREFIX>-<YYYY>-<NNN>
- 序号至少三位，不足补零；超过 999 后自然扩展为四位及以上。
- 解析地址: https://<domain>/doi/<doi>
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

DEFAULT_PREFIX = "MNJ"

DOI_PATTERN = re.compile(r"^MNJ-\d{4}-\d{3,}$")
_DOI_PARTS = re.compile(r"^([A-Z]+)-(\d{4})-(\d+)$", re.IGNORECASE)
_RESOLVER_URL = re.compile(r"^https?://.*/doi/", re.IGNORECASE)


def format_doi(year: int, sequence: int, prefix: str = DEFAULT_PREFIX) -> str:
    if sequence < 1:
        raise ValueError("DOI sequence must be positive")
    return f"{prefix}-{year}-{sequence:03d}"


def parse_doi(doi: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    返回 (year, sequence)；格式不符时返回 None。
    """
    if not doi:
        return None
    match = _DOI_PARTS.match(doi.strip())
    if not match:
        return None
    return int(match.group(2)), int(match.group(3))


def is_valid_doi(doi: Optional[str]) -> bool:
    return bool(doi) and bool(DOI_PATTERN.match(doi))


def resolver_url(doi: str, domain: str) -> str:
    return f"https://{domain}/doi/{doi}"


def normalize_doi_query(raw: Optional[str]) -> str:
    # 用户可能直接粘贴整段解析链接
    text = (raw or "").strip()
    return _RESOLVER_URL.sub("", text).strip().strip("/")
