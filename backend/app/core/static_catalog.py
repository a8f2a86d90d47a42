from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "articles.json"


@lru_cache(maxsize=1)
def _load(path: str) -> tuple[dict[str, Any], ...]:
    with open(path, "r", encoding="utf-8") as fh:
        rows = json.load(fh)
    return tuple(rows)


def load_static_articles(path: Path | None = None) -> list[dict[str, Any]]:
    """
    读取随应用打包的静态文章目录（只读）。

    中文注释: 返回副本，调用方修改不会污染缓存。
    """
    rows = _load(str(path or _CATALOG_PATH))
    out: list[dict[str, Any]] = []
    for row in rows:
        item = dict(row)
        item["orcid_ids"] = list(item.get("orcid_ids") or [])
        item["source"] = "static"
        out.append(item)
    return out
