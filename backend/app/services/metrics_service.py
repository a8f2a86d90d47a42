from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Optional

METRIC_KEYS = ("citations", "downloads", "views", "altmetric_score", "social_shares")

CSV_HEADERS = [
    "DOI",
    "Title",
    "Citations",
    "Downloads",
    "Views",
    "Altmetric Score",
    "Social Shares",
]

# 前端旧字段名（camelCase）到存储字段名
_METRIC_ALIASES = {
    "altmetricScore": "altmetric_score",
    "socialShares": "social_shares",
}


def normalize_sort_key(raw: Optional[str]) -> str:
    key = (raw or "citations").strip()
    key = _METRIC_ALIASES.get(key, key)
    if key not in METRIC_KEYS:
        raise ValueError(f"Unknown sort key: {raw}")
    return key


def metric_value(article: dict[str, Any], key: str) -> int:
    metrics = article.get("metrics") or {}
    raw = metrics.get(key)
    if raw is None:
        for alias, canonical in _METRIC_ALIASES.items():
            if canonical == key and alias in metrics:
                raw = metrics.get(alias)
    try:
        return max(int(raw or 0), 0)
    except (TypeError, ValueError):
        return 0


def metric_totals(articles: list[dict[str, Any]]) -> dict[str, int]:
    totals = {k: 0 for k in METRIC_KEYS}
    for article in articles:
        for key in METRIC_KEYS:
            totals[key] += metric_value(article, key)
    return totals


def filter_and_sort(
    articles: list[dict[str, Any]], *, q: Optional[str] = None, sort: Optional[str] = None
) -> list[dict[str, Any]]:
    """
    按标题/作者/DOI 过滤，并按指定指标降序排序（稳定排序，原顺序作为次序）。
    """
    key = normalize_sort_key(sort)
    term = (q or "").strip().lower()
    if term:
        articles = [
            a
            for a in articles
            if term in str(a.get("title") or "").lower()
            or term in str(a.get("authors") or "").lower()
            or term in str(a.get("doi") or "").lower()
        ]
    return sorted(articles, key=lambda a: metric_value(a, key), reverse=True)


def export_filename(today: date | None = None) -> str:
    return f"citation-report-{(today or date.today()).isoformat()}.csv"


def export_csv(articles: list[dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for article in articles:
        writer.writerow(
            [
                article.get("doi") or "",
                article.get("title") or "",
                *(metric_value(article, k) for k in METRIC_KEYS),
            ]
        )
    return buf.getvalue()
