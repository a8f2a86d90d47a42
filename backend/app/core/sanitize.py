from __future__ import annotations

import html
from typing import Optional

import bleach


def strip_html(value: Optional[str]) -> str:
    """
    去除所有 HTML 标签，返回纯文本。

    中文注释:
    - bleach 会把 & < > 转义成实体，这里 unescape 回纯文本，避免长度校验被实体放大。
    - 实体编码的标签（&lt;b&gt;）unescape 后会重新变成标签，所以反复清洗直到结果稳定。
    """
    if value is None:
        return ""
    text = str(value)
    for _ in range(3):
        cleaned = html.unescape(bleach.clean(text, tags=[], attributes={}, strip=True))
        if cleaned == text:
            break
        text = cleaned
    return text.strip()
