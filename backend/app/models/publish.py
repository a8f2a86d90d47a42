from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class PublishRequest(BaseModel):
    """
    编辑发布通道的统一请求体。

    中文注释:
    - action 不做枚举校验：未知 action 需要返回 400 "Unknown action"，而不是 422。
    - article 的结构随 action 变化（元数据 / 上传的 PDF），由各分支自行校验。
    """

    passcode: Optional[str] = None
    action: str = ""
    article: Optional[dict[str, Any]] = None


class PdfUpload(BaseModel):
    """
    upload-pdf 的 article 结构：fileName 缺省时按 doi + title 生成 `<year>/<doi>-<slug>.pdf`。
    """

    fileData: str
    fileName: Optional[str] = None
    doi: Optional[str] = None
    title: Optional[str] = None
