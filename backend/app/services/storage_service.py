from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from app.lib.api_client import supabase_admin

logger = logging.getLogger("marinenotes.storage")

MANUSCRIPTS_BUCKET = "manuscripts"
# 已发表文章的 PDF（公开桶，pdf_url 直接可访问）
ARTICLE_PDFS_BUCKET = "article-pdfs"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def _normalize_signed_url(resp: object) -> str | None:
    if not isinstance(resp, dict):
        return None
    return str(resp.get("signedUrl") or resp.get("signedURL") or "") or None


def safe_filename(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name or "file")


def is_safe_object_path(path: str) -> bool:
    """
    只允许桶内相对路径：禁止绝对路径、反斜杠和 ".." 片段。
    """
    if not path or path.startswith("/") or "\\" in path:
        return False
    return all(part not in ("", ".", "..") for part in path.split("/"))


def ensure_bucket_exists(*, bucket: str, public: bool = False, client: Any | None = None) -> None:
    """
    确保 Storage bucket 存在（开发/演示环境兜底）。

    中文注释:
    - 正式环境由 migration 创建 bucket。
    - 为了减少“缺桶导致 500”的踩坑，这里做一次性兜底创建。
    """
    storage = getattr(client or supabase_admin, "storage", None)
    if storage is None or not hasattr(storage, "get_bucket") or not hasattr(storage, "create_bucket"):
        return

    try:
        existing = storage.get_bucket(bucket)
    except Exception:
        existing = None

    if existing is not None:
        # 公开 URL 只对 public 桶生效：已存在的私有桶需要显式改为 public
        if public and not _bucket_is_public(existing) and hasattr(storage, "update_bucket"):
            storage.update_bucket(bucket, options={"public": True})
        return

    try:
        storage.create_bucket(bucket, options={"public": bool(public)})
    except Exception as e:
        text = str(e).lower()
        if "already" in text or "exists" in text or "duplicate" in text:
            return
        raise


def _bucket_is_public(bucket: Any) -> bool:
    if isinstance(bucket, dict):
        return bool(bucket.get("public"))
    return bool(getattr(bucket, "public", False))


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_in: int


def create_signed_url(*, bucket: str, path: str, expires_in: int, client: Any | None = None) -> SignedUrl:
    signed = (client or supabase_admin).storage.from_(bucket).create_signed_url(path, expires_in)
    url = _normalize_signed_url(signed)
    if not url:
        raise RuntimeError("Failed to create signed url")
    return SignedUrl(url=url, expires_in=expires_in)


def get_public_url(*, bucket: str, path: str, client: Any | None = None) -> str:
    url = (client or supabase_admin).storage.from_(bucket).get_public_url(path)
    # storage3 旧版本返回 dict
    if isinstance(url, dict):
        url = url.get("publicUrl") or url.get("publicURL") or ""
    url = str(url or "").rstrip("?")
    if not url:
        raise RuntimeError("Failed to get public url")
    return url


def upload_bytes(
    *,
    bucket: str,
    path: str,
    content: bytes,
    content_type: str,
    upsert: bool = True,
    public: bool = False,
    client: Any | None = None,
) -> None:
    ensure_bucket_exists(bucket=bucket, public=public, client=client)
    # storage3 期望 header value 为字符串；传 bool 会触发 httpx "Header value must be str or bytes"。
    opts = {"content-type": content_type, "upsert": "true" if upsert else "false"}
    (client or supabase_admin).storage.from_(bucket).upload(path, content, opts)


def download_bytes(*, bucket: str, path: str, client: Any | None = None) -> bytes:
    return (client or supabase_admin).storage.from_(bucket).download(path)


def remove_objects(*, bucket: str, paths: list[str], client: Any | None = None) -> None:
    """
    尽力删除已上传的对象（投稿失败时回收孤儿文件），失败只记日志。
    """
    if not paths:
        return
    try:
        (client or supabase_admin).storage.from_(bucket).remove(list(paths))
    except Exception as e:
        logger.warning("[Storage] cleanup of %s objects in %s failed: %s", len(paths), bucket, e)
