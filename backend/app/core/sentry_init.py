"""
Sentry 错误上报（可选）

中文注释:
- 只在 SENTRY_ENABLED 且配置了 DSN 时启用；任何初始化异常由 main.py 吞掉并记日志，不阻塞启动。
- 上报前清洗：编辑口令、token、作者邮箱、投稿正文（cover letter / abstract）与 base64 PDF 一律不出站。
"""

import re
from typing import Any

from app.core.config import SentryConfig

FILTERED = "[Filtered]"

# 按 key 名整体替换的字段（小写比较）
_SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "access_token",
        "refresh_token",
        "token",
        "passcode",
        "editor_passcode",
        "api_key",
        "service_role_key",
        "filedata",
        "file_data",
        "cover_letter",
        "coverletter",
        "corresponding_author_email",
        "email",
        "reply_to",
    }
)

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")

# 超过这个长度的字符串基本是 base64 PDF 或投稿全文
_MAX_TEXT = 2000


def _scrub(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return FILTERED
    if isinstance(value, str):
        if len(value) > _MAX_TEXT:
            return FILTERED
        return _EMAIL.sub(FILTERED, value)
    if isinstance(value, dict):
        return {
            str(k): FILTERED if str(k).strip().lower() in _SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    return value


def _before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = {
                k: v for k, v in headers.items() if str(k).strip().lower() not in _SENSITIVE_KEYS
            }
        # 请求体（publish-article JSON / 投稿 multipart）从不上报
        for key in ("cookies", "data", "body"):
            if key in request:
                request[key] = FILTERED
        if isinstance(request.get("query_string"), str):
            request["query_string"] = _EMAIL.sub(FILTERED, request["query_string"])

    for section in ("extra", "contexts"):
        obj = event.get(section)
        if isinstance(obj, dict):
            event[section] = _scrub(obj)

    user = event.get("user")
    if isinstance(user, dict):
        # 只保留 id，便于按编辑/作者排查
        event["user"] = {"id": user["id"]} if "id" in user else {}

    return event


def init_sentry() -> bool:
    """
    返回是否已启用。未配置 DSN 或显式关闭时什么都不做。
    """
    cfg = SentryConfig.from_env()
    if not cfg.enabled or not cfg.dsn:
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=cfg.dsn,
        environment=cfg.environment,
        traces_sample_rate=cfg.traces_sample_rate,
        integrations=[FastApiIntegration()],
        send_default_pii=False,
        max_request_body_size="never",
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", "marinenotes-api")
    return True
