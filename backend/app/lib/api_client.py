"""
Supabase 客户端

中文注释:
- supabase：anon key，只用于 Auth API 校验非 HS256 的会话 token。
- supabase_admin：service_role，服务端读写 articles / manuscript_submissions /
  submission_reviews / user_roles 以及 manuscripts 桶。
- 两个客户端都在第一次访问属性时才创建：缺少环境变量不影响 import，测试里整体替换即可。
"""

import logging
from typing import Any, Callable, Optional

from supabase import Client, create_client

from app.core.config import AppConfig, app_config

logger = logging.getLogger("marinenotes.db")


class LazyClient:
    def __init__(
        self,
        name: str,
        key_for: Callable[[AppConfig], str],
        *,
        missing_key_hint: str,
        config: Optional[AppConfig] = None,
    ):
        self.name = name
        self._key_for = key_for
        self._missing_key_hint = missing_key_hint
        self._config = config
        self._client: Optional[Client] = None

    def _connect(self) -> Client:
        cfg = self._config or app_config
        if not cfg.supabase_url:
            raise RuntimeError("SUPABASE_URL is required")
        key = self._key_for(cfg)
        if not key:
            raise RuntimeError(f"{self._missing_key_hint} is required")
        logger.info("[DB] creating %s client for %s", self.name, cfg.supabase_url)
        return create_client(cfg.supabase_url, key)

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = self._connect()
        return self._client

    def reset(self) -> None:
        self._client = None

    def __getattr__(self, item: str) -> Any:
        # 只有实例上找不到的属性（table / storage / auth ...）才会走到这里
        return getattr(self.client, item)

    def __repr__(self) -> str:
        state = "connected" if self._client is not None else "lazy"
        return f"<LazyClient {self.name} ({state})>"


def _anon_key(cfg: AppConfig) -> str:
    return cfg.supabase_anon_key


def _service_key(cfg: AppConfig) -> str:
    # 本地演示没有 service_role 时退回 anon key（受 RLS 限制）
    return cfg.supabase_key or cfg.supabase_anon_key


supabase: Client = LazyClient(  # type: ignore[assignment]
    "supabase", _anon_key, missing_key_hint="SUPABASE_ANON_KEY or SUPABASE_KEY"
)

supabase_admin: Client = LazyClient(  # type: ignore[assignment]
    "supabase_admin", _service_key, missing_key_hint="SUPABASE_SERVICE_ROLE_KEY"
)
