import logging
import os
from typing import Callable, Iterable, Optional, Set

from fastapi import Depends, HTTPException

from app.core.auth_utils import get_current_user
from app.lib.api_client import supabase_admin

logger = logging.getLogger("marinenotes.auth")

EDITOR_ROLES = ("editor", "admin")


def _parse_admin_emails() -> Set[str]:
    raw = os.environ.get("ADMIN_EMAILS", "")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


def _is_admin_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return email.strip().lower() in _parse_admin_emails()


def load_roles(user_id: str, email: Optional[str]) -> list[str]:
    """
    从 user_roles 表读取角色。

    中文注释:
    1) 角色表只能由 service_role 写入（RLS），前端无法自行提权。
    2) 若 email 在 ADMIN_EMAILS 中，则自动补齐 admin/editor，便于本地/演示环境。
    3) 读取失败时降级为“只有 author”，不会因此误放权。
    """
    roles: list[str] = ["author"]
    try:
        resp = supabase_admin.table("user_roles").select("role").eq("user_id", user_id).execute()
        for row in getattr(resp, "data", None) or []:
            role = str(row.get("role") or "").strip().lower()
            if role and role not in roles:
                roles.append(role)
    except Exception as e:
        logger.warning("[Auth] failed to load roles for %s: %s", user_id, e)

    if _is_admin_email(email):
        for role in ("admin", "editor"):
            if role not in roles:
                roles.append(role)
    return roles


async def get_current_profile(current_user: dict = Depends(get_current_user)) -> dict:
    user_id = current_user["id"]
    email = current_user.get("email")
    return {"id": user_id, "email": email, "roles": load_roles(user_id, email)}


def has_any_role(profile: Optional[dict], required: Iterable[str]) -> bool:
    if not profile:
        return False
    return bool(set(profile.get("roles") or []).intersection(required))


def require_any_role(required: Iterable[str]) -> Callable[[dict], dict]:
    required_set = {r for r in required}

    async def _dep(profile: dict = Depends(get_current_profile)) -> dict:
        if not has_any_role(profile, required_set):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return profile

    return _dep


require_editor = require_any_role(EDITOR_ROLES)
