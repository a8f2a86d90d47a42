import logging
import os
from typing import Optional
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from app.lib.api_client import supabase

logger = logging.getLogger("marinenotes.auth")

# === Auth 核心配置 ===
# 中文注释:
# 1. 密钥来源于 Supabase Project Settings 中的 JWT Secret，没有默认值；
#    未配置时不做本地 HS256 校验，一律交给 Supabase Auth API。
# 2. 我们使用 HTTPBearer 作为验证头。
ALGORITHM = "HS256"


def _jwt_secret() -> str:
    return (os.environ.get("SUPABASE_JWT_SECRET") or "").strip()


# 中文注释: 关闭 auto_error，缺少 Bearer 头时统一返回 401（不同 FastAPI 版本默认行为不一致）。
security = HTTPBearer(auto_error=False)


def verify_token(token: str) -> dict:
    """
    解码并验证 Supabase JWT Token，返回 {id, email}。
    """
    try:
        # 中文注释:
        # 1. Supabase 新版可能使用 JWT Signing Keys（非 HS256），需要走 Auth API 获取用户。
        # 2. 若仍为 HS256，则用本地密钥校验以减少外部请求。
        header = jwt.get_unverified_header(token)
        secret = _jwt_secret()
        if header.get("alg") == ALGORITHM and secret:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM], audience="authenticated")
            user_id = payload.get("sub")
            if user_id is None:
                raise HTTPException(status_code=401, detail="Invalid token payload")
            return {"id": user_id, "email": payload.get("email")}

        # fallback: 通过 Supabase Auth API 校验并获取用户信息
        try:
            response = supabase.auth.get_user(token)
            user = response.user if response else None
        except Exception as e:
            # 中文注释: 若 Supabase 配置缺失/网络异常，不应返回 500 泄露内部错误，统一视为鉴权失败
            logger.warning("[Auth] JWT fallback verification failed: %s", e)
            raise HTTPException(status_code=401, detail="Invalid or expired token")

        if not user:
            raise HTTPException(status_code=401, detail="Invalid token payload")
        return {"id": user.id, "email": user.email}
    except JWTError as e:
        logger.info("[Auth] JWT verification failed: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return verify_token(credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """
    可选的 Auth 注入：没有 Bearer 头或 token 无效时返回 None（调用方再走其他鉴权方式）。
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        return verify_token(credentials.credentials)
    except HTTPException:
        return None
