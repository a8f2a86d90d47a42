from fastapi import APIRouter

from app.core.config import AIGatewayConfig, ResendConfig, SMTPConfig, app_config
from app.core.static_catalog import load_static_articles

router = APIRouter(tags=["System"])


@router.get("/system/health")
async def health():
    """
    健康检查：只报告配置是否就绪，不探测外部服务。
    """
    return {
        "status": "ok",
        "env": app_config.env,
        "static_articles": len(load_static_articles()),
        "email_configured": bool(SMTPConfig.from_env() or ResendConfig.from_env()),
        "ai_configured": bool(AIGatewayConfig.from_env().api_key),
    }
