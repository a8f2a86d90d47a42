import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# 在读取任何配置之前加载 .env
load_dotenv()

from app.api.v1 import ai_review, articles, editor, notifications, publish, submissions  # noqa: E402
from app.api.v1.endpoints import system  # noqa: E402
from app.core.config import frontend_origins  # noqa: E402
from app.core.middleware import ExceptionHandlerMiddleware, register_exception_handlers  # noqa: E402

logger = logging.getLogger("marinenotes")

API_PREFIX = "/api/v1"

ROUTERS = (
    articles.router,
    publish.router,
    ai_review.router,
    submissions.router,
    notifications.router,
    editor.router,
    system.router,
)


def _init_sentry(app: FastAPI) -> None:
    # 中文注释: Sentry 任何异常都不得阻塞启动
    try:
        from app.core.sentry_init import init_sentry

        if not init_sentry():
            return
        from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

        app.add_middleware(SentryAsgiMiddleware)
        logger.info("[sentry] enabled")
    except Exception as e:
        logger.warning("[sentry] init failed (ignored): %s", e)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marine Notes Journal API",
        description="Manuscript submission, editorial workflow and MNJ DOI registry",
        version="1.0.0",
    )
    _init_sentry(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=frontend_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # 错误体统一为 {"error": "..."}
    app.add_middleware(ExceptionHandlerMiddleware)
    register_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/")
    async def root():
        return {"message": "Marine Notes Journal API is running", "docs": "/docs"}

    return app


app = create_app()
