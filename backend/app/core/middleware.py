import time
import logging
from typing import Any, Sequence

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# === 结构化日志配置 ===
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("marinenotes")


def error_response(status_code: int, message: Any, headers: dict | None = None) -> JSONResponse:
    # 中文注释: 所有对外错误统一为 {"error": "..."}
    if not isinstance(message, str):
        message = str(message)
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def validation_message(errors: Sequence[Any]) -> str:
    """
    pydantic 错误列表 -> "field: message"（只取第一条）。
    """
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc") or () if p not in ("body", "query", "path", "form")]
    field = ".".join(loc)
    msg = str(first.get("msg") or "Invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{field}: {msg}" if field else msg


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = validation_message(exc.errors())
    logger.info(f"Validation failed: {request.method} {request.url.path}: {message}")
    return error_response(400, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """
    统一异常捕获中间件：每个请求一行访问日志；未处理异常记录堆栈并返回通用 500。
    """
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(f"Method: {request.method} Path: {request.url.path} Status: {response.status_code} Time: {process_time:.4f}s")
            return response
        except HTTPException as exc:
            return error_response(exc.status_code, exc.detail)
        except Exception as e:
            logger.error(f"Unhandled Exception: {str(e)}", exc_info=True)
            return error_response(500, "Internal server error")
