"""
全局限流
slowapi 按客户端 IP 计数，所有路由共用同一个窗口
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from bizsite.config import settings

logger = logging.getLogger(__name__)


def application_limit() -> str:
    return f"{settings.RATE_LIMIT_MAX_REQUESTS} per {settings.RATE_LIMIT_WINDOW_MINUTES} minutes"


limiter = Limiter(
    key_func=get_remote_address,
    application_limits=[application_limit()],
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # SlowAPIMiddleware 同步调用该处理函数
    logger.warning(f"请求过于频繁: {get_remote_address(request)} {request.method} {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "请求过于频繁，请稍后再试",
            "code": "RATE_LIMIT_EXCEEDED",
            "details": {"limit": str(exc.detail)},
        },
    )
