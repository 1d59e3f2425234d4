"""
FastAPI 应用主入口
负责应用初始化、CORS 配置、异常处理、启动/关闭生命周期管理
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from bizsite.config import settings
from bizsite.database.connection import init_db, close_db
from bizsite.api.router import api_router
from bizsite.core.errors import AppError
from bizsite.core.rate_limit import limiter, rate_limit_exceeded_handler

# ========== 日志配置 ==========
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# 静默高频噪音日志
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("aiosmtplib").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


# ========== 生命周期管理 ==========
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理
    启动时：确保数据目录存在 -> 建表
    关闭时：释放数据库连接
    """
    # ---- 启动 ----
    logger.info(f"正在启动 {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})...")

    if not settings.DATABASE_URL_OVERRIDE:
        os.makedirs(os.path.dirname(settings.DATABASE_PATH), exist_ok=True)

    await init_db()
    logger.info("数据库初始化完成")

    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning("SMTP 账号未配置，联系表单将无法发信")
    if not settings.IMGBB_API_KEY:
        logger.warning("IMGBB_API_KEY 未配置，图片上传不可用")

    logger.info(f"应用启动完成，监听 http://{settings.HOST}:{settings.PORT}")
    logger.info(f"API 文档: http://127.0.0.1:{settings.PORT}/docs")

    yield

    # ---- 关闭 ----
    logger.info("正在关闭应用...")
    try:
        await close_db()
        logger.info("数据库连接已关闭")
    except Exception as e:
        logger.error(f"关闭数据库连接失败: {e}")

    logger.info("应用已关闭")


# ========== 创建 FastAPI 应用 ==========
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="企业官网后端 - 联系表单、博客内容、图片上传、Auth0 权限",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ========== 限流 ==========
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# ========== CORS 中间件（包在限流之外，429 也带跨域头） ==========
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ========== 请求日志 + 安全响应头 ==========
@app.middleware("http")
async def log_requests(request: Request, call_next):
    client = request.client.host if request.client else "-"
    logger.info(f"{request.method} {request.url.path} - {client}")
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response


# ========== 异常处理 ==========
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 失败: [{exc.code}] {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} [{exc.code}]")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "请求数据校验失败",
            "code": "VALIDATION_ERROR",
            "details": details,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} 未处理异常: {exc}")
    body = {"success": False, "error": "服务器内部错误", "code": "INTERNAL_SERVER_ERROR"}
    if settings.is_development:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ========== 注册路由 ==========
app.include_router(api_router)


# ========== 根路径 ==========
@app.get("/", tags=["系统"])
async def root():
    """系统信息"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "health": "/api/health",
            "contact": "/api/contact",
            "blog": "/api/blog/posts",
            "upload": "/api/upload/image",
            "auth": "/api/auth/me",
            "roles": "/api/roles",
        },
    }


@app.get("/api/health", tags=["系统"])
async def health_check():
    """健康检查"""
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
