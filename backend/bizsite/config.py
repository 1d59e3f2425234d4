"""
应用配置管理
使用 pydantic-settings 从环境变量和 .env 文件加载配置
"""

import os
from typing import Optional
from pydantic_settings import BaseSettings

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Settings(BaseSettings):
    """全局配置"""

    # ========== 基础配置 ==========
    APP_NAME: str = "企业官网后端"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development / production
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ========== 数据库配置 ==========
    # SQLite 数据库文件路径
    DATABASE_PATH: str = os.path.join(_BACKEND_DIR, "data", "site.db")
    # 部署时可直接指定完整的 SQLAlchemy 异步连接串（如托管的 SQLite 兼容服务）
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        """异步数据库连接字符串"""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"sqlite+aiosqlite:///{self.DATABASE_PATH}"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    # ========== 邮件配置 ==========
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TIMEOUT: float = 30.0
    SMTP_VALIDATE_CERTS: bool = True
    # 发件人 / 运营收件人，未配置时回退到 SMTP_USER
    EMAIL_FROM: Optional[str] = None
    EMAIL_TO: Optional[str] = None
    BRAND_NAME: str = "GoGestia"
    MAIL_TIMEZONE: str = "Europe/Madrid"
    # 发送重试（指数退避）
    MAIL_MAX_ATTEMPTS: int = 3
    MAIL_RETRY_BASE_DELAY: float = 1.0  # 秒
    MAIL_RETRY_MAX_DELAY: float = 5.0  # 秒

    # ========== 图床配置 ==========
    # ImgBB API (https://api.imgbb.com/)
    IMGBB_API_KEY: Optional[str] = None
    IMGBB_BASE_URL: str = "https://api.imgbb.com/1"
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024
    UPLOAD_MAX_FILES: int = 10
    UPLOAD_ALLOWED_TYPES: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    ]

    # ========== Auth0 配置 ==========
    AUTH0_DOMAIN: Optional[str] = None
    AUTH0_AUDIENCE: Optional[str] = None
    AUTH0_CLIENT_ID: Optional[str] = None
    AUTH0_CLIENT_SECRET: Optional[str] = None
    # 自定义 Action 写入 Token 的角色声明（带命名空间）
    AUTH0_ROLES_CLAIM: str = "https://gogestia.com/roles"

    # ========== 博客配置 ==========
    EXCERPT_LENGTH: int = 200
    WORDS_PER_MINUTE: int = 200

    # ========== 限流配置 ==========
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_MINUTES: int = 15

    # ========== CORS 配置 ==========
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    model_config = {
        "env_file": os.path.join(_BACKEND_DIR, ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# 全局配置单例
settings = Settings()
