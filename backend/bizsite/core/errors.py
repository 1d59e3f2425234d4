"""
业务异常定义
服务层抛出，main.py 中统一转换为 JSON 错误响应
"""

from typing import Any, Optional


class AppError(Exception):
    """业务异常基类"""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """输入缺失或格式错误，不重试"""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """唯一约束冲突（slug 预检后仍被并发请求占用）"""
    status_code = 409
    code = "SLUG_ALREADY_EXISTS"


class StorageError(AppError):
    """存储层失败（非约束冲突）"""
    status_code = 500
    code = "STORAGE_ERROR"


class TransportError(AppError):
    """邮件发送失败，重试耗尽后才会抛给调用方"""
    status_code = 503
    code = "EMAIL_SERVICE_ERROR"


class UploadError(AppError):
    """图床上传失败"""
    status_code = 502
    code = "UPLOAD_ERROR"


class UpstreamError(AppError):
    """Auth0 管理 API 等上游服务失败"""
    status_code = 502
    code = "UPSTREAM_ERROR"


class AuthError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDenied(AuthError):
    status_code = 403
    code = "INSUFFICIENT_PERMISSIONS"


class RateLimitError(AppError):
    """请求过于频繁（本服务或上游限流）"""
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
