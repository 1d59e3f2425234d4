"""
联系表单相关的 Pydantic 模型
"""

import re
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")

NAME_PATTERN = r"^[^\W\d_]+(?:\s+[^\W\d_]+)*$"
SUBJECT_PATTERN = r"^[\w\s.,;:¿?¡!()\-]+$"
PHONE_PATTERN = r"^\+?[0-9\s\-()]{9,20}$"

# 明显的假邮箱域名
BLOCKED_EMAIL_DOMAINS = {"test.com", "example.com", "fake.com", "dummy.com"}

_SUSPICIOUS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<script",
        r"javascript:",
        r"vbscript:",
        r"on\w+\s*=",
        r"eval\s*\(",
        r"<iframe",
        r"<object",
        r"<embed",
    )
]


def sanitize_text(value):
    """去掉控制字符，合并连续空白，去首尾空格"""
    if not isinstance(value, str):
        return value
    value = _CONTROL_CHARS.sub("", value)
    return _WHITESPACE.sub(" ", value).strip()


def is_safe_text(value: Optional[str]) -> bool:
    if not value:
        return True
    return not any(p.search(value) for p in _SUSPICIOUS_PATTERNS)


# ==================== 请求模型 ====================

class ContactRequest(BaseModel):
    """联系表单提交"""
    name: str = Field(..., min_length=2, max_length=100, pattern=NAME_PATTERN, description="姓名（仅字母和空格）")
    email: EmailStr = Field(..., description="联系邮箱")
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN, description="电话（可选）")
    company: Optional[str] = Field(default=None, max_length=100)
    position: Optional[str] = Field(default=None, max_length=100)
    subject: str = Field(..., min_length=5, max_length=200, pattern=SUBJECT_PATTERN, description="主题")
    message: str = Field(..., min_length=10, max_length=2000, description="留言内容")

    @field_validator("name", "phone", "company", "position", "subject", "message", mode="before")
    @classmethod
    def _sanitize(cls, v):
        v = sanitize_text(v)
        # 可选字段清洗后为空视为未填写
        if v == "":
            return None
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        if isinstance(v, str):
            v = sanitize_text(v).lower()
            if len(v) > 254:
                raise ValueError("邮箱地址过长")
        return v

    @field_validator("email")
    @classmethod
    def _reject_fake_domains(cls, v: str) -> str:
        domain = v.rsplit("@", 1)[-1].lower()
        if domain in BLOCKED_EMAIL_DOMAINS:
            raise ValueError("请使用真实的邮箱地址")
        return v

    @field_validator("name", "message")
    @classmethod
    def _reject_scripts(cls, v: str) -> str:
        if not is_safe_text(v):
            raise ValueError("内容包含不允许的字符")
        return v


# ==================== 响应模型 ====================

class ContactResponse(BaseModel):
    """提交结果"""
    message_id: Optional[str] = None
    confirmation_sent: bool
    attempt: int
    response_time: str


class ContactStatusResponse(BaseModel):
    service: str = "email"
    status: str
    timestamp: str
