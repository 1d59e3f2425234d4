"""
认证 / 账号 / 角色相关的 Pydantic 模型
"""

import re
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from bizsite.schemas.contact import NAME_PATTERN

NICKNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
PASSWORD_SPECIALS = "@$!%*?&"

_PASSWORD_RULES = [
    (re.compile(r"[a-z]"), "小写字母"),
    (re.compile(r"[A-Z]"), "大写字母"),
    (re.compile(r"\d"), "数字"),
    (re.compile(f"[{re.escape(PASSWORD_SPECIALS)}]"), f"特殊字符（{PASSWORD_SPECIALS}）"),
]


def normalize_email(v):
    if isinstance(v, str):
        return v.strip().lower()
    return v


# ==================== 账号请求 ====================

class RegisterRequest(BaseModel):
    """注册"""
    email: EmailStr = Field(..., description="登录邮箱")
    password: str = Field(..., min_length=8, max_length=128, description="密码")
    name: str = Field(..., min_length=2, max_length=100, pattern=NAME_PATTERN, description="姓名")
    nickname: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NICKNAME_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return normalize_email(v)

    @field_validator("email")
    @classmethod
    def _email_length(cls, v: str) -> str:
        if not 5 <= len(v) <= 100:
            raise ValueError("邮箱长度需在 5 到 100 个字符之间")
        return v

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(v)]
        if missing:
            raise ValueError(f"密码至少需要包含: {'、'.join(missing)}")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return normalize_email(v)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return normalize_email(v)


class ProfileUpdateRequest(BaseModel):
    """更新个人资料（只修改传入的字段）"""
    name: Optional[str] = Field(None, min_length=2, max_length=100, pattern=NAME_PATTERN)
    nickname: Optional[str] = Field(None, min_length=2, max_length=50, pattern=NICKNAME_PATTERN)
    locale: Optional[Literal["es", "en", "fr", "de", "it", "pt"]] = None


# ==================== 账号响应 ====================

class UserResponse(BaseModel):
    """本地用户记录"""
    id: int
    auth0_id: str
    email: str
    name: str
    nickname: Optional[str] = None
    picture: Optional[str] = None
    email_verified: bool
    locale: Optional[str] = None
    last_login: Optional[datetime] = None
    is_active: bool

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """Auth0 返回的令牌"""
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: Optional[int] = None


class UserInfoResponse(BaseModel):
    """当前用户（来自 Token 声明）"""
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    nickname: Optional[str] = None
    picture: Optional[str] = None
    roles: list[str] = []
    permissions: list[str] = []


# ==================== 角色 ====================

class RoleAssignmentRequest(BaseModel):
    """分配 / 移除角色（Auth0 角色 ID）"""
    role_ids: list[str] = Field(..., min_length=1, description="Auth0 角色 ID 列表")
