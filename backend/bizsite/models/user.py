"""
用户模型
Auth0 账号在本地的镜像，auth0_id 与 email 唯一；角色仍以 Auth0 为准
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bizsite.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    """用户表"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auth0_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, default=None)
    # 头像 URL
    picture: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locale: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, default="es")
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
