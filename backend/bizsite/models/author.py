"""
作者模型
按显示名称匹配，发文时不存在则自动创建
"""

from typing import Optional
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bizsite.models.base import Base, TimestampMixin


class Author(TimestampMixin, Base):
    """作者表"""
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 显示名称（自然键）
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True, default=None)
    # 头像 URL
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
