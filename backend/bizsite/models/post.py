"""
博客文章模型
slug 唯一约束是并发创建时的最终保障
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bizsite.models.author import Author
from bizsite.models.base import Base, TimestampMixin
from bizsite.models.category import Category
from bizsite.models.tag import Tag, post_tags

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"


class Post(TimestampMixin, Base):
    """文章表"""
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # URL 标识，[a-z0-9-]+，全表唯一
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # 正文（富文本 HTML）
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    featured_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id"), nullable=True, index=True
    )
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"), nullable=False, index=True)

    # 状态：draft=草稿, published=已发布
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_DRAFT, index=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    # 仅在转为 published 时写入
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True
    )
    # 阅读时长（分钟）
    read_time: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ---- SEO 字段 ----
    meta_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    meta_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    meta_keywords: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    category: Mapped[Optional[Category]] = relationship(lazy="raise")
    author: Mapped[Author] = relationship(lazy="raise")
    tags: Mapped[list[Tag]] = relationship(
        secondary=post_tags, lazy="raise", order_by=Tag.name, passive_deletes=True
    )

    @property
    def is_published(self) -> bool:
        return self.status == STATUS_PUBLISHED
