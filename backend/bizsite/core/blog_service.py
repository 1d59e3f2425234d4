"""
博客服务
文章的创建/更新（slug 分配 + 作者/分类/标签按名称解析或创建）与查询

存储只通过注入的 AsyncSession 访问，一次请求一个会话。
创建/更新的多步写入在同一事务内完成，任一步失败整体回滚，
不会留下孤立的作者/分类/标签行。
"""

import logging
import math
from typing import Optional

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bizsite.core.content import calculate_read_time, derive_excerpt
from bizsite.core.errors import AppError, ConflictError, StorageError, ValidationError
from bizsite.core.slug import allocate_slug, base_slug
from bizsite.models.author import Author
from bizsite.models.base import utcnow
from bizsite.models.category import Category
from bizsite.models.post import STATUS_DRAFT, STATUS_PUBLISHED, Post
from bizsite.models.tag import Tag, post_tags
from bizsite.schemas.post import PostCreateRequest, PostUpdateRequest

logger = logging.getLogger(__name__)

_POST_LOAD_OPTIONS = (
    selectinload(Post.category),
    selectinload(Post.author),
    selectinload(Post.tags),
)


def escape_like(value: str) -> str:
    """转义 LIKE 通配符，搜索词按字面匹配"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BlogService:
    """博客文章服务（每个请求用自己的会话实例化）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Slug ====================

    async def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Post.id).where(Post.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Post.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.first() is not None

    async def allocate_slug(self, candidate: str, exclude_id: Optional[int] = None) -> str:
        """
        为文章分配唯一 slug

        exclude_id: 重新分配已有文章的 slug 时排除其自身，
        候选值等于当前 slug 时保持不变而不是追加计数。
        """
        async def exists(slug: str) -> bool:
            return await self.slug_exists(slug, exclude_id=exclude_id)

        return await allocate_slug(candidate, exists)

    # ==================== 创建 / 更新 ====================

    async def create_post(self, data: PostCreateRequest) -> Post:
        """
        创建文章

        顺序固定：校验 -> slug -> 作者 -> 分类 -> 派生字段 -> 插入文章 -> 标签关联
        -> 重新读取。后续步骤依赖前面产生的 id。
        """
        self._require_fields(data, ("title", "content", "author"))

        try:
            slug = await self.allocate_slug(data.slug or data.title)
            author = await self._get_or_create_author(data.author.strip())

            category_id = None
            if data.category and data.category.strip():
                category = await self._get_or_create_category(data.category.strip())
                category_id = category.id

            excerpt = data.excerpt.strip() if data.excerpt and data.excerpt.strip() else None
            post = Post(
                slug=slug,
                title=data.title.strip(),
                content=data.content,
                excerpt=excerpt or derive_excerpt(data.content),
                featured_image=data.featured_image or None,
                author_id=author.id,
                category_id=category_id,
                status=STATUS_PUBLISHED if data.published else STATUS_DRAFT,
                featured=data.featured,
                published_at=utcnow() if data.published else None,
                read_time=calculate_read_time(data.content),
                views=0,
                meta_title=data.meta_title or None,
                meta_description=data.meta_description or None,
                meta_keywords=data.meta_keywords or None,
            )
            self.db.add(post)
            await self.db.flush()

            for tag_name in _clean_names(data.tags):
                tag = await self._get_or_create_tag(tag_name)
                await self._link_tag(post.id, tag.id)

            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise self._translate_error(e, "创建文章失败") from e

        logger.info(f"文章已创建: id={post.id}, slug={post.slug}")
        return await self.get_post_by_id(post.id)

    async def update_post(self, slug: str, data: PostUpdateRequest) -> Optional[Post]:
        """
        部分更新：只修改请求中出现的字段

        只有显式传入新 slug 才会重新分配（可能改变文章的公开地址）。
        传入 tags 时整体替换标签集合。
        """
        post = await self._load_post(Post.slug == slug)
        if post is None:
            return None

        fields = data.model_dump(exclude_unset=True)
        for name in ("title", "content", "author"):
            if name in fields and (fields[name] is None or not fields[name].strip()):
                raise ValidationError(
                    f"{name} 不能为空",
                    details=[{"field": name, "message": "不能为空"}],
                )

        try:
            if fields.get("slug"):
                post.slug = await self.allocate_slug(fields["slug"], exclude_id=post.id)

            if "title" in fields:
                post.title = fields["title"].strip()
            if "content" in fields:
                post.content = fields["content"]
                post.read_time = calculate_read_time(post.content)
            if "excerpt" in fields:
                excerpt = (fields["excerpt"] or "").strip()
                post.excerpt = excerpt or derive_excerpt(post.content)

            if "author" in fields:
                author = await self._get_or_create_author(fields["author"].strip())
                post.author_id = author.id

            if "category" in fields:
                name = (fields["category"] or "").strip()
                if name:
                    category = await self._get_or_create_category(name)
                    post.category_id = category.id
                else:
                    post.category_id = None

            if fields.get("published") is not None:
                if fields["published"] and post.status != STATUS_PUBLISHED:
                    post.status = STATUS_PUBLISHED
                    post.published_at = utcnow()
                elif not fields["published"] and post.status != STATUS_DRAFT:
                    post.status = STATUS_DRAFT
                    post.published_at = None

            if fields.get("featured") is not None:
                post.featured = fields["featured"]

            for name in ("featured_image", "meta_title", "meta_description", "meta_keywords"):
                if name in fields:
                    setattr(post, name, fields[name] or None)

            if fields.get("tags") is not None:
                await self._replace_tags(post, _clean_names(fields["tags"]))

            await self.db.flush()
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise self._translate_error(e, "更新文章失败") from e

        logger.info(f"文章已更新: id={post.id}, slug={post.slug}")
        return await self.get_post_by_id(post.id)

    async def delete_post(self, slug: str) -> bool:
        """直接删除文章行及其标签关联"""
        try:
            post_id = (
                await self.db.execute(select(Post.id).where(Post.slug == slug))
            ).scalar_one_or_none()
            if post_id is None:
                return False

            await self.db.execute(delete(post_tags).where(post_tags.c.post_id == post_id))
            await self.db.execute(delete(Post).where(Post.id == post_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"删除文章失败: {e}") from e

        logger.info(f"文章已删除: id={post_id}, slug={slug}")
        return True

    async def increment_views(self, slug: str) -> bool:
        try:
            result = await self.db.execute(
                update(Post).where(Post.slug == slug).values(views=Post.views + 1)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"更新浏览量失败: {e}") from e
        return result.rowcount > 0

    async def attach_featured_image(self, post_id: int, url: str) -> bool:
        """把上传后的图片设为文章封面"""
        try:
            result = await self.db.execute(
                update(Post).where(Post.id == post_id).values(featured_image=url)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"更新封面图失败: {e}") from e
        return result.rowcount > 0

    # ==================== 查询 ====================

    async def get_post_by_id(self, post_id: int) -> Optional[Post]:
        return await self._load_post(Post.id == post_id)

    async def get_post_by_slug(self, slug: str, include_unpublished: bool = False) -> Optional[Post]:
        condition = Post.slug == slug
        if not include_unpublished:
            condition = condition & (Post.status == STATUS_PUBLISHED)
        return await self._load_post(condition)

    async def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
        include_unpublished: bool = False,
        published: Optional[bool] = None,
    ) -> dict:
        """
        分页查询文章

        category 按分类 slug 过滤；search 在标题/摘要/正文中模糊匹配。
        公开接口只返回已发布文章，管理端 include_unpublished=True 时可用 published 过滤状态。
        """
        stmt = select(Post)
        if not include_unpublished:
            stmt = stmt.where(Post.status == STATUS_PUBLISHED)
        elif published is not None:
            stmt = stmt.where(Post.status == (STATUS_PUBLISHED if published else STATUS_DRAFT))

        if category:
            stmt = stmt.join(Category, Post.category_id == Category.id).where(
                Category.slug == category
            )
        if search:
            pattern = f"%{escape_like(search)}%"
            stmt = stmt.where(
                or_(
                    Post.title.ilike(pattern, escape="\\"),
                    Post.excerpt.ilike(pattern, escape="\\"),
                    Post.content.ilike(pattern, escape="\\"),
                )
            )
        if featured is not None:
            stmt = stmt.where(Post.featured == featured)

        try:
            total = (
                await self.db.execute(select(func.count()).select_from(stmt.subquery()))
            ).scalar() or 0

            stmt = (
                stmt.options(*_POST_LOAD_OPTIONS)
                .order_by(Post.published_at.desc(), Post.created_at.desc(), Post.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            posts = (await self.db.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"查询文章失败: {e}") from e

        total_pages = math.ceil(total / limit) if limit else 0
        return {
            "posts": list(posts),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    async def get_categories(self) -> list[dict]:
        """全部分类及其已发布文章数"""
        stmt = (
            select(Category, func.count(Post.id))
            .outerjoin(
                Post,
                (Post.category_id == Category.id) & (Post.status == STATUS_PUBLISHED),
            )
            .group_by(Category.id)
            .order_by(Category.name)
        )
        try:
            rows = (await self.db.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StorageError(f"查询分类失败: {e}") from e

        return [
            {
                "id": category.id,
                "name": category.name,
                "slug": category.slug,
                "description": category.description,
                "post_count": count,
            }
            for category, count in rows
        ]

    async def get_related_posts(self, slug: str, limit: int = 4) -> Optional[list[Post]]:
        """
        相关文章：先取同分类，不足时用共享标签的文章补齐
        均只取已发布文章并排除自身；原文章不存在或未发布返回 None
        """
        post = await self._load_post((Post.slug == slug) & (Post.status == STATUS_PUBLISHED))
        if post is None:
            return None

        related: list[Post] = []
        seen = {post.id}

        base = (
            select(Post)
            .options(*_POST_LOAD_OPTIONS)
            .where(Post.status == STATUS_PUBLISHED, Post.id != post.id)
            .order_by(Post.published_at.desc(), Post.id.desc())
        )

        if post.category_id is not None:
            rows = await self.db.execute(
                base.where(Post.category_id == post.category_id).limit(limit)
            )
            for p in rows.scalars():
                related.append(p)
                seen.add(p.id)

        tag_ids = [t.id for t in post.tags]
        if len(related) < limit and tag_ids:
            shared = select(post_tags.c.post_id).where(post_tags.c.tag_id.in_(tag_ids))
            rows = await self.db.execute(
                base.where(Post.id.in_(shared), Post.id.not_in(list(seen))).limit(limit - len(related))
            )
            related.extend(rows.scalars())

        return related

    # ==================== 内部方法 ====================

    async def _load_post(self, condition) -> Optional[Post]:
        stmt = (
            select(Post)
            .options(*_POST_LOAD_OPTIONS)
            .where(condition)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"查询文章失败: {e}") from e
        return result.scalar_one_or_none()

    async def _get_or_create_author(self, name: str) -> Author:
        """按名称精确匹配作者，不存在则只用名称创建"""
        author = (
            await self.db.execute(select(Author).where(Author.name == name))
        ).scalar_one_or_none()
        if author is None:
            author = Author(name=name)
            self.db.add(author)
            await self.db.flush()
            logger.info(f"新建作者: id={author.id}, name={name}")
        return author

    async def _get_or_create_category(self, name: str) -> Category:
        """按名称精确匹配分类（区分大小写），不存在则创建并派生分类 slug"""
        category = (
            await self.db.execute(select(Category).where(Category.name == name))
        ).scalar_one_or_none()
        if category is None:
            slug = await self._entity_slug(Category, name)
            category = Category(name=name, slug=slug, description=f"{name} 分类")
            self.db.add(category)
            await self.db.flush()
            logger.info(f"新建分类: id={category.id}, slug={slug}")
        return category

    async def _get_or_create_tag(self, name: str) -> Tag:
        tag = (await self.db.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name, slug=await self._entity_slug(Tag, name))
            self.db.add(tag)
            await self.db.flush()
        return tag

    async def _entity_slug(self, model, name: str) -> str:
        """分类/标签 slug 只需在各自表内唯一"""
        async def exists(slug: str) -> bool:
            result = await self.db.execute(select(model.id).where(model.slug == slug).limit(1))
            return result.first() is not None

        return await allocate_slug(base_slug(name), exists)

    async def _link_tag(self, post_id: int, tag_id: int):
        """建立文章-标签关联，已存在则什么都不做"""
        existing = await self.db.execute(
            select(post_tags.c.post_id).where(
                post_tags.c.post_id == post_id, post_tags.c.tag_id == tag_id
            )
        )
        if existing.first() is None:
            await self.db.execute(insert(post_tags).values(post_id=post_id, tag_id=tag_id))

    async def _replace_tags(self, post: Post, names: list[str]):
        tag_ids = []
        for name in names:
            tag = await self._get_or_create_tag(name)
            tag_ids.append(tag.id)

        stale = delete(post_tags).where(post_tags.c.post_id == post.id)
        if tag_ids:
            stale = stale.where(post_tags.c.tag_id.not_in(tag_ids))
        await self.db.execute(stale)
        for tag_id in tag_ids:
            await self._link_tag(post.id, tag_id)

    @staticmethod
    def _require_fields(data, names):
        missing = [
            {"field": name, "message": "必填字段"}
            for name in names
            if not (getattr(data, name, None) or "").strip()
        ]
        if missing:
            fields = ", ".join(m["field"] for m in missing)
            raise ValidationError(f"缺少必填字段: {fields}", details=missing)

    @staticmethod
    def _translate_error(error: SQLAlchemyError, context: str) -> AppError:
        """存储异常 -> 业务异常"""
        if isinstance(error, IntegrityError):
            detail = str(error.orig)
            if "posts.slug" in detail:
                return ConflictError("已存在使用该 slug 的文章，请更换标题或 slug")
            if "UNIQUE" in detail.upper():
                return ConflictError(
                    f"{context}: 唯一约束冲突", code="UNIQUE_CONSTRAINT_ERROR"
                )
            return StorageError(f"{context}: 数据完整性错误")
        return StorageError(f"{context}: {error}")


def _clean_names(names) -> list[str]:
    """去空白、去空值、按首次出现去重"""
    seen = []
    for name in names or []:
        name = (name or "").strip()
        if name and name not in seen:
            seen.append(name)
    return seen
