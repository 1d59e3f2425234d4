"""
博客文章相关的 Pydantic 请求/响应模型
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from bizsite.models.post import Post


# ==================== 请求模型 ====================

class PostCreateRequest(BaseModel):
    """创建文章请求"""
    title: str = Field(..., min_length=1, max_length=255, description="文章标题")
    content: str = Field(..., min_length=1, description="文章正文（HTML）")
    excerpt: Optional[str] = Field(default=None, max_length=500, description="摘要，为空则由正文生成")
    author: str = Field(..., min_length=1, max_length=100, description="作者显示名称")
    tags: list[str] = Field(default_factory=list, description="标签名称列表")
    category: Optional[str] = Field(default=None, min_length=1, max_length=100, description="分类名称")
    published: bool = Field(default=False, description="是否立即发布")
    featured: bool = Field(default=False, description="是否精选")
    featured_image: Optional[str] = Field(default=None, max_length=2048, description="封面图 URL")
    meta_title: Optional[str] = Field(default=None, max_length=255)
    meta_description: Optional[str] = Field(default=None, max_length=500)
    meta_keywords: Optional[str] = Field(default=None, max_length=500)
    slug: Optional[str] = Field(default=None, max_length=255, description="自定义 slug，仍会做唯一性处理")


class PostUpdateRequest(BaseModel):
    """更新文章请求（只修改传入的字段）"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = Field(None, max_length=500)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    tags: Optional[list[str]] = None
    category: Optional[str] = Field(None, max_length=100)
    published: Optional[bool] = None
    featured: Optional[bool] = None
    featured_image: Optional[str] = Field(None, max_length=2048)
    meta_title: Optional[str] = Field(None, max_length=255)
    meta_description: Optional[str] = Field(None, max_length=500)
    meta_keywords: Optional[str] = Field(None, max_length=500)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)


# ==================== 响应模型 ====================

class CategoryBrief(BaseModel):
    id: int
    name: str
    slug: str

    model_config = {"from_attributes": True}


class AuthorBrief(BaseModel):
    name: str
    avatar: Optional[str] = None

    model_config = {"from_attributes": True}


class SeoResponse(BaseModel):
    meta_title: str
    meta_description: str
    keywords: list[str]


class PostSummaryResponse(BaseModel):
    """文章列表项（不含正文）"""
    id: int
    slug: str
    title: str
    excerpt: str
    featured_image: Optional[str] = None
    category: Optional[CategoryBrief] = None
    tags: list[str]
    author: AuthorBrief
    status: str
    featured: bool
    published_at: Optional[datetime] = None
    read_time: int
    views: int

    @classmethod
    def from_post(cls, post: Post) -> "PostSummaryResponse":
        return cls(
            id=post.id,
            slug=post.slug,
            title=post.title,
            excerpt=post.excerpt,
            featured_image=post.featured_image,
            category=CategoryBrief.model_validate(post.category) if post.category else None,
            tags=[t.name for t in post.tags],
            author=AuthorBrief.model_validate(post.author),
            status=post.status,
            featured=post.featured,
            published_at=post.published_at,
            read_time=post.read_time,
            views=post.views,
        )


class PostResponse(PostSummaryResponse):
    """文章详情"""
    content: str
    published: bool
    created_at: datetime
    updated_at: datetime
    seo: SeoResponse

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        summary = PostSummaryResponse.from_post(post)
        keywords = [k.strip() for k in (post.meta_keywords or "").split(",") if k.strip()]
        return cls(
            **summary.model_dump(),
            content=post.content,
            published=post.is_published,
            created_at=post.created_at,
            updated_at=post.updated_at,
            seo=SeoResponse(
                meta_title=post.meta_title or post.title,
                meta_description=post.meta_description or post.excerpt,
                keywords=keywords,
            ),
        )


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PostListResponse(BaseModel):
    """文章分页列表"""
    posts: list[PostSummaryResponse]
    pagination: PaginationResponse


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    post_count: int = 0
