"""
博客 API 路由
公开读接口 + 需要权限的写接口
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from bizsite.api.deps import get_blog_service, ok
from bizsite.core.auth import (
    PERM_CREATE_POSTS,
    PERM_DELETE_POSTS,
    PERM_EDIT_POSTS,
    PERM_READ_POSTS,
    require_permission,
)
from bizsite.core.blog_service import BlogService
from bizsite.core.errors import NotFoundError
from bizsite.schemas.post import (
    CategoryResponse,
    PaginationResponse,
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostSummaryResponse,
    PostUpdateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/blog", tags=["博客"])


def _post_not_found(slug: str) -> NotFoundError:
    return NotFoundError(f"文章不存在: {slug}", code="POST_NOT_FOUND")


def _list_response(result: dict) -> PostListResponse:
    return PostListResponse(
        posts=[PostSummaryResponse.from_post(p) for p in result["posts"]],
        pagination=PaginationResponse(**result["pagination"]),
    )


# ==================== 公开接口 ====================

@router.get("/posts", summary="已发布文章列表")
async def list_posts(
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(10, ge=1, le=50, description="每页数量"),
    category: Optional[str] = Query(None, description="分类 slug"),
    search: Optional[str] = Query(None, max_length=100, description="关键词"),
    featured: Optional[bool] = Query(None, description="只看精选"),
    service: BlogService = Depends(get_blog_service),
):
    result = await service.list_posts(
        page=page,
        limit=limit,
        category=category,
        search=search,
        featured=featured,
    )
    return ok(_list_response(result))


@router.get("/categories", summary="分类列表（含文章数）")
async def list_categories(service: BlogService = Depends(get_blog_service)):
    categories = await service.get_categories()
    return ok([CategoryResponse(**c) for c in categories])


@router.get("/posts/{slug}", summary="文章详情")
async def get_post(slug: str, service: BlogService = Depends(get_blog_service)):
    post = await service.get_post_by_slug(slug)
    if post is None:
        raise _post_not_found(slug)
    return ok(PostResponse.from_post(post))


@router.get("/posts/{slug}/related", summary="相关文章")
async def get_related_posts(
    slug: str,
    limit: int = Query(4, ge=1, le=12),
    service: BlogService = Depends(get_blog_service),
):
    posts = await service.get_related_posts(slug, limit=limit)
    if posts is None:
        raise _post_not_found(slug)
    return ok([PostSummaryResponse.from_post(p) for p in posts])


@router.post("/posts/{slug}/views", summary="浏览量 +1")
async def increment_views(slug: str, service: BlogService = Depends(get_blog_service)):
    if not await service.increment_views(slug):
        raise _post_not_found(slug)
    return ok({"slug": slug})


# ==================== 管理接口 ====================

@router.get("/admin/posts", summary="全部文章（含草稿）")
async def list_admin_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    published: Optional[bool] = Query(None, description="按发布状态过滤"),
    service: BlogService = Depends(get_blog_service),
    _claims: dict = Depends(require_permission(PERM_READ_POSTS)),
):
    result = await service.list_posts(
        page=page,
        limit=limit,
        category=category,
        search=search,
        include_unpublished=True,
        published=published,
    )
    return ok(_list_response(result))


@router.post("/posts", status_code=201, summary="创建文章")
async def create_post(
    request: PostCreateRequest,
    service: BlogService = Depends(get_blog_service),
    _claims: dict = Depends(require_permission(PERM_CREATE_POSTS)),
):
    """
    创建文章

    - slug 未指定时由标题生成，冲突时自动追加 -2、-3 ...
    - 作者 / 分类 / 标签按名称匹配，不存在则创建
    """
    post = await service.create_post(request)
    return ok(PostResponse.from_post(post), message="文章创建成功")


@router.put("/posts/{slug}", summary="更新文章")
async def update_post(
    slug: str,
    request: PostUpdateRequest,
    service: BlogService = Depends(get_blog_service),
    _claims: dict = Depends(require_permission(PERM_EDIT_POSTS)),
):
    post = await service.update_post(slug, request)
    if post is None:
        raise _post_not_found(slug)
    return ok(PostResponse.from_post(post), message="文章更新成功")


@router.delete("/posts/{slug}", summary="删除文章")
async def delete_post(
    slug: str,
    service: BlogService = Depends(get_blog_service),
    _claims: dict = Depends(require_permission(PERM_DELETE_POSTS)),
):
    if not await service.delete_post(slug):
        raise _post_not_found(slug)
    return ok(message="文章已删除")
