"""
图片上传 API 路由
压缩后代理到 ImgBB，可选把结果设为文章封面
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from bizsite.api.deps import get_blog_service, get_image_service, ok
from bizsite.config import settings
from bizsite.core.auth import PERM_CREATE_POSTS, require_permission
from bizsite.core.blog_service import BlogService
from bizsite.core.errors import StorageError, ValidationError
from bizsite.core.image_service import ImageService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/upload", tags=["图片上传"])

DEFAULT_IMAGE_TITLE = f"{settings.BRAND_NAME} Blog Image"


async def read_upload(file: UploadFile, images: ImageService) -> bytes:
    """先按 multipart 声明的类型和大小校验，通过后才读入内存"""
    images.validate(file.content_type, file.size)
    return await file.read()


@router.post("/image", summary="上传单张图片")
async def upload_image(
    image: UploadFile = File(..., description="图片文件"),
    title: Optional[str] = Form(None),
    post_id: Optional[int] = Form(None, description="上传后设为该文章的封面"),
    images: ImageService = Depends(get_image_service),
    service: BlogService = Depends(get_blog_service),
    _claims: dict = Depends(require_permission(PERM_CREATE_POSTS)),
):
    data = await read_upload(image, images)
    uploaded = await images.upload(data, image.content_type, title or DEFAULT_IMAGE_TITLE)

    if post_id is not None:
        # 封面更新失败不影响上传结果
        try:
            if not await service.attach_featured_image(post_id, uploaded.url):
                logger.warning(f"设置封面失败，文章不存在: id={post_id}")
        except StorageError as e:
            logger.error(f"设置封面失败: post_id={post_id}, {e.message}")

    return ok(uploaded.to_dict(), message="图片上传成功")


@router.post("/images", summary="批量上传图片")
async def upload_images(
    images: list[UploadFile] = File(..., description="图片文件列表"),
    title: Optional[str] = Form(None),
    image_service: ImageService = Depends(get_image_service),
    _claims: dict = Depends(require_permission(PERM_CREATE_POSTS)),
):
    if not images:
        raise ValidationError("没有提供图片", code="NO_FILES_PROVIDED")
    if len(images) > settings.UPLOAD_MAX_FILES:
        raise ValidationError(
            f"一次最多上传 {settings.UPLOAD_MAX_FILES} 张图片",
            code="TOO_MANY_FILES",
        )

    files, rejected = [], []
    for f in images:
        try:
            files.append((f.filename, await read_upload(f, image_service), f.content_type))
        except ValidationError as e:
            rejected.append({"error": e.message, "original_name": f.filename})

    result = await image_service.upload_many(
        files, name=title or DEFAULT_IMAGE_TITLE, rejected=rejected
    )
    summary = result["summary"]
    return ok(result, message=f"{summary['successful']}/{summary['total']} 张图片上传成功")


@router.delete("/image", summary="删除图片")
async def delete_image(
    delete_url: str = Query(..., min_length=1, description="上传时返回的 delete_url"),
    images: ImageService = Depends(get_image_service),
    _claims: dict = Depends(require_permission(PERM_CREATE_POSTS)),
):
    return ok(await images.delete(delete_url))
