"""
图片服务
上传前用 Pillow 压缩，再代理到 ImgBB 图床
"""

import asyncio
import base64
import io
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from PIL import Image as PILImage

from bizsite.config import settings
from bizsite.core.errors import UploadError, ValidationError

logger = logging.getLogger(__name__)

MAX_WIDTH = 1920
MAX_HEIGHT = 1080
JPEG_QUALITY = 85

DELETE_INSTRUCTION = "ImgBB 不提供删除 API，请访问上传时返回的 delete_url 删除图片"


@dataclass
class UploadedImage:
    """图床返回的图片信息"""
    id: str
    url: str
    delete_url: Optional[str]
    width: Optional[int]
    height: Optional[int]
    size: Optional[int]
    type: Optional[str]
    thumbnails: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "delete_url": self.delete_url,
            "width": self.width,
            "height": self.height,
            "size": self.size,
            "type": self.type,
            "thumbnails": self.thumbnails,
        }


def optimize_image(data: bytes, max_width: int = MAX_WIDTH, max_height: int = MAX_HEIGHT) -> bytes:
    """
    等比缩放到 max_width x max_height 以内（不放大），输出渐进式 JPEG

    压缩失败时返回原始数据，由图床自行处理。
    """
    try:
        img = PILImage.open(io.BytesIO(data))
        img.thumbnail((max_width, max_height))
        if img.mode != "RGB":
            img = img.convert("RGB")
        out = io.BytesIO()
        img.save(out, "JPEG", quality=JPEG_QUALITY, progressive=True, optimize=True)
        return out.getvalue()
    except Exception as e:
        logger.warning(f"图片压缩失败，使用原图上传: {e}")
        return data


class ImgbbClient:
    """ImgBB API 客户端"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.IMGBB_API_KEY
        self.base_url = (base_url or settings.IMGBB_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def upload(self, data: bytes, name: str = "") -> UploadedImage:
        if not self.api_key:
            raise UploadError("IMGBB_API_KEY 未配置")

        form = {"image": base64.b64encode(data).decode("ascii")}
        if name:
            form["name"] = name

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, trust_env=False, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/upload",
                    params={"key": self.api_key},
                    data=form,
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            raise UploadError(f"图床返回错误: {_error_message(e.response)}") from e
        except httpx.HTTPError as e:
            raise UploadError(f"图床请求失败: {e}") from e

        if not payload.get("success"):
            raise UploadError("图床上传失败", details=payload.get("error"))

        image = payload["data"]
        url = image["url"]
        return UploadedImage(
            id=image.get("id"),
            url=url,
            delete_url=image.get("delete_url"),
            width=_to_int(image.get("width")),
            height=_to_int(image.get("height")),
            size=_to_int(image.get("size")),
            type=(image.get("image") or {}).get("extension"),
            thumbnails={
                "small": (image.get("thumb") or {}).get("url") or url,
                "medium": (image.get("medium") or {}).get("url") or url,
                "large": image.get("display_url") or url,
                "huge": url,
            },
        )


class ImageService:
    """上传校验 + 压缩 + 图床代理"""

    def __init__(self, client: Optional[ImgbbClient] = None):
        self.client = client or ImgbbClient()

    def validate(self, content_type: Optional[str], size: Optional[int]):
        """size 为 None（大小未知）时只校验类型"""
        if content_type not in settings.UPLOAD_ALLOWED_TYPES:
            raise ValidationError(
                f"不支持的图片类型: {content_type}",
                code="INVALID_FILE_TYPE",
                details={"allowed": settings.UPLOAD_ALLOWED_TYPES},
            )
        if size is None:
            return
        if size > settings.UPLOAD_MAX_BYTES:
            raise ValidationError(
                f"图片超过大小限制 ({settings.UPLOAD_MAX_BYTES} 字节)",
                code="FILE_TOO_LARGE",
            )
        if size == 0:
            raise ValidationError("图片内容为空", code="EMPTY_FILE")

    async def upload(self, data: bytes, content_type: Optional[str], name: str = "") -> UploadedImage:
        self.validate(content_type, len(data))
        optimized = optimize_image(data)
        image = await self.client.upload(optimized, name)
        logger.info(f"图片已上传: id={image.id}, {image.width}x{image.height}")
        return image

    async def upload_many(
        self,
        files: list[tuple[str, bytes, Optional[str]]],
        name: str = "",
        rejected: Optional[list[dict]] = None,
    ) -> dict:
        """
        并发上传多张图片，单张失败不影响其它

        Args:
            files: (原文件名, 内容, content_type) 列表
            rejected: 读取前已被拒绝的文件 {"error", "original_name"}，计入失败
        """
        async def upload_one(index: int, filename: str, data: bytes, content_type: Optional[str]):
            title = f"{name} {index + 1}" if name else filename
            try:
                return (await self.upload(data, content_type, title)).to_dict()
            except (UploadError, ValidationError) as e:
                logger.warning(f"图片上传失败: {filename}: {e.message}")
                return {"error": e.message, "original_name": filename}

        results = await asyncio.gather(
            *(upload_one(i, fn, data, ct) for i, (fn, data, ct) in enumerate(files))
        )
        uploaded = [r for r in results if "error" not in r]
        failed = list(rejected or []) + [r for r in results if "error" in r]
        return {
            "uploaded": uploaded,
            "failed": failed,
            "summary": {
                "total": len(uploaded) + len(failed),
                "successful": len(uploaded),
                "failed": len(failed),
            },
        }

    async def delete(self, delete_url: str) -> dict:
        if not delete_url:
            raise ValidationError("需要提供图片的 delete_url", code="DELETE_URL_REQUIRED")
        return {"delete_url": delete_url, "message": DELETE_INSTRUCTION}


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"
