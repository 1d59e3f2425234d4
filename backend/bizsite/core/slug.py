"""
Slug 生成
标题/候选值 -> URL 安全的唯一标识

唯一性采用乐观探测：先查询 base_slug，占用则依次尝试 base-2、base-3 ...
并发创建同名文章时两个请求可能探测到同一个空闲值，此时由数据库 slug
唯一约束兜底（见 blog_service 中的 ConflictError）。
"""

import re
from typing import Awaitable, Callable

# 归一化结果为空时的占位符（如标题全是标点）
FALLBACK_SLUG = "post"

_INVALID_CHARS = re.compile(r"[^a-z0-9 -]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")

SlugExists = Callable[[str], Awaitable[bool]]


def normalize(text: str) -> str:
    """
    归一化为 slug：小写 -> 去掉 [a-z0-9 -] 以外字符 -> 空白转连字符
    -> 合并连续连字符 -> 去掉首尾连字符

    对已归一化的 slug 再次调用结果不变。可能返回空串。
    """
    s = (text or "").lower()
    s = _INVALID_CHARS.sub("", s)
    s = _WHITESPACE.sub("-", s)
    s = _HYPHENS.sub("-", s)
    return s.strip("-")


def base_slug(text: str) -> str:
    """归一化，空结果回退到占位符"""
    return normalize(text) or FALLBACK_SLUG


async def allocate_slug(candidate: str, exists: SlugExists) -> str:
    """
    分配唯一 slug

    Args:
        candidate: 调用方指定的 slug 或原始标题
        exists: 探测函数，slug 已被占用时返回 True；探测失败直接抛出

    不识别候选值已有的数字后缀，总是在 base 后追加新计数：
    title, title-2, title-3 ...
    """
    base = base_slug(candidate)
    if not await exists(base):
        return base

    counter = 2
    while True:
        slug = f"{base}-{counter}"
        if not await exists(slug):
            return slug
        counter += 1
