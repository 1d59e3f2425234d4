"""
正文派生字段：摘要、阅读时长
"""

import html
import math
import re

from bizsite.config import settings

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

ELLIPSIS = "..."


def strip_markup(body: str) -> str:
    """去掉 HTML 标签并合并空白"""
    text = _TAG_RE.sub(" ", body or "")
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def derive_excerpt(body: str, length: int = None) -> str:
    """从正文生成摘要：纯文本截断到 length 个字符，超长时追加省略号"""
    length = length or settings.EXCERPT_LENGTH
    text = strip_markup(body)
    # 实体反转义后可能重新出现尖括号，摘要里不保留
    text = text.replace("<", "").replace(">", "")
    if len(text) <= length:
        return text
    return text[:length].rstrip() + ELLIPSIS


def count_words(body: str) -> int:
    text = strip_markup(body)
    return len(text.split()) if text else 0


def calculate_read_time(body: str, words_per_minute: int = None) -> int:
    """阅读时长（分钟）= ceil(字数 / 每分钟字数)，至少 1 分钟"""
    words_per_minute = words_per_minute or settings.WORDS_PER_MINUTE
    return max(1, math.ceil(count_words(body) / words_per_minute))
