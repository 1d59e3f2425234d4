"""
邮件模板渲染
Jinja2 渲染 HTML + 纯文本两个版本；HTML 模板自动转义提交者输入
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from bizsite.config import settings

TEMPLATES_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "templates",
    "email",
)

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
    trim_blocks=False,
)


@dataclass
class MailMessage:
    """待发送邮件"""
    to: str
    subject: str
    html: str
    text: str
    reply_to: Optional[str] = None
    headers: dict = field(default_factory=dict)


_CONTACT_FIELDS = ("name", "email", "phone", "company", "position", "subject", "message")


def _timestamp() -> str:
    return datetime.now(ZoneInfo(settings.MAIL_TIMEZONE)).strftime("%Y-%m-%d %H:%M")


def _context(contact: dict) -> dict:
    context = {name: contact.get(name) or "" for name in _CONTACT_FIELDS}
    context["brand"] = settings.BRAND_NAME
    context["timestamp"] = _timestamp()
    return context


def render(template: str, context: dict) -> tuple[str, str]:
    """返回 (html, text)"""
    html = _env.get_template(f"{template}.html").render(**context)
    text = _env.get_template(f"{template}.txt").render(**context)
    return html, text.strip()


def render_contact_email(contact: dict) -> MailMessage:
    """运营通知邮件"""
    html, text = render("contact", _context(contact))
    return MailMessage(
        to=settings.EMAIL_TO or settings.EMAIL_FROM or settings.SMTP_USER or "",
        subject=f"[{settings.BRAND_NAME}] 有新客户申请了报告！",
        html=html,
        text=text,
        reply_to=contact.get("email"),
    )


def render_confirmation_email(contact: dict) -> MailMessage:
    """提交者确认邮件"""
    html, text = render("confirmation", _context(contact))
    return MailMessage(
        to=contact["email"],
        subject=f"报告申请确认 - {settings.BRAND_NAME}",
        html=html,
        text=text,
    )
