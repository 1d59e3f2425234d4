"""
联系表单邮件发送
- 主邮件（通知运营）决定整体成败
- 确认邮件（回复提交者）失败只记标记，不抛异常
- 握手或主邮件失败时整轮重试，指数退避，重试耗尽抛出一个汇总的 TransportError
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Awaitable, Callable, Optional

import aiosmtplib

from bizsite.config import settings
from bizsite.core.email_templates import (
    MailMessage,
    render_confirmation_email,
    render_contact_email,
)
from bizsite.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """单封邮件的发送结果"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class NotificationResult:
    """一次联系表单通知的结果"""
    primary: SendResult
    confirmation: SendResult
    attempt: int


class MailTransport(ABC):
    """邮件通道抽象：握手与发送分离"""

    @abstractmethod
    async def verify(self) -> bool:
        """轻量连通性检查，失败抛异常"""
        ...

    @abstractmethod
    async def send(self, message: MailMessage) -> str:
        """发送邮件，返回 Message-ID，失败抛异常"""
        ...


class SmtpTransport(MailTransport):
    """基于 aiosmtplib 的 SMTP 通道（587 STARTTLS / 465 隐式 TLS）"""

    def __init__(
        self,
        hostname: str = None,
        port: int = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = None,
        validate_certs: bool = None,
    ):
        self.hostname = hostname or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.sender = sender or settings.EMAIL_FROM or self.username
        self.timeout = timeout or settings.SMTP_TIMEOUT
        self.validate_certs = (
            validate_certs if validate_certs is not None else settings.SMTP_VALIDATE_CERTS
        )

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.hostname,
            port=self.port,
            timeout=self.timeout,
            use_tls=self.port == 465,
            start_tls=self.port == 587,
            validate_certs=self.validate_certs,
        )

    async def verify(self) -> bool:
        if not self.hostname or not self.sender:
            raise TransportError("邮件服务未配置")

        smtp = self._client()
        await smtp.connect()
        try:
            if self.username and self.password:
                await smtp.login(self.username, self.password)
            await smtp.noop()
        finally:
            try:
                await smtp.quit()
            except aiosmtplib.SMTPException:
                smtp.close()
        return True

    def build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = formataddr((settings.BRAND_NAME, self.sender))
        email["To"] = message.to
        email["Subject"] = message.subject
        email["Date"] = formatdate(localtime=True)
        email["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1])
        if message.reply_to:
            email["Reply-To"] = message.reply_to
        for name, value in message.headers.items():
            email[name] = value
        email.set_content(message.text)
        email.add_alternative(message.html, subtype="html")
        return email

    async def send(self, message: MailMessage) -> str:
        email = self.build(message)
        await aiosmtplib.send(
            email,
            hostname=self.hostname,
            port=self.port,
            username=self.username or None,
            password=self.password or None,
            timeout=self.timeout,
            use_tls=self.port == 465,
            start_tls=self.port == 587,
            validate_certs=self.validate_certs,
        )
        return email["Message-ID"]


class ContactMailer:
    """联系表单通知：主邮件 + 确认邮件，带重试"""

    def __init__(
        self,
        transport: MailTransport,
        max_attempts: int = None,
        base_delay: float = None,
        max_delay: float = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transport = transport
        self.max_attempts = max_attempts or settings.MAIL_MAX_ATTEMPTS
        self.base_delay = settings.MAIL_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = settings.MAIL_RETRY_MAX_DELAY if max_delay is None else max_delay
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """第 attempt 次失败后的等待秒数: base * 2^(attempt-1)，不超过 max_delay"""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def verify(self) -> bool:
        try:
            return await self.transport.verify()
        except TransportError:
            raise
        except Exception as e:
            logger.error(f"邮件服务握手失败: {e}")
            raise TransportError(f"邮件服务配置错误: {e}") from e

    async def send_notification(self, contact: dict) -> NotificationResult:
        """
        发送运营通知 + 提交者确认

        Args:
            contact: 联系表单字段（name, email, phone, company, position, subject, message）
        """
        primary_message = render_contact_email(contact)
        confirmation_message = render_confirmation_email(contact)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.transport.verify()
                message_id = await self.transport.send(primary_message)
                logger.info(f"联系通知已发送: {message_id}")
            except Exception as e:
                last_error = e
                logger.warning(f"邮件发送第 {attempt}/{self.max_attempts} 次失败: {e}")
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_delay(attempt))
                continue

            confirmation = await self._send_confirmation(confirmation_message)
            return NotificationResult(
                primary=SendResult(success=True, message_id=message_id),
                confirmation=confirmation,
                attempt=attempt,
            )

        raise TransportError(
            f"邮件发送在 {self.max_attempts} 次尝试后失败: {last_error}"
        ) from last_error

    async def _send_confirmation(self, message: MailMessage) -> SendResult:
        try:
            message_id = await self.transport.send(message)
        except Exception as e:
            logger.warning(f"确认邮件发送失败（不影响主流程）: {e}")
            return SendResult(success=False, error=str(e))
        logger.info(f"确认邮件已发送: {message_id}")
        return SendResult(success=True, message_id=message_id)
