"""
联系表单 API 路由
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from bizsite.api.deps import get_mailer, ok
from bizsite.config import settings
from bizsite.core.errors import NotFoundError, TransportError
from bizsite.core.mailer import ContactMailer
from bizsite.schemas.contact import ContactRequest, ContactResponse, ContactStatusResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/contact", tags=["联系表单"])


async def _deliver(mailer: ContactMailer, contact: dict) -> ContactResponse:
    started = time.perf_counter()
    result = await mailer.send_notification(contact)
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    return ContactResponse(
        message_id=result.primary.message_id,
        confirmation_sent=result.confirmation.success,
        attempt=result.attempt,
        response_time=f"{elapsed_ms}ms",
    )


@router.post("", summary="提交联系表单")
async def submit_contact(
    request: ContactRequest,
    mailer: ContactMailer = Depends(get_mailer),
):
    """
    发送运营通知邮件 + 提交者确认邮件

    通知邮件重试耗尽时返回 503；确认邮件失败不影响结果，只体现在 confirmation_sent。
    """
    contact = request.model_dump()
    logger.info(f"收到联系表单: {contact['email']}")
    data = await _deliver(mailer, contact)
    return ok(data, message="消息已发送，我们会尽快与您联系")


@router.get("/status", summary="邮件服务状态")
async def contact_status(mailer: ContactMailer = Depends(get_mailer)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await mailer.verify()
    except TransportError as e:
        raise TransportError(
            e.message,
            details={"service": "email", "status": "degraded", "timestamp": timestamp},
        ) from e
    return ok(ContactStatusResponse(status="operational", timestamp=timestamp))


@router.post("/test", summary="发送测试邮件（仅开发环境）")
async def send_test_email(mailer: ContactMailer = Depends(get_mailer)):
    if not settings.is_development:
        raise NotFoundError("接口不存在")

    recipient = settings.EMAIL_TO or settings.EMAIL_FROM or settings.SMTP_USER
    if not recipient:
        raise TransportError("邮件服务未配置")

    contact = {
        "name": "测试用户",
        "email": recipient,
        "phone": None,
        "company": settings.BRAND_NAME,
        "position": None,
        "subject": "测试邮件",
        "message": "这是一封由开发环境测试接口发送的邮件。",
    }
    data = await _deliver(mailer, contact)
    return ok(data, message="测试邮件已发送")
