"""
联系表单邮件：重试、退避、确认邮件容错、模板渲染
"""

import pytest

from bizsite.core.email_templates import MailMessage, render_confirmation_email, render_contact_email
from bizsite.core.errors import TransportError
from bizsite.core.mailer import ContactMailer, SmtpTransport

from fakes import FakeTransport, SleepRecorder

CONTACT = {
    "name": "Ana García",
    "email": "ana@gogestia.es",
    "phone": "+34 600 123 456",
    "company": "Acme SL",
    "position": None,
    "subject": "Solicitud de informe",
    "message": "Hola <b>equipo</b>, quisiera recibir el informe completo.",
}


def make_mailer(transport, sleep=None, **kwargs) -> ContactMailer:
    return ContactMailer(transport, sleep=sleep or SleepRecorder(), **kwargs)


async def test_success_sends_primary_then_confirmation():
    transport = FakeTransport()
    result = await make_mailer(transport).send_notification(CONTACT)

    assert result.attempt == 1
    assert result.primary.success is True
    assert result.primary.message_id == "<msg-1@test>"
    assert result.confirmation.success is True

    primary, confirmation = transport.sent
    assert primary.to == "ops@gogestia.es"
    assert primary.reply_to == "ana@gogestia.es"
    assert confirmation.to == "ana@gogestia.es"


async def test_confirmation_failure_does_not_fail_notification():
    transport = FakeTransport(confirmation_error=True)
    result = await make_mailer(transport).send_notification(CONTACT)

    assert result.primary.success is True
    assert result.confirmation.success is False
    assert "mailbox unavailable" in result.confirmation.error
    assert len(transport.sent) == 1


async def test_retries_after_handshake_failure():
    transport = FakeTransport(verify_errors=1)
    sleep = SleepRecorder()
    result = await make_mailer(transport, sleep).send_notification(CONTACT)

    assert result.attempt == 2
    assert transport.verify_calls == 2
    assert sleep.delays == [1.0]


async def test_retries_after_primary_send_failure():
    transport = FakeTransport(send_errors=2)
    sleep = SleepRecorder()
    result = await make_mailer(transport, sleep).send_notification(CONTACT)

    assert result.attempt == 3
    assert sleep.delays == [1.0, 2.0]


async def test_exhaustion_raises_single_transport_error():
    transport = FakeTransport(send_errors=10)
    sleep = SleepRecorder()

    with pytest.raises(TransportError) as exc_info:
        await make_mailer(transport, sleep).send_notification(CONTACT)

    assert exc_info.value.status_code == 503
    assert exc_info.value.code == "EMAIL_SERVICE_ERROR"
    assert "relay rejected" in exc_info.value.message
    assert transport.verify_calls == 3
    # 最后一次失败后不再等待
    assert sleep.delays == [1.0, 2.0]
    assert transport.sent == []


async def test_handshake_failing_every_attempt_never_sends():
    transport = FakeTransport(verify_errors=10)
    sleep = SleepRecorder()

    with pytest.raises(TransportError) as exc_info:
        await make_mailer(transport, sleep).send_notification(CONTACT)

    assert "handshake refused" in exc_info.value.message
    assert transport.verify_calls == 3
    assert transport.sent == []
    assert sleep.delays == [1.0, 2.0]


def test_backoff_is_capped():
    mailer = make_mailer(FakeTransport(), base_delay=1.0, max_delay=5.0)
    assert [mailer.backoff_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


async def test_verify_wraps_transport_errors():
    transport = FakeTransport(verify_errors=1)
    with pytest.raises(TransportError):
        await make_mailer(transport).verify()
    assert await make_mailer(transport).verify() is True


# ==================== 模板 ====================

def test_contact_email_escapes_html_but_not_text():
    message = render_contact_email(CONTACT)

    assert "GoGestia" in message.subject
    assert "&lt;b&gt;equipo&lt;/b&gt;" in message.html
    assert "<b>equipo</b>" not in message.html
    assert "<b>equipo</b>" in message.text
    assert "+34 600 123 456" in message.html
    # 空的可选字段不渲染
    assert "职位" not in message.html


def test_confirmation_email_addresses_submitter():
    message = render_confirmation_email(CONTACT)
    assert message.to == "ana@gogestia.es"
    assert message.reply_to is None
    assert "Ana García" in message.text


def test_smtp_message_has_both_bodies():
    transport = SmtpTransport(hostname="smtp.test", port=587, sender="web@gogestia.es")
    email = transport.build(
        MailMessage(
            to="ops@gogestia.es",
            subject="Hola",
            html="<p>Hola</p>",
            text="Hola",
            reply_to="ana@gogestia.es",
        )
    )

    assert email["To"] == "ops@gogestia.es"
    assert email["Reply-To"] == "ana@gogestia.es"
    assert email["Message-ID"].endswith("@gogestia.es>")
    assert [part.get_content_type() for part in email.iter_parts()] == ["text/plain", "text/html"]
