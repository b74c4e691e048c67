import pytest

from conftest import EmailRecorder, make_booking
from salon_crm import email_service
from salon_crm.services.notification_service import (
    CANCELLATION,
    CONFIRMATION,
    BookingNotifier,
    send_notification,
)


@pytest.mark.asyncio
async def test_notifier_sends_booking_details():
    recorder = EmailRecorder()
    notifier = BookingNotifier(enabled=True, salon_name="Studio Bella", email_funcs={CONFIRMATION: recorder.func(CONFIRMATION)})

    result = await notifier.notify(CONFIRMATION, make_booking("b1"))

    assert result == {"email_sent": True, "email_error": None}
    kind, sent = recorder.sent[0]
    assert kind == CONFIRMATION
    assert sent == {
        "to": "giulia@example.com",
        "customer_name": "Giulia Rossi",
        "service_name": "Taglio",
        "date": "2024-05-01",
        "time": "14:00",
        "salon_name": "Studio Bella",
    }


@pytest.mark.asyncio
async def test_booking_without_email_is_skipped():
    recorder = EmailRecorder()
    notifier = BookingNotifier(enabled=True, email_funcs={CANCELLATION: recorder.func(CANCELLATION)})

    result = await notifier.notify(CANCELLATION, make_booking("b1", customer_email=None))

    assert result["email_sent"] is False
    assert recorder.sent == []


@pytest.mark.asyncio
async def test_reported_failure_is_returned_not_raised():
    recorder = EmailRecorder(fail=True)
    notifier = BookingNotifier(enabled=True, email_funcs={CONFIRMATION: recorder.func(CONFIRMATION)})

    result = await notifier.notify(CONFIRMATION, make_booking("b1"))

    assert result == {"email_sent": False, "email_error": "smtp down"}


@pytest.mark.asyncio
async def test_raising_email_function_is_contained():
    async def broken(to, **kwargs):
        raise RuntimeError("connection reset")

    result = await send_notification("x@example.com", "X", "booking_confirmation", broken, {})

    assert result["email_sent"] is False
    assert "connection reset" in result["email_error"]


@pytest.mark.asyncio
async def test_unknown_type_and_disabled_notifier():
    recorder = EmailRecorder()
    enabled = BookingNotifier(enabled=True, email_funcs={})
    disabled = BookingNotifier(enabled=False, email_funcs={CONFIRMATION: recorder.func(CONFIRMATION)})

    assert (await enabled.notify("reminder", make_booking("b1")))["email_sent"] is False
    assert (await disabled.notify(CONFIRMATION, make_booking("b1")))["email_sent"] is False
    assert recorder.sent == []


# ============================================================================
# RESEND EMAIL SERVICE
# ============================================================================


@pytest.mark.asyncio
async def test_booking_email_without_api_key_reports_failure(monkeypatch):
    monkeypatch.setattr(email_service, "RESEND_API_KEY", None)

    result = await email_service.send_booking_confirmation(
        to="giulia@example.com", customer_name="Giulia", service_name="Taglio", date="2024-05-01", time="14:00"
    )

    assert result["success"] is False
    assert "not configured" in result["error"]


@pytest.mark.asyncio
async def test_booking_email_is_compiled_and_sent(monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: f"<html>{mjml}</html>")
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: sent.append(params) or {"id": "em_1"})

    result = await email_service.send_booking_cancellation(
        to="giulia@example.com",
        customer_name="Giulia <b>",
        service_name="Taglio",
        date="2024-05-01",
        time="14:00",
        salon_name="Studio Bella",
    )

    assert result == {"success": True, "error": None}
    params = sent[0]
    assert params["to"] == ["giulia@example.com"]
    assert params["subject"] == "Your booking was cancelled - Studio Bella"
    assert "Giulia &lt;b&gt;" in params["html"]
    assert "2024-05-01" in params["html"]


@pytest.mark.asyncio
async def test_resend_error_is_reported(monkeypatch):
    def failing_send(params):
        raise ValueError("domain not verified")

    monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: mjml)
    monkeypatch.setattr(email_service.resend.Emails, "send", failing_send)

    result = await email_service.test_email_connection("owner@example.com", salon_name="Studio Bella")

    assert result["success"] is False
    assert "domain not verified" in result["error"]
