"""
Booking Email Service using Resend
Compiles MJML templates and sends the customer-facing booking emails
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY, SALON_DISPLAY_NAME
from .email_templates import (
    booking_cancellation_template,
    booking_confirmation_template,
    booking_modification_template,
    connection_test_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml_to_html returns an object with ``html`` and ``errors``; older releases a dict
    if isinstance(result, dict):
        errors, html = result.get("errors"), result.get("html", "")
    else:
        errors, html = getattr(result, "errors", None), getattr(result, "html", str(result))
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict

    Raises:
        EmailNotConfiguredError: RESEND_API_KEY is not set
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


async def _send_booking_email(to: str, subject: str, mjml_content: str, kind: str) -> dict:
    """Send a booking email and report the outcome instead of raising"""
    try:
        await send_email(to=to, subject=subject, mjml_content=mjml_content)
        return {"success": True, "error": None}
    except Exception as e:
        logger.error(f"❌ Booking {kind} email to {to} failed: {e}")
        return {"success": False, "error": str(e)}


# ============================================
# Booking emails
# ============================================


async def send_booking_confirmation(
    to: str,
    customer_name: str,
    service_name: str,
    date: str,
    time: str,
    salon_name: Optional[str] = None,
) -> dict:
    """Send booking confirmation email to the customer"""
    salon_name = salon_name or SALON_DISPLAY_NAME
    mjml_content = booking_confirmation_template(customer_name, service_name, date, time, salon_name)
    return await _send_booking_email(
        to, f"Your appointment is confirmed - {salon_name}", mjml_content, "confirmation"
    )


async def send_booking_modification(
    to: str,
    customer_name: str,
    service_name: str,
    date: str,
    time: str,
    salon_name: Optional[str] = None,
) -> dict:
    """Send rescheduled booking email to the customer"""
    salon_name = salon_name or SALON_DISPLAY_NAME
    mjml_content = booking_modification_template(customer_name, service_name, date, time, salon_name)
    return await _send_booking_email(
        to, f"Your appointment has been updated - {salon_name}", mjml_content, "modification"
    )


async def send_booking_cancellation(
    to: str,
    customer_name: str,
    service_name: str,
    date: str,
    time: str,
    salon_name: Optional[str] = None,
) -> dict:
    """Send booking cancellation email to the customer"""
    salon_name = salon_name or SALON_DISPLAY_NAME
    mjml_content = booking_cancellation_template(customer_name, service_name, date, time, salon_name)
    return await _send_booking_email(
        to, f"Your booking was cancelled - {salon_name}", mjml_content, "cancellation"
    )


async def test_email_connection(to: str, salon_name: Optional[str] = None) -> dict:
    """Send a test message to check that booking emails can be delivered"""
    salon_name = salon_name or SALON_DISPLAY_NAME
    return await _send_booking_email(
        to, f"🧪 Email connection test - {salon_name}", connection_test_template(salon_name), "test"
    )
