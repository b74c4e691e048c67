"""
Unified Booking Notification Service
Sends customer emails for booking workflow events (confirmation, modification,
cancellation). Failures are logged and reported, never raised.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from .. import config

logger = logging.getLogger(__name__)

EmailFunc = Callable[..., Awaitable[dict]]

CONFIRMATION = "confirmation"
MODIFICATION = "modification"
CANCELLATION = "cancellation"


async def send_notification(
    client_email: Optional[str],
    client_name: str,
    notification_type: str,
    email_func: EmailFunc,
    email_kwargs: dict,
) -> dict:
    """
    Unified notification sender

    Args:
        client_email: Customer email address
        client_name: Customer name for logging
        notification_type: Type of notification (for logging)
        email_func: Email function to call
        email_kwargs: Kwargs for email function

    Returns:
        Dict with email_sent status and email_error
    """
    result = {"email_sent": False, "email_error": None}

    if not client_email:
        logger.debug(f"⚠️ No email address for {notification_type} notification to {client_name}")
        return result

    try:
        logger.info(f"📧 Sending {notification_type} email to {client_email}")
        response = await email_func(to=client_email, **email_kwargs)
        if isinstance(response, dict) and response.get("success") is False:
            result["email_error"] = response.get("error") or "unknown error"
            logger.warning(f"⚠️ {notification_type} email to {client_email} not sent: {result['email_error']}")
        else:
            result["email_sent"] = True
            logger.info(f"✅ {notification_type} email sent successfully to {client_email}")
    except Exception as e:
        result["email_error"] = str(e)
        logger.error(f"❌ Failed to send {notification_type} email to {client_email}: {e}")

    return result


class BookingNotifier:
    """Booking email notifications, switched on/off by configuration"""

    def __init__(
        self,
        enabled: bool = config.BOOKING_EMAIL_NOTIFICATIONS,
        salon_name: Optional[str] = None,
        email_funcs: Optional[dict[str, EmailFunc]] = None,
    ):
        self.enabled = enabled
        self.salon_name = salon_name or config.SALON_DISPLAY_NAME
        if email_funcs is None:
            from ..email_service import (
                send_booking_cancellation,
                send_booking_confirmation,
                send_booking_modification,
            )

            email_funcs = {
                CONFIRMATION: send_booking_confirmation,
                MODIFICATION: send_booking_modification,
                CANCELLATION: send_booking_cancellation,
            }
        self.email_funcs = email_funcs

    async def notify(self, notification_type: str, booking: Any) -> dict:
        """Send ``notification_type`` for a booking (anything shaped like BookingRequest)"""
        if not self.enabled:
            logger.debug(f"ℹ️ Booking email notifications disabled, skipping {notification_type}")
            return {"email_sent": False, "email_error": None}

        email_func = self.email_funcs.get(notification_type)
        if email_func is None:
            logger.error(f"❌ Unknown booking notification type: {notification_type}")
            return {"email_sent": False, "email_error": f"unknown notification type {notification_type}"}

        return await send_notification(
            client_email=booking.customer_email,
            client_name=booking.customer_name,
            notification_type=f"booking_{notification_type}",
            email_func=email_func,
            email_kwargs={
                "customer_name": booking.customer_name,
                "service_name": booking.service_name,
                "date": booking.requested_date.isoformat(),
                "time": booking.start_time,
                "salon_name": self.salon_name,
            },
        )
