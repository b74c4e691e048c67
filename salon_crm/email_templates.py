"""
MJML Email Templates
Booking emails sent to salon customers, using MJML for responsive rendering
"""

from html import escape
from typing import Optional

# Salon theme colors - Rose/Stone color scheme
THEME = {
    "primary": "#e11d48",
    "primary_dark": "#be123c",
    "primary_light": "#ffe4e6",
    "background": "#fafaf9",
    "card_bg": "#ffffff",
    "text_primary": "#1c1917",
    "text_secondary": "#44403c",
    "text_muted": "#78716c",
    "border": "#e7e5e4",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#dc2626",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    salon_name: str,
    accent_color: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all booking emails"""
    accent = accent_color or THEME["primary"]

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header -->
        <mj-section background-color="{accent}" padding="28px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="#ffffff" padding="0">
              {salon_name}
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="{THEME['card_bg']}" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#a8a29e" padding="0">
              You're receiving this because you booked an appointment online with {salon_name}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _appointment_details(service_name: str, appointment_date: str, appointment_time: str) -> str:
    return f"""
    <mj-table padding="8px 0 24px 0" color="{THEME['text_secondary']}" font-size="15px">
      <tr style="border-bottom: 1px solid {THEME['border']};">
        <td style="padding: 10px 0; color: {THEME['text_muted']};">Service</td>
        <td style="padding: 10px 0; text-align: right; font-weight: 600;">{service_name}</td>
      </tr>
      <tr style="border-bottom: 1px solid {THEME['border']};">
        <td style="padding: 10px 0; color: {THEME['text_muted']};">Date</td>
        <td style="padding: 10px 0; text-align: right; font-weight: 600;">{appointment_date}</td>
      </tr>
      <tr>
        <td style="padding: 10px 0; color: {THEME['text_muted']};">Time</td>
        <td style="padding: 10px 0; text-align: right; font-weight: 600;">{appointment_time}</td>
      </tr>
    </mj-table>
    """


def booking_confirmation_template(
    customer_name: str,
    service_name: str,
    appointment_date: str,
    appointment_time: str,
    salon_name: str,
) -> str:
    """Online booking confirmed MJML template"""
    customer_name, service_name, salon_name = escape(customer_name), escape(service_name), escape(salon_name)
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your booking request has been confirmed.
    </mj-text>

    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Great news! {salon_name} has confirmed your appointment. Here are the details:
    </mj-text>

    {_appointment_details(service_name, appointment_date, appointment_time)}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you can no longer make it, please let us know as soon as possible.
    </mj-text>
    """

    return get_base_template(
        title="Appointment Confirmed",
        preview_text=f"{service_name} on {appointment_date} at {appointment_time}",
        content_sections=content,
        salon_name=salon_name,
        accent_color=THEME["success"],
    )


def booking_modification_template(
    customer_name: str,
    service_name: str,
    appointment_date: str,
    appointment_time: str,
    salon_name: str,
) -> str:
    """Online booking rescheduled MJML template"""
    customer_name, service_name, salon_name = escape(customer_name), escape(service_name), escape(salon_name)
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your appointment has been moved.
    </mj-text>

    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      {salon_name} has updated your booking. The new details are:
    </mj-text>

    {_appointment_details(service_name, appointment_date, appointment_time)}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If the new time doesn't work for you, just reply to this email.
    </mj-text>
    """

    return get_base_template(
        title="Appointment Updated",
        preview_text=f"New time: {appointment_date} at {appointment_time}",
        content_sections=content,
        salon_name=salon_name,
        accent_color=THEME["warning"],
    )


def booking_cancellation_template(
    customer_name: str,
    service_name: str,
    appointment_date: str,
    appointment_time: str,
    salon_name: str,
) -> str:
    """Online booking cancelled MJML template"""
    customer_name, service_name, salon_name = escape(customer_name), escape(service_name), escape(salon_name)
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your booking request could not be accepted.
    </mj-text>

    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Unfortunately {salon_name} had to cancel the following booking:
    </mj-text>

    {_appointment_details(service_name, appointment_date, appointment_time)}

    <mj-text>
      We're sorry for the inconvenience. Feel free to book another time online.
    </mj-text>
    """

    return get_base_template(
        title="Booking Cancelled",
        preview_text=f"Your booking for {service_name} was cancelled",
        content_sections=content,
        salon_name=salon_name,
        accent_color=THEME["danger"],
    )


def connection_test_template(salon_name: str) -> str:
    """Email sent by the settings page to check delivery"""
    content = f"""
    <mj-text>
      This is a test message. If you can read it, booking emails from {escape(salon_name)} are delivered correctly.
    </mj-text>
    """

    return get_base_template(
        title="Email Connection Test",
        preview_text="Booking email delivery works",
        content_sections=content,
        salon_name=escape(salon_name),
    )
