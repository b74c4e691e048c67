"""
Reconciliation sweep for interrupted conversions.

A conversion that failed after creating its appointment leaves the booking
``pending`` while an ``orders`` row already points at it through
``online_booking_id``. The sweep finds those bookings and finishes them.
"""

import logging

from ...exceptions import BookingError
from .conversion import BookingConversionWorkflow
from .repository import BookingRepository

logger = logging.getLogger(__name__)


async def sweep_unfinished_conversions(
    repo: BookingRepository,
    workflow: BookingConversionWorkflow,
    salon_id: str,
) -> dict:
    """
    Complete pending bookings whose appointment already exists.

    Returns:
        Dict with the ``checked``, ``completed`` and ``failed`` booking ids
    """
    summary = {"checked": 0, "completed": [], "failed": []}

    for booking in await repo.list_pending(salon_id):
        summary["checked"] += 1
        appointment = await repo.find_appointment_for_booking(booking.id)
        if appointment is None:
            continue

        logger.info(f"🔧 Booking {booking.id} has appointment {appointment.id} but is still pending, completing")
        try:
            await workflow.complete_pending(booking, appointment)
            summary["completed"].append(booking.id)
        except BookingError as e:
            logger.error(f"❌ Could not complete conversion of booking {booking.id}: {e.message}")
            summary["failed"].append(booking.id)

    if summary["completed"] or summary["failed"]:
        logger.info(
            f"✅ Reconciliation sweep: {len(summary['completed'])} completed, {len(summary['failed'])} failed"
        )
    return summary
