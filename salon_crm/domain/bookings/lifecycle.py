"""Status and archive lifecycle of online bookings"""

import logging
from datetime import date
from typing import Optional

from ...events import ONLINE_BOOKINGS_UPDATED, EventBus
from ...exceptions import InvalidTransitionError, StoreError, WriteError
from ...services.notification_service import CANCELLATION, MODIFICATION, BookingNotifier
from .cache import BookingCache
from .repository import BookingRepository
from .schemas import BookingRequest, OperationResult
from .time_utils import normalize_start_time

logger = logging.getLogger(__name__)

# Manual transitions; pending -> confirmed only happens through conversion
VALID_TRANSITIONS = {
    "pending": ["cancelled"],
    "confirmed": ["completed"],
    "converted": ["completed"],  # legacy rows
    "cancelled": [],
    "completed": [],
}


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Check whether a manual booking status change is allowed

    Args:
        current_status: Current booking status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    return new_status in VALID_TRANSITIONS.get(current_status, [])


class BookingLifecycle:
    """Manual status, archive and reschedule actions on a booking"""

    def __init__(
        self,
        repo: BookingRepository,
        events: EventBus,
        notifier: BookingNotifier,
        cache: Optional[BookingCache] = None,
    ):
        self.repo = repo
        self.events = events
        self.notifier = notifier
        self.cache = cache

    async def _write(
        self, booking_id: str, patch: dict, action: str, local: Optional[dict] = None
    ) -> Optional[BookingRequest]:
        try:
            await self.repo.update_booking(booking_id, patch)
        except StoreError as e:
            logger.error(f"❌ Failed to {action} booking {booking_id}: {e}")
            raise WriteError(f"Could not {action} booking: {e}") from e

        patched = self.cache.patch_local(booking_id, **(local or patch)) if self.cache is not None else None
        self.events.emit(ONLINE_BOOKINGS_UPDATED, {"booking_id": booking_id, **{k: str(v) for k, v in patch.items()}})
        return patched

    async def set_status(self, booking: BookingRequest, new_status: str) -> OperationResult:
        if booking.status == new_status:
            return OperationResult(success=True, skipped=True, booking_id=booking.id)

        if new_status == "confirmed":
            raise InvalidTransitionError("Bookings are confirmed by converting them into an appointment")
        if not validate_status_transition(booking.status, new_status):
            raise InvalidTransitionError(f"Cannot change booking status from {booking.status} to {new_status}")

        await self._write(booking.id, {"status": new_status}, f"mark as {new_status}")
        logger.info(f"✅ Booking {booking.id} status {booking.status} → {new_status}")

        if new_status == "cancelled":
            await self.notifier.notify(CANCELLATION, booking.model_copy(update={"status": new_status}))

        return OperationResult(success=True, booking_id=booking.id)

    async def set_archived(self, booking: BookingRequest, archived: bool) -> OperationResult:
        if booking.archived == archived:
            return OperationResult(success=True, skipped=True, booking_id=booking.id)
        if booking.status == "pending":
            raise InvalidTransitionError("Pending bookings must be confirmed or cancelled before archiving")

        await self._write(booking.id, {"archived": archived}, "archive" if archived else "restore")
        logger.info(f"🗄️ Booking {booking.id} {'archived' if archived else 'restored'}")
        return OperationResult(success=True, booking_id=booking.id)

    async def reschedule(self, booking: BookingRequest, new_date: date, new_time: str) -> OperationResult:
        """Move the requested slot and tell the customer"""
        if booking.status in ("cancelled", "completed"):
            raise InvalidTransitionError(f"Cannot reschedule a {booking.status} booking")
        try:
            new_time = normalize_start_time(new_time)
        except ValueError as e:
            raise InvalidTransitionError(str(e)) from e

        if booking.requested_date == new_date and booking.start_time == new_time:
            return OperationResult(success=True, skipped=True, booking_id=booking.id)

        await self._write(
            booking.id,
            {"requested_date": new_date.isoformat(), "requested_time": new_time},
            "reschedule",
            local={"requested_date": new_date, "requested_time": new_time},
        )
        logger.info(f"📅 Booking {booking.id} moved to {new_date.isoformat()} {new_time}")

        updated = booking.model_copy(update={"requested_date": new_date, "requested_time": new_time})
        await self.notifier.notify(MODIFICATION, updated)
        return OperationResult(success=True, booking_id=booking.id)
