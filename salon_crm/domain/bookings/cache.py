"""
Local cache of the booking requests visible in the dashboard.

Rows reach the cache from three sources: full refetches, realtime change
events and optimistic patches after the user's own writes. All of them go
through the operations below, keyed by booking id, with the most recently
updated copy of a row winning.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from ...store.base import ChangeEvent
from .schemas import BookingRequest, BookingView, normalize_booking

logger = logging.getLogger(__name__)


def _sort_key(booking: BookingRequest) -> datetime:
    return booking.created_at


class BookingCache:
    """Deduplicated, view-filtered list of BookingRequests (newest first)"""

    def __init__(self, view: Optional[BookingView] = None):
        self.view = view or BookingView()
        self._rows: list[BookingRequest] = []

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, booking_id: str) -> bool:
        return self._index(booking_id) is not None

    def _index(self, booking_id: str) -> Optional[int]:
        for i, row in enumerate(self._rows):
            if row.id == booking_id:
                return i
        return None

    def _insert_sorted(self, booking: BookingRequest) -> None:
        for i, row in enumerate(self._rows):
            if _sort_key(booking) >= _sort_key(row):
                self._rows.insert(i, booking)
                return
        self._rows.append(booking)

    def get(self, booking_id: str) -> Optional[BookingRequest]:
        i = self._index(booking_id)
        return self._rows[i] if i is not None else None

    def rows(self) -> list[BookingRequest]:
        return list(self._rows)

    def set_view(self, view: BookingView) -> bool:
        """Switch the view; returns True (and clears the rows) if it changed"""
        if view == self.view:
            return False
        self.view = view
        self._rows = []
        return True

    def clear(self) -> None:
        self._rows = []

    def replace_or_merge(self, incoming: list[BookingRequest]) -> list[BookingRequest]:
        """
        Merge a full refetch into the cache.

        An empty refetch means the view is empty. Otherwise cached rows still
        matching the view are kept unless the incoming copy is newer.
        """
        if not incoming:
            self._rows = []
            return []

        merged: dict[str, BookingRequest] = {
            row.id: row for row in self._rows if self.view.matches(row)
        }
        for booking in incoming:
            if not self.view.matches(booking):
                continue
            cached = merged.get(booking.id)
            if cached is None or cached.updated_at < booking.updated_at:
                merged[booking.id] = booking

        self._rows = sorted(merged.values(), key=_sort_key, reverse=True)
        return self.rows()

    def apply_insert(self, booking: BookingRequest) -> bool:
        if booking.id in self:
            logger.debug(f"Duplicate insert for booking {booking.id} ignored")
            return False
        if not self.view.matches(booking):
            return False
        self._rows.insert(0, booking)
        return True

    def apply_update(self, booking: BookingRequest) -> bool:
        """Returns True if the cached rows changed"""
        i = self._index(booking.id)

        if not self.view.matches(booking):
            if i is None:
                return False
            del self._rows[i]
            return True

        if i is None:
            # Moved into this view
            self._insert_sorted(booking)
            return True

        if self._rows[i].updated_at > booking.updated_at:
            logger.debug(f"Stale update for booking {booking.id} ignored")
            return False
        self._rows[i] = booking
        return True

    def apply_delete(self, booking_id: Optional[str]) -> bool:
        i = self._index(booking_id) if booking_id else None
        if i is None:
            return False
        del self._rows[i]
        return True

    def apply_event(self, event: ChangeEvent) -> bool:
        """Route a realtime change to the matching operation"""
        if event.type == "delete":
            return self.apply_delete(event.row_id)

        if not event.row:
            logger.warning(f"⚠️ {event.type} event without row data ignored")
            return False
        try:
            booking = normalize_booking(event.row)
        except ValidationError as e:
            logger.warning(f"⚠️ Malformed booking in {event.type} event ignored: {e.error_count()} error(s)")
            return False

        if event.type == "insert":
            return self.apply_insert(booking)
        return self.apply_update(booking)

    def patch_local(self, booking_id: str, **fields) -> Optional[BookingRequest]:
        """
        Optimistically apply fields written by the user.

        The row leaves the cache when the patch takes it out of the view.
        """
        i = self._index(booking_id)
        if i is None:
            return None
        fields["updated_at"] = datetime.now(timezone.utc)
        patched = self._rows[i].model_copy(update=fields)
        if self.view.matches(patched):
            self._rows[i] = patched
        else:
            del self._rows[i]
        return patched
