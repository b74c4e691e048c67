"""Online booking service - Facade used by the dashboard API"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Optional

from ... import config
from ...context import TenantResolver
from ...events import EventBus
from ...exceptions import BookingError, ConfigurationError, NotFoundError, StoreError
from ...services.notification_service import BookingNotifier
from ...store.base import ChangeEvent, StoreClient
from .cache import BookingCache
from .conversion import BookingConversionWorkflow
from .lifecycle import BookingLifecycle
from .realtime import RealtimeSubscriptionManager
from .reconciliation import sweep_unfinished_conversions
from .repository import BookingRepository
from .schemas import (
    BOOKING_STATUSES,
    BookingRequest,
    BookingStats,
    BookingView,
    OperationResult,
    ServiceInfo,
    TeamMemberInfo,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ChangeEvent], Any]

DATE_RANGES = ("all", "today", "week", "month")


def _month_ago(today: date) -> date:
    year, month = (today.year, today.month - 1) if today.month > 1 else (today.year - 1, 12)
    # Clamp to the last day of the previous month
    for day in range(today.day, 0, -1):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return today - timedelta(days=30)


def matches_date_range(requested: date, date_range: Optional[str], today: date) -> bool:
    """``week`` and ``month`` look back from today, inclusive"""
    if not date_range or date_range == "all":
        return True
    if date_range == "today":
        return requested == today
    if date_range == "week":
        return today - timedelta(days=7) <= requested <= today
    if date_range == "month":
        return _month_ago(today) <= requested <= today
    raise ValueError(f"Unknown date range: {date_range}")


def matches_search(booking: BookingRequest, search: Optional[str]) -> bool:
    if not search:
        return True
    term = search.strip().lower()
    return (
        term in booking.customer_name.lower()
        or (booking.customer_email is not None and term in booking.customer_email.lower())
        or (booking.customer_phone is not None and search.strip() in booking.customer_phone)
        or term in booking.service_name.lower()
    )


class OnlineBookingService:
    """Service layer for online booking reconciliation"""

    def __init__(
        self,
        store: StoreClient,
        tenant: Optional[TenantResolver] = None,
        events: Optional[EventBus] = None,
        notifier: Optional[BookingNotifier] = None,
        view: Optional[BookingView] = None,
        realtime_options: Optional[dict] = None,
    ):
        self.store = store
        self.tenant = tenant or TenantResolver(store, config.SALON_ID)
        self.events = events or EventBus()
        self.notifier = notifier or BookingNotifier()
        self.repo = BookingRepository(store)
        self.cache = BookingCache(view)
        self.conversion = BookingConversionWorkflow(self.repo, self.tenant, self.events, self.notifier, self.cache)
        self.lifecycle = BookingLifecycle(self.repo, self.events, self.notifier, self.cache)
        self.realtime = RealtimeSubscriptionManager(
            store, self.tenant, on_event=self._on_change, **(realtime_options or {})
        )

        self.new_bookings_count = 0
        self._listeners: list[ChangeListener] = []
        # Bookings with an action in flight
        self._converting: set[str] = set()
        self._updating: set[str] = set()
        self._loaded = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, heartbeat: bool = True) -> None:
        try:
            await self.refresh()
        except (BookingError, StoreError) as e:
            logger.error(f"❌ Initial booking load failed: {e}")
        await self.realtime.start(heartbeat=heartbeat)

    async def stop(self) -> None:
        await self.realtime.stop()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _salon_id(self) -> str:
        salon_id = await self.tenant.tenant_id()
        if not salon_id:
            raise ConfigurationError("Salon could not be determined for the current user")
        return salon_id

    async def refresh(self) -> list[BookingRequest]:
        """Refetch the current view and merge it into the cache"""
        salon_id = await self._salon_id()
        rows = await self.repo.list_bookings(salon_id, self.cache.view)
        self._loaded = True
        merged = self.cache.replace_or_merge(rows)
        logger.info(f"📥 Loaded {len(merged)} online bookings (archived={self.cache.view.archived})")
        return merged

    async def list_bookings(self, view: Optional[BookingView] = None) -> list[BookingRequest]:
        if view is not None and self.cache.set_view(view):
            self._loaded = False
        if not self._loaded:
            return await self.refresh()
        return self.cache.rows()

    def filter_bookings(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        date_range: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[BookingRequest]:
        today = today or date.today()
        status = status.lower() if status else None
        return [
            booking
            for booking in self.cache.rows()
            if matches_search(booking, search)
            and (status in (None, "all") or booking.status == status)
            and matches_date_range(booking.requested_date, date_range, today)
        ]

    def stats(self) -> BookingStats:
        rows = self.cache.rows()
        counts = {status: sum(1 for b in rows if b.status == status) for status in BOOKING_STATUSES}
        return BookingStats(total=len(rows), new_bookings=self.new_bookings_count, **counts)

    def reset_new_bookings_count(self) -> None:
        self.new_bookings_count = 0

    async def list_services(self) -> list[ServiceInfo]:
        return await self.repo.list_services(await self._salon_id())

    async def list_team_members(self) -> list[TeamMemberInfo]:
        return await self.repo.list_team_members(await self._salon_id())

    def match_service(self, booking: BookingRequest, services: list[ServiceInfo]) -> Optional[ServiceInfo]:
        """Service to preselect when converting: same name (any case) or same id"""
        for service in services:
            if service.name.lower() == booking.service_name.lower() or (
                booking.service_id and service.id == booking.service_id
            ):
                return service
        return None

    async def get_booking(self, booking_id: str) -> BookingRequest:
        booking = await self.repo.get_booking(booking_id)
        if booking is None or booking.salon_id != await self._salon_id():
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _failure(self, booking_id: str, error: Exception) -> OperationResult:
        if isinstance(error, BookingError):
            logger.warning(f"⚠️ Booking {booking_id}: {error.error_type}: {error.message}")
            return OperationResult(
                success=False, booking_id=booking_id, error=error.message, error_type=error.error_type
            )
        logger.error(f"❌ Booking {booking_id}: store error: {error}")
        return OperationResult(success=False, booking_id=booking_id, error=str(error), error_type="write_error")

    def _busy(self, booking_id: str) -> OperationResult:
        return OperationResult(
            success=False,
            booking_id=booking_id,
            error="Another action on this booking is in progress",
            error_type="in_progress",
        )

    async def convert_to_appointment(self, booking_id: str, staff_id: str, service_id: str) -> OperationResult:
        if booking_id in self._converting or booking_id in self._updating:
            return self._busy(booking_id)
        self._converting.add(booking_id)
        try:
            booking = await self.get_booking(booking_id)
            return await self.conversion.convert(booking, staff_id, service_id)
        except (BookingError, StoreError) as e:
            return self._failure(booking_id, e)
        finally:
            self._converting.discard(booking_id)

    async def _run_update(self, booking_id: str, action) -> OperationResult:
        if booking_id in self._updating or booking_id in self._converting:
            return self._busy(booking_id)
        self._updating.add(booking_id)
        try:
            booking = await self.get_booking(booking_id)
            return await action(booking)
        except (BookingError, StoreError) as e:
            return self._failure(booking_id, e)
        finally:
            self._updating.discard(booking_id)

    async def set_status(self, booking_id: str, status: str) -> OperationResult:
        return await self._run_update(booking_id, lambda b: self.lifecycle.set_status(b, status))

    async def set_archived(self, booking_id: str, archived: bool) -> OperationResult:
        return await self._run_update(booking_id, lambda b: self.lifecycle.set_archived(b, archived))

    async def reschedule(self, booking_id: str, new_date: date, new_time: str) -> OperationResult:
        return await self._run_update(booking_id, lambda b: self.lifecycle.reschedule(b, new_date, new_time))

    async def reconcile(self) -> dict:
        return await sweep_unfinished_conversions(self.repo, self.conversion, await self._salon_id())

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------
    def subscribe_to_changes(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns the function that removes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_change(self, event: ChangeEvent) -> None:
        changed = self.cache.apply_event(event)
        if event.type == "insert" and changed and not self.cache.view.archived:
            self.new_bookings_count += 1

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"❌ Booking change listener failed: {e}")
