"""
Realtime subscription manager for the ``online_bookings`` change feed.

Keeps one tenant-filtered subscription open, retries failed channels with a
linear backoff, and watches liveness with a heartbeat. Reconnects are also
triggered when the dashboard becomes visible again or the network comes back.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ... import config
from ...context import TenantResolver
from ...exceptions import StoreError
from ...store.base import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    ChangeEvent,
    StoreClient,
    SubscriptionHandle,
)
from .schemas import RealtimeStatus

logger = logging.getLogger(__name__)

# Manager states
IDLE = "idle"
CONNECTING = "connecting"
STATE_SUBSCRIBED = "subscribed"
STATE_ERROR = "error"
STATE_TIMED_OUT = "timed_out"
FAILED = "failed"
STATE_CLOSED = "closed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RealtimeSubscriptionManager:
    """Owns the booking change-feed subscription and its reconnect policy"""

    def __init__(
        self,
        store: StoreClient,
        tenant: TenantResolver,
        on_event: Callable[[ChangeEvent], Any],
        table: str = "online_bookings",
        max_retries: int = config.REALTIME_MAX_RETRIES,
        base_delay: float = config.REALTIME_RETRY_BASE_DELAY,
        heartbeat_interval: float = config.REALTIME_HEARTBEAT_INTERVAL,
        stale_after: float = config.REALTIME_STALE_AFTER,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.tenant = tenant
        self.on_event = on_event
        self.table = table
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.heartbeat_interval = heartbeat_interval
        self.stale_after = stale_after
        self._sleep = sleep
        self._clock = clock

        self.status = IDLE
        self.retry_count = 0
        self.last_event_at: Optional[datetime] = None

        self._handle: Optional[SubscriptionHandle] = None
        self._setup_in_progress = False
        # Bumped on every (re)subscribe so callbacks from older channels are dropped
        self._generation = 0
        self._stopped = False
        self._retry_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, heartbeat: bool = True) -> None:
        self._stopped = False
        await self.setup()
        if heartbeat and self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop(self) -> None:
        """Cancel timers and close the channel; later callbacks are ignored"""
        self._stopped = True
        self._generation += 1

        tasks = [t for t in (self._retry_task, self._heartbeat_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._retry_task = None
        self._heartbeat_task = None

        await self._close_handle()
        self.status = STATE_CLOSED
        logger.info(f"🔌 Realtime subscription on {self.table} stopped")

    async def setup(self) -> None:
        if self._setup_in_progress:
            logger.debug("Realtime setup already in progress, skipping")
            return
        if self._stopped:
            return

        self._setup_in_progress = True
        self._generation += 1
        generation = self._generation
        self.status = CONNECTING

        try:
            await self._close_handle()

            salon_id = await self.tenant.tenant_id()
            if not salon_id:
                logger.error("❌ Realtime setup aborted: salon could not be resolved")
                self.status = FAILED
                return

            handle = await self.store.subscribe(
                self.table,
                {"salon_id": salon_id},
                on_event=lambda event: self._handle_event(event, generation),
                on_status=lambda status, err=None: self._handle_status(status, err, generation),
            )
            if generation != self._generation:
                await self.store.unsubscribe(handle)
                return
            self._handle = handle
        except Exception as e:
            logger.error(f"❌ Realtime subscribe on {self.table} failed: {e}")
            if generation == self._generation:
                self.status = STATE_ERROR
                self._on_failure()
        finally:
            self._setup_in_progress = False

    async def reconnect(self) -> None:
        self._cancel_retry()
        await self.setup()

    async def retry_now(self) -> None:
        """Manual retry from the UI; starts a fresh retry budget"""
        logger.info(f"🔄 Manual realtime retry on {self.table}")
        self.retry_count = 0
        await self.reconnect()

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------
    def _handle_status(self, status: str, err: Optional[Exception], generation: int) -> None:
        if generation != self._generation or self._stopped:
            return

        if status == SUBSCRIBED:
            self.status = STATE_SUBSCRIBED
            self.retry_count = 0
            self.last_event_at = self._clock()
            logger.info(f"✅ Realtime subscribed to {self.table}")
        elif status in (CHANNEL_ERROR, TIMED_OUT):
            self.status = STATE_ERROR if status == CHANNEL_ERROR else STATE_TIMED_OUT
            logger.warning(f"⚠️ Realtime channel {self.table} reported {status}: {err}")
            self._on_failure()
        elif status == CLOSED:
            # Closed by the server rather than by us
            self.status = STATE_ERROR
            logger.warning(f"⚠️ Realtime channel {self.table} closed unexpectedly")
            self._on_failure()
        else:
            logger.debug(f"Unknown realtime status {status!r} ignored")

    def _handle_event(self, event: ChangeEvent, generation: int) -> None:
        if generation != self._generation or self._stopped:
            return
        self.last_event_at = self._clock()
        try:
            self.on_event(event)
        except Exception as e:
            logger.error(f"❌ Realtime event handler failed for {event.type} on {event.table}: {e}")

    def record_activity(self) -> None:
        self.last_event_at = self._clock()

    # ------------------------------------------------------------------
    # Backoff
    # ------------------------------------------------------------------
    def _on_failure(self) -> None:
        if self.retry_count < self.max_retries:
            self.retry_count += 1
            delay = self.base_delay * self.retry_count
            logger.warning(
                f"🔄 Realtime retry {self.retry_count}/{self.max_retries} on {self.table} in {delay:.0f}s"
            )
            self._schedule_retry(delay)
        else:
            self.status = FAILED
            logger.error(f"❌ Realtime on {self.table} failed after {self.max_retries} retries")

    def _schedule_retry(self, delay: float) -> None:
        self._cancel_retry()
        self._retry_task = asyncio.get_running_loop().create_task(self._retry_after(delay))

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _retry_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._stopped:
            return
        if self._retry_task is asyncio.current_task():
            self._retry_task = None
        await self.setup()

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------
    def seconds_since_last_event(self) -> Optional[float]:
        if self.last_event_at is None:
            return None
        return (self._clock() - self.last_event_at).total_seconds()

    def connection_quality(self) -> str:
        elapsed = self.seconds_since_last_event()
        if self.status != STATE_SUBSCRIBED or elapsed is None:
            return "unknown"
        if elapsed < self.stale_after / 2:
            return "excellent"
        if elapsed < self.stale_after:
            return "good"
        return "poor"

    async def check_liveness(self) -> str:
        """Heartbeat tick: reconnect a subscription that has gone silent"""
        quality = self.connection_quality()
        elapsed = self.seconds_since_last_event()
        if self.status == STATE_SUBSCRIBED and elapsed is not None and elapsed > self.stale_after:
            logger.warning(f"💓 No realtime activity on {self.table} for {elapsed:.0f}s, reconnecting")
            await self.reconnect()
        return quality

    async def _heartbeat_loop(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.heartbeat_interval)
            if self._stopped:
                break
            try:
                await self.check_liveness()
            except Exception as e:
                logger.error(f"❌ Realtime heartbeat failed: {e}")

    async def on_visibility_change(self, visible: bool) -> None:
        if visible and not self._stopped and self.status != STATE_SUBSCRIBED:
            logger.info("👀 Dashboard visible again, reconnecting realtime")
            await self.reconnect()

    async def on_network_online(self) -> None:
        if self._stopped:
            return
        logger.info("🌐 Network back online, reconnecting realtime")
        await self.reconnect()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _close_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await self.store.unsubscribe(handle)
        except StoreError as e:
            logger.warning(f"⚠️ Failed to close realtime channel {handle.table}: {e}")

    def snapshot(self) -> RealtimeStatus:
        return RealtimeStatus(
            status=self.status,
            retry_count=self.retry_count,
            max_retries=self.max_retries,
            last_event_at=self.last_event_at,
            connection_quality=self.connection_quality(),
        )
