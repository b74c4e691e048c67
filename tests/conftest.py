from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from salon_crm.context import TenantResolver
from salon_crm.database import build_engine, build_session_factory, init_db
from salon_crm.domain.bookings.schemas import BookingRequest
from salon_crm.domain.bookings.service import OnlineBookingService
from salon_crm.events import EventBus
from salon_crm.models import OnlineBooking, Profile, Service, TeamMember
from salon_crm.services.notification_service import (
    CANCELLATION,
    CONFIRMATION,
    MODIFICATION,
    BookingNotifier,
)
from salon_crm.store.base import SUBSCRIBED, StoreClient, SubscriptionHandle
from salon_crm.store.sql_store import SqlAlchemyStore

SALON_ID = "salon-1"
ACTOR_ID = "user-1"
SERVICE_ID = "s1"
STAFF_ID = "t1"

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_booking(booking_id: str = "b1", minutes: int = 0, updated_minutes: Optional[int] = None, **overrides) -> BookingRequest:
    """BookingRequest created ``minutes`` after BASE_TIME"""
    created_at = BASE_TIME + timedelta(minutes=minutes)
    row = {
        "id": booking_id,
        "salon_id": SALON_ID,
        "customer_name": "Giulia Rossi",
        "customer_email": "giulia@example.com",
        "customer_phone": "3331234567",
        "requested_date": "2024-05-01",
        "requested_time": "14:00:00",
        "service_id": SERVICE_ID,
        "service_name": "Taglio",
        "service_duration": 30,
        "service_price": 40,
        "status": "pending",
        "archived": False,
        "created_at": created_at,
        "updated_at": created_at + timedelta(minutes=updated_minutes or 0),
    }
    row.update(overrides)
    return BookingRequest.model_validate(row)


class EmailRecorder:
    """Stands in for the Resend-backed email functions"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, dict]] = []

    def func(self, kind: str):
        async def send(to: str, **kwargs) -> dict:
            self.sent.append((kind, {"to": to, **kwargs}))
            if self.fail:
                return {"success": False, "error": "smtp down"}
            return {"success": True, "error": None}

        return send

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


class FakeRealtimeStore(StoreClient):
    """Store whose subscribe reports a configurable channel status"""

    def __init__(self, statuses=(SUBSCRIBED,), actor_id: Optional[str] = ACTOR_ID):
        self.statuses = list(statuses)
        self.actor_id = actor_id
        self.subscribe_calls = 0
        self.unsubscribed: list[SubscriptionHandle] = []
        self.callbacks: list[tuple] = []
        self.raise_on_subscribe: Optional[Exception] = None
        self.gate = None

    def _next_status(self):
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0] if self.statuses else None

    async def query(self, table, filters=None):
        return []

    async def insert(self, table, record):
        return dict(record)

    async def update(self, table, row_id, patch):
        return None

    async def delete(self, table, row_id):
        return None

    async def current_user_id(self):
        return self.actor_id

    async def subscribe(self, table, tenant_filter, on_event, on_status=None):
        self.subscribe_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.raise_on_subscribe is not None:
            raise self.raise_on_subscribe
        self.callbacks.append((on_event, on_status))
        status = self._next_status()
        if on_status and status:
            on_status(status, None)
        return SubscriptionHandle(table, tenant_filter)

    async def unsubscribe(self, handle):
        handle.closed = True
        self.unsubscribed.append(handle)

    def emit(self, event, index: int = -1):
        self.callbacks[index][0](event)

    def report(self, status: str, index: int = -1):
        self.callbacks[index][1](status, None)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    init_db(engine)
    factory = build_session_factory(engine)

    with factory() as db:
        db.add(Profile(id=ACTOR_ID, salon_id=SALON_ID, full_name="Salon Owner"))
        db.add(Service(id=SERVICE_ID, salon_id=SALON_ID, name="Taglio", price=40, duration=30))
        db.add(Service(id="s2", salon_id=SALON_ID, name="Piega", price=25, duration=45))
        db.add(Service(id="s-old", salon_id=SALON_ID, name="Permanente", price=60, duration=90, status="Disattivo"))
        db.add(TeamMember(id=STAFF_ID, salon_id=SALON_ID, name="Marco"))
        db.add(TeamMember(id="t2", salon_id=SALON_ID, name="Sara", is_active=False))
        db.commit()

    yield factory
    engine.dispose()


@pytest.fixture
def add_booking(session_factory):
    """Insert an online_bookings row directly (as the public booking page would)"""

    def _add(booking_id: str = "b1", minutes: int = 0, **overrides) -> str:
        values = {
            "id": booking_id,
            "salon_id": SALON_ID,
            "customer_name": "Giulia Rossi",
            "customer_email": "giulia@example.com",
            "customer_phone": "3331234567",
            "requested_date": "2024-05-01",
            "requested_time": "14:00:00",
            "service_id": SERVICE_ID,
            "service_name": "Taglio",
            "service_duration": 30,
            "service_price": 40,
            "status": "pending",
            "archived": False,
            "created_at": BASE_TIME + timedelta(minutes=minutes),
            "updated_at": BASE_TIME + timedelta(minutes=minutes),
        }
        values.update(overrides)
        with session_factory() as db:
            db.add(OnlineBooking(**values))
            db.commit()
        return booking_id

    return _add


@pytest.fixture
def store(session_factory):
    return SqlAlchemyStore(session_factory, actor_id=ACTOR_ID)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def emails():
    return EmailRecorder()


@pytest.fixture
def notifier(emails):
    return BookingNotifier(
        enabled=True,
        salon_name="Studio Bella",
        email_funcs={
            CONFIRMATION: emails.func(CONFIRMATION),
            MODIFICATION: emails.func(MODIFICATION),
            CANCELLATION: emails.func(CANCELLATION),
        },
    )


async def _no_sleep(_delay):
    return None


@pytest.fixture
def booking_service(store, events, notifier):
    return OnlineBookingService(
        store,
        tenant=TenantResolver(store),
        events=events,
        notifier=notifier,
        realtime_options={"sleep": _no_sleep},
    )
