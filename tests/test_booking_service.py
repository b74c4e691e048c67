import asyncio
from datetime import date

import pytest

from conftest import ACTOR_ID, SALON_ID, SERVICE_ID, STAFF_ID, make_booking
from salon_crm.context import TenantResolver
from salon_crm.domain.bookings.service import OnlineBookingService
from salon_crm.store.sql_store import SqlAlchemyStore
from salon_crm.domain.bookings.schemas import BookingView
from salon_crm.events import ONLINE_BOOKINGS_UPDATED


def new_booking_record(booking_id: str = "b-live", **overrides) -> dict:
    record = {
        "id": booking_id,
        "salon_id": SALON_ID,
        "customer_name": "Anna Bianchi",
        "customer_email": "anna@example.com",
        "requested_date": "2024-06-10",
        "requested_time": "10:00:00",
        "service_id": SERVICE_ID,
        "service_name": "Taglio",
        "service_duration": 30,
        "service_price": 40,
    }
    record.update(overrides)
    return record


# ============================================================================
# LOADING / REALTIME
# ============================================================================


@pytest.mark.asyncio
async def test_list_bookings_loads_requested_view(booking_service, add_booking):
    add_booking("b1", minutes=0)
    add_booking("b2", minutes=5, status="confirmed", archived=True)
    add_booking("b-other", minutes=10, salon_id="salon-2")

    active = await booking_service.list_bookings()
    archived = await booking_service.list_bookings(BookingView(archived=True))

    assert [b.id for b in active] == ["b1"]
    assert [b.id for b in archived] == ["b2"]


@pytest.mark.asyncio
async def test_realtime_insert_reaches_cache_once(booking_service, store):
    seen = []
    booking_service.subscribe_to_changes(seen.append)
    await booking_service.start(heartbeat=False)
    assert booking_service.realtime.status == "subscribed"

    await store.insert("online_bookings", new_booking_record())

    assert "b-live" in booking_service.cache
    assert booking_service.new_bookings_count == 1
    assert len(seen) == 1

    # Duplicate delivery of the same event
    booking_service._on_change(seen[0])
    assert booking_service.new_bookings_count == 1
    assert len(booking_service.cache) == 1

    booking_service.reset_new_bookings_count()
    assert booking_service.stats().new_bookings == 0
    await booking_service.stop()


@pytest.mark.asyncio
async def test_other_salon_changes_are_not_delivered(booking_service, store):
    await booking_service.start(heartbeat=False)

    await store.insert("online_bookings", new_booking_record("b-x", salon_id="salon-2"))

    assert len(booking_service.cache) == 0
    await booking_service.stop()


@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called(booking_service, store):
    seen = []
    unsubscribe = booking_service.subscribe_to_changes(seen.append)
    await booking_service.start(heartbeat=False)

    unsubscribe()
    await store.insert("online_bookings", new_booking_record())

    assert seen == []
    await booking_service.stop()


@pytest.mark.asyncio
async def test_stop_closes_subscription(booking_service, store):
    await booking_service.start(heartbeat=False)
    assert store.subscription_count("online_bookings") == 1

    await booking_service.stop()

    assert store.subscription_count("online_bookings") == 0
    await store.insert("online_bookings", new_booking_record())
    assert len(booking_service.cache) == 0


# ============================================================================
# CONVERSION
# ============================================================================


@pytest.mark.asyncio
async def test_convert_updates_cache_and_emits(booking_service, events, add_booking):
    add_booking("b1")
    updates = []
    events.on(ONLINE_BOOKINGS_UPDATED, updates.append)
    await booking_service.start(heartbeat=False)

    result = await booking_service.convert_to_appointment("b1", STAFF_ID, SERVICE_ID)

    assert result.success is True
    assert booking_service.cache.get("b1").status == "confirmed"
    assert updates == [{"booking_id": "b1", "status": "confirmed"}]
    await booking_service.stop()


@pytest.mark.asyncio
async def test_convert_in_flight_is_rejected(booking_service, add_booking):
    add_booking("b1")
    booking_service._converting.add("b1")

    result = await booking_service.convert_to_appointment("b1", STAFF_ID, SERVICE_ID)

    assert result.success is False
    assert result.error_type == "in_progress"


class GatedStore(SqlAlchemyStore):
    """Holds every update until the gate opens"""

    def __init__(self, session_factory):
        super().__init__(session_factory, actor_id=ACTOR_ID)
        self.gate = asyncio.Event()

    async def update(self, table, row_id, patch):
        await self.gate.wait()
        return await super().update(table, row_id, patch)


@pytest.mark.asyncio
async def test_convert_is_rejected_while_status_change_in_flight(session_factory, events, notifier, add_booking):
    add_booking("b1")
    gated = GatedStore(session_factory)
    service = OnlineBookingService(gated, tenant=TenantResolver(gated), events=events, notifier=notifier)

    cancel = asyncio.create_task(service.set_status("b1", "cancelled"))
    await asyncio.sleep(0)
    assert "b1" in service._updating

    result = await service.convert_to_appointment("b1", STAFF_ID, SERVICE_ID)

    assert result.success is False
    assert result.error_type == "in_progress"
    gated.gate.set()
    assert (await cancel).success is True
    assert await gated.query("orders") == []
    assert (await service.get_booking("b1")).status == "cancelled"


@pytest.mark.asyncio
async def test_convert_unknown_booking_reports_not_found(booking_service):
    result = await booking_service.convert_to_appointment("nope", STAFF_ID, SERVICE_ID)

    assert result.success is False
    assert result.error_type == "not_found"


@pytest.mark.asyncio
async def test_booking_of_another_salon_is_not_found(booking_service, add_booking):
    add_booking("b-other", salon_id="salon-2")

    result = await booking_service.set_status("b-other", "cancelled")

    assert result.error_type == "not_found"


@pytest.mark.asyncio
async def test_convert_unknown_service_reports_not_found(booking_service, add_booking):
    add_booking("b1")

    result = await booking_service.convert_to_appointment("b1", STAFF_ID, "missing")

    assert result.success is False
    assert result.error_type == "not_found"
    assert "b1" not in booking_service._converting


# ============================================================================
# STATUS / ARCHIVE / RESCHEDULE
# ============================================================================


@pytest.mark.asyncio
async def test_cancel_pending_booking_sends_email(booking_service, store, emails, add_booking):
    add_booking("b1")

    result = await booking_service.set_status("b1", "cancelled")

    assert result.success is True
    assert (await booking_service.get_booking("b1")).status == "cancelled"
    assert emails.kinds() == ["cancellation"]


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(booking_service, emails, add_booking):
    add_booking("b1", status="cancelled")

    result = await booking_service.set_status("b1", "cancelled")

    assert result.success is True
    assert result.skipped is True
    assert emails.sent == []


@pytest.mark.asyncio
async def test_confirm_must_go_through_conversion(booking_service, add_booking):
    add_booking("b1")

    result = await booking_service.set_status("b1", "confirmed")

    assert result.success is False
    assert result.error_type == "invalid_transition"


@pytest.mark.asyncio
async def test_pending_cannot_jump_to_completed(booking_service, add_booking):
    add_booking("b1")

    result = await booking_service.set_status("b1", "completed")

    assert result.error_type == "invalid_transition"


@pytest.mark.asyncio
async def test_confirmed_booking_can_be_completed(booking_service, emails, add_booking):
    add_booking("b1", status="confirmed")

    result = await booking_service.set_status("b1", "completed")

    assert result.success is True
    assert (await booking_service.get_booking("b1")).status == "completed"
    assert emails.sent == []


@pytest.mark.asyncio
async def test_pending_booking_cannot_be_archived(booking_service, add_booking):
    add_booking("b1")

    result = await booking_service.set_archived("b1", True)

    assert result.success is False
    assert result.error_type == "invalid_transition"


@pytest.mark.asyncio
async def test_archiving_removes_booking_from_active_view(booking_service, add_booking):
    add_booking("b1", status="confirmed")
    await booking_service.list_bookings()
    assert "b1" in booking_service.cache

    result = await booking_service.set_archived("b1", True)

    assert result.success is True
    assert "b1" not in booking_service.cache
    archived = await booking_service.list_bookings(BookingView(archived=True))
    assert [b.id for b in archived] == ["b1"]

    again = await booking_service.set_archived("b1", True)
    assert again.skipped is True


@pytest.mark.asyncio
async def test_reschedule_updates_slot_and_notifies(booking_service, emails, add_booking):
    add_booking("b1")
    await booking_service.list_bookings()

    result = await booking_service.reschedule("b1", date(2024, 5, 3), "16:30")

    assert result.success is True
    stored = await booking_service.get_booking("b1")
    assert stored.requested_date == date(2024, 5, 3)
    assert stored.requested_time == "16:30"
    assert booking_service.cache.get("b1").requested_date == date(2024, 5, 3)
    assert emails.kinds() == ["modification"]
    assert emails.sent[0][1]["date"] == "2024-05-03"
    assert emails.sent[0][1]["time"] == "16:30"


@pytest.mark.asyncio
async def test_reschedule_rejects_invalid_time(booking_service, add_booking):
    add_booking("b1")

    result = await booking_service.reschedule("b1", date(2024, 5, 3), "25:00")

    assert result.error_type == "invalid_transition"


# ============================================================================
# FILTERS / STATS / FORM DATA
# ============================================================================


@pytest.mark.asyncio
async def test_filter_bookings(booking_service):
    booking_service.cache.replace_or_merge(
        [
            make_booking("b1", minutes=0, requested_date="2024-05-01"),
            make_booking("b2", minutes=1, customer_name="Luca Verdi", customer_email=None, requested_date="2024-04-28", status="confirmed"),
            make_booking("b3", minutes=2, service_name="Colore", customer_phone="3470000000", requested_date="2024-03-01"),
        ]
    )
    today = date(2024, 5, 1)

    assert [b.id for b in booking_service.filter_bookings(search="luca", today=today)] == ["b2"]
    assert [b.id for b in booking_service.filter_bookings(search="colore", today=today)] == ["b3"]
    assert [b.id for b in booking_service.filter_bookings(search="347", today=today)] == ["b3"]
    assert [b.id for b in booking_service.filter_bookings(status="confirmed", today=today)] == ["b2"]
    assert [b.id for b in booking_service.filter_bookings(date_range="today", today=today)] == ["b1"]
    assert [b.id for b in booking_service.filter_bookings(date_range="week", today=today)] == ["b2", "b1"]
    assert len(booking_service.filter_bookings(date_range="month", today=today)) == 2
    assert len(booking_service.filter_bookings(status="all", date_range="all", today=today)) == 3


@pytest.mark.asyncio
async def test_stats_count_by_status(booking_service):
    booking_service.cache.replace_or_merge(
        [
            make_booking("b1", minutes=0),
            make_booking("b2", minutes=1),
            make_booking("b3", minutes=2, status="confirmed"),
        ]
    )

    stats = booking_service.stats()

    assert stats.total == 3
    assert stats.pending == 2
    assert stats.confirmed == 1
    assert stats.cancelled == 0


@pytest.mark.asyncio
async def test_services_and_team_are_active_only(booking_service):
    services = await booking_service.list_services()
    team = await booking_service.list_team_members()

    assert sorted(s.id for s in services) == ["s1", "s2"]
    assert [m.id for m in team] == [STAFF_ID]


@pytest.mark.asyncio
async def test_match_service_by_name_or_id(booking_service):
    services = await booking_service.list_services()

    by_name = booking_service.match_service(make_booking("b1", service_id=None, service_name="PIEGA"), services)
    by_id = booking_service.match_service(make_booking("b2", service_id="s1", service_name="Renamed"), services)
    none = booking_service.match_service(make_booking("b3", service_id=None, service_name="Manicure"), services)

    assert by_name.id == "s2"
    assert by_id.id == "s1"
    assert none is None


# ============================================================================
# RECONCILIATION
# ============================================================================


@pytest.mark.asyncio
async def test_reconcile_finishes_interrupted_conversion(booking_service, store, emails, add_booking):
    add_booking("b1")
    add_booking("b2", minutes=1)
    await store.insert(
        "orders",
        {
            "salon_id": SALON_ID,
            "nome": "Giulia Rossi",
            "data": "2024-05-01",
            "orarioInizio": "14:00",
            "orarioFine": "14:30",
            "prezzo": 40,
            "online_booking_id": "b1",
        },
    )

    summary = await booking_service.reconcile()

    assert summary["checked"] == 2
    assert summary["completed"] == ["b1"]
    assert summary["failed"] == []
    assert (await booking_service.get_booking("b1")).status == "confirmed"
    assert (await booking_service.get_booking("b2")).status == "pending"
    items = await store.query("order_services")
    assert len(items) == 1
    assert items[0]["servizio"] == "Taglio"
    assert emails.kinds() == ["confirmation"]

    again = await booking_service.reconcile()
    assert again["completed"] == []
    assert emails.kinds() == ["confirmation"]
