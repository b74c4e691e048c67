import pytest

from conftest import ACTOR_ID, SALON_ID
from salon_crm.context import TenantResolver
from salon_crm.events import APPOINTMENT_CREATED, EventBus
from salon_crm.models import Profile, TeamMember
from salon_crm.store.sql_store import SqlAlchemyStore


def test_event_bus_delivers_and_removes():
    bus = EventBus()
    received = []
    remove = bus.on(APPOINTMENT_CREATED, received.append)

    assert bus.emit(APPOINTMENT_CREATED, {"appointment_id": "o1"}) == 1
    remove()
    assert bus.emit(APPOINTMENT_CREATED, {"appointment_id": "o2"}) == 0
    assert received == [{"appointment_id": "o1"}]


def test_failing_listener_does_not_stop_others():
    bus = EventBus()
    received = []

    def explode(_detail):
        raise RuntimeError("boom")

    bus.on("x", explode)
    bus.on("x", received.append)

    assert bus.emit("x") == 2
    assert received == [{}]
    assert bus.listener_count("x") == 2


@pytest.mark.asyncio
async def test_tenant_from_profile(store):
    resolver = TenantResolver(store)

    assert await resolver.actor_id() == ACTOR_ID
    assert await resolver.tenant_id() == SALON_ID


@pytest.mark.asyncio
async def test_tenant_from_active_team_membership(session_factory):
    with session_factory() as db:
        db.add(Profile(id="collab-1", salon_id=None))
        db.add(TeamMember(salon_id="salon-9", user_id="collab-1", name="Collab"))
        db.commit()

    resolver = TenantResolver(SqlAlchemyStore(session_factory, actor_id="collab-1"))

    assert await resolver.tenant_id() == "salon-9"


@pytest.mark.asyncio
async def test_configured_salon_wins_and_unknown_actor_is_none(session_factory):
    anonymous = SqlAlchemyStore(session_factory, actor_id=None)
    stranger = SqlAlchemyStore(session_factory, actor_id="stranger")

    assert await TenantResolver(anonymous, salon_id="fixed").tenant_id() == "fixed"
    assert await TenantResolver(anonymous).tenant_id() is None
    assert await TenantResolver(stranger).tenant_id() is None


@pytest.mark.asyncio
async def test_tenant_is_cached_until_forgotten(session_factory):
    store = SqlAlchemyStore(session_factory, actor_id=ACTOR_ID)
    resolver = TenantResolver(store)
    assert await resolver.tenant_id() == SALON_ID

    await store.update("profiles", ACTOR_ID, {"salon_id": "salon-moved"})
    assert await resolver.tenant_id() == SALON_ID

    resolver.forget()
    assert await resolver.tenant_id() == "salon-moved"
