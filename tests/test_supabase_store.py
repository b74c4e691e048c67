import enum

import pytest

from salon_crm.exceptions import TransportError
from salon_crm.store import supabase_store
from salon_crm.store.supabase_store import (
    SupabaseStore,
    build_or_clause,
    normalize_realtime_payload,
    status_name,
)


class ChannelStatus(str, enum.Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


def test_normalize_wrapped_payload():
    payload = {
        "data": {
            "type": "UPDATE",
            "table": "online_bookings",
            "record": {"id": "b1", "status": "confirmed"},
            "old_record": {"id": "b1"},
        },
        "ids": [1],
    }

    event = normalize_realtime_payload("online_bookings", payload)

    assert event.type == "update"
    assert event.row == {"id": "b1", "status": "confirmed"}
    assert event.row_id == "b1"


def test_normalize_flat_payload():
    payload = {"eventType": "DELETE", "new": {}, "old": {"id": "b9"}}

    event = normalize_realtime_payload("online_bookings", payload)

    assert event.type == "delete"
    assert event.row is None
    assert event.table == "online_bookings"
    assert event.row_id == "b9"


def test_normalize_ignores_unknown_payloads():
    assert normalize_realtime_payload("online_bookings", {"data": {"type": "TRUNCATE"}}) is None
    assert normalize_realtime_payload("online_bookings", {}) is None


def test_or_clause_quotes_values():
    clause = build_or_clause({"email": "a.b@example.com", "telefono": "+39 333"})

    assert clause == 'email.eq."a.b@example.com",telefono.eq."+39 333"'


def test_or_clause_list_value_becomes_in_filter():
    clause = build_or_clause({"email": ["Giulia@Example.com", "giulia@example.com"]})

    assert clause == 'email.in.("Giulia@Example.com","giulia@example.com")'


def test_status_name_accepts_enums_and_strings():
    assert status_name(ChannelStatus.CHANNEL_ERROR) == "CHANNEL_ERROR"
    assert status_name("subscribed") == "SUBSCRIBED"


def test_store_requires_credentials():
    with pytest.raises(ValueError):
        SupabaseStore("", "key")
    with pytest.raises(ValueError):
        SupabaseStore("https://example.supabase.co", "")


@pytest.mark.asyncio
async def test_client_initialization_failure_is_a_transport_error(monkeypatch):
    async def failing_create(url, key):
        raise RuntimeError("Invalid API key")

    monkeypatch.setattr(supabase_store, "acreate_client", failing_create)
    store = SupabaseStore("https://example.supabase.co", "bad-key")

    with pytest.raises(TransportError, match="Invalid API key"):
        await store.query("online_bookings")
