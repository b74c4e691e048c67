"""
Hosted store backend using the Supabase async client.

Queries go through PostgREST, change events through a realtime
``postgres_changes`` channel filtered by tenant.
"""

import logging
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from ..exceptions import StoreError, TransportError
from .base import (
    ChangeEvent,
    EventCallback,
    QueryFilter,
    StatusCallback,
    StoreClient,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)

_EVENT_TYPES = {"INSERT": "insert", "UPDATE": "update", "DELETE": "delete"}


def normalize_realtime_payload(table: str, payload: dict) -> Optional[ChangeEvent]:
    """
    Turn a realtime ``postgres_changes`` payload into a ChangeEvent.

    Client versions differ: the change is either wrapped in ``data`` with
    ``type``/``record``/``old_record`` or flat with ``eventType``/``new``/``old``.
    Returns None for payloads that carry no recognised change.
    """
    data = payload.get("data", payload) if isinstance(payload, dict) else {}
    raw_type = data.get("type") or data.get("eventType") or ""
    event_type = _EVENT_TYPES.get(str(getattr(raw_type, "value", raw_type)).upper())
    if event_type is None:
        return None

    row = data.get("record") if "record" in data else data.get("new")
    old_row = data.get("old_record") if "old_record" in data else data.get("old")
    return ChangeEvent(
        type=event_type,
        table=data.get("table") or table,
        row=row or None,
        old_row=old_row or None,
    )


def build_or_clause(any_of: dict) -> str:
    """PostgREST ``or`` filter, values quoted so dots and commas survive"""
    def quote(value) -> str:
        escaped = str(value).replace('"', '\\"')
        return f'"{escaped}"'

    parts = []
    for column, value in any_of.items():
        if isinstance(value, (list, tuple, set)):
            parts.append(f"{column}.in.({','.join(quote(v) for v in value)})")
        else:
            parts.append(f"{column}.eq.{quote(value)}")
    return ",".join(parts)


def status_name(status: Any) -> str:
    return str(getattr(status, "value", status)).upper()


class SupabaseStore(StoreClient):
    """Store backend over the hosted Supabase project"""

    def __init__(self, supabase_url: str, supabase_key: str, schema: str = "public"):
        if not supabase_url:
            raise ValueError("SUPABASE_URL is required")
        if not supabase_key:
            raise ValueError("SUPABASE_KEY is required")
        self.supabase_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.schema = schema
        self._client: Optional[AsyncClient] = None

    async def _get_client(self) -> AsyncClient:
        """Lazy client creation"""
        if self._client is None:
            try:
                self._client = await acreate_client(self.supabase_url, self.supabase_key)
                logger.info("✅ Supabase client initialized")
            except httpx.HTTPError as e:
                raise TransportError(f"Could not reach Supabase: {e}") from e
            except Exception as e:
                # Bad URL or key surfaces as SupabaseException
                logger.error(f"❌ Supabase client initialization failed: {e}")
                raise TransportError(f"Supabase client initialization failed: {e}") from e
        return self._client

    async def _execute(self, request, action: str):
        try:
            return await request.execute()
        except APIError as e:
            logger.error(f"❌ Supabase {action} failed: {e.message}")
            raise StoreError(f"{action} failed: {e.message}") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Supabase {action} transport error: {e}")
            raise TransportError(f"{action} failed: {e}") from e

    async def query(self, table: str, filters: Optional[QueryFilter] = None) -> list[dict]:
        filters = filters or QueryFilter()
        client = await self._get_client()
        request = client.table(table).select("*")

        for column, value in filters.eq.items():
            request = request.is_(column, "null") if value is None else request.eq(column, value)
        if filters.any_of:
            request = request.or_(build_or_clause(filters.any_of))
        if filters.order_by:
            request = request.order(filters.order_by, desc=filters.descending)
        if filters.limit:
            request = request.limit(filters.limit)

        response = await self._execute(request, f"query {table}")
        return list(response.data or [])

    async def insert(self, table: str, record: dict) -> dict:
        client = await self._get_client()
        response = await self._execute(client.table(table).insert(record), f"insert into {table}")
        if not response.data:
            raise StoreError(f"insert into {table} returned no row")
        return response.data[0]

    async def update(self, table: str, row_id: Any, patch: dict) -> None:
        client = await self._get_client()
        response = await self._execute(
            client.table(table).update(patch).eq("id", row_id), f"update {table}"
        )
        if not response.data:
            raise StoreError(f"{table} row {row_id} not found")

    async def delete(self, table: str, row_id: Any) -> None:
        client = await self._get_client()
        await self._execute(client.table(table).delete().eq("id", row_id), f"delete from {table}")

    async def current_user_id(self) -> Optional[str]:
        client = await self._get_client()
        try:
            response = await client.auth.get_user()
        except Exception as e:
            logger.warning(f"⚠️ Could not read auth user: {e}")
            return None
        user = getattr(response, "user", None)
        return str(user.id) if user else None

    async def subscribe(
        self,
        table: str,
        tenant_filter: dict,
        on_event: EventCallback,
        on_status: Optional[StatusCallback] = None,
    ) -> SubscriptionHandle:
        client = await self._get_client()
        filter_expr = ",".join(f"{key}=eq.{value}" for key, value in tenant_filter.items())
        channel = client.channel(f"{table}_changes")

        def handle_change(payload):
            event = normalize_realtime_payload(table, payload)
            if event is None:
                logger.debug(f"Ignoring realtime payload without change type on {table}")
                return
            on_event(event)

        def handle_status(status, err=None):
            if on_status:
                on_status(status_name(status), err)

        channel.on_postgres_changes(
            "*", schema=self.schema, table=table, filter=filter_expr, callback=handle_change
        )
        try:
            await channel.subscribe(handle_status)
        except Exception as e:
            raise TransportError(f"Realtime subscribe on {table} failed: {e}") from e

        logger.info(f"📡 Realtime channel opened for {table} ({filter_expr})")
        return SubscriptionHandle(table, tenant_filter, channel=channel)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        if self._client is not None and handle.channel is not None:
            try:
                await self._client.remove_channel(handle.channel)
            except Exception as e:
                logger.warning(f"⚠️ Failed to remove realtime channel {handle.table}: {e}")

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.remove_all_channels()
            except Exception as e:
                logger.warning(f"⚠️ Failed to close realtime channels: {e}")
