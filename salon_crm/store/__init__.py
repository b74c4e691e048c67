"""Data access gateway: store contract and backends"""

from .base import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    ChangeEvent,
    QueryFilter,
    StoreClient,
    SubscriptionHandle,
)
from .sql_store import SqlAlchemyStore

__all__ = [
    "CHANNEL_ERROR",
    "CLOSED",
    "SUBSCRIBED",
    "TIMED_OUT",
    "ChangeEvent",
    "QueryFilter",
    "StoreClient",
    "SubscriptionHandle",
    "SqlAlchemyStore",
    "build_store",
]


def build_store(backend: str, **kwargs) -> StoreClient:
    """Create the configured backend; the Supabase client is imported lazily"""
    if backend == "supabase":
        from .supabase_store import SupabaseStore

        return SupabaseStore(kwargs["supabase_url"], kwargs["supabase_key"])
    if backend == "sql":
        return SqlAlchemyStore(kwargs["session_factory"], actor_id=kwargs.get("actor_id"))
    raise ValueError(f"Unknown store backend: {backend}")
