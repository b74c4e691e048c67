"""
Data access gateway contract.

Every backend exposes the same asynchronous row-level API. Writes are
independent: there is no transaction spanning several calls.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

# Realtime channel statuses reported to ``on_status`` callbacks
SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
TIMED_OUT = "TIMED_OUT"
CLOSED = "CLOSED"


class QueryFilter(BaseModel):
    """Filters understood by every store backend"""

    eq: dict[str, Any] = Field(default_factory=dict)
    # OR-group of equality clauses, e.g. {"email": "a@x.com", "telefono": "123"};
    # a list value matches any of its items
    any_of: dict[str, Any] = Field(default_factory=dict)
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


class ChangeEvent(BaseModel):
    """A row-level change delivered by the realtime feed"""

    type: Literal["insert", "update", "delete"]
    table: str
    row: Optional[dict] = None
    old_row: Optional[dict] = None

    @property
    def row_id(self) -> Optional[str]:
        source = self.row or self.old_row or {}
        value = source.get("id")
        return str(value) if value is not None else None


EventCallback = Callable[[ChangeEvent], Any]
StatusCallback = Callable[[str, Optional[Exception]], Any]


class SubscriptionHandle:
    """Opaque reference to an open change-feed subscription"""

    def __init__(self, table: str, tenant_filter: dict, channel: Any = None):
        self.id = str(uuid.uuid4())
        self.table = table
        self.tenant_filter = dict(tenant_filter)
        self.channel = channel
        self.closed = False

    def __repr__(self) -> str:
        return f"<SubscriptionHandle {self.table} {self.tenant_filter} closed={self.closed}>"


class StoreClient(ABC):
    """Generic query/insert/update/delete/subscribe interface to the salon store"""

    @abstractmethod
    async def query(self, table: str, filters: Optional[QueryFilter] = None) -> list[dict]:
        ...

    @abstractmethod
    async def insert(self, table: str, record: dict) -> dict:
        ...

    @abstractmethod
    async def update(self, table: str, row_id: Any, patch: dict) -> None:
        ...

    @abstractmethod
    async def delete(self, table: str, row_id: Any) -> None:
        ...

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        tenant_filter: dict,
        on_event: EventCallback,
        on_status: Optional[StatusCallback] = None,
    ) -> SubscriptionHandle:
        ...

    @abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        ...

    @abstractmethod
    async def current_user_id(self) -> Optional[str]:
        """Id of the authenticated actor, or None"""
        ...

    async def query_one(self, table: str, filters: Optional[QueryFilter] = None) -> Optional[dict]:
        filters = (filters or QueryFilter()).model_copy(update={"limit": 1})
        rows = await self.query(table, filters)
        return rows[0] if rows else None

    async def close(self) -> None:
        """Release backend resources"""
        return None
