"""
SQLAlchemy-backed store.

Runs generic Core statements against the tables declared in ``models.py`` and
publishes every committed write to in-process subscribers, standing in for the
hosted store's realtime feed during local development and tests.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import models  # noqa: F401 - registers the tables on Base
from ..database import Base
from ..exceptions import StoreError
from .base import (
    CLOSED,
    SUBSCRIBED,
    ChangeEvent,
    EventCallback,
    QueryFilter,
    StatusCallback,
    StoreClient,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)


def _coerce(value: Any) -> Any:
    """Dates and times are stored as ISO strings, like the hosted store returns them"""
    if isinstance(value, (date, time)) and not isinstance(value, datetime):
        return value.isoformat()
    return value


class SqlAlchemyStore(StoreClient):
    """Store backend over a SQLAlchemy session factory"""

    def __init__(self, session_factory, actor_id: Optional[str] = None):
        self.session_factory = session_factory
        self.actor_id = actor_id
        self._subscriptions: dict[str, tuple[SubscriptionHandle, EventCallback, Optional[StatusCallback]]] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _table(self, name: str):
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}")
        return table

    def _column(self, table, name: str):
        if name not in table.c:
            raise StoreError(f"Unknown column {table.name}.{name}")
        return table.c[name]

    def _primary_key(self, table):
        return list(table.primary_key.columns)[0]

    def _match(self, table, name: str, value: Any):
        column = self._column(table, name)
        if isinstance(value, (list, tuple, set)):
            return column.in_([_coerce(v) for v in value])
        return column == _coerce(value)

    def _values(self, table, record: dict) -> dict:
        unknown = [key for key in record if key not in table.c]
        if unknown:
            raise StoreError(f"Unknown column(s) for {table.name}: {', '.join(unknown)}")
        return {key: _coerce(value) for key, value in record.items()}

    def _fetch(self, db, table, row_id) -> Optional[dict]:
        pk = self._primary_key(table)
        row = db.execute(select(table).where(pk == row_id)).first()
        return dict(row._mapping) if row else None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    async def query(self, table: str, filters: Optional[QueryFilter] = None) -> list[dict]:
        filters = filters or QueryFilter()
        sa_table = self._table(table)
        stmt = select(sa_table)

        for name, value in filters.eq.items():
            stmt = stmt.where(self._column(sa_table, name) == _coerce(value))

        if filters.any_of:
            stmt = stmt.where(
                or_(*[self._match(sa_table, name, value) for name, value in filters.any_of.items()])
            )

        if filters.order_by:
            column = self._column(sa_table, filters.order_by)
            stmt = stmt.order_by(column.desc() if filters.descending else column.asc())

        if filters.limit:
            stmt = stmt.limit(filters.limit)

        try:
            with self.session_factory() as db:
                return [dict(row._mapping) for row in db.execute(stmt).all()]
        except SQLAlchemyError as e:
            logger.error(f"❌ Query on {table} failed: {e}")
            raise StoreError(f"Query on {table} failed: {e}") from e

    async def insert(self, table: str, record: dict) -> dict:
        sa_table = self._table(table)
        values = self._values(sa_table, record)

        try:
            with self.session_factory() as db:
                result = db.execute(sa_table.insert().values(**values))
                db.commit()
                row_id = result.inserted_primary_key[0]
                row = self._fetch(db, sa_table, row_id)
        except IntegrityError as e:
            logger.warning(f"⚠️ Insert into {table} violated a constraint: {e.orig}")
            raise StoreError(f"Constraint violation on {table}: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"❌ Insert into {table} failed: {e}")
            raise StoreError(f"Insert into {table} failed: {e}") from e

        self._publish(ChangeEvent(type="insert", table=table, row=row))
        return row

    async def update(self, table: str, row_id: Any, patch: dict) -> None:
        sa_table = self._table(table)
        values = self._values(sa_table, patch)
        pk = self._primary_key(sa_table)

        try:
            with self.session_factory() as db:
                old_row = self._fetch(db, sa_table, row_id)
                if old_row is None:
                    raise StoreError(f"{table} row {row_id} not found")
                db.execute(sa_table.update().where(pk == row_id).values(**values))
                db.commit()
                row = self._fetch(db, sa_table, row_id)
        except IntegrityError as e:
            raise StoreError(f"Constraint violation on {table}: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"❌ Update of {table} {row_id} failed: {e}")
            raise StoreError(f"Update of {table} failed: {e}") from e

        self._publish(ChangeEvent(type="update", table=table, row=row, old_row=old_row))

    async def delete(self, table: str, row_id: Any) -> None:
        sa_table = self._table(table)
        pk = self._primary_key(sa_table)

        try:
            with self.session_factory() as db:
                old_row = self._fetch(db, sa_table, row_id)
                if old_row is None:
                    return
                db.execute(sa_table.delete().where(pk == row_id))
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Delete from {table} {row_id} failed: {e}")
            raise StoreError(f"Delete from {table} failed: {e}") from e

        self._publish(ChangeEvent(type="delete", table=table, old_row=old_row))

    async def current_user_id(self) -> Optional[str]:
        return self.actor_id

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------
    async def subscribe(
        self,
        table: str,
        tenant_filter: dict,
        on_event: EventCallback,
        on_status: Optional[StatusCallback] = None,
    ) -> SubscriptionHandle:
        self._table(table)
        handle = SubscriptionHandle(table, tenant_filter)
        self._subscriptions[handle.id] = (handle, on_event, on_status)
        logger.info(f"📡 Subscribed to {table} changes for {tenant_filter}")
        if on_status:
            on_status(SUBSCRIBED, None)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        entry = self._subscriptions.pop(handle.id, None)
        handle.closed = True
        if entry and entry[2]:
            entry[2](CLOSED, None)

    def subscription_count(self, table: Optional[str] = None) -> int:
        return sum(1 for handle, _, _ in self._subscriptions.values() if table is None or handle.table == table)

    def _publish(self, event: ChangeEvent) -> None:
        row = event.row or event.old_row or {}
        for handle, on_event, _ in list(self._subscriptions.values()):
            if handle.table != event.table:
                continue
            if any(str(row.get(key)) != str(value) for key, value in handle.tenant_filter.items()):
                continue
            try:
                on_event(event.model_copy(deep=True))
            except Exception as e:
                logger.error(f"❌ Change handler for {event.table} failed: {e}")
