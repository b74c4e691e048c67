"""Online booking repository - Store operations for bookings and their appointments"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ...shared.validators import normalize_email, normalize_phone
from ...store.base import QueryFilter, StoreClient
from .schemas import (
    ACTIVE_SERVICE_STATUS,
    Appointment,
    BookingRequest,
    BookingView,
    Customer,
    ServiceInfo,
    ServiceLineItem,
    TeamMemberInfo,
    normalize_booking,
)

logger = logging.getLogger(__name__)

BOOKINGS_TABLE = "online_bookings"
ORDERS_TABLE = "orders"
ORDER_SERVICES_TABLE = "order_services"
CUSTOMERS_TABLE = "customers"
SERVICES_TABLE = "services"
TEAM_TABLE = "team"


def _parse_rows(model, rows: list[dict], table: str) -> list:
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"⚠️ Skipping malformed {table} row {row.get('id')}: {e.error_count()} error(s)")
    return parsed


class BookingRepository:
    """Repository for online booking store operations"""

    def __init__(self, store: StoreClient):
        self.store = store

    # Bookings
    async def list_bookings(self, salon_id: str, view: Optional[BookingView] = None) -> list[BookingRequest]:
        """Bookings of a salon for a view, newest first"""
        eq: dict[str, Any] = {"salon_id": salon_id}
        if view is not None:
            eq["archived"] = view.archived
            if view.status:
                eq["status"] = view.status
        rows = await self.store.query(
            BOOKINGS_TABLE, QueryFilter(eq=eq, order_by="created_at", descending=True)
        )
        return _parse_rows(BookingRequest, rows, BOOKINGS_TABLE)

    async def list_pending(self, salon_id: str) -> list[BookingRequest]:
        return await self.list_bookings(salon_id, BookingView(archived=False, status="pending"))

    async def get_booking(self, booking_id: str) -> Optional[BookingRequest]:
        row = await self.store.query_one(BOOKINGS_TABLE, QueryFilter(eq={"id": booking_id}))
        return normalize_booking(row) if row else None

    async def update_booking(self, booking_id: str, patch: dict) -> None:
        await self.store.update(BOOKINGS_TABLE, booking_id, patch)

    # Catalog
    async def get_service(self, salon_id: str, service_id: str) -> Optional[ServiceInfo]:
        row = await self.store.query_one(
            SERVICES_TABLE, QueryFilter(eq={"id": service_id, "salon_id": salon_id})
        )
        return ServiceInfo.model_validate(row) if row else None

    async def list_services(self, salon_id: str) -> list[ServiceInfo]:
        rows = await self.store.query(
            SERVICES_TABLE,
            QueryFilter(eq={"salon_id": salon_id, "status": ACTIVE_SERVICE_STATUS}, order_by="name"),
        )
        return _parse_rows(ServiceInfo, rows, SERVICES_TABLE)

    async def list_team_members(self, salon_id: str) -> list[TeamMemberInfo]:
        rows = await self.store.query(
            TEAM_TABLE, QueryFilter(eq={"salon_id": salon_id, "is_active": True}, order_by="name")
        )
        return _parse_rows(TeamMemberInfo, rows, TEAM_TABLE)

    # Customers
    async def find_customer(
        self, salon_id: str, email: Optional[str], phone: Optional[str]
    ) -> Optional[Customer]:
        """
        Match by email OR phone, with a clause only for the values provided.

        Both the value as typed and its normalized form are tried, so
        ``A@x.com`` finds a customer stored as ``a@x.com`` and
        ``333 123 4567`` one stored as ``3331234567``.
        """
        any_of = {}
        for column, value, normalized in (
            ("email", email, normalize_email(email)),
            ("telefono", phone, normalize_phone(phone)),
        ):
            candidates = [v for v in dict.fromkeys([value, normalized]) if v]
            if candidates:
                any_of[column] = candidates if len(candidates) > 1 else candidates[0]
        if not any_of:
            return None

        row = await self.store.query_one(
            CUSTOMERS_TABLE, QueryFilter(eq={"salon_id": salon_id}, any_of=any_of)
        )
        return Customer.model_validate(row) if row else None

    async def create_customer(self, customer: Customer) -> Customer:
        row = await self.store.insert(CUSTOMERS_TABLE, customer.to_record())
        return Customer.model_validate(row)

    # Appointments
    async def find_appointment_for_booking(self, booking_id: str) -> Optional[Appointment]:
        row = await self.store.query_one(
            ORDERS_TABLE, QueryFilter(eq={"online_booking_id": booking_id})
        )
        return Appointment.model_validate(row) if row else None

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        row = await self.store.insert(ORDERS_TABLE, appointment.to_record())
        return Appointment.model_validate(row)

    async def find_line_item(self, order_id: str, service_id: Optional[str]) -> Optional[ServiceLineItem]:
        row = await self.store.query_one(
            ORDER_SERVICES_TABLE, QueryFilter(eq={"order_id": order_id, "service_id": service_id})
        )
        return ServiceLineItem.model_validate(row) if row else None

    async def create_line_item(self, item: ServiceLineItem) -> ServiceLineItem:
        row = await self.store.insert(ORDER_SERVICES_TABLE, item.to_record())
        return ServiceLineItem.model_validate(row)
