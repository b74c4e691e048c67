"""
Booking conversion workflow - turns a pending online booking into an appointment.

The store offers no multi-row transaction, so the steps are independent
writes. The appointment carries ``online_booking_id``; a retried conversion
finds it and only performs the steps that are still missing.
"""

import logging
from typing import Optional

from ...context import TenantResolver
from ...events import APPOINTMENT_CREATED, ONLINE_BOOKINGS_UPDATED, EventBus
from ...exceptions import (
    AuthError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    WriteError,
)
from ...services.notification_service import CONFIRMATION, BookingNotifier
from ...shared.validators import is_valid_email, normalize_email, normalize_phone
from .cache import BookingCache
from .repository import BookingRepository
from .schemas import (
    APPOINTMENT_STATUS_IN_PROGRESS,
    Appointment,
    BookingRequest,
    Customer,
    OperationResult,
    ServiceInfo,
    ServiceLineItem,
)
from .time_utils import compute_end_time, crosses_midnight

logger = logging.getLogger(__name__)


class BookingConversionWorkflow:
    """Converts pending bookings into appointments with a service line item"""

    def __init__(
        self,
        repo: BookingRepository,
        tenant: TenantResolver,
        events: EventBus,
        notifier: BookingNotifier,
        cache: Optional[BookingCache] = None,
    ):
        self.repo = repo
        self.tenant = tenant
        self.events = events
        self.notifier = notifier
        self.cache = cache

    async def convert(self, booking: BookingRequest, staff_id: str, service_id: str) -> OperationResult:
        """
        Convert ``booking`` into an appointment for ``staff_id``.

        Raises:
            InvalidTransitionError: booking is neither pending nor confirmed
            ConfigurationError: salon could not be resolved
            AuthError: no authenticated actor
            NotFoundError: service does not exist in the salon
            WriteError: one of the store writes failed
        """
        if booking.status == "confirmed":
            logger.info(f"ℹ️ Booking {booking.id} already confirmed, nothing to convert")
            return OperationResult(success=True, skipped=True, booking_id=booking.id)
        if booking.status != "pending":
            raise InvalidTransitionError(f"Booking {booking.id} is {booking.status}, only pending bookings can be converted")

        salon_id = await self.tenant.tenant_id()
        if not salon_id:
            raise ConfigurationError("Salon could not be determined for the current user")

        actor_id = await self.tenant.actor_id()
        if not actor_id:
            raise AuthError("You must be signed in to convert bookings")

        service = await self._lookup(self.repo.get_service(salon_id, service_id), "service lookup")
        if service is None:
            raise NotFoundError(f"Service {service_id} not found")

        logger.info(f"📥 Converting booking {booking.id} for staff {staff_id} ({service.name})")

        appointment = await self._lookup(
            self.repo.find_appointment_for_booking(booking.id), "appointment lookup"
        )
        if appointment is not None:
            logger.info(f"🔁 Booking {booking.id} already has appointment {appointment.id}, resuming")
        else:
            customer = await self._resolve_customer(salon_id, actor_id, booking)
            appointment = await self._create_appointment(salon_id, actor_id, staff_id, booking, service, customer)

        await self._ensure_line_item(appointment, service)

        try:
            await self.repo.update_booking(booking.id, {"status": "confirmed"})
        except StoreError as e:
            logger.error(f"❌ Failed to confirm booking {booking.id}: {e}")
            raise WriteError(f"Appointment created but booking status could not be updated: {e}") from e

        confirmed = booking.model_copy(update={"status": "confirmed"})
        if self.cache is not None:
            confirmed = self.cache.patch_local(booking.id, status="confirmed") or confirmed

        self.events.emit(
            APPOINTMENT_CREATED,
            {"appointment_id": appointment.id, "booking_id": booking.id, "date": appointment.appointment_date.isoformat()},
        )
        self.events.emit(ONLINE_BOOKINGS_UPDATED, {"booking_id": booking.id, "status": "confirmed"})

        await self.notifier.notify(CONFIRMATION, confirmed)

        logger.info(f"✅ Booking {booking.id} converted to appointment {appointment.id}")
        return OperationResult(success=True, booking_id=booking.id, appointment_id=appointment.id)

    async def complete_pending(self, booking: BookingRequest, appointment: Appointment) -> OperationResult:
        """Finish a conversion whose appointment exists but whose booking is still pending"""
        service = None
        if booking.service_id:
            service = await self._lookup(self.repo.get_service(appointment.salon_id, booking.service_id), "service lookup")
        if service is None:
            # Service removed since the booking; fall back to what the booking recorded
            service = ServiceInfo(
                id=booking.service_id or "",
                name=booking.service_name,
                price=booking.service_price,
                duration=booking.service_duration,
            )

        await self._ensure_line_item(appointment, service)
        try:
            await self.repo.update_booking(booking.id, {"status": "confirmed"})
        except StoreError as e:
            raise WriteError(f"Booking status could not be updated: {e}") from e

        confirmed = booking.model_copy(update={"status": "confirmed"})
        if self.cache is not None:
            confirmed = self.cache.patch_local(booking.id, status="confirmed") or confirmed
        self.events.emit(ONLINE_BOOKINGS_UPDATED, {"booking_id": booking.id, "status": "confirmed"})

        # The interrupted conversion never reached its confirmation email
        await self.notifier.notify(CONFIRMATION, confirmed)
        return OperationResult(success=True, booking_id=booking.id, appointment_id=appointment.id)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _lookup(self, coro, action: str):
        try:
            return await coro
        except StoreError as e:
            logger.error(f"❌ {action} failed: {e}")
            raise WriteError(f"{action} failed: {e}") from e

    async def _resolve_customer(self, salon_id: str, actor_id: str, booking: BookingRequest) -> Customer:
        existing = await self._lookup(
            self.repo.find_customer(salon_id, booking.customer_email, booking.customer_phone),
            "customer lookup",
        )
        if existing is not None:
            logger.info(f"👤 Reusing customer {existing.id} for booking {booking.id}")
            return existing

        if booking.customer_email and not is_valid_email(booking.customer_email):
            logger.warning(f"⚠️ Booking {booking.id} has a malformed email, keeping it as typed")

        try:
            customer = await self.repo.create_customer(
                Customer(
                    salon_id=salon_id,
                    user_id=actor_id,
                    name=booking.customer_name,
                    email=normalize_email(booking.customer_email),
                    phone=normalize_phone(booking.customer_phone),
                    note=f"Created from online booking {booking.id}",
                )
            )
        except StoreError as e:
            logger.error(f"❌ Failed to create customer for booking {booking.id}: {e}")
            raise WriteError(f"Customer could not be created: {e}") from e

        logger.info(f"👤 Created customer {customer.id} for booking {booking.id}")
        return customer

    async def _create_appointment(
        self,
        salon_id: str,
        actor_id: str,
        staff_id: str,
        booking: BookingRequest,
        service: ServiceInfo,
        customer: Customer,
    ) -> Appointment:
        if not customer.customer_uuid:
            raise WriteError(f"Customer {customer.id} has no customer_uuid to link the appointment to")

        note = f"Online booking {booking.id}"
        if booking.notes:
            note = f"{note}\n{booking.notes}"

        if crosses_midnight(booking.start_time, service.duration):
            # Date is kept; the end time wraps past midnight
            logger.warning(
                f"⚠️ Appointment for booking {booking.id} ends after midnight "
                f"({booking.start_time} + {service.duration} min)"
            )

        appointment = Appointment(
            salon_id=salon_id,
            user_id=actor_id,
            customer_uuid=customer.customer_uuid,
            team_id=staff_id,
            customer_name=booking.customer_name,
            email=booking.customer_email,
            phone=booking.customer_phone,
            appointment_date=booking.requested_date,
            start_time=booking.start_time,
            end_time=compute_end_time(booking.start_time, service.duration),
            price=service.price,
            note=note,
            description=service.name,
            status=APPOINTMENT_STATUS_IN_PROGRESS,
            online_booking_id=booking.id,
        )

        try:
            return await self.repo.create_appointment(appointment)
        except StoreError as e:
            # A concurrent conversion may have won the unique online_booking_id
            existing = await self._lookup(self.repo.find_appointment_for_booking(booking.id), "appointment lookup")
            if existing is not None:
                logger.warning(f"⚠️ Appointment for booking {booking.id} created concurrently, reusing it")
                return existing
            logger.error(f"❌ Failed to create appointment for booking {booking.id}: {e}")
            raise WriteError(f"Appointment could not be created: {e}") from e

    async def _ensure_line_item(self, appointment: Appointment, service: ServiceInfo) -> None:
        service_id = service.id or None
        existing = await self._lookup(self.repo.find_line_item(appointment.id, service_id), "line item lookup")
        if existing is not None:
            return
        try:
            await self.repo.create_line_item(
                ServiceLineItem(
                    order_id=appointment.id,
                    service_id=service_id,
                    service_name=service.name,
                    price=service.price,
                )
            )
        except StoreError as e:
            logger.error(f"❌ Failed to add service to appointment {appointment.id}: {e}")
            raise WriteError(f"Appointment created but its service could not be added: {e}") from e
