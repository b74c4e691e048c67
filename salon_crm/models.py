"""
Table definitions mirroring the hosted salon store.

Column names follow the hosted schema verbatim (including the Italian
``orders``/``customers`` columns) so the same row dicts travel through either
store backend.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)

from .database import Base


def generate_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Profile(Base):
    """Salon owner profile; ``id`` is the auth user id"""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)


class TeamMember(Base):
    """Staff member (collaborator) of a salon"""

    __tablename__ = "team"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0)
    duration = Column(Integer, nullable=False, default=30)  # minutes
    status = Column(String(50), default="Attivo", nullable=False)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    # Stable key referenced by orders.customer_uuid; the hosted id is a serial
    customer_uuid = Column(String(36), unique=True, nullable=False, default=generate_id)
    salon_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=True)
    nome = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    telefono = Column(String(50), nullable=True, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class OnlineBooking(Base):
    """Booking request submitted through the public salon page"""

    __tablename__ = "online_bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=False, index=True)

    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    requested_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    requested_time = Column(String(8), nullable=False)  # HH:MM[:SS]

    service_id = Column(String(36), nullable=True)
    service_name = Column(String(255), nullable=False)
    service_duration = Column(Integer, nullable=False, default=30)
    service_price = Column(Float, nullable=False, default=0)
    team_member_id = Column(String(36), nullable=True)

    # pending → confirmed | cancelled, confirmed → completed; converted is legacy
    status = Column(String(20), default="pending", nullable=False, index=True)
    archived = Column(Boolean, default=False, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Order(Base):
    """Appointment on the salon calendar"""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=True)
    customer_uuid = Column(String(36), ForeignKey("customers.customer_uuid"), nullable=True)
    team_id = Column(String(36), nullable=True)

    nome = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    telefono = Column(String(50), nullable=True)

    data = Column(String(10), nullable=False)  # YYYY-MM-DD
    orarioInizio = Column(String(5), nullable=False)  # HH:MM
    orarioFine = Column(String(5), nullable=False)  # HH:MM
    prezzo = Column(Float, nullable=False, default=0)
    note = Column(Text, nullable=True)
    descrizione = Column(Text, nullable=True)
    status = Column(String(50), default="In corso", nullable=False)

    # One appointment per converted booking
    online_booking_id = Column(
        String(36), ForeignKey("online_bookings.id"), nullable=True, unique=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)


class OrderService(Base):
    """Service line item attached to an appointment"""

    __tablename__ = "order_services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    service_id = Column(String(36), nullable=True)
    servizio = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0)
