"""Online booking domain schemas - typed rows and API payloads"""

from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import clean_optional, validate_time

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed", "converted"]
BOOKING_STATUSES: tuple[str, ...] = ("pending", "confirmed", "cancelled", "completed", "converted")

# Status given to appointments created from online bookings
APPOINTMENT_STATUS_IN_PROGRESS = "In corso"
ACTIVE_SERVICE_STATUS = "Attivo"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_str_id(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


# ============================================================================
# STORE ROWS
# ============================================================================


class BookingRequest(BaseModel):
    """Row of ``online_bookings``"""

    model_config = ConfigDict(extra="ignore")

    id: str
    salon_id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    requested_date: date
    requested_time: str
    service_id: Optional[str] = None
    service_name: str = ""
    service_duration: int = 0
    service_price: float = 0
    team_member_id: Optional[str] = None
    notes: Optional[str] = None
    status: BookingStatus = "pending"
    archived: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @field_validator("id", "salon_id", "service_id", "team_member_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)

    @field_validator("customer_email", "customer_phone", "notes", mode="before")
    @classmethod
    def strip_optional(cls, v):
        return clean_optional(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return str(v).strip().lower() if v is not None else "pending"

    @field_validator("archived", mode="before")
    @classmethod
    def null_archived(cls, v):
        return False if v is None else v

    @field_validator("requested_time", mode="before")
    @classmethod
    def normalize_requested_time(cls, v):
        # Stored as HH:MM:SS by the hosted store; seconds are never used
        return validate_time(str(v)) if v is not None else v

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v):
        return _as_utc(v)

    @model_validator(mode="after")
    def default_updated_at(self):
        if self.updated_at is None:
            self.updated_at = self.created_at
        return self

    @property
    def start_time(self) -> str:
        return self.requested_time


class Appointment(BaseModel):
    """Row of ``orders``; field aliases are the store column names"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    salon_id: str
    user_id: Optional[str] = None
    customer_uuid: Optional[str] = None
    team_id: Optional[str] = None
    customer_name: str = Field(alias="nome")
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, alias="telefono")
    appointment_date: date = Field(alias="data")
    start_time: str = Field(alias="orarioInizio")
    end_time: str = Field(alias="orarioFine")
    price: float = Field(default=0, alias="prezzo")
    note: Optional[str] = None
    description: Optional[str] = Field(default=None, alias="descrizione")
    status: str = APPOINTMENT_STATUS_IN_PROGRESS
    online_booking_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("id", "salon_id", "user_id", "customer_uuid", "team_id", "online_booking_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id", "created_at"})


class ServiceLineItem(BaseModel):
    """Row of ``order_services``"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    order_id: str
    service_id: Optional[str] = None
    service_name: str = Field(alias="servizio")
    price: float = 0

    @field_validator("id", "order_id", "service_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class Customer(BaseModel):
    """Row of ``customers``"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    customer_uuid: Optional[str] = None
    salon_id: str
    user_id: Optional[str] = None
    name: str = Field(alias="nome")
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, alias="telefono")
    note: Optional[str] = None

    @field_validator("id", "salon_id", "user_id", "customer_uuid", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"}, exclude_none=True)


class ServiceInfo(BaseModel):
    """Row of ``services``"""

    model_config = ConfigDict(extra="ignore")

    id: str
    salon_id: Optional[str] = None
    name: str
    price: float = 0
    duration: int = 0
    status: Optional[str] = None

    @field_validator("id", "salon_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)


class TeamMemberInfo(BaseModel):
    """Row of ``team``"""

    model_config = ConfigDict(extra="ignore")

    id: str
    salon_id: Optional[str] = None
    name: str
    is_active: bool = True

    @field_validator("id", "salon_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str_id(v)


def normalize_booking(row: dict) -> BookingRequest:
    """Single entry point turning a store row into a BookingRequest"""
    return BookingRequest.model_validate(row)


# ============================================================================
# VIEW / RESULTS
# ============================================================================


class BookingView(BaseModel):
    """Which bookings the dashboard currently shows"""

    model_config = ConfigDict(frozen=True)

    archived: bool = False
    status: Optional[BookingStatus] = None  # None = every status

    def matches(self, booking: BookingRequest) -> bool:
        if booking.archived != self.archived:
            return False
        return self.status is None or booking.status == self.status


class OperationResult(BaseModel):
    """Outcome of a user action, returned to the UI layer instead of raising"""

    success: bool
    skipped: bool = False
    booking_id: Optional[str] = None
    appointment_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BookingStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    cancelled: int = 0
    completed: int = 0
    converted: int = 0
    new_bookings: int = 0


class RealtimeStatus(BaseModel):
    status: str
    retry_count: int
    max_retries: int
    last_event_at: Optional[datetime] = None
    connection_quality: str = "unknown"


# ============================================================================
# API PAYLOADS
# ============================================================================


class ConvertBookingRequest(BaseModel):
    staffId: str
    serviceId: str


class StatusUpdateRequest(BaseModel):
    status: BookingStatus

    @field_validator("status", mode="before")
    @classmethod
    def lower_status(cls, v):
        return str(v).strip().lower() if v is not None else v


class ArchiveRequest(BaseModel):
    archived: bool


class RescheduleRequest(BaseModel):
    requestedDate: date
    requestedTime: str

    @field_validator("requestedTime")
    @classmethod
    def validate_requested_time(cls, v):
        return validate_time(v)
