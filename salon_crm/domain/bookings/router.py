"""Online booking router - FastAPI endpoints for the bookings dashboard"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...exceptions import BookingError, StoreError
from .schemas import (
    ArchiveRequest,
    BookingRequest,
    BookingStats,
    BookingView,
    ConvertBookingRequest,
    OperationResult,
    RealtimeStatus,
    RescheduleRequest,
    ServiceInfo,
    StatusUpdateRequest,
    TeamMemberInfo,
)
from .service import DATE_RANGES, OnlineBookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/online-bookings", tags=["Online Bookings"])

ERROR_STATUS_CODES = {
    "configuration_error": 500,
    "auth_error": 401,
    "not_found": 404,
    "invalid_transition": 409,
    "in_progress": 409,
    "write_error": 502,
}


def get_booking_service(request: Request) -> OnlineBookingService:
    """Dependency injection for the app-wide OnlineBookingService"""
    service = getattr(request.app.state, "booking_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Booking service not ready")
    return service


def _raise_for_error(error: Exception) -> None:
    if isinstance(error, BookingError):
        raise HTTPException(status_code=ERROR_STATUS_CODES.get(error.error_type, 400), detail=error.message)
    logger.error(f"❌ Store error: {error}")
    raise HTTPException(status_code=502, detail="Booking store unavailable")


def _checked(result: OperationResult) -> OperationResult:
    if not result.success:
        raise HTTPException(status_code=ERROR_STATUS_CODES.get(result.error_type, 400), detail=result.error)
    return result


# ============================================================================
# BOOKING LIST
# ============================================================================


@router.get("", response_model=list[BookingRequest])
async def list_bookings(
    archived: bool = Query(False),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None, alias="dateRange"),
    service: OnlineBookingService = Depends(get_booking_service),
):
    """Bookings of the current view, optionally filtered"""
    if date_range and date_range not in DATE_RANGES:
        raise HTTPException(status_code=400, detail=f"dateRange must be one of {', '.join(DATE_RANGES)}")

    view_status = status.lower() if status and status.lower() != "all" else None
    try:
        view = BookingView(archived=archived, status=view_status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")

    try:
        await service.list_bookings(view)
    except (BookingError, StoreError) as e:
        _raise_for_error(e)
    return service.filter_bookings(search=search, date_range=date_range)


@router.post("/refresh", response_model=list[BookingRequest])
async def refresh_bookings(service: OnlineBookingService = Depends(get_booking_service)):
    """Refetch the current view from the store"""
    try:
        return await service.refresh()
    except (BookingError, StoreError) as e:
        _raise_for_error(e)


@router.get("/stats", response_model=BookingStats)
async def get_stats(service: OnlineBookingService = Depends(get_booking_service)):
    return service.stats()


@router.post("/new-count/reset")
async def reset_new_bookings(service: OnlineBookingService = Depends(get_booking_service)):
    service.reset_new_bookings_count()
    return {"newBookings": 0}


# ============================================================================
# BOOKING ACTIONS
# ============================================================================


@router.post("/{booking_id}/convert", response_model=OperationResult)
async def convert_booking(
    booking_id: str,
    data: ConvertBookingRequest,
    service: OnlineBookingService = Depends(get_booking_service),
):
    """Convert a pending booking into an appointment"""
    logger.info(f"📥 Convert request for booking {booking_id}")
    return _checked(await service.convert_to_appointment(booking_id, data.staffId, data.serviceId))


@router.patch("/{booking_id}/status", response_model=OperationResult)
async def update_status(
    booking_id: str,
    data: StatusUpdateRequest,
    service: OnlineBookingService = Depends(get_booking_service),
):
    return _checked(await service.set_status(booking_id, data.status))


@router.patch("/{booking_id}/archive", response_model=OperationResult)
async def update_archived(
    booking_id: str,
    data: ArchiveRequest,
    service: OnlineBookingService = Depends(get_booking_service),
):
    return _checked(await service.set_archived(booking_id, data.archived))


@router.patch("/{booking_id}/reschedule", response_model=OperationResult)
async def reschedule_booking(
    booking_id: str,
    data: RescheduleRequest,
    service: OnlineBookingService = Depends(get_booking_service),
):
    """Move the requested slot and notify the customer"""
    return _checked(await service.reschedule(booking_id, data.requestedDate, data.requestedTime))


@router.post("/reconcile")
async def reconcile_conversions(service: OnlineBookingService = Depends(get_booking_service)):
    """Finish conversions interrupted after the appointment was created"""
    try:
        return await service.reconcile()
    except (BookingError, StoreError) as e:
        _raise_for_error(e)


# ============================================================================
# REALTIME
# ============================================================================


@router.get("/realtime/status", response_model=RealtimeStatus)
async def realtime_status(service: OnlineBookingService = Depends(get_booking_service)):
    return service.realtime.snapshot()


@router.post("/realtime/retry", response_model=RealtimeStatus)
async def realtime_retry(service: OnlineBookingService = Depends(get_booking_service)):
    """Manual reconnect after the automatic retries gave up"""
    await service.realtime.retry_now()
    return service.realtime.snapshot()


# ============================================================================
# CONVERSION FORM DATA
# ============================================================================


@router.get("/services", response_model=list[ServiceInfo])
async def list_services(service: OnlineBookingService = Depends(get_booking_service)):
    """Active services of the salon"""
    try:
        return await service.list_services()
    except (BookingError, StoreError) as e:
        _raise_for_error(e)


@router.get("/team", response_model=list[TeamMemberInfo])
async def list_team(service: OnlineBookingService = Depends(get_booking_service)):
    """Active team members of the salon"""
    try:
        return await service.list_team_members()
    except (BookingError, StoreError) as e:
        _raise_for_error(e)


@router.get("/{booking_id}/suggested-service", response_model=Optional[ServiceInfo])
async def suggested_service(
    booking_id: str,
    service: OnlineBookingService = Depends(get_booking_service),
):
    """Service to preselect in the conversion form"""
    try:
        booking = await service.get_booking(booking_id)
        return service.match_service(booking, await service.list_services())
    except (BookingError, StoreError) as e:
        _raise_for_error(e)
