"""Online bookings domain - reconciliation of public booking requests"""

from .router import router
from .service import OnlineBookingService

__all__ = ["router", "OnlineBookingService"]
