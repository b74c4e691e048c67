"""Error taxonomy shared by the store gateway and the booking workflows"""


class StoreError(Exception):
    """The store rejected a call (constraint violation, auth, unknown table)"""

    pass


class TransportError(StoreError):
    """The store could not be reached, or a realtime channel failed"""

    pass


class BookingError(Exception):
    """Base class for errors surfaced to the user by booking actions"""

    error_type = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(BookingError):
    """Tenant (salon) could not be resolved"""

    error_type = "configuration_error"


class AuthError(BookingError):
    """No authenticated actor"""

    error_type = "auth_error"


class NotFoundError(BookingError):
    """Referenced booking, service or customer is missing"""

    error_type = "not_found"


class WriteError(BookingError):
    """A single insert/update failed; earlier steps are not rolled back"""

    error_type = "write_error"


class InvalidTransitionError(BookingError):
    """Requested status/archive change is not allowed from the current state"""

    error_type = "invalid_transition"
