class BookingError(RuntimeError):
    """Base for scheduling failures. `reason` is the coarse text safe to show callers."""

    reason = "booking failed"

    def __init__(self, detail: str | None = None, reason: str | None = None) -> None:
        if reason:
            self.reason = reason
        super().__init__(detail or self.reason)


class ValidationError(BookingError):
    """Raised for malformed date/time/duration input, before any store access."""

    reason = "invalid booking request"


class ConflictError(BookingError):
    """Raised when the requested slot is taken at create time."""

    reason = "slot no longer available"


class NotFoundError(BookingError):
    """Raised for unknown cancel tokens or hold ids."""

    reason = "booking not found"


class ExternalIntegrationError(BookingError):
    """Raised when the external calendar fails (timeouts, HTTP errors, bad payloads)."""

    reason = "calendar unavailable"


class ExpiryRaceError(BookingError):
    """Raised when a confirm loses the race with the expiry sweep or a cancel."""

    reason = "hold no longer active"


class DuplicateTokenError(BookingError):
    """Raised by stores when a cancel token is already taken."""

    reason = "duplicate cancel token"
