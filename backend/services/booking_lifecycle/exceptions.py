"""Custom exceptions for booking management."""


class BookingNotFoundError(Exception):
    """Raised when a booking cannot be found."""
    pass


class BookingValidationError(Exception):
    """Raised when a booking request fails a business rule. Safe to show to users."""
    pass


class CapacityExceeded(BookingValidationError):
    """Raised when the ride has fewer seats available than requested."""

    def __init__(self, message="Not enough seats available."):
        super().__init__(message)


class CancellationNotAllowed(BookingValidationError):
    """Raised when the cancellation guard refuses a cancel request."""

    def __init__(self, message="Booking cannot be cancelled."):
        super().__init__(message)


class BookingPermissionError(Exception):
    """Raised when the user is not a party to the booking."""
    pass


class InvalidTransition(Exception):
    """Raised when an event is fired against a booking in an illegal source state."""

    user_message = "This booking cannot be modified in its current state."

    def __init__(self, booking_id, event, status):
        self.booking_id = booking_id
        self.event = event
        self.status = status
        super().__init__(f"Cannot {event} booking {booking_id} in status {status}")


class SettlementFailure(Exception):
    """Raised when the driver wallet credit for a completed booking could not be posted."""

    def __init__(self, booking_id, message):
        self.booking_id = booking_id
        super().__init__(f"Settlement failed for booking {booking_id}: {message}")


class ExpirySweepPartialFailure(Exception):
    """Raised by scheduled runs when most expirations in a sweep failed."""

    def __init__(self, result):
        self.result = result
        super().__init__(result.message)
