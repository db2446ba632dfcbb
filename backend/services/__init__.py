"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - inventory: Seat inventory guard (row-locked reserve/release)
    - pricing: Commission calculator
    - booking_lifecycle: Booking state machine and operations
    - expiry: Seat hold expiry sweep
    - settlement: Driver wallet ledger and booking payouts
    - ride_management: Ride create/publish/cancel/complete
    - collaborators: Settings, notifications, chat and payment seams
"""

# Expose commonly used functions at package level
from .booking_lifecycle import (
    create_booking,
    accept_booking,
    reject_booking,
    cancel_booking,
    confirm_booking,
    complete_booking,
    expire_booking,
    refund_booking,
    handle_payment_callback,
    handle_refund_callback,
    BookingNotFoundError,
    BookingValidationError,
    CapacityExceeded,
    CancellationNotAllowed,
    BookingPermissionError,
    InvalidTransition,
    SettlementFailure,
    ExpirySweepPartialFailure,
)
from .expiry import expire_stale_holds, run_expiry_sweep
from .inventory import reserve_seats, release_seats
from .pricing import compute_commission
from .ride_management import (
    create_ride,
    publish_ride,
    cancel_ride,
    complete_ride,
    RideNotFoundError,
    RideNotAvailableError,
)
from .settlement import settle_booking, settle_unsettled_bookings

__all__ = [
    # Bookings
    "create_booking",
    "accept_booking",
    "reject_booking",
    "cancel_booking",
    "confirm_booking",
    "complete_booking",
    "expire_booking",
    "refund_booking",
    "handle_payment_callback",
    "handle_refund_callback",
    # Background jobs
    "expire_stale_holds",
    "run_expiry_sweep",
    "settle_booking",
    "settle_unsettled_bookings",
    # Building blocks
    "reserve_seats",
    "release_seats",
    "compute_commission",
    # Ride management
    "create_ride",
    "publish_ride",
    "cancel_ride",
    "complete_ride",
    # Exceptions
    "BookingNotFoundError",
    "BookingValidationError",
    "CapacityExceeded",
    "CancellationNotAllowed",
    "BookingPermissionError",
    "InvalidTransition",
    "SettlementFailure",
    "ExpirySweepPartialFailure",
    "RideNotFoundError",
    "RideNotAvailableError",
]
