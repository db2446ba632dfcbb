"""
Booking lifecycle service - booking state machine and its operations.

This module handles:
    - Creating bookings (seat reservation + pricing snapshot)
    - Driver accept/reject/complete
    - Rider/driver cancellation
    - Hold expiry, refunds and payment gateway callbacks
"""

from .booking_lifecycle import (
    create_booking,
    accept_booking,
    reject_booking,
    cancel_booking,
    cancel_without_guard,
    confirm_booking,
    complete_booking,
    expire_booking,
    refund_booking,
    handle_payment_callback,
    handle_refund_callback,
    get_booking_for_user,
    list_rider_bookings,
    list_driver_bookings,
)
from .effects import TransitionEffects
from .exceptions import (
    BookingNotFoundError,
    BookingValidationError,
    CapacityExceeded,
    CancellationNotAllowed,
    BookingPermissionError,
    InvalidTransition,
    SettlementFailure,
    ExpirySweepPartialFailure,
)
from .state_machine import TRANSITIONS, Transition, allowed_events, apply_transition

__all__ = [
    # Lifecycle operations
    "create_booking",
    "accept_booking",
    "reject_booking",
    "cancel_booking",
    "cancel_without_guard",
    "confirm_booking",
    "complete_booking",
    "expire_booking",
    "refund_booking",
    "handle_payment_callback",
    "handle_refund_callback",
    # Queries
    "get_booking_for_user",
    "list_rider_bookings",
    "list_driver_bookings",
    # State machine
    "TRANSITIONS",
    "Transition",
    "TransitionEffects",
    "allowed_events",
    "apply_transition",
    # Exceptions
    "BookingNotFoundError",
    "BookingValidationError",
    "CapacityExceeded",
    "CancellationNotAllowed",
    "BookingPermissionError",
    "InvalidTransition",
    "SettlementFailure",
    "ExpirySweepPartialFailure",
]
