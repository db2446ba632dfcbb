"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Creating and publishing rides
    - Cancelling rides (cascades to their bookings)
    - Completing rides (completes and settles confirmed bookings)
    - Querying rides
"""

from .ride_lifecycle import (
    RideResult,
    create_ride,
    publish_ride,
    cancel_ride,
    complete_ride,
    get_driver_rides,
    get_published_ride,
)

from .exceptions import (
    RideNotFoundError,
    RideNotAvailableError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "create_ride",
    "publish_ride",
    "cancel_ride",
    "complete_ride",
    "get_driver_rides",
    "get_published_ride",
    # Exceptions
    "RideNotFoundError",
    "RideNotAvailableError",
]
