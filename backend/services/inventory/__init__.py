"""Seat inventory guard - the only writer of Ride.seats_available."""

from .seat_guard import reserve_seats, release_seats, run_with_lock_retries

__all__ = [
    "reserve_seats",
    "release_seats",
    "run_with_lock_retries",
]
