"""Realtime consumers for WebSocket communication."""

from .booking_consumer import BookingConsumer

__all__ = [
    "BookingConsumer",
]
