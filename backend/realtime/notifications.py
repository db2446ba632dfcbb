"""
Notification helpers for sending WebSocket messages to connected clients.

Every user joins their personal group ``user_<id>`` on connect; booking
notifications are pushed there and relayed by the booking consumer.
Delivery is fire-and-forget: failures are logged and reported as False,
never raised into the booking flow.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Push notifications over the channel layer."""

    event_type = "booking_notification"

    def notify(
        self,
        user_id: Optional[int],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if not user_id:
            return False

        try:
            channel_layer = get_channel_layer()
            if channel_layer is None:
                return False

            payload = {
                "type": self.event_type,
                "title": title,
                "body": body,
                "data": data or {},
            }
            logger.debug("WS -> user_%s: %s", user_id, payload)
            async_to_sync(channel_layer.group_send)(f"user_{user_id}", payload)
            return True
        except Exception:
            logger.exception("Failed to notify user %s", user_id)
            return False


BOOKING_MESSAGES = {
    'requested': ("New booking request", "A rider requested {seats} seat(s) on your ride."),
    'accepted': ("Booking accepted", "Your booking was accepted by the driver."),
    'confirmed': ("Booking confirmed", "Your booking is confirmed."),
    'rejected': ("Booking rejected", "Your booking was declined by the driver."),
    'cancelled': ("Booking cancelled", "A booking was cancelled."),
    'expired': ("Booking expired", "Your seat hold expired before the booking was confirmed."),
    'completed': ("Trip completed", "Your trip is complete. Thanks for riding!"),
    'refunded': ("Booking refunded", "Your payment for this booking was refunded."),
}


def notify_booking_event(dispatcher, event: str, booking, user_id: int, message: str = "") -> bool:
    """Send one of the standard booking notifications to a single user."""
    title, body = BOOKING_MESSAGES.get(event, ("Booking update", "Your booking was updated."))
    body = message or body.format(seats=booking.seats_requested)
    return dispatcher.notify(
        user_id,
        title,
        body,
        {
            "type": f"booking_{event}",
            "booking_id": booking.id,
            "ride_id": booking.ride_id,
            "status": booking.status,
        },
    )
