"""Booking updates WebSocket consumer for riders and drivers."""

import logging
from typing import Any, Dict

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


class BookingConsumer(AsyncJsonWebsocketConsumer):
    """
    Relays booking notifications pushed to the user's personal group.

    Client messages:
        {"type": "ping"}
        {"type": "active_bookings"}
    """

    async def connect(self):
        self.user = self.scope["user"]

        if self.user.is_anonymous:
            await self.close()
            return

        self.user_id = self.user.id
        self.role = getattr(self.user, "role", None)

        # NotificationDispatcher targets user_<id>
        self.user_group = f"user_{self.user_id}"
        await self.channel_layer.group_add(self.user_group, self.channel_name)

        await self.accept()
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "active_bookings": await self._active_booking_ids(),
        })

    async def disconnect(self, close_code):
        group = getattr(self, "user_group", None)
        if group is None:
            return
        try:
            await self.channel_layer.group_discard(group, self.channel_name)
        except Exception:
            logger.exception("Error leaving %s", group)

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type")

        if msg_type == "ping":
            await self.send_json({"type": "pong"})
        elif msg_type == "active_bookings":
            await self.send_json({
                "type": "active_bookings",
                "bookings": await self._active_booking_ids(),
            })
        elif not msg_type:
            await self.send_error("Message type is required")
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def send_error(self, message: str):
        await self.send_json({"type": "error", "message": message})

    @database_sync_to_async
    def _active_booking_ids(self):
        from bookings.models import ACTIVE_STATUSES, Booking
        from django.db.models import Q

        return list(
            Booking.objects.filter(
                Q(rider_id=self.user_id) | Q(driver_profile__user_id=self.user_id),
                status__in=ACTIVE_STATUSES,
            ).values_list("id", flat=True)
        )

    # ---------------------- Server Events ----------------------

    async def booking_notification(self, event):
        """Sent by NotificationDispatcher for every booking transition."""
        await self.send_json({
            "type": "booking_notification",
            "title": event.get("title"),
            "body": event.get("body"),
            "data": event.get("data", {}),
        })
