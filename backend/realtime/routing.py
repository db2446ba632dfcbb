"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.booking_consumer import BookingConsumer

websocket_urlpatterns = [
    # Booking updates for riders and drivers
    # URL: ws://localhost:8000/ws/bookings/?token=<access>
    re_path(
        r"ws/bookings/$",
        BookingConsumer.as_asgi(),
        name="bookings-ws"
    ),
]
