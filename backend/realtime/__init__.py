"""
Realtime app for WebSocket booking notifications.

This app provides:
- A WebSocket consumer relaying booking updates to riders and drivers
- Notification helpers for pushing booking events over the channel layer
- JWT authentication middleware for WebSocket connections

Key Components:
    - consumers/: the booking WebSocket consumer
    - notifications.py: NotificationDispatcher and booking event messages
    - middleware.py: JWT auth for the websocket scope

Usage:
    from realtime.consumers import BookingConsumer
    from realtime.notifications import NotificationDispatcher, notify_booking_event
"""
