from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from .consumers import BookingConsumer
from .middleware import JWTAuthMiddleware, token_from_scope
from .notifications import NotificationDispatcher, notify_booking_event


class RecordingDispatcher:
	def __init__(self):
		self.sent = []

	def notify(self, user_id, title, body, data=None):
		self.sent.append((user_id, title, body, data))
		return True


class NotificationTests(SimpleTestCase):
	@patch('realtime.notifications.get_channel_layer')
	def test_notify_sends_to_personal_group(self, mock_layer):
		layer = MagicMock()
		layer.group_send = AsyncMock()
		mock_layer.return_value = layer

		sent = NotificationDispatcher().notify(7, 'Booking confirmed', 'See you soon', {'booking_id': 3})

		self.assertTrue(sent)
		group, payload = layer.group_send.call_args[0]
		self.assertEqual(group, 'user_7')
		self.assertEqual(payload['type'], 'booking_notification')
		self.assertEqual(payload['data'], {'booking_id': 3})

	@patch('realtime.notifications.get_channel_layer')
	def test_channel_errors_are_swallowed(self, mock_layer):
		layer = MagicMock()
		layer.group_send = AsyncMock(side_effect=ConnectionError('redis down'))
		mock_layer.return_value = layer

		self.assertFalse(NotificationDispatcher().notify(7, 'Title', 'Body'))

	def test_missing_user_is_not_notified(self):
		self.assertFalse(NotificationDispatcher().notify(None, 'Title', 'Body'))

	def test_booking_event_payload(self):
		dispatcher = RecordingDispatcher()
		booking = SimpleNamespace(id=11, ride_id=4, status='requested', seats_requested=2)

		notify_booking_event(dispatcher, 'requested', booking, 9)

		user_id, title, body, data = dispatcher.sent[0]
		self.assertEqual(user_id, 9)
		self.assertEqual(title, 'New booking request')
		self.assertIn('2 seat(s)', body)
		self.assertEqual(data, {'type': 'booking_requested', 'booking_id': 11, 'ride_id': 4, 'status': 'requested'})


class JWTMiddlewareTests(SimpleTestCase):
	def test_token_from_querystring_or_header(self):
		self.assertEqual(token_from_scope({'query_string': b'token=abc'}), 'abc')
		self.assertEqual(
			token_from_scope({'query_string': b'', 'headers': [(b'authorization', b'Bearer xyz')]}),
			'xyz',
		)
		self.assertIsNone(token_from_scope({'query_string': b'', 'headers': []}))

	async def test_invalid_token_leaves_user_anonymous(self):
		seen = {}

		async def inner(scope, receive, send):
			seen['user'] = scope['user']

		middleware = JWTAuthMiddleware(inner)
		await middleware({'type': 'websocket', 'query_string': b'token=garbage', 'headers': []}, None, None)

		self.assertTrue(seen['user'].is_anonymous)


class BookingConsumerTests(SimpleTestCase):
	async def test_anonymous_socket_is_refused(self):
		communicator = WebsocketCommunicator(BookingConsumer.as_asgi(), '/ws/bookings/')
		communicator.scope['user'] = AnonymousUser()

		connected, _ = await communicator.connect()

		self.assertFalse(connected)
		await communicator.disconnect()
