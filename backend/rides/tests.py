import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from bookings.models import Booking
from drivers.models import DriverProfile
from services.booking_lifecycle import (
	InvalidTransition,
	accept_booking,
	cancel_without_guard,
	complete_booking,
	create_booking,
)
from services.collaborators import default_collaborators
from services.inventory import release_seats, reserve_seats
from services.ride_management import (
	RideNotAvailableError,
	cancel_ride,
	complete_ride,
	create_ride,
	publish_ride,
)

from .models import Ride, RideStatus
from .views import cancel_driver_ride, driver_rides, ride_detail


class RecordingNotifier:
	def __init__(self):
		self.sent = []

	def notify(self, user_id, title, body, data=None):
		self.sent.append((user_id, (data or {}).get('type')))
		return True


def make_driver(username='driver', status='approved'):
	user = User.objects.create_user(
		username=username,
		password='driver1234',
		role='driver',
		phone_number='9000000001'
	)
	profile = DriverProfile.objects.create(
		user=user,
		vehicle_number=f'WB-{username.upper()}',
		status=status
	)
	return user, profile


def make_ride(profile, seats=4, status=RideStatus.PUBLISHED, **extra):
	return Ride.objects.create(
		driver_profile=profile,
		status=status,
		origin_name='Connaught Place',
		destination_name='India Gate',
		departure_at=extra.pop('departure_at', timezone.now() + timedelta(days=1)),
		price_per_seat=extra.pop('price_per_seat', Decimal('100.00')),
		seats_total=seats,
		seats_available=extra.pop('seats_available', seats),
		**extra
	)


class SeatGuardTests(TestCase):
	def setUp(self):
		self.driver, self.profile = make_driver()
		self.ride = make_ride(self.profile, seats=4)

	def test_reserve_takes_seats(self):
		self.assertTrue(reserve_seats(self.ride.id, 3))

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 1)

	def test_reserve_more_than_available_changes_nothing(self):
		self.assertTrue(reserve_seats(self.ride.id, 3))
		self.assertFalse(reserve_seats(self.ride.id, 2))

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 1)

	def test_reserve_on_missing_ride_returns_false(self):
		self.assertFalse(reserve_seats(self.ride.id + 100, 1))

	def test_release_is_clamped_to_total(self):
		reserve_seats(self.ride.id, 1)

		self.assertTrue(release_seats(self.ride.id, 3))

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 4)

	def test_sequential_reservations_stop_at_capacity(self):
		ride = make_ride(self.profile, seats=2)

		results = [reserve_seats(ride.id, 1) for _ in range(3)]

		ride.refresh_from_db()
		self.assertEqual(results, [True, True, False])
		self.assertEqual(ride.seats_available, 0)

	def test_release_after_reserve_restores_seats(self):
		self.assertTrue(reserve_seats(self.ride.id, 3))
		self.assertTrue(release_seats(self.ride.id, 3))

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 4)
		self.assertTrue(reserve_seats(self.ride.id, 4))
		self.assertFalse(reserve_seats(self.ride.id, 1))

	def test_non_positive_counts_are_rejected(self):
		for count in (0, -1, True):
			with self.assertRaises(ValueError):
				reserve_seats(self.ride.id, count)
			with self.assertRaises(ValueError):
				release_seats(self.ride.id, count)

	def test_seats_total_is_frozen_after_publish(self):
		self.ride.seats_total = 6
		with self.assertRaises(ValueError):
			self.ride.save()

	def test_seats_total_can_change_on_draft(self):
		draft = make_ride(self.profile, seats=2, status=RideStatus.DRAFT)
		draft.seats_total = 3
		draft.seats_available = 3
		draft.save()

		draft.refresh_from_db()
		self.assertEqual(draft.seats_total, 3)


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentReservationTests(TransactionTestCase):
	def test_only_available_seats_are_sold(self):
		_, profile = make_driver()
		ride = make_ride(profile, seats=2)

		barrier = threading.Barrier(3)
		results = []
		lock = threading.Lock()

		def attempt():
			try:
				barrier.wait()
				ok = reserve_seats(ride.id, 1)
				with lock:
					results.append(ok)
			finally:
				connection.close()

		threads = [threading.Thread(target=attempt) for _ in range(3)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		ride.refresh_from_db()
		self.assertEqual(sorted(results), [False, True, True])
		self.assertEqual(ride.seats_available, 0)


class RideLifecycleTests(TestCase):
	def setUp(self):
		cache.clear()
		self.driver, self.profile = make_driver()
		self.rider = User.objects.create_user(username='rider', password='pass1234', role='rider')
		self.notifier = RecordingNotifier()
		self.collaborators = default_collaborators(notifier=self.notifier)

	def test_create_ride_starts_as_draft_with_all_seats(self):
		ride = create_ride(
			self.driver,
			origin_name='A',
			destination_name='B',
			departure_at=timezone.now() + timedelta(hours=5),
			price_per_seat=Decimal('50.00'),
			seats_total=3,
		)

		self.assertEqual(ride.status, RideStatus.DRAFT)
		self.assertEqual(ride.seats_available, 3)

	def test_unapproved_driver_cannot_create_ride(self):
		pending_driver, _ = make_driver('pending', status='pending')

		with self.assertRaises(RideNotAvailableError):
			create_ride(
				pending_driver,
				origin_name='A',
				destination_name='B',
				departure_at=timezone.now() + timedelta(hours=5),
				price_per_seat=Decimal('50.00'),
				seats_total=3,
			)

	def test_publish_only_from_draft(self):
		ride = make_ride(self.profile, status=RideStatus.DRAFT)

		publish_ride(self.driver, ride.id)

		ride.refresh_from_db()
		self.assertEqual(ride.status, RideStatus.PUBLISHED)
		self.assertIsNotNone(ride.published_at)
		with self.assertRaises(RideNotAvailableError):
			publish_ride(self.driver, ride.id)

	def test_cancel_ride_cancels_bookings_and_returns_seats(self):
		ride = make_ride(self.profile, seats=4)
		booking = create_booking(self.rider, ride.id, 2, 'cash', collaborators=self.collaborators)

		result = cancel_ride(self.driver, ride.id, 'Car broke down', collaborators=self.collaborators)

		ride.refresh_from_db()
		booking.refresh_from_db()
		self.assertEqual(ride.status, RideStatus.CANCELLED)
		self.assertEqual(ride.seats_available, 4)
		self.assertEqual(booking.status, 'cancelled')
		self.assertEqual(result.extra['cancelled_bookings'], [booking.id])
		event = booking.events.get(event='cancelled')
		self.assertTrue(event.meta['ride_cancelled'])
		self.assertIn((self.rider.id, 'booking_cancelled'), self.notifier.sent)

	def test_complete_ride_completes_confirmed_bookings(self):
		ride = make_ride(self.profile, seats=4)
		confirmed = create_booking(self.rider, ride.id, 1, 'cash', collaborators=self.collaborators)
		accept_booking(self.driver, confirmed.id, collaborators=self.collaborators)
		other_rider = User.objects.create_user(username='rider2', password='pass1234', role='rider')
		pending = create_booking(other_rider, ride.id, 1, 'cash', collaborators=self.collaborators)

		result = complete_ride(self.driver, ride.id, collaborators=self.collaborators)

		confirmed.refresh_from_db()
		pending.refresh_from_db()
		self.assertEqual(result.ride.status, RideStatus.COMPLETED)
		self.assertEqual(result.extra['completed_bookings'], [confirmed.id])
		self.assertEqual(result.extra['settlement_failures'], [])
		self.assertEqual(confirmed.status, 'completed')
		self.assertEqual(pending.status, 'requested')
		self.assertEqual(self.profile.wallet.balance, Decimal('100.00'))

	def test_cancel_ride_skips_booking_that_moved_on(self):
		ride = make_ride(self.profile, seats=4)
		first = create_booking(self.rider, ride.id, 1, 'cash', collaborators=self.collaborators)
		second = create_booking(self.rider, ride.id, 1, 'cash', collaborators=self.collaborators)

		def cancel_unless_first(booking, *args, **kwargs):
			if booking.id == first.id:
				raise InvalidTransition(booking.id, 'cancelled', 'expired')
			return cancel_without_guard(booking, *args, **kwargs)

		with patch('services.booking_lifecycle.cancel_without_guard', side_effect=cancel_unless_first):
			result = cancel_ride(self.driver, ride.id, 'Car broke down', collaborators=self.collaborators)

		second.refresh_from_db()
		self.assertEqual(result.ride.status, RideStatus.CANCELLED)
		self.assertEqual(result.extra['cancelled_bookings'], [second.id])
		self.assertEqual(result.extra['skipped_bookings'], [first.id])
		self.assertEqual(second.status, 'cancelled')

	def test_complete_ride_skips_booking_that_moved_on(self):
		ride = make_ride(self.profile, seats=4)
		first = create_booking(self.rider, ride.id, 1, 'cash', collaborators=self.collaborators)
		second = create_booking(self.rider, ride.id, 1, 'cash', collaborators=self.collaborators)
		for booking in (first, second):
			accept_booking(self.driver, booking.id, collaborators=self.collaborators)

		def complete_unless_first(driver, booking_id, **kwargs):
			if booking_id == first.id:
				raise InvalidTransition(booking_id, 'completed', 'refunded')
			return complete_booking(driver, booking_id, **kwargs)

		with patch('services.booking_lifecycle.complete_booking', side_effect=complete_unless_first):
			result = complete_ride(self.driver, ride.id, collaborators=self.collaborators)

		second.refresh_from_db()
		self.assertEqual(result.ride.status, RideStatus.COMPLETED)
		self.assertEqual(result.extra['completed_bookings'], [second.id])
		self.assertEqual(result.extra['skipped_bookings'], [first.id])
		self.assertEqual(second.status, 'completed')


class RideViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver, self.profile = make_driver()
		self.rider = User.objects.create_user(username='rider', password='pass1234', role='rider')

	def test_rider_cannot_create_rides(self):
		request = self.factory.post('/api/rides/driver/', {}, format='json')
		force_authenticate(request, user=self.rider)
		response = driver_rides(request)

		self.assertEqual(response.status_code, 403)

	def test_driver_creates_draft_ride(self):
		payload = {
			'origin_name': 'Connaught Place',
			'destination_name': 'Airport',
			'departure_at': (timezone.now() + timedelta(days=2)).isoformat(),
			'price_per_seat': '120.00',
			'seats_total': 3,
		}
		request = self.factory.post('/api/rides/driver/', payload, format='json')
		force_authenticate(request, user=self.driver)
		response = driver_rides(request)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'draft')
		self.assertEqual(response.data['seats_available'], 3)

	def test_draft_ride_is_not_visible_to_riders(self):
		ride = make_ride(self.profile, status=RideStatus.DRAFT)

		request = self.factory.get('/api/rides/%d/' % ride.id)
		force_authenticate(request, user=self.rider)
		response = ride_detail(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 404)

	def test_cancelling_completed_ride_is_rejected(self):
		ride = make_ride(self.profile, status=RideStatus.COMPLETED)

		request = self.factory.post('/api/rides/driver/%d/cancel/' % ride.id, {}, format='json')
		force_authenticate(request, user=self.driver)
		response = cancel_driver_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(Booking.objects.count(), 0)
