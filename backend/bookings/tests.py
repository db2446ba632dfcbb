from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.cache import cache
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from chat.models import Conversation
from configuration.models import CronRun
from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from services.booking_lifecycle import (
	BookingPermissionError,
	BookingValidationError,
	CancellationNotAllowed,
	CapacityExceeded,
	ExpirySweepPartialFailure,
	InvalidTransition,
	SettlementFailure,
	accept_booking,
	allowed_events,
	cancel_booking,
	complete_booking,
	confirm_booking,
	create_booking,
	handle_payment_callback,
	handle_refund_callback,
	refund_booking,
	reject_booking,
)
from services.booking_lifecycle.booking_lifecycle import _check_active_limit
from services.collaborators import PaymentVerdict, default_collaborators
from services.expiry import SweepResult, run_expiry_sweep
from services.settlement import settle_unsettled_bookings
from wallets.models import WalletTransaction

from .models import Booking, BookingEvent, Payment
from .tasks import expire_booking_holds
from .views import booking_detail, complete_driver_booking, create_booking as create_booking_view, payment_webhook


class RecordingNotifier:
	def __init__(self):
		self.sent = []

	def notify(self, user_id, title, body, data=None):
		self.sent.append((user_id, (data or {}).get('type')))
		return True


class BrokenNotifier:
	def notify(self, user_id, title, body, data=None):
		raise ConnectionError("channel layer down")


class StubVerifier:
	def __init__(self, verdict=PaymentVerdict.PAID, refund_verdict=PaymentVerdict.REFUNDED):
		self.verdict = verdict
		self.refund_verdict = refund_verdict
		self.calls = []
		self.refund_calls = []

	def verify_payment(self, booking_id, provider_ref):
		self.calls.append((booking_id, provider_ref))
		return self.verdict

	def verify_refund(self, booking_id, provider_ref):
		self.refund_calls.append((booking_id, provider_ref))
		return self.refund_verdict


class ApprovingVerifier:
	def verify_payment(self, booking_id, provider_ref):
		return PaymentVerdict.PAID

	def verify_refund(self, booking_id, provider_ref):
		return PaymentVerdict.REFUNDED


class BookingTestCase(TestCase):
	def setUp(self):
		cache.clear()
		self.factory = APIRequestFactory()
		self.rider = User.objects.create_user(
			username='rider',
			password='pass1234',
			role='rider',
			phone_number='9000000000'
		)
		self.driver = User.objects.create_user(
			username='driver',
			password='driver1234',
			role='driver',
			phone_number='9000000001'
		)
		self.profile = DriverProfile.objects.create(
			user=self.driver,
			vehicle_number='WB-1001',
			status='approved'
		)
		self.ride = self.make_ride()
		self.notifier = RecordingNotifier()
		self.verifier = StubVerifier()
		self.collaborators = default_collaborators(notifier=self.notifier, payments=self.verifier)
		self.settings = self.collaborators.settings

	def make_ride(self, seats=4, **extra):
		return Ride.objects.create(
			driver_profile=self.profile,
			status=extra.pop('status', RideStatus.PUBLISHED),
			origin_name='Connaught Place',
			destination_name='India Gate',
			departure_at=extra.pop('departure_at', timezone.now() + timedelta(days=1)),
			price_per_seat=Decimal('100.00'),
			seats_total=seats,
			seats_available=seats,
			**extra
		)

	def book(self, seats=2, method='cash', ride=None):
		ride = ride or self.ride
		return create_booking(self.rider, ride.id, seats, method, collaborators=self.collaborators)

	def confirmed_booking(self, seats=2):
		booking = self.book(seats)
		return accept_booking(self.driver, booking.id, collaborators=self.collaborators)

	def paid_booking(self):
		booking = self.book(method='razorpay')
		accept_booking(self.driver, booking.id, collaborators=self.collaborators)
		return handle_payment_callback(booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

	def seats_left(self):
		self.ride.refresh_from_db()
		return self.ride.seats_available


class CreateBookingTests(BookingTestCase):
	def test_cash_booking_is_requested_and_holds_seats(self):
		booking = self.book(2)

		self.assertEqual(booking.status, 'requested')
		self.assertEqual(booking.payment_status, 'unpaid')
		self.assertEqual(booking.subtotal, Decimal('200.00'))
		self.assertEqual(booking.total_amount, booking.subtotal)
		self.assertIsNotNone(booking.hold_expires_at)
		self.assertEqual(self.seats_left(), 2)
		self.assertEqual(list(booking.events.values_list('event', flat=True)), ['requested'])
		self.assertIn((self.driver.id, 'booking_requested'), self.notifier.sent)

	def test_commission_snapshot_is_taken_at_creation(self):
		self.settings.set('business.commission_type', 'percent')
		self.settings.set('business.commission_value', '15', type='decimal')

		booking = self.book(2)

		self.assertEqual(booking.commission_type, 'percent')
		self.assertEqual(booking.commission_amount, Decimal('30.00'))
		self.assertEqual(booking.subtotal, Decimal('200.00'))
		self.assertEqual(booking.total_amount, Decimal('200.00'))

		self.settings.set('business.commission_value', '50', type='decimal')
		booking.refresh_from_db()
		self.assertEqual(booking.commission_amount, Decimal('30.00'))

	def test_requesting_more_seats_than_available_fails_cleanly(self):
		with self.assertRaises(CapacityExceeded):
			self.book(5)

		self.assertEqual(self.seats_left(), 4)
		self.assertFalse(Booking.objects.exists())

	def test_lock_contention_surfaces_as_capacity_error(self):
		with patch(
			'services.booking_lifecycle.booking_lifecycle._reserve_and_create',
			side_effect=OperationalError('could not obtain lock'),
		):
			with self.assertRaises(CapacityExceeded):
				self.book(1)

		self.assertEqual(self.seats_left(), 4)

	def test_driver_cannot_book_own_ride(self):
		with self.assertRaises(BookingValidationError):
			create_booking(self.driver, self.ride.id, 1, 'cash', collaborators=self.collaborators)

	def test_draft_ride_cannot_be_booked(self):
		draft = self.make_ride(status=RideStatus.DRAFT)

		with self.assertRaises(BookingValidationError):
			self.book(1, ride=draft)

	def test_active_request_limit(self):
		self.settings.set('bookings.max_active_requests_per_user', 1, type='integer')
		self.book(1)

		with self.assertRaises(BookingValidationError):
			self.book(1)
		self.assertEqual(self.seats_left(), 3)

	def test_active_request_limit_is_rechecked_under_lock(self):
		self.settings.set('bookings.max_active_requests_per_user', 1, type='integer')
		first = self.book(1)
		Booking.objects.filter(pk=first.pk).update(status='cancelled')

		def limit_with_late_booking(rider, policy, lock=False):
			# Another request by the same rider lands between the two checks
			if lock:
				Booking.objects.filter(pk=first.pk).update(status='requested')
			return _check_active_limit(rider, policy, lock=lock)

		with patch('services.booking_lifecycle.booking_lifecycle._check_active_limit', side_effect=limit_with_late_booking):
			with self.assertRaises(BookingValidationError):
				self.book(1)

		self.assertEqual(Booking.objects.count(), 1)
		self.assertEqual(self.seats_left(), 3)

	def test_invalid_commission_settings_reject_the_booking(self):
		self.settings.set('business.commission_type', 'percent')
		self.settings.set('business.commission_value', '150', type='decimal')

		with self.assertRaisesMessage(BookingValidationError, 'commission settings are invalid'):
			self.book(1)

		self.assertFalse(Booking.objects.exists())
		self.assertEqual(self.seats_left(), 4)

	def test_cash_can_be_disabled(self):
		self.settings.set('payments.method_cash_enabled', False, type='boolean')

		with self.assertRaises(BookingValidationError):
			self.book(1)

	def test_instant_cash_booking_is_confirmed_immediately(self):
		self.settings.set('bookings.require_driver_acceptance_default', False, type='boolean')
		instant = self.make_ride(allow_instant_booking=True)

		booking = self.book(1, ride=instant)

		self.assertEqual(booking.status, 'confirmed')
		events = list(booking.events.values_list('event', 'performed_by'))
		self.assertEqual(events, [('requested', self.rider.id), ('accepted', None), ('confirmed', None)])


class DriverActionTests(BookingTestCase):
	def test_accepting_cash_booking_confirms_it(self):
		booking = self.book(2)

		booking = accept_booking(self.driver, booking.id, collaborators=self.collaborators)

		self.assertEqual(booking.status, 'confirmed')
		self.assertIsNotNone(booking.accepted_at)
		self.assertIsNotNone(booking.confirmed_at)
		self.assertEqual(self.seats_left(), 2)
		self.assertEqual(
			list(booking.events.values_list('event', flat=True)),
			['requested', 'accepted', 'confirmed'],
		)
		conversation = Conversation.objects.get(booking=booking)
		self.assertEqual(conversation.messages.filter(message_type='system').count(), 2)
		self.assertIn((self.rider.id, 'booking_confirmed'), self.notifier.sent)

	def test_accepting_gateway_booking_waits_for_payment(self):
		booking = self.book(1, method='razorpay')

		booking = accept_booking(self.driver, booking.id, collaborators=self.collaborators)

		self.assertEqual(booking.status, 'payment_pending')
		self.assertGreater(booking.hold_expires_at, timezone.now())

	def test_only_the_rides_driver_can_accept(self):
		other = User.objects.create_user(username='other', password='x', role='driver')
		DriverProfile.objects.create(user=other, vehicle_number='WB-2002', status='approved')
		booking = self.book(1)

		with self.assertRaises(BookingPermissionError):
			accept_booking(other, booking.id, collaborators=self.collaborators)

	def test_reject_returns_seats_once(self):
		booking = self.book(2)

		booking = reject_booking(self.driver, booking.id, 'Full car', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'rejected')
		self.assertEqual(self.seats_left(), 4)
		with self.assertRaises(InvalidTransition):
			reject_booking(self.driver, booking.id, collaborators=self.collaborators)
		self.assertEqual(self.seats_left(), 4)

	def test_illegal_transition_leaves_booking_untouched(self):
		booking = self.book(1)

		with self.assertRaises(InvalidTransition):
			complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		booking.refresh_from_db()
		self.assertEqual(booking.status, 'requested')
		self.assertEqual(booking.events.count(), 1)

	def test_allowed_events_follow_transition_table(self):
		self.assertEqual(allowed_events('confirmed'), ['cancelled', 'completed', 'refunded'])
		self.assertEqual(allowed_events('completed'), [])

	def test_best_effort_failures_do_not_block_transition(self):
		collaborators = default_collaborators(notifier=BrokenNotifier(), payments=self.verifier)
		booking = create_booking(self.rider, self.ride.id, 1, 'cash', collaborators=collaborators)

		booking = accept_booking(self.driver, booking.id, collaborators=collaborators)

		self.assertEqual(booking.status, 'confirmed')


class CompletionTests(BookingTestCase):
	def setUp(self):
		super().setUp()
		self.settings.set('business.commission_value', '15', type='decimal')

	def test_completion_credits_driver_exactly_once(self):
		booking = self.confirmed_booking(2)

		complete_booking(self.driver, booking.id, collaborators=self.collaborators)
		with self.assertRaises(InvalidTransition):
			complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		earnings = WalletTransaction.objects.filter(booking=booking, type='earning')
		self.assertEqual(earnings.count(), 1)
		self.assertEqual(earnings.get().amount, Decimal('170.00'))
		wallet = self.profile.wallet
		wallet.refresh_from_db()
		self.assertEqual(wallet.balance, Decimal('170.00'))
		self.assertEqual(wallet.lifetime_earned, Decimal('170.00'))

		self.rider.refresh_from_db()
		self.driver.refresh_from_db()
		self.assertEqual(self.rider.completed_rides, 1)
		self.assertEqual(self.driver.completed_rides, 1)

	def test_completion_does_not_return_seats(self):
		booking = self.confirmed_booking(2)

		complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		self.assertEqual(self.seats_left(), 2)

	def test_settlement_failure_keeps_booking_completed(self):
		booking = self.confirmed_booking(2)

		with patch('services.settlement.settle_booking', side_effect=SettlementFailure(booking.id, 'db down')):
			with self.assertRaises(SettlementFailure):
				complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		booking.refresh_from_db()
		self.assertEqual(booking.status, 'completed')
		self.assertIn((self.rider.id, 'booking_completed'), self.notifier.sent)
		self.assertFalse(WalletTransaction.objects.filter(booking=booking).exists())

		result = settle_unsettled_bookings()

		self.assertEqual(result.settled, [booking.id])
		self.assertEqual(WalletTransaction.objects.get(booking=booking).amount, Decimal('170.00'))

	def test_completion_closes_chat(self):
		booking = self.confirmed_booking(1)

		complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		self.assertEqual(Conversation.objects.get(booking=booking).status, 'closed')


class CancellationTests(BookingTestCase):
	def test_rider_cancels_and_seats_return(self):
		booking = self.confirmed_booking(2)

		booking = cancel_booking(self.rider, booking.id, 'Plans changed', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'cancelled')
		self.assertEqual(booking.cancel_reason, 'Plans changed')
		self.assertEqual(self.seats_left(), 4)
		event = booking.events.get(event='cancelled')
		self.assertEqual(event.meta['cancelled_by'], 'rider')
		self.assertEqual(event.meta['from'], 'confirmed')
		self.assertIn((self.driver.id, 'booking_cancelled'), self.notifier.sent)
		self.assertNotIn((self.rider.id, 'booking_cancelled'), self.notifier.sent)

	def test_cancellation_deadline(self):
		soon = self.make_ride(departure_at=timezone.now() + timedelta(hours=1))
		booking = self.book(1, ride=soon)

		with self.assertRaises(CancellationNotAllowed):
			cancel_booking(self.rider, booking.id, collaborators=self.collaborators)

		booking.refresh_from_db()
		self.assertEqual(booking.status, 'requested')

	def test_cancellation_can_be_switched_off(self):
		self.settings.set('bookings.allow_cancellation', False, type='boolean')
		booking = self.book(1)

		with self.assertRaises(CancellationNotAllowed):
			cancel_booking(self.rider, booking.id, collaborators=self.collaborators)

	def test_strangers_cannot_cancel(self):
		stranger = User.objects.create_user(username='stranger', password='x', role='rider')
		booking = self.book(1)

		with self.assertRaises(BookingPermissionError):
			cancel_booking(stranger, booking.id, collaborators=self.collaborators)

	def test_completed_booking_cannot_be_cancelled(self):
		booking = self.confirmed_booking(1)
		complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		with self.assertRaises(CancellationNotAllowed):
			cancel_booking(self.rider, booking.id, collaborators=self.collaborators)

	def test_paid_cancellation_waits_for_refund_callback(self):
		self.settings.set('bookings.refund_policy', 'full')
		booking = self.paid_booking()

		booking = cancel_booking(self.rider, booking.id, collaborators=self.collaborators)
		self.assertEqual(booking.payment_status, 'refund_pending')

		booking = handle_refund_callback(booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)
		self.assertEqual(booking.status, 'cancelled')
		self.assertEqual(booking.payment_status, 'refunded')
		self.assertEqual(Payment.objects.get(provider_ref='pay_001').status, 'refunded')

		handle_refund_callback(booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)
		self.assertEqual(booking.events.filter(event='refund_recorded').count(), 1)

	def test_paid_cancellation_without_refund_policy_stays_paid(self):
		booking = self.paid_booking()

		booking = cancel_booking(self.rider, booking.id, collaborators=self.collaborators)

		self.assertEqual(booking.payment_status, 'paid')


class PaymentCallbackTests(BookingTestCase):
	def setUp(self):
		super().setUp()
		booking = self.book(2, method='razorpay')
		self.booking = accept_booking(self.driver, booking.id, collaborators=self.collaborators)

	def test_successful_payment_confirms_booking(self):
		booking = handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'confirmed')
		self.assertEqual(booking.payment_status, 'paid')
		payment = Payment.objects.get(provider='razorpay', provider_ref='pay_001')
		self.assertEqual(payment.status, 'paid')
		self.assertEqual(payment.amount, Decimal('200.00'))

	def test_duplicate_callback_is_a_no_op(self):
		handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)
		booking = handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'confirmed')
		self.assertEqual(len(self.verifier.calls), 1)
		self.assertEqual(booking.events.filter(event='confirmed').count(), 1)
		self.assertEqual(Payment.objects.count(), 1)

	def test_failed_payment_keeps_hold(self):
		self.verifier.verdict = PaymentVerdict.FAILED

		booking = handle_payment_callback(self.booking.id, 'razorpay', 'pay_002', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'payment_pending')
		self.assertEqual(booking.payment_status, 'failed')
		self.assertEqual(Payment.objects.get(provider_ref='pay_002').status, 'failed')

	def test_manual_confirmation_by_staff(self):
		staff = User.objects.create_user(username='ops', password='ops12345', is_staff=True)

		booking = confirm_booking(
			self.booking.id, performer=staff, meta={'note': 'paid at counter'}, collaborators=self.collaborators
		)

		self.assertEqual(booking.status, 'confirmed')
		event = booking.events.get(event='confirmed')
		self.assertEqual(event.performed_by, staff)
		self.assertEqual(event.meta['from'], 'payment_pending')

	def test_unknown_provider_is_rejected(self):
		with self.assertRaises(BookingValidationError):
			handle_payment_callback(self.booking.id, 'cash', 'pay_003', collaborators=self.collaborators)

	def test_refund_callback_on_confirmed_booking(self):
		handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		booking = handle_refund_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		self.assertEqual(booking.status, 'refunded')
		self.assertEqual(booking.payment_status, 'refunded')
		self.assertIsNotNone(booking.refunded_at)
		self.assertEqual(self.verifier.refund_calls, [(self.booking.id, 'pay_001')])
		# A confirmed seat stays sold
		self.assertEqual(self.seats_left(), 2)

	def test_refund_callback_needs_a_paid_payment(self):
		with self.assertRaises(BookingValidationError):
			handle_refund_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'payment_pending')
		self.assertEqual(self.verifier.refund_calls, [])
		self.assertEqual(self.seats_left(), 2)

	def test_refund_callback_with_another_bookings_reference(self):
		handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)
		other = self.book(1, method='razorpay')
		accept_booking(self.driver, other.id, collaborators=self.collaborators)
		handle_payment_callback(other.id, 'razorpay', 'pay_002', collaborators=self.collaborators)

		with self.assertRaises(BookingValidationError):
			handle_refund_callback(other.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		other.refresh_from_db()
		self.assertEqual(other.status, 'confirmed')
		self.assertEqual(Payment.objects.get(provider_ref='pay_001').status, 'paid')

	def test_refund_not_confirmed_by_gateway_changes_nothing(self):
		handle_payment_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)
		self.verifier.refund_verdict = PaymentVerdict.FAILED

		with self.assertRaises(BookingValidationError):
			handle_refund_callback(self.booking.id, 'razorpay', 'pay_001', collaborators=self.collaborators)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'confirmed')
		self.assertEqual(self.booking.payment_status, 'paid')
		self.assertEqual(Payment.objects.get(provider_ref='pay_001').status, 'paid')
		self.assertFalse(self.booking.events.filter(event='refunded').exists())

	def test_refunding_unpaid_hold_returns_seats(self):
		booking = refund_booking(self.booking.id, collaborators=self.collaborators)

		self.assertEqual(booking.status, 'refunded')
		self.assertEqual(self.seats_left(), 4)

	def test_refunding_requested_booking_returns_seats_once(self):
		booking = self.book(1)
		self.assertEqual(self.seats_left(), 1)

		refund_booking(booking.id, collaborators=self.collaborators)
		self.assertEqual(self.seats_left(), 2)

		with self.assertRaises(InvalidTransition):
			refund_booking(booking.id, collaborators=self.collaborators)
		self.assertEqual(self.seats_left(), 2)

	def test_refund_of_completed_booking_is_rejected(self):
		booking = self.confirmed_booking(1)
		complete_booking(self.driver, booking.id, collaborators=self.collaborators)

		with self.assertRaises(InvalidTransition):
			refund_booking(booking.id, collaborators=self.collaborators)


class HoldExpiryTests(BookingTestCase):
	def lapse(self, booking, minutes=5):
		Booking.objects.filter(pk=booking.id).update(
			hold_expires_at=timezone.now() - timedelta(minutes=minutes)
		)

	def test_sweep_expires_lapsed_holds_and_returns_seats(self):
		booking = self.book(2)
		self.lapse(booking)

		result = run_expiry_sweep(collaborators=self.collaborators)

		booking.refresh_from_db()
		self.assertEqual(result.expired, [booking.id])
		self.assertEqual(booking.status, 'expired')
		self.assertEqual(self.seats_left(), 4)
		event = booking.events.get(event='expired')
		self.assertIsNone(event.performed_by)
		self.assertEqual(event.meta['reason'], 'hold_expired')
		self.assertEqual(CronRun.objects.get(command='bookings:expire-holds').status, 'success')

	def test_second_sweep_changes_nothing(self):
		booking = self.book(2)
		self.lapse(booking)
		run_expiry_sweep(collaborators=self.collaborators)
		events = BookingEvent.objects.count()

		result = run_expiry_sweep(collaborators=self.collaborators)

		self.assertEqual(result.expired, [])
		self.assertEqual(result.failed, [])
		self.assertEqual(BookingEvent.objects.count(), events)
		self.assertEqual(self.seats_left(), 4)

	def test_live_holds_and_confirmed_bookings_are_left_alone(self):
		pending = self.book(1)
		confirmed = self.confirmed_booking(1)
		self.lapse(confirmed)

		result = run_expiry_sweep(collaborators=self.collaborators)

		self.assertEqual(result.expired, [])
		pending.refresh_from_db()
		confirmed.refresh_from_db()
		self.assertEqual(pending.status, 'requested')
		self.assertEqual(confirmed.status, 'confirmed')

	def test_booking_that_moved_on_is_skipped(self):
		booking = self.book(1)
		self.lapse(booking)

		with patch(
			'services.expiry.hold_expiry.expire_booking',
			side_effect=InvalidTransition(booking.id, 'expired', 'confirmed'),
		):
			result = run_expiry_sweep(collaborators=self.collaborators)

		self.assertEqual(result.skipped, [booking.id])
		self.assertEqual(result.status, 'success')

	def test_failures_are_isolated_and_reported(self):
		first = self.book(1)
		second = self.book(1)
		self.lapse(first, minutes=10)
		self.lapse(second)

		with patch('services.expiry.hold_expiry.expire_booking', side_effect=RuntimeError('lock timeout')):
			result = run_expiry_sweep(collaborators=self.collaborators)

		self.assertEqual([booking_id for booking_id, _ in result.failed], [first.id, second.id])
		self.assertEqual(result.status, 'failure')
		run = CronRun.objects.get(command='bookings:expire-holds')
		self.assertEqual(run.status, 'failure')

	def test_management_command_runs_sweep(self):
		booking = self.book(1)
		self.lapse(booking)
		out = StringIO()

		call_command('expire_booking_holds', stdout=out)

		booking.refresh_from_db()
		self.assertEqual(booking.status, 'expired')
		self.assertIn('Expired 1 booking(s)', out.getvalue())

	def test_task_raises_when_sweep_mostly_failed(self):
		failed = SweepResult(failed=[(1, 'boom')])

		with patch('services.expiry.run_expiry_sweep', return_value=failed):
			with self.assertRaises(ExpirySweepPartialFailure):
				expire_booking_holds()


class SettlementCommandTests(BookingTestCase):
	def test_dry_run_lists_without_crediting(self):
		self.settings.set('business.commission_value', '10', type='decimal')
		booking = self.confirmed_booking(1)
		with patch('services.settlement.settle_booking', side_effect=SettlementFailure(booking.id, 'down')):
			with self.assertRaises(SettlementFailure):
				complete_booking(self.driver, booking.id, collaborators=self.collaborators)
		out = StringIO()

		call_command('settle_completed_bookings', '--dry-run', stdout=out)

		self.assertIn(str(booking.id), out.getvalue())
		self.assertFalse(WalletTransaction.objects.exists())

		call_command('settle_completed_bookings', stdout=StringIO())
		self.assertEqual(WalletTransaction.objects.get(booking=booking).amount, Decimal('90.00'))


class EventLogTests(BookingTestCase):
	def test_events_are_write_once(self):
		booking = self.book(1)
		event = booking.events.get()

		event.meta = {'tampered': True}
		with self.assertRaises(ValueError):
			event.save()
		with self.assertRaises(ValueError):
			event.delete()
		self.assertEqual(BookingEvent.objects.count(), 1)


class BookingViewTests(BookingTestCase):
	def test_create_booking_view(self):
		request = self.factory.post(
			'/api/bookings/',
			{'ride_id': self.ride.id, 'seats_requested': 2, 'payment_method': 'cash'},
			format='json'
		)
		force_authenticate(request, user=self.rider)
		response = create_booking_view(request)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'requested')
		self.assertEqual(self.seats_left(), 2)

	def test_capacity_error_is_bad_request(self):
		request = self.factory.post(
			'/api/bookings/', {'ride_id': self.ride.id, 'seats_requested': 9}, format='json'
		)
		force_authenticate(request, user=self.rider)
		response = create_booking_view(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'Not enough seats available.')

	def test_missing_ride_is_not_found(self):
		request = self.factory.post('/api/bookings/', {'ride_id': 9999}, format='json')
		force_authenticate(request, user=self.rider)
		response = create_booking_view(request)

		self.assertEqual(response.status_code, 404)

	def test_illegal_transition_is_conflict(self):
		booking = self.book(1)

		request = self.factory.post('/api/bookings/driver/%d/complete/' % booking.id)
		force_authenticate(request, user=self.driver)
		response = complete_driver_booking(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['status'], 'requested')

	def test_detail_hidden_from_strangers(self):
		stranger = User.objects.create_user(username='stranger', password='x', role='rider')
		booking = self.book(1)

		request = self.factory.get('/api/bookings/%d/' % booking.id)
		force_authenticate(request, user=stranger)
		response = booking_detail(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 403)

	def test_detail_includes_event_history(self):
		booking = self.confirmed_booking(1)

		request = self.factory.get('/api/bookings/%d/' % booking.id)
		force_authenticate(request, user=self.rider)
		response = booking_detail(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([e['event'] for e in response.data['events']], ['requested', 'accepted', 'confirmed'])

	@override_settings(PAYMENT_GATEWAY_VERIFIER='bookings.tests.ApprovingVerifier')
	def test_payment_webhook_confirms_booking(self):
		booking = self.book(1, method='stripe')
		accept_booking(self.driver, booking.id, collaborators=self.collaborators)

		request = self.factory.post(
			'/api/bookings/payments/webhook/',
			{'booking_id': booking.id, 'provider': 'stripe', 'provider_ref': 'pi_123'},
			format='json'
		)
		response = payment_webhook(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'confirmed')
		self.assertEqual(response.data['payment_status'], 'paid')

	@override_settings(PAYMENT_GATEWAY_VERIFIER='bookings.tests.ApprovingVerifier')
	def test_forged_refund_webhook_for_cash_booking_is_rejected(self):
		booking = self.confirmed_booking(2)

		request = self.factory.post(
			'/api/bookings/payments/webhook/',
			{'event': 'refund', 'booking_id': booking.id, 'provider': 'razorpay', 'provider_ref': 'pay_forged'},
			format='json'
		)
		response = payment_webhook(request)

		self.assertEqual(response.status_code, 400)
		booking.refresh_from_db()
		self.assertEqual(booking.status, 'confirmed')
		self.assertEqual(booking.payment_status, 'unpaid')
		self.assertFalse(booking.events.filter(event='refunded').exists())

	def test_invalid_commission_settings_are_bad_request(self):
		self.settings.set('business.commission_value', '150', type='decimal')

		request = self.factory.post(
			'/api/bookings/',
			{'ride_id': self.ride.id, 'seats_requested': 1, 'payment_method': 'cash'},
			format='json'
		)
		force_authenticate(request, user=self.rider)
		response = create_booking_view(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(self.seats_left(), 4)
