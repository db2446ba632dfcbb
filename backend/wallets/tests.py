from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from bookings.models import Booking, BookingStatus
from configuration.provider import SettingsProvider
from drivers.models import DriverProfile
from drivers.views import DriverPayoutView, DriverWalletView
from rides.models import Ride, RideStatus
from services.booking_lifecycle import SettlementFailure
from services.settlement import (
	InsufficientBalanceError,
	InvalidAmountError,
	PayoutError,
	PayoutNotFoundError,
	adjust,
	approve_payout,
	credit,
	debit,
	find_unsettled_bookings,
	get_or_create_wallet,
	mark_payout_paid,
	reject_payout,
	request_payout,
	settle_booking,
	settle_unsettled_bookings,
)
from bookings.views import admin_settle_booking

from .models import PayoutRequest, PayoutStatus, WalletTransaction
from .views import adjust_wallet, approve_payout_view, mark_payout_paid_view, reject_payout_view


class WalletLedgerTests(TestCase):
	def setUp(self):
		self.driver = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.profile = DriverProfile.objects.create(user=self.driver, vehicle_number='WB-1001', status='approved')

	def wallet(self):
		wallet = get_or_create_wallet(self.profile)
		wallet.refresh_from_db()
		return wallet

	def test_credit_and_payout_keep_balance_in_step_with_ledger(self):
		credit(self.profile, '150.00', description='Earning')
		debit(self.profile, '40.00', description='Bank transfer')

		wallet = self.wallet()
		self.assertEqual(wallet.balance, Decimal('110.00'))
		self.assertEqual(wallet.lifetime_earned, Decimal('150.00'))
		self.assertEqual(wallet.lifetime_withdrawn, Decimal('40.00'))
		signed = sum(
			txn.amount if txn.is_credit else -txn.amount
			for txn in wallet.transactions.all()
		)
		self.assertEqual(signed, wallet.balance)

	def test_payout_cannot_overdraw(self):
		credit(self.profile, '10.00')

		with self.assertRaises(InsufficientBalanceError):
			debit(self.profile, '10.01')

		self.assertEqual(self.wallet().balance, Decimal('10.00'))
		self.assertEqual(WalletTransaction.objects.count(), 1)

	def test_admin_adjustment_may_go_negative(self):
		adjust(self.profile, '-25.50', 'Chargeback', performed_by=self.driver)

		wallet = self.wallet()
		self.assertEqual(wallet.balance, Decimal('-25.50'))
		txn = wallet.transactions.get()
		self.assertEqual(txn.type, 'adjustment')
		self.assertEqual(txn.direction, 'debit')
		self.assertEqual(txn.amount, Decimal('25.50'))

	def test_amounts_must_be_positive(self):
		for amount in ('0', '-5', 'abc'):
			with self.assertRaises(InvalidAmountError):
				credit(self.profile, amount)
		with self.assertRaises(InvalidAmountError):
			adjust(self.profile, 'abc', 'typo')

	def test_transactions_are_append_only(self):
		txn = credit(self.profile, '5.00')

		txn.amount = Decimal('500.00')
		with self.assertRaises(ValueError):
			txn.save()
		with self.assertRaises(ValueError):
			txn.delete()


class SettlementTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.rider = User.objects.create_user(username='rider', password='pass1234', role='rider')
		self.driver = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.profile = DriverProfile.objects.create(user=self.driver, vehicle_number='WB-1001', status='approved')
		self.ride = Ride.objects.create(
			driver_profile=self.profile,
			status=RideStatus.COMPLETED,
			origin_name='Connaught Place',
			destination_name='India Gate',
			departure_at=timezone.now() - timedelta(hours=2),
			price_per_seat=Decimal('100.00'),
			seats_total=4,
			seats_available=2,
		)

	def make_booking(self, status=BookingStatus.COMPLETED, commission='30.00'):
		return Booking.objects.create(
			ride=self.ride,
			rider=self.rider,
			driver_profile=self.profile,
			status=status,
			seats_requested=2,
			price_per_seat=Decimal('100.00'),
			subtotal=Decimal('200.00'),
			commission_type='percent',
			commission_value=Decimal('15.00'),
			commission_amount=Decimal(commission),
			total_amount=Decimal('200.00'),
			payment_method='cash',
			payment_status='unpaid',
			completed_at=timezone.now() if status == BookingStatus.COMPLETED else None,
		)

	def test_settlement_is_idempotent(self):
		booking = self.make_booking()

		first = settle_booking(booking.id)
		second = settle_booking(booking.id)

		self.assertEqual(first.pk, second.pk)
		self.assertEqual(first.amount, Decimal('170.00'))
		self.assertEqual(first.meta['commission_amount'], '30.00')
		wallet = get_or_create_wallet(self.profile)
		self.assertEqual(wallet.balance, Decimal('170.00'))
		self.assertEqual(booking.events.filter(event='settled').count(), 1)

	def test_only_completed_bookings_settle(self):
		booking = self.make_booking(status=BookingStatus.CONFIRMED)

		with self.assertRaises(SettlementFailure):
			settle_booking(booking.id)
		with self.assertRaises(SettlementFailure):
			settle_booking(booking.id + 100)

	def test_zero_payout_posts_nothing(self):
		booking = self.make_booking(commission='200.00')

		self.assertIsNone(settle_booking(booking.id))
		self.assertFalse(WalletTransaction.objects.exists())
		self.assertNotIn(booking, find_unsettled_bookings())

	def test_redrive_settles_only_missing_earnings(self):
		settled = self.make_booking()
		settle_booking(settled.id)
		missing = self.make_booking()

		result = settle_unsettled_bookings()

		self.assertEqual(result.settled, [missing.id])
		self.assertEqual(result.status, 'success')
		self.assertEqual(get_or_create_wallet(self.profile).balance, Decimal('340.00'))

	def test_admin_settle_view(self):
		staff = User.objects.create_user(username='ops', password='ops12345', is_staff=True)
		booking = self.make_booking()

		request = self.factory.post('/api/bookings/admin/%d/settle/' % booking.id)
		force_authenticate(request, user=staff)
		response = admin_settle_booking(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['amount'], '170.00')

	def test_admin_settle_view_rejects_unfinished_booking(self):
		staff = User.objects.create_user(username='ops', password='ops12345', is_staff=True)
		booking = self.make_booking(status=BookingStatus.CONFIRMED)

		request = self.factory.post('/api/bookings/admin/%d/settle/' % booking.id)
		force_authenticate(request, user=staff)
		response = admin_settle_booking(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 409)

	def test_driver_wallet_view(self):
		settle_booking(self.make_booking().id)

		request = self.factory.get('/api/driver/wallet/')
		force_authenticate(request, user=self.driver)
		response = DriverWalletView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['balance'], '170.00')
		self.assertEqual(len(response.data['recent_transactions']), 1)


class RecordingNotifier:
	def __init__(self):
		self.sent = []

	def notify(self, user_id, title, body, data=None):
		self.sent.append((user_id, (data or {}).get('type')))
		return True


class PayoutTests(TestCase):
	def setUp(self):
		cache.clear()
		self.settings = SettingsProvider()
		self.notifier = RecordingNotifier()
		self.driver = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.profile = DriverProfile.objects.create(user=self.driver, vehicle_number='WB-1001', status='approved')
		self.staff = User.objects.create_user(username='ops', password='ops12345', is_staff=True)
		credit(self.profile, '500.00', description='Earnings')

	def wallet(self):
		wallet = get_or_create_wallet(self.profile)
		wallet.refresh_from_db()
		return wallet

	def request(self, amount='150.00', method='bank'):
		return request_payout(self.profile, amount, method, settings_provider=self.settings, notifier=self.notifier)

	def test_request_holds_the_amount(self):
		payout = self.request()

		self.assertEqual(payout.status, PayoutStatus.REQUESTED)
		wallet = self.wallet()
		self.assertEqual(wallet.balance, Decimal('350.00'))
		self.assertEqual(wallet.lifetime_withdrawn, Decimal('150.00'))
		txn = wallet.transactions.get(type='payout')
		self.assertEqual(txn.direction, 'debit')
		self.assertEqual(txn.meta['payout_request_id'], payout.id)
		self.assertEqual(self.notifier.sent, [(self.driver.id, 'payout_requested')])

	def test_request_rules(self):
		with self.assertRaises(PayoutError):
			self.request(amount='99.99')
		with self.assertRaises(PayoutError):
			self.request(method='stripe')
		with self.assertRaises(InvalidAmountError):
			self.request(amount='-150')

		self.settings.set('payouts.enabled', False, type='boolean')
		with self.assertRaises(PayoutError):
			self.request()

		self.assertFalse(PayoutRequest.objects.exists())
		self.assertEqual(self.wallet().balance, Decimal('500.00'))

	def test_request_above_balance_leaves_nothing_behind(self):
		with self.assertRaises(PayoutError):
			self.request(amount='500.01')

		self.assertFalse(PayoutRequest.objects.exists())
		wallet = self.wallet()
		self.assertEqual(wallet.balance, Decimal('500.00'))
		self.assertEqual(wallet.lifetime_withdrawn, Decimal('0.00'))

	def test_approve_then_mark_paid(self):
		payout = self.request()

		approve_payout(payout.id, self.staff, notifier=self.notifier)
		paid = mark_payout_paid(payout.id, 'UTR-88812', notifier=self.notifier)

		self.assertEqual(paid.status, PayoutStatus.PAID)
		self.assertEqual(paid.payout_reference, 'UTR-88812')
		self.assertEqual(paid.reviewed_by, self.staff)
		self.assertIsNotNone(paid.processed_at)
		self.assertEqual(self.wallet().balance, Decimal('350.00'))
		self.assertEqual(
			[kind for _, kind in self.notifier.sent],
			['payout_requested', 'payout_approved', 'payout_paid'],
		)

	def test_reject_returns_the_amount(self):
		payout = self.request()
		approve_payout(payout.id, self.staff, notifier=self.notifier)

		rejected = reject_payout(payout.id, self.staff, 'Bank details mismatch', notifier=self.notifier)

		self.assertEqual(rejected.status, PayoutStatus.REJECTED)
		self.assertEqual(rejected.admin_note, 'Bank details mismatch')
		wallet = self.wallet()
		self.assertEqual(wallet.balance, Decimal('500.00'))
		self.assertEqual(wallet.lifetime_withdrawn, Decimal('0.00'))
		signed = sum(
			txn.amount if txn.is_credit else -txn.amount
			for txn in wallet.transactions.all()
		)
		self.assertEqual(signed, wallet.balance)

	def test_status_order_is_enforced(self):
		payout = self.request()

		with self.assertRaises(PayoutError):
			mark_payout_paid(payout.id, 'UTR-1', notifier=self.notifier)

		approve_payout(payout.id, self.staff, notifier=self.notifier)
		with self.assertRaises(PayoutError):
			approve_payout(payout.id, self.staff, notifier=self.notifier)

		mark_payout_paid(payout.id, 'UTR-1', notifier=self.notifier)
		with self.assertRaises(PayoutError):
			reject_payout(payout.id, self.staff, 'too late', notifier=self.notifier)
		with self.assertRaises(PayoutNotFoundError):
			approve_payout(payout.id + 100, self.staff)

		self.assertEqual(self.wallet().balance, Decimal('350.00'))

	def test_auto_approve(self):
		self.settings.set('payouts.auto_approve', True, type='boolean')

		payout = self.request()

		self.assertEqual(payout.status, PayoutStatus.APPROVED)
		self.assertIsNone(payout.reviewed_by)


class PayoutViewTests(TestCase):
	def setUp(self):
		cache.clear()
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.profile = DriverProfile.objects.create(user=self.driver, vehicle_number='WB-1001', status='approved')
		self.staff = User.objects.create_user(username='ops', password='ops12345', is_staff=True)
		credit(self.profile, '500.00', description='Earnings')

	def driver_post(self, data, user=None):
		request = self.factory.post('/api/driver/payouts/', data, format='json')
		force_authenticate(request, user=user or self.driver)
		return DriverPayoutView.as_view()(request)

	def test_driver_requests_and_lists_payouts(self):
		response = self.driver_post({'amount': '200.00', 'method': 'bank'})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'requested')
		self.assertEqual(response.data['amount'], '200.00')

		request = self.factory.get('/api/driver/payouts/')
		force_authenticate(request, user=self.driver)
		response = DriverPayoutView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data), 1)

	def test_driver_request_errors(self):
		self.assertEqual(self.driver_post({'amount': '20.00', 'method': 'bank'}).status_code, 400)
		self.assertEqual(self.driver_post({'amount': '200.00', 'method': 'cheque'}).status_code, 400)

		rider = User.objects.create_user(username='rider', password='pass1234', role='rider')
		self.assertEqual(self.driver_post({'amount': '200.00', 'method': 'bank'}, user=rider).status_code, 403)
		self.assertFalse(PayoutRequest.objects.exists())

	def test_staff_approves_and_pays(self):
		payout = request_payout(self.profile, '150.00', 'bank', notifier=RecordingNotifier())

		request = self.factory.post('/api/wallets/payouts/%d/approve/' % payout.id)
		force_authenticate(request, user=self.staff)
		self.assertEqual(approve_payout_view(request, payout_id=payout.id).status_code, 200)

		request = self.factory.post('/api/wallets/payouts/%d/paid/' % payout.id, {'reference': 'UTR-5'}, format='json')
		force_authenticate(request, user=self.staff)
		response = mark_payout_paid_view(request, payout_id=payout.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'paid')

		request = self.factory.post('/api/wallets/payouts/%d/reject/' % payout.id, {'reason': 'late'}, format='json')
		force_authenticate(request, user=self.staff)
		self.assertEqual(reject_payout_view(request, payout_id=payout.id).status_code, 409)

	def test_payout_review_is_staff_only(self):
		payout = request_payout(self.profile, '150.00', 'bank', notifier=RecordingNotifier())

		request = self.factory.post('/api/wallets/payouts/%d/approve/' % payout.id)
		force_authenticate(request, user=self.driver)
		self.assertEqual(approve_payout_view(request, payout_id=payout.id).status_code, 403)

		request = self.factory.post('/api/wallets/payouts/9999/approve/')
		force_authenticate(request, user=self.staff)
		self.assertEqual(approve_payout_view(request, payout_id=9999).status_code, 404)

	def test_staff_adjusts_wallet(self):
		request = self.factory.post(
			'/api/wallets/%d/adjust/' % self.profile.id,
			{'amount': '-650.00', 'description': 'Chargeback'},
			format='json',
		)
		force_authenticate(request, user=self.staff)
		response = adjust_wallet(request, driver_profile_id=self.profile.id)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['transaction']['type'], 'adjustment')
		self.assertEqual(response.data['wallet']['balance'], '-150.00')
		txn = WalletTransaction.objects.get(type='adjustment')
		self.assertEqual(txn.meta['performed_by'], self.staff.id)

	def test_adjustment_rejects_zero_and_unknown_driver(self):
		request = self.factory.post(
			'/api/wallets/%d/adjust/' % self.profile.id,
			{'amount': '0', 'description': 'noop'},
			format='json',
		)
		force_authenticate(request, user=self.staff)
		self.assertEqual(adjust_wallet(request, driver_profile_id=self.profile.id).status_code, 400)

		request = self.factory.post('/api/wallets/9999/adjust/', {'amount': '5', 'description': 'x'}, format='json')
		force_authenticate(request, user=self.staff)
		self.assertEqual(adjust_wallet(request, driver_profile_id=9999).status_code, 404)
