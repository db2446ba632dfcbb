from decimal import Decimal
from unittest.mock import MagicMock

from django.db import OperationalError
from django.test import SimpleTestCase, override_settings

from services.booking_lifecycle import TransitionEffects
from services.inventory import run_with_lock_retries
from services.pricing import CommissionType, compute_commission, driver_payout, to_money


class CommissionTests(SimpleTestCase):
	def test_percent_commission(self):
		breakdown = compute_commission(Decimal('100'), 2, 'percent', Decimal('15'))

		self.assertEqual(breakdown.subtotal, Decimal('200.00'))
		self.assertEqual(breakdown.commission_amount, Decimal('30.00'))
		self.assertEqual(breakdown.total_amount, Decimal('200.00'))
		self.assertEqual(breakdown.driver_payout, Decimal('170.00'))

	def test_percent_commission_rounds_half_up(self):
		breakdown = compute_commission('10.05', 1, 'percent', '5')

		# 0.5025 rounds to 0.50, 10.05 * 15% = 1.5075 rounds to 1.51
		self.assertEqual(breakdown.commission_amount, Decimal('0.50'))
		self.assertEqual(compute_commission('10.05', 1, 'percent', '15').commission_amount, Decimal('1.51'))

	def test_flat_commission_is_capped_at_subtotal(self):
		self.assertEqual(compute_commission('40', 1, 'flat', '25').commission_amount, Decimal('25.00'))
		self.assertEqual(compute_commission('10', 1, 'flat', '25').commission_amount, Decimal('10.00'))

	def test_legacy_fixed_type_means_flat(self):
		self.assertIs(CommissionType.parse('fixed'), CommissionType.FLAT)

	def test_invalid_inputs(self):
		with self.assertRaises(ValueError):
			compute_commission('100', 0, 'percent', '10')
		with self.assertRaises(ValueError):
			compute_commission('100', 1, 'percent', '101')
		with self.assertRaises(ValueError):
			compute_commission('100', 1, 'tiered', '10')
		with self.assertRaises(ValueError):
			to_money('ten')

	def test_driver_payout(self):
		self.assertEqual(driver_payout('200.00', '30.00'), Decimal('170.00'))


class TransitionEffectsTests(SimpleTestCase):
	def test_best_effort_runs_even_when_required_fails(self):
		calls = []

		def settle():
			raise RuntimeError('wallet unavailable')

		effects = TransitionEffects(1)
		effects.must('settlement', settle)
		effects.attempt('notify', lambda: calls.append('notify'))

		with self.assertRaises(RuntimeError):
			effects.run()
		self.assertEqual(calls, ['notify'])

	def test_best_effort_failures_are_dropped(self):
		effects = TransitionEffects(1)
		effects.attempt('chat', lambda: 1 / 0)
		effects.attempt('notify', lambda: 'sent')

		results = effects.run()

		self.assertIsNone(results['chat'])
		self.assertEqual(results['notify'], 'sent')


@override_settings(SEAT_LOCK_RETRY_ATTEMPTS=3, SEAT_LOCK_RETRY_DELAY=0)
class LockRetryTests(SimpleTestCase):
	def test_contention_is_retried(self):
		func = MagicMock(side_effect=[OperationalError('locked'), OperationalError('locked'), 'ok'])
		func.__name__ = 'reserve'

		self.assertEqual(run_with_lock_retries(func, 1, seats=2), 'ok')
		self.assertEqual(func.call_count, 3)
		func.assert_called_with(1, seats=2)

	def test_retries_are_bounded(self):
		func = MagicMock(side_effect=OperationalError('locked'))
		func.__name__ = 'reserve'

		with self.assertRaises(OperationalError):
			run_with_lock_retries(func)
		self.assertEqual(func.call_count, 3)
