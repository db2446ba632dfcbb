from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings

from .models import CronRun, SystemSetting
from .provider import SettingsProvider, get_settings_provider


class SettingsProviderTests(TestCase):
	def setUp(self):
		cache.clear()
		self.provider = SettingsProvider()

	def test_defaults_apply_when_no_row_exists(self):
		policy = self.provider.booking_policy()

		self.assertEqual(policy.hold_minutes, 10)
		self.assertEqual(policy.cancellation_deadline_hours, 3)
		self.assertTrue(policy.allow_cancellation)
		self.assertEqual(policy.commission_type, 'percent')
		self.assertEqual(policy.commission_value, Decimal('0'))
		self.assertEqual(policy.refund_policy, 'none')

	def test_values_are_coerced_by_type(self):
		SystemSetting.objects.create(key='bookings.seat_hold_minutes', value='15', type='integer')
		SystemSetting.objects.create(key='bookings.allow_cancellation', value='false', type='boolean')
		SystemSetting.objects.create(key='business.commission_value', value='12.5', type='decimal')
		SystemSetting.objects.create(key='chat.limits', value='{"max": 3}', type='json')

		self.assertEqual(self.provider.get('bookings.seat_hold_minutes'), 15)
		self.assertIs(self.provider.get('bookings.allow_cancellation'), False)
		self.assertEqual(self.provider.get('business.commission_value'), Decimal('12.5'))
		self.assertEqual(self.provider.get('chat.limits'), {'max': 3})

	def test_reads_are_cached_until_set_invalidates(self):
		self.assertEqual(self.provider.get_int('bookings.seat_hold_minutes'), 10)

		# Direct row edits are only seen after the cache entry goes away
		SystemSetting.objects.create(key='bookings.seat_hold_minutes', value='20', type='integer')
		self.assertEqual(self.provider.get_int('bookings.seat_hold_minutes'), 10)

		self.provider.set('bookings.seat_hold_minutes', 30, type='integer')
		self.assertEqual(self.provider.get_int('bookings.seat_hold_minutes'), 30)
		self.assertEqual(SystemSetting.objects.get(key='bookings.seat_hold_minutes').group, 'bookings')

	def test_explicit_default_wins_over_builtin(self):
		self.assertEqual(self.provider.get('bookings.seat_hold_minutes', 45), 45)
		self.assertIsNone(self.provider.get('unknown.key'))

	def test_booleans_round_trip_through_set(self):
		self.provider.set('payments.method_cash_enabled', False, type='boolean')

		self.assertFalse(self.provider.booking_policy().cash_enabled)
		self.assertEqual(SystemSetting.objects.get(key='payments.method_cash_enabled').value, 'false')

	def test_invalid_decimal_raises(self):
		SystemSetting.objects.create(key='business.commission_value', value='lots', type='decimal')

		with self.assertRaises(ValueError):
			self.provider.get_decimal('business.commission_value')

	@override_settings(SYSTEM_SETTING_DEFAULTS={'bookings.seat_hold_minutes': 5})
	def test_project_defaults_override_builtins(self):
		self.assertEqual(get_settings_provider().get_int('bookings.seat_hold_minutes'), 5)


class CronRunTests(TestCase):
	def test_record_keeps_one_row_per_command(self):
		CronRun.record('bookings:expire-holds', 'success', 'Expired 2 booking(s)')
		CronRun.record('bookings:expire-holds', 'failure', 'Sweep aborted')

		run = CronRun.objects.get()
		self.assertEqual(run.status, 'failure')
		self.assertEqual(run.message, 'Sweep aborted')
