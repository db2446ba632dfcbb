from django.test import TestCase
from rest_framework.test import APIRequestFactory
from rest_framework_simplejwt.tokens import RefreshToken

from drivers.models import DriverProfile

from .models import User
from .views import LoginView, RefreshTokenView, RegisterView


class RegistrationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def register(self, **payload):
		request = self.factory.post('/api/auth/register/', payload, format='json')
		return RegisterView.as_view()(request)

	def test_rider_registration_returns_tokens(self):
		response = self.register(username='asha', password='pass12345', email='asha@example.com')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'rider')
		self.assertIsNone(response.data['driver_status'])
		self.assertIn('access', response.data['tokens'])

	def test_driver_registration_creates_pending_profile(self):
		response = self.register(
			username='ravi', password='pass12345', role='driver', vehicle_number='DL-1234', city_id=2
		)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['driver_status'], 'pending')
		profile = DriverProfile.objects.get(user__username='ravi')
		self.assertEqual(profile.city_id, 2)

	def test_driver_needs_vehicle_number(self):
		response = self.register(username='ravi', password='pass12345', role='driver')

		self.assertEqual(response.status_code, 400)
		self.assertIn('vehicle_number', response.data)

	def test_vehicle_number_is_unique(self):
		self.register(username='ravi', password='pass12345', role='driver', vehicle_number='DL-1234')

		response = self.register(username='meena', password='pass12345', role='driver', vehicle_number='DL-1234')

		self.assertEqual(response.status_code, 400)
		self.assertFalse(User.objects.filter(username='meena').exists())

	def test_admin_role_cannot_be_self_assigned(self):
		response = self.register(username='mallory', password='pass12345', role='admin')

		self.assertEqual(response.status_code, 400)


class LoginTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		User.objects.create_user(username='asha', password='pass12345', role='rider')

	def test_login_with_valid_credentials(self):
		request = self.factory.post('/api/auth/login/', {'username': 'asha', 'password': 'pass12345'}, format='json')
		response = LoginView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertIn('refresh', response.data['tokens'])

	def test_login_with_wrong_password(self):
		request = self.factory.post('/api/auth/login/', {'username': 'asha', 'password': 'nope'}, format='json')
		response = LoginView.as_view()(request)

		self.assertEqual(response.status_code, 400)


class RefreshTokenTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(username='asha', password='pass12345', role='rider')

	def refresh(self, payload):
		request = self.factory.post('/api/auth/refresh/', payload, format='json')
		return RefreshTokenView.as_view()(request)

	def test_valid_refresh_token_issues_access(self):
		response = self.refresh({'refresh': str(RefreshToken.for_user(self.user))})

		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

	def test_garbage_refresh_token_is_unauthorized(self):
		response = self.refresh({'refresh': 'garbage'})

		self.assertEqual(response.status_code, 401)

	def test_missing_refresh_token(self):
		response = self.refresh({})

		self.assertEqual(response.status_code, 400)
