"""Accounts app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase, override_settings
from rest_framework import serializers
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.test import APIClient

from accounts.models import Country, State, Address
from accounts.permissions import is_admin, resolve_target_user
from accounts.validators import normalize_phone


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class LoginTests(TestCase):
	"""JWT issue and refresh under /api/accounts/."""

	@classmethod
	def setUpTestData(cls):
		get_user_model().objects.create_user(username='jwt_user', email='jwt@example.com', password='12345678')

	def test_login_returns_token_pair_usable_on_api(self):
		client = APIClient()
		res = client.post('/api/accounts/login/', data={'username': 'jwt_user', 'password': '12345678'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertIn('access', res.data)
		self.assertIn('refresh', res.data)

		client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
		self.assertEqual(client.get('/api/orders/').status_code, 200)

		res = client.post('/api/accounts/token/refresh/', data={'refresh': res.data['refresh']}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertIn('access', res.data)

	def test_wrong_password_is_401(self):
		res = APIClient().post('/api/accounts/login/', data={'username': 'jwt_user', 'password': 'nope'}, format='json')

		self.assertEqual(res.status_code, 401)
		self.assertIn('error', res.data)


class RoleTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.customer = User.objects.create_user(username='c', password='x')
		cls.other = User.objects.create_user(username='o', password='x')
		cls.admin_type = User.objects.create_user(username='a', password='x', user_type='admin')
		cls.staff = User.objects.create_user(username='s', password='x', is_staff=True)

	def request_for(self, user):
		request = RequestFactory().post('/')
		request.user = user
		return request

	def test_admin_detection(self):
		self.assertFalse(is_admin(self.customer))
		self.assertTrue(is_admin(self.admin_type))
		self.assertTrue(is_admin(self.staff))

	def test_resolve_target_user(self):
		self.assertEqual(resolve_target_user(self.request_for(self.customer)), self.customer)
		self.assertEqual(resolve_target_user(self.request_for(self.customer), self.customer.id), self.customer)
		self.assertEqual(resolve_target_user(self.request_for(self.staff), self.other.id), self.other)

		with self.assertRaises(PermissionDenied):
			resolve_target_user(self.request_for(self.customer), self.other.id)
		with self.assertRaises(NotFound):
			resolve_target_user(self.request_for(self.admin_type), 999999)

	def test_actor_label_prefers_email(self):
		self.assertEqual(self.customer.actor_label, 'c')
		self.customer.email = 'c@example.com'
		self.assertEqual(self.customer.actor_label, 'c@example.com')


class AddressTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		cls.user = get_user_model().objects.create_user(
			username='addr', email='addr@example.com', password='x', first_name='Ada', last_name='Lovelace', phone_number='+971500000001'
		)
		country = Country.objects.create(name_en='United Arab Emirates', code='AE')
		cls.state = State.objects.create(country=country, name_en='Sharjah', code='SHJ', delivery_fee=Decimal('15.00'))

	def test_single_line_and_fee(self):
		address = Address.objects.create(
			user=self.user, city='Sharjah', state=self.state, area='Al Nahda', street='Main St',
			building='B2', apartment='7', notes='Ring twice',
		)

		self.assertEqual(address.as_single_line(), 'B2, Apt 7, Main St, Al Nahda, Sharjah, SHJ (Ring twice)')
		self.assertEqual(address.delivery_fee, Decimal('15.00'))

	def test_billing_snapshot_falls_back_to_user(self):
		address = Address.objects.create(user=self.user, city='Sharjah', street='Main St')

		snapshot = address.as_billing_snapshot()

		self.assertEqual(address.delivery_fee, Decimal('0.00'))
		self.assertEqual(snapshot['billing_first_name'], 'Ada')
		self.assertEqual(snapshot['billing_last_name'], 'Lovelace')
		self.assertEqual(snapshot['billing_phone'], '+971500000001')
		self.assertEqual(snapshot['billing_email'], 'addr@example.com')
		self.assertEqual(snapshot['billing_state'], '')
		self.assertEqual(snapshot['billing_address'], 'Main St, Sharjah')

	def test_soft_deleted_address_hidden_from_default_manager(self):
		address = Address.objects.create(user=self.user, city='Sharjah', is_deleted=True)

		self.assertFalse(Address.objects.filter(id=address.id).exists())
		self.assertTrue(Address.all_objects.filter(id=address.id).exists())


class PhoneValidatorTests(TestCase):

	def test_normalizes_to_e164(self):
		self.assertEqual(normalize_phone('+971 50-123-4567'), '+971501234567')
		self.assertEqual(normalize_phone('00971501234567'), '+971501234567')
		self.assertEqual(normalize_phone(''), '')

	def test_rejects_invalid_numbers(self):
		for value in ('12', 'not a phone', '+97150'):
			with self.subTest(value=value):
				with self.assertRaises(serializers.ValidationError):
					normalize_phone(value)
