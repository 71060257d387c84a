"""Products app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from products.models import Product


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ProductCatalogTests(TestCase):
	"""GET /api/products/"""

	@classmethod
	def setUpTestData(cls):
		cls.user = get_user_model().objects.create_user(username='viewer', password='12345678')
		cls.shirt = Product.objects.create(sku='SHIRT-1', name_en='Shirt', price=Decimal('10.00'), old_price=Decimal('12.00'))
		cls.socks = Product.objects.create(sku='SOCKS-1', name_en='Socks', price=Decimal('5.00'))
		Product.objects.create(sku='GONE-1', name_en='Gone', price=Decimal('1.00'), is_deleted=True)

	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(user=self.user)

	def test_list_hides_soft_deleted_products(self):
		res = self.client.get('/api/products/')

		self.assertEqual(res.status_code, 200)
		self.assertEqual([p['sku'] for p in res.data['results']], ['SHIRT-1', 'SOCKS-1'])

	def test_search_and_exact_sku_filter(self):
		res = self.client.get('/api/products/', {'search': 'sock'})
		self.assertEqual([p['sku'] for p in res.data['results']], ['SOCKS-1'])

		res = self.client.get('/api/products/', {'sku': 'SHIRT-1'})
		self.assertEqual(res.data['count'], 1)
		self.assertEqual(res.data['results'][0]['old_price'], Decimal('12.00'))

	def test_catalog_is_read_only(self):
		res = self.client.post('/api/products/', data={'sku': 'NEW', 'name_en': 'New', 'price': '1.00'}, format='json')

		self.assertEqual(res.status_code, 405)

	def test_requires_authentication(self):
		self.assertEqual(APIClient().get('/api/products/').status_code, 401)
