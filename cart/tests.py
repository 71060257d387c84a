"""Cart app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase

from cart.models import CartItem
from orders.checkout import load_active_cart_items
from products.models import Product


class CartItemTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		cls.customer = get_user_model().objects.create_user(username='cart_customer', password='12345678')
		cls.product = Product.objects.create(sku='CAP-1', name_en='Cap', price=Decimal('8.00'))

	def test_quantity_must_be_positive(self):
		with self.assertRaises(IntegrityError):
			CartItem.objects.create(user=self.customer, product=self.product, quantity=0)

	def test_variants_stay_separate_and_deleted_lines_are_skipped(self):
		CartItem.objects.create(user=self.customer, product=self.product, quantity=1, size='S')
		CartItem.objects.create(user=self.customer, product=self.product, quantity=2, size='M')
		CartItem.objects.create(user=self.customer, product=self.product, quantity=5, is_deleted=True)

		lines = load_active_cart_items(self.customer)

		self.assertEqual([(line.size, line.quantity) for line in lines], [('S', 1), ('M', 2)])
