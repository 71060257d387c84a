"""Orders app tests."""

from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Country, State, Address
from cart.models import CartItem
from invoices.models import Invoice
from orders.checkout import checkout_cart, compute_totals, resolve_prices, CheckoutLine
from orders.models import Order, OrderStatusHistory
from products.models import Product


class CheckoutFixtureMixin:
	"""Two customers, an admin, a fee-bearing address and two priced products."""

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()

		cls.customer = User.objects.create_user(
			username='test_customer',
			email='test_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.other_customer = User.objects.create_user(
			username='other_customer',
			email='other_customer@example.com',
			password='12345678',
		)
		cls.admin = User.objects.create_user(
			username='test_admin',
			email='admin@example.com',
			password='12345678',
			user_type='admin',
		)

		cls.country = Country.objects.create(name_en='United Arab Emirates', code='AE')
		cls.state = State.objects.create(country=cls.country, name_en='Dubai', code='DXB', delivery_fee=Decimal('3.00'))
		cls.address = Address.objects.create(
			user=cls.customer,
			first_name='Test',
			last_name='Customer',
			phone='+971501234567',
			city='Dubai',
			state=cls.state,
			area='Marina',
			street='Al Sufouh Rd',
			building='Tower 1',
			apartment='1203',
		)
		cls.other_address = Address.objects.create(user=cls.other_customer, city='Sharjah', street='King Faisal St')

		cls.product_x = Product.objects.create(sku='SKU-X', name_en='Shirt', price=Decimal('10.00'), old_price=Decimal('12.00'), quantity=50)
		cls.product_y = Product.objects.create(sku='SKU-Y', name_en='Socks', price=Decimal('5.00'), quantity=50)

	def client_for(self, user):
		client = APIClient()
		client.force_authenticate(user=user)
		return client

	def fill_cart(self):
		CartItem.objects.create(user=self.customer, product=self.product_x, quantity=2, size='M', color='blue')
		CartItem.objects.create(user=self.customer, product=self.product_y, quantity=1)


class ComputeTotalsTests(TestCase):
	"""Pure totals arithmetic."""

	def test_missing_price_contributes_nothing(self):
		lines = [CheckoutLine(product_id=1, quantity=2), CheckoutLine(product_id=99, quantity=3)]
		prices = {1: (Decimal('10.00'), Decimal('12.00'))}

		totals = compute_totals(lines, prices)

		self.assertEqual(totals.subtotal, Decimal('20.00'))
		self.assertEqual(totals.discount, Decimal('4.00'))
		self.assertEqual(totals.total_price, Decimal('20.00'))

	def test_resolve_prices_defaults_old_price_to_price(self):
		product = Product.objects.create(sku='P-1', name_en='Cap', price=Decimal('7.50'))

		prices = resolve_prices([product.id])

		self.assertEqual(prices[product.id], (Decimal('7.50'), Decimal('7.50')))


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class CartCheckoutTests(CheckoutFixtureMixin, TestCase):
	"""POST /api/orders/checkout/"""

	def test_checkout_creates_order_snapshot_and_clears_cart(self):
		self.fill_cart()

		res = self.client_for(self.customer).post(
			'/api/orders/checkout/', data={'address_id': self.address.id, 'note': 'Leave at door'}, format='json'
		)
		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['subtotal'], Decimal('25.00'))
		self.assertEqual(res.data['discount'], Decimal('4.00'))
		self.assertEqual(res.data['delivery_fee'], Decimal('3.00'))
		self.assertEqual(res.data['total_price'], Decimal('28.00'))

		order = Order.objects.get(id=res.data['order_id'])
		self.assertEqual(order.order_code, res.data['order_code'])
		self.assertTrue(order.order_code.startswith('ORD-'))
		self.assertEqual(len(order.order_code), len('ORD-') + 8)
		self.assertEqual(order.status, 'pending')
		self.assertEqual(order.note, 'Initial order creation')
		self.assertEqual(order.user_note, 'Leave at door')
		self.assertEqual(order.total_price, Decimal('28.00'))
		self.assertEqual(order.created_by, 'test_customer@example.com')

		items = list(order.items.order_by('price'))
		self.assertEqual(len(items), 2)
		self.assertEqual(sum(i.price * i.quantity for i in items) + order.delivery_fee, order.total_price)
		shirt = order.items.get(product=self.product_x)
		self.assertEqual((shirt.quantity, shirt.price, shirt.size, shirt.color), (2, Decimal('10.00'), 'M', 'blue'))

		history = list(order.status_history.all())
		self.assertEqual(len(history), 1)
		self.assertEqual(history[0].status, 'pending')
		self.assertEqual(history[0].changed_by, 'test_customer@example.com')

		self.assertFalse(CartItem.all_objects.filter(user=self.customer).exists())

	def test_later_price_change_does_not_touch_order(self):
		self.fill_cart()
		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')
		self.assertEqual(res.status_code, 201)

		Product.objects.filter(id=self.product_x.id).update(price=Decimal('99.00'))

		order = Order.objects.get(id=res.data['order_id'])
		self.assertEqual(order.items.get(product=self.product_x).price, Decimal('10.00'))
		self.assertEqual(order.total_price, Decimal('28.00'))

	def test_soft_deleted_cart_lines_are_ignored(self):
		self.fill_cart()
		CartItem.objects.filter(product=self.product_y).update(is_deleted=True)

		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['subtotal'], Decimal('20.00'))
		self.assertEqual(Order.objects.get(id=res.data['order_id']).items.count(), 1)

	def test_empty_cart_returns_400_and_creates_nothing(self):
		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')

		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Cart is empty')
		self.assertFalse(Order.all_objects.exists())

	def test_failed_history_write_rolls_back_checkout(self):
		self.fill_cart()

		with mock.patch('orders.checkout.OrderStatusHistory.objects.create', side_effect=DatabaseError('history table unavailable')):
			with self.assertRaises(DatabaseError):
				checkout_cart(self.customer, self.address.id, actor='test_customer@example.com')

		self.assertFalse(Order.all_objects.exists())
		self.assertFalse(OrderStatusHistory.objects.exists())
		self.assertEqual(CartItem.objects.filter(user=self.customer).count(), 2)

	def test_foreign_address_returns_404_and_keeps_cart(self):
		self.fill_cart()

		res = self.client_for(self.customer).post(
			'/api/orders/checkout/', data={'address_id': self.other_address.id}, format='json'
		)

		self.assertEqual(res.status_code, 404)
		self.assertEqual(res.data['error'], 'Address not found')
		self.assertFalse(Order.all_objects.exists())
		self.assertEqual(CartItem.objects.filter(user=self.customer).count(), 2)

	def test_soft_deleted_address_is_not_found(self):
		self.fill_cart()
		Address.objects.filter(id=self.address.id).update(is_deleted=True)

		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')

		self.assertEqual(res.status_code, 404)

	def test_address_without_state_has_no_delivery_fee(self):
		self.fill_cart()
		bare = Address.objects.create(user=self.customer, city='Ajman', street='Corniche')

		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': bare.id}, format='json')

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['delivery_fee'], Decimal('0.00'))
		self.assertEqual(res.data['total_price'], Decimal('25.00'))

	def test_missing_address_id_is_rejected(self):
		self.fill_cart()

		res = self.client_for(self.customer).post('/api/orders/checkout/', data={}, format='json')

		self.assertEqual(res.status_code, 400)
		self.assertIn('address_id', res.data['details'])

	def test_customer_cannot_check_out_for_another_user(self):
		res = self.client_for(self.customer).post(
			'/api/orders/checkout/',
			data={'address_id': self.other_address.id, 'user_id': self.other_customer.id},
			format='json',
		)

		self.assertEqual(res.status_code, 403)

	def test_admin_can_check_out_for_a_customer(self):
		self.fill_cart()

		res = self.client_for(self.admin).post(
			'/api/orders/checkout/',
			data={'address_id': self.address.id, 'user_id': self.customer.id},
			format='json',
		)

		self.assertEqual(res.status_code, 201)
		order = Order.objects.get(id=res.data['order_id'])
		self.assertEqual(order.user_id, self.customer.id)
		self.assertEqual(order.created_by, 'admin@example.com')

	def test_unauthenticated_request_is_rejected(self):
		res = APIClient().post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')

		self.assertEqual(res.status_code, 401)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class DirectCheckoutTests(CheckoutFixtureMixin, TestCase):
	"""POST /api/orders/direct-checkout/"""

	def test_direct_checkout_creates_single_item_order(self):
		CartItem.objects.create(user=self.customer, product=self.product_y, quantity=4)

		res = self.client_for(self.customer).post(
			'/api/orders/direct-checkout/',
			data={'product_id': self.product_x.id, 'quantity': 3, 'size': 'L', 'address_id': self.address.id},
			format='json',
		)

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['total_price'], Decimal('33.00'))
		self.assertEqual(res.data['quantity'], 3)
		order = Order.objects.get(id=res.data['order_id'])
		self.assertEqual(order.note, 'Direct checkout')
		self.assertEqual(order.items.count(), 1)
		self.assertEqual(order.items.get().size, 'L')
		# cart untouched
		self.assertEqual(CartItem.objects.filter(user=self.customer).count(), 1)

	def test_quantity_defaults_to_one(self):
		res = self.client_for(self.customer).post(
			'/api/orders/direct-checkout/',
			data={'product_id': self.product_y.id, 'address_id': self.address.id},
			format='json',
		)

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['total_price'], Decimal('8.00'))

	def test_deleted_product_returns_404(self):
		Product.objects.filter(id=self.product_x.id).update(is_deleted=True)

		res = self.client_for(self.customer).post(
			'/api/orders/direct-checkout/',
			data={'product_id': self.product_x.id, 'address_id': self.address.id},
			format='json',
		)

		self.assertEqual(res.status_code, 404)
		self.assertEqual(res.data['error'], 'Product not found')

	def test_zero_quantity_is_rejected(self):
		res = self.client_for(self.customer).post(
			'/api/orders/direct-checkout/',
			data={'product_id': self.product_x.id, 'quantity': 0, 'address_id': self.address.id},
			format='json',
		)

		self.assertEqual(res.status_code, 400)
		self.assertFalse(Order.all_objects.exists())


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class OrderStatusAndReadTests(CheckoutFixtureMixin, TestCase):
	"""Status updates, listing, soft delete and auto-invoicing."""

	def place_order(self):
		self.fill_cart()
		res = self.client_for(self.customer).post('/api/orders/checkout/', data={'address_id': self.address.id}, format='json')
		self.assertEqual(res.status_code, 201)
		return Order.objects.get(id=res.data['order_id'])

	def test_admin_updates_status_and_history_is_appended(self):
		order = self.place_order()

		res = self.client_for(self.admin).put(
			'/api/orders/status/', data={'order_code': order.order_code, 'status': 'shipped', 'note': 'Courier picked up'}, format='json'
		)

		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data, {'status': 'updated'})
		order.refresh_from_db()
		self.assertEqual(order.status, 'shipped')
		self.assertEqual(order.updated_by, 'admin@example.com')
		self.assertEqual(
			list(OrderStatusHistory.objects.filter(order=order).order_by('id').values_list('status', flat=True)),
			['pending', 'shipped'],
		)

	def test_status_update_validation(self):
		order = self.place_order()
		client = self.client_for(self.admin)

		res = client.put('/api/orders/status/', data={'status': 'shipped'}, format='json')
		self.assertEqual(res.status_code, 400)

		res = client.put('/api/orders/status/', data={'order_id': order.id, 'status': 'teleported'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('Invalid status', res.data['error'])

		res = client.put('/api/orders/status/', data={'order_code': 'ORD-NOPE0000', 'status': 'shipped'}, format='json')
		self.assertEqual(res.status_code, 404)

	def test_customer_cannot_update_status(self):
		order = self.place_order()

		res = self.client_for(self.customer).put('/api/orders/status/', data={'order_id': order.id, 'status': 'delivered'}, format='json')

		self.assertEqual(res.status_code, 403)

	def test_delivered_order_gets_an_invoice(self):
		order = self.place_order()

		with self.captureOnCommitCallbacks(execute=True):
			res = self.client_for(self.admin).put('/api/orders/status/', data={'order_id': order.id, 'status': 'delivered'}, format='json')
		self.assertEqual(res.status_code, 200)

		invoice = Invoice.objects.get(order=order)
		self.assertEqual(invoice.invoice_type, 'online')
		self.assertEqual(invoice.status, 'sent')
		self.assertEqual(invoice.total_amount, order.total_price)

	def test_auto_invoice_failure_does_not_fail_status_update(self):
		order = self.place_order()

		with mock.patch('invoices.signals.create_invoice_from_order', side_effect=RuntimeError('numbering exhausted')):
			with self.assertLogs('invoices.signals', level='WARNING') as logs:
				with self.captureOnCommitCallbacks(execute=True):
					res = self.client_for(self.admin).put(
						'/api/orders/status/', data={'order_id': order.id, 'status': 'delivered'}, format='json'
					)

		self.assertEqual(res.status_code, 200)
		self.assertIn(f'Auto-invoice failed for order {order.order_code}', logs.output[0])
		order.refresh_from_db()
		self.assertEqual(order.status, 'delivered')
		self.assertFalse(Invoice.all_objects.filter(order=order).exists())

	def test_customer_sees_only_own_orders(self):
		order = self.place_order()
		client = self.client_for(self.other_customer)

		self.assertEqual(client.get('/api/orders/').data['count'], 0)
		self.assertEqual(client.get(f'/api/orders/{order.id}/').status_code, 404)

		res = self.client_for(self.customer).get(f'/api/orders/{order.id}/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(len(res.data['items']), 2)
		self.assertEqual(res.data['shipping_address'], 'Tower 1, Apt 1203, Al Sufouh Rd, Marina, Dubai, DXB')

	def test_soft_delete_hides_order(self):
		order = self.place_order()

		res = self.client_for(self.customer).delete(f'/api/orders/{order.id}/')

		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['order_code'], order.order_code)
		self.assertFalse(Order.objects.filter(id=order.id).exists())
		self.assertTrue(Order.all_objects.get(id=order.id).is_deleted)

	def test_order_with_paid_invoice_cannot_be_deleted(self):
		from invoices.assembly import create_invoice_from_order

		order = self.place_order()
		invoice = create_invoice_from_order(order, actor='admin@example.com')
		Invoice.objects.filter(id=invoice.id).update(payment_status='paid', status='paid')

		res = self.client_for(self.admin).delete(f'/api/orders/{order.id}/')

		self.assertEqual(res.status_code, 400)
		self.assertTrue(Order.objects.filter(id=order.id).exists())
