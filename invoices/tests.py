"""Invoices app tests."""

import re
from decimal import Decimal
from itertools import count
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import Country, State, Address
from core.exceptions import BusinessRuleError
from finance.models import InvoicePayment
from invoices import lifecycle
from invoices.assembly import compute_invoice_totals, create_manual_invoice, generate_invoice_number
from invoices.models import Invoice, InvoiceItem, InvoiceStatusHistory
from orders.checkout import direct_checkout
from products.models import Product

_numbers = count(1)


class InvoiceFixtureMixin:

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()

		cls.customer = User.objects.create_user(
			username='test_customer',
			email='test_customer@example.com',
			password='12345678',
			first_name='Test',
			last_name='Customer',
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
			is_staff=True,
		)

		country = Country.objects.create(name_en='United Arab Emirates', code='AE')
		cls.state = State.objects.create(country=country, name_en='Dubai', code='DXB', delivery_fee=Decimal('3.00'))
		cls.address = Address.objects.create(
			user=cls.customer,
			first_name='Billing',
			last_name='Person',
			phone='+971501234567',
			city='Dubai',
			state=cls.state,
			area='Marina',
			street='Al Sufouh Rd',
			building='Tower 1',
		)

		cls.shirt = Product.objects.create(sku='SHIRT-1', name_en='Shirt', name_ar='قميص', price=Decimal('10.00'), quantity=20)

	def client_for(self, user):
		client = APIClient()
		client.force_authenticate(user=user)
		return client

	def scenario_invoice(self, user=None):
		"""Items X (2 x 20) and Y (1 x 15) with a 5.00 discount: subtotal 55, total 50."""
		return create_manual_invoice(
			{
				'customer_name': 'Walk-in Customer',
				'customer_email': 'walkin@example.com',
				'items': [
					{'sku': 'X', 'quantity': 2, 'unit_price': Decimal('20.00')},
					{'sku': 'Y', 'quantity': 1, 'unit_price': Decimal('15.00')},
				],
				'discount_amount': Decimal('5.00'),
				'delivery_fee': Decimal('0.00'),
			},
			user=user,
			actor='admin@example.com',
		)

	def bare_invoice(self, status='draft', payment_status='pending', **fields):
		return Invoice.objects.create(
			invoice_number=f'INV-TEST-{next(_numbers):04d}',
			status=status,
			payment_status=payment_status,
			customer_name='Bare',
			customer_email='bare@example.com',
			invoice_date=timezone.now(),
			**fields,
		)


class InvoiceTotalsTests(TestCase):
	"""Total formula and invoice numbering."""

	def test_canonical_formula(self):
		tax, total = compute_invoice_totals(Decimal('100.00'), Decimal('5'), Decimal('10.00'), Decimal('7.50'))

		self.assertEqual(tax, Decimal('5.00'))
		self.assertEqual(total, Decimal('102.50'))

	def test_tax_is_rounded_to_cents(self):
		tax, total = compute_invoice_totals(Decimal('33.33'), Decimal('5'), Decimal('0'), Decimal('0'))

		self.assertEqual(tax, Decimal('1.67'))
		self.assertEqual(total, Decimal('35.00'))

	def test_invoice_number_skips_taken_sequence(self):
		now = timezone.now()
		prefix = f'INV-{now:%Y-%m}-'
		Invoice.objects.create(invoice_number=f'{prefix}0002', customer_name='A', customer_email='a@example.com', invoice_date=now)

		self.assertEqual(generate_invoice_number(now), f'{prefix}0003')


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ManualInvoiceTests(InvoiceFixtureMixin, TestCase):
	"""POST /api/invoices/ and the item editor."""

	def test_scenario_totals_and_item_delete_recompute(self):
		client = self.client_for(self.admin)
		res = client.post('/api/invoices/', data={
			'customer_name': 'Walk-in Customer',
			'customer_email': 'walkin@example.com',
			'items': [
				{'sku': 'X', 'quantity': 2, 'unit_price': '20.00'},
				{'product_sku': 'Y', 'quantity': 1, 'unit_price': '15.00'},
			],
			'discount_amount': '5.00',
			'delivery_fee': '0.00',
		}, format='json')

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['subtotal'], Decimal('55.00'))
		self.assertEqual(res.data['total_amount'], Decimal('50.00'))
		self.assertEqual(res.data['status'], 'draft')
		self.assertEqual(res.data['invoice_type'], 'manual')
		self.assertTrue(res.data['is_manual'])
		self.assertEqual(res.data['payment_status'], 'pending')
		self.assertRegex(res.data['invoice_number'], r'^INV-\d{4}-\d{2}-\d{4}$')
		self.assertEqual(res.data['items'][0]['product_name_en'], 'Product X')

		item_y = InvoiceItem.objects.get(invoice_id=res.data['id'], sku='Y')
		res = client.delete('/api/invoices/items/', data={'item_id': item_y.id}, format='json')

		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['invoice']['subtotal'], Decimal('40.00'))
		self.assertEqual(res.data['invoice']['total_amount'], Decimal('35.00'))
		self.assertTrue(InvoiceItem.all_objects.get(id=item_y.id).is_deleted)

	def test_known_sku_defaults_to_catalog_price_and_names(self):
		res = self.client_for(self.customer).post('/api/invoices/', data={
			'items': [{'sku': 'SHIRT-1', 'quantity': 3}],
			'tax_rate': '5',
			'shipping_amount': '2.00',
		}, format='json')

		self.assertEqual(res.status_code, 201)
		item = res.data['items'][0]
		self.assertEqual((item['product_name_en'], item['product_name_ar']), ('Shirt', 'قميص'))
		self.assertEqual(item['unit_price'], Decimal('10.00'))
		self.assertEqual(res.data['tax_amount'], Decimal('1.50'))
		self.assertEqual(res.data['total_amount'], Decimal('33.50'))
		# customer falls back to the caller's profile
		self.assertEqual(res.data['customer_name'], 'Test Customer')
		self.assertEqual(res.data['customer_email'], 'test_customer@example.com')
		self.assertEqual(res.data['user'], self.customer.id)

	def test_billing_address_is_snapshotted(self):
		res = self.client_for(self.customer).post('/api/invoices/', data={
			'billing_address_id': self.address.id,
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['customer_name'], 'Billing Person')
		self.assertEqual(res.data['billing_city'], 'Dubai')
		self.assertEqual(res.data['billing_state'], 'Dubai')
		self.assertEqual(res.data['billing_phone'], '+971501234567')

		Address.objects.filter(id=self.address.id).update(city='Abu Dhabi')
		self.assertEqual(Invoice.objects.get(id=res.data['id']).billing_city, 'Dubai')

	def test_inline_billing_details(self):
		res = self.client_for(self.admin).post('/api/invoices/', data={
			'invoice_type': 'instore',
			'billing_details': {
				'first_name': 'Sara', 'last_name': 'Ali', 'email': 'sara@example.com',
				'phone': '00971 50 123 4567', 'city': 'Dubai', 'street': 'Beach Rd',
			},
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['invoice_type'], 'instore')
		self.assertIsNone(res.data['user'])
		self.assertEqual(res.data['customer_name'], 'Sara Ali')
		self.assertEqual(res.data['billing_phone'], '+971501234567')
		self.assertEqual(res.data['billing_address'], 'Beach Rd, Dubai')

	def test_both_billing_sources_are_rejected(self):
		res = self.client_for(self.customer).post('/api/invoices/', data={
			'billing_address_id': self.address.id,
			'billing_details': {'first_name': 'A', 'email': 'a@example.com'},
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 400)
		self.assertFalse(Invoice.all_objects.exists())

	def test_missing_billing_information_is_rejected(self):
		res = self.client_for(self.admin).post('/api/invoices/', data={
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Billing information is required')

	def test_unknown_sku_without_price_is_rejected(self):
		res = self.client_for(self.customer).post('/api/invoices/', data={
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}, {'sku': 'NOPE', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Product not found for SKU: NOPE')
		self.assertFalse(Invoice.all_objects.exists())

	def test_invalid_payloads(self):
		client = self.client_for(self.customer)
		cases = [
			{'items': []},
			{'items': [{'sku': 'SHIRT-1', 'quantity': 0}]},
			{'items': [{'sku': 'SHIRT-1', 'quantity': 1, 'unit_price': '-1'}]},
			{'items': [{'quantity': 1}]},
			{'items': [{'sku': 'SHIRT-1', 'quantity': 1}], 'customer_phone': '12'},
		]
		for payload in cases:
			with self.subTest(payload=payload):
				res = client.post('/api/invoices/', data=payload, format='json')
				self.assertEqual(res.status_code, 400)
				self.assertIn('details', res.data)

	def test_customer_cannot_invoice_another_user(self):
		res = self.client_for(self.customer).post('/api/invoices/', data={
			'user_id': self.other_customer.id,
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 403)

	def test_add_and_update_items_recompute_totals(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.customer)

		res = client.post('/api/invoices/items/', data={'invoice_id': invoice.id, 'sku': 'SHIRT-1', 'quantity': 2}, format='json')
		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['invoice']['subtotal'], Decimal('75.00'))
		self.assertEqual(res.data['invoice']['total_amount'], Decimal('70.00'))

		item_x = InvoiceItem.objects.get(invoice=invoice, sku='X')
		res = client.put('/api/invoices/items/', data={'item_id': item_x.id, 'quantity': 1, 'color': 'red'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['item']['total_price'], Decimal('20.00'))
		self.assertEqual(res.data['item']['color'], 'red')

		invoice.refresh_from_db()
		live_sum = sum(i.total_price for i in InvoiceItem.objects.filter(invoice=invoice))
		self.assertEqual(invoice.subtotal, live_sum)
		self.assertEqual(invoice.total_amount, Decimal('50.00'))
		self.assertEqual(invoice.discount_amount, Decimal('5.00'))

	def test_add_item_with_unknown_sku(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.customer)

		res = client.post('/api/invoices/items/', data={'invoice_id': invoice.id, 'sku': 'GHOST', 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 404)
		self.assertEqual(res.data['error'], 'Product not found for SKU: GHOST')

		res = client.post(
			'/api/invoices/items/', data={'invoice_id': invoice.id, 'sku': 'GHOST', 'quantity': 1, 'unit_price': '4.00'}, format='json'
		)
		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['item']['product_name_en'], 'Product GHOST')

	def test_paid_invoice_items_are_frozen(self):
		invoice = self.scenario_invoice(user=self.customer)
		Invoice.objects.filter(id=invoice.id).update(status='paid', payment_status='paid')
		item = InvoiceItem.objects.filter(invoice=invoice).first()
		client = self.client_for(self.admin)

		res = client.post('/api/invoices/items/', data={'invoice_id': invoice.id, 'sku': 'SHIRT-1', 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Cannot modify items on paid invoices')

		res = client.put('/api/invoices/items/', data={'item_id': item.id, 'quantity': 5}, format='json')
		self.assertEqual(res.status_code, 400)

		res = client.delete('/api/invoices/items/', data={'item_id': item.id}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Cannot delete items from paid invoices')

		self.assertEqual(InvoiceItem.objects.filter(invoice=invoice).count(), 2)
		item.refresh_from_db()
		self.assertEqual(item.quantity, 2)

	def test_header_update_recomputes_totals(self):
		invoice = self.scenario_invoice(user=self.customer)

		res = self.client_for(self.customer).put(
			f'/api/invoices/{invoice.id}/', data={'discount_amount': '0', 'tax_rate': '10', 'notes': 'Updated'}, format='json'
		)

		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['tax_amount'], Decimal('5.50'))
		self.assertEqual(res.data['total_amount'], Decimal('60.50'))
		self.assertEqual(res.data['notes'], 'Updated')

	def test_customers_only_see_their_invoices(self):
		mine = self.scenario_invoice(user=self.customer)
		self.scenario_invoice(user=None)

		client = self.client_for(self.other_customer)
		self.assertEqual(client.get('/api/invoices/').data['count'], 0)
		self.assertEqual(client.get(f'/api/invoices/{mine.id}/').status_code, 404)

		res = self.client_for(self.customer).get(f'/api/invoices/{mine.id}/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(len(res.data['items']), 2)

		res = self.client_for(self.admin).get('/api/invoices/', {'status': 'draft'})
		self.assertEqual(res.data['count'], 2)

	def test_detail_resolves_by_invoice_number(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.customer)

		res = client.get(f'/api/invoices/{invoice.invoice_number}/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['id'], invoice.id)

		res = client.put(f'/api/invoices/{invoice.invoice_number}/', data={'notes': 'By number'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['notes'], 'By number')

		self.assertEqual(client.get('/api/invoices/INV-1999-01-9999/').status_code, 404)
		self.assertEqual(self.client_for(self.other_customer).get(f'/api/invoices/{invoice.invoice_number}/').status_code, 404)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class InvoiceFromOrderTests(InvoiceFixtureMixin, TestCase):
	"""POST /api/invoices/from-order/"""

	def test_second_call_conflicts(self):
		order, _ = direct_checkout(self.customer, self.shirt.id, self.address.id, quantity=2, actor='test_customer@example.com')
		client = self.client_for(self.customer)

		res = client.post('/api/invoices/from-order/', data={'order_code': order.order_code}, format='json')
		self.assertEqual(res.status_code, 201)
		self.assertEqual(res.data['invoice_type'], 'online')
		self.assertFalse(res.data['is_manual'])
		self.assertEqual(res.data['status'], 'sent')
		self.assertEqual(res.data['shipping_amount'], Decimal('3.00'))
		self.assertEqual(res.data['total_amount'], order.total_price)
		self.assertEqual(res.data['notes'], f'Auto-generated from order {order.order_code}')
		self.assertEqual(res.data['billing_first_name'], 'Billing')
		number = res.data['invoice_number']

		res = client.post('/api/invoices/from-order/', data={'order_id': order.id}, format='json')
		self.assertEqual(res.status_code, 409)
		self.assertEqual(res.data['invoice_number'], number)
		self.assertEqual(Invoice.objects.filter(order=order).count(), 1)

	def test_manual_invoice_for_invoiced_order_conflicts(self):
		order, _ = direct_checkout(self.customer, self.shirt.id, self.address.id, actor='test_customer@example.com')
		client = self.client_for(self.customer)

		res = client.post('/api/invoices/from-order/', data={'order_id': order.id}, format='json')
		self.assertEqual(res.status_code, 201)
		number = res.data['invoice_number']

		res = client.post('/api/invoices/', data={
			'order_id': order.id,
			'billing_address_id': self.address.id,
			'items': [{'sku': 'SHIRT-1', 'quantity': 1}],
		}, format='json')

		self.assertEqual(res.status_code, 409)
		self.assertEqual(res.data['invoice_number'], number)
		self.assertEqual(Invoice.objects.filter(order=order).count(), 1)

	def test_missing_order(self):
		client = self.client_for(self.customer)

		self.assertEqual(client.post('/api/invoices/from-order/', data={}, format='json').status_code, 400)
		self.assertEqual(client.post('/api/invoices/from-order/', data={'order_id': 999}, format='json').status_code, 404)

	def test_other_customers_order_is_not_found(self):
		order, _ = direct_checkout(self.customer, self.shirt.id, self.address.id)

		res = self.client_for(self.other_customer).post('/api/invoices/from-order/', data={'order_id': order.id}, format='json')

		self.assertEqual(res.status_code, 404)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class InvoiceStateMachineTests(InvoiceFixtureMixin, TestCase):
	"""Status transitions, payments and deletion."""

	EXPECTED_PAYMENT_STATUS = {'paid': 'paid', 'refunded': 'refunded', 'cancelled': 'failed'}

	def test_every_transition_pair(self):
		for old in lifecycle.INVOICE_STATUSES:
			for new in lifecycle.INVOICE_STATUSES:
				with self.subTest(old=old, new=new):
					invoice = self.bare_invoice(status=old)
					if new in lifecycle.INVOICE_TRANSITIONS[old]:
						lifecycle.update_status(invoice.id, new, actor='admin@example.com')
						invoice.refresh_from_db()
						self.assertEqual(invoice.status, new)
						self.assertEqual(invoice.payment_status, self.EXPECTED_PAYMENT_STATUS.get(new, 'pending'))
						self.assertEqual(invoice.payment_date is not None, new == 'paid')
					else:
						with self.assertRaises(BusinessRuleError):
							lifecycle.update_status(invoice.id, new)
						invoice.refresh_from_db()
						self.assertEqual((invoice.status, invoice.payment_status), (old, 'pending'))

	def test_status_endpoint(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.admin)

		with self.captureOnCommitCallbacks(execute=True):
			res = client.patch('/api/invoices/status/', data={
				'invoice_id': invoice.id, 'new_status': 'sent', 'status_reason': 'Emailed', 'notify_customer': True,
			}, format='json')

		self.assertEqual(res.status_code, 200)
		self.assertEqual((res.data['old_status'], res.data['new_status']), ('draft', 'sent'))
		self.assertEqual(res.data['updated_by'], 'admin@example.com')
		history = InvoiceStatusHistory.objects.get(invoice=invoice)
		self.assertEqual((history.old_status, history.new_status, history.reason), ('draft', 'sent', 'Emailed'))
		invoice.refresh_from_db()
		self.assertIn('draft → sent: Emailed', invoice.internal_notes)
		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].to, ['walkin@example.com'])

	def test_status_endpoint_rejections(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.admin)

		res = client.patch('/api/invoices/status/', data={'invoice_id': invoice.id, 'new_status': 'paid'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Cannot transition from draft to paid. Allowed transitions: sent, cancelled')

		res = client.patch('/api/invoices/status/', data={'invoice_id': invoice.id, 'new_status': 'lost'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('Invalid status', res.data['error'])

		res = client.patch('/api/invoices/status/', data={'invoice_id': 999999, 'new_status': 'sent'}, format='json')
		self.assertEqual(res.status_code, 404)

	def test_terminal_status_reports_no_transitions(self):
		invoice = self.bare_invoice(status='refunded')

		with self.assertRaisesMessage(BusinessRuleError, 'Allowed transitions: none'):
			lifecycle.update_status(invoice.id, 'paid')

	def test_partial_then_full_payment(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.admin)

		with self.captureOnCommitCallbacks(execute=True):
			res = client.patch('/api/invoices/mark-paid/', data={
				'invoice_id': invoice.id, 'payment_method': 'cash', 'payment_amount': '20.00', 'payment_notes': 'Deposit',
			}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['payment_status'], 'partial')
		invoice.refresh_from_db()
		self.assertEqual(invoice.status, 'draft')
		self.assertIn('CASH: 20.00 (partial) - Deposit', invoice.internal_notes)
		self.assertEqual(len(mail.outbox), 0)

		with self.captureOnCommitCallbacks(execute=True):
			res = client.patch('/api/invoices/mark-paid/', data={
				'invoice_id': invoice.id, 'payment_method': 'card', 'payment_reference': 'TX-1',
			}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['payment_status'], 'paid')
		self.assertEqual(res.data['payment_amount'], Decimal('50.00'))
		invoice.refresh_from_db()
		self.assertEqual((invoice.status, invoice.payment_status, invoice.payment_reference), ('paid', 'paid', 'TX-1'))

		payments = list(InvoicePayment.objects.filter(invoice=invoice).values_list('amount', flat=True))
		self.assertEqual(payments, [Decimal('20.00'), Decimal('50.00')])
		self.assertEqual(len(mail.outbox), 1)

		res = client.patch('/api/invoices/mark-paid/', data={'invoice_id': invoice.id, 'payment_method': 'cash'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['error'], 'Invoice is already marked as paid')

	def test_mark_paid_rejections(self):
		cancelled = self.bare_invoice(status='cancelled')

		with self.assertRaisesMessage(BusinessRuleError, 'Cannot mark cancelled invoice as paid'):
			lifecycle.mark_paid(cancelled.id, 'cash')

		res = self.client_for(self.admin).patch(
			'/api/invoices/mark-paid/', data={'invoice_id': cancelled.id, 'payment_method': 'bitcoin'}, format='json'
		)
		self.assertEqual(res.status_code, 400)
		self.assertIn('Invalid payment method', res.data['error'])

	def test_zero_payment_amount_is_partial(self):
		invoice = self.scenario_invoice(user=self.customer)

		result = lifecycle.mark_paid(invoice.id, 'cash', amount=Decimal('0'))

		self.assertEqual(result['payment_status'], 'partial')
		self.assertEqual(result['payment_amount'], Decimal('0.00'))
		invoice.refresh_from_db()
		self.assertEqual((invoice.status, invoice.payment_status), ('draft', 'partial'))

	def test_history_write_failure_keeps_status_change(self):
		invoice = self.scenario_invoice(user=self.customer)

		with mock.patch('invoices.audit.InvoiceStatusHistory.objects.create', side_effect=DatabaseError('history table unavailable')):
			with self.assertLogs('invoices.audit', level='WARNING') as logs:
				with self.captureOnCommitCallbacks(execute=True):
					lifecycle.update_status(invoice.id, 'sent', actor='admin@example.com')

		self.assertIn(f'Could not write status history for invoice {invoice.id}', logs.output[0])
		invoice.refresh_from_db()
		self.assertEqual(invoice.status, 'sent')
		self.assertFalse(InvoiceStatusHistory.objects.filter(invoice=invoice).exists())

	def test_item_cascade_failure_keeps_invoice_deleted(self):
		invoice = self.scenario_invoice(user=self.customer)

		with mock.patch('invoices.lifecycle.InvoiceItem.objects.filter', side_effect=DatabaseError('items table locked')):
			with self.assertLogs('invoices.lifecycle', level='WARNING') as logs:
				lifecycle.delete_invoice(invoice.id, user=self.admin)

		self.assertIn(f'Could not soft-delete items of invoice {invoice.invoice_number}', logs.output[0])
		self.assertFalse(Invoice.objects.filter(id=invoice.id).exists())
		self.assertTrue(Invoice.all_objects.get(id=invoice.id).is_deleted)
		self.assertEqual(InvoiceItem.objects.filter(invoice_id=invoice.id).count(), 2)

	def test_delete_draft_invoice(self):
		invoice = self.scenario_invoice(user=self.customer)
		client = self.client_for(self.customer)

		res = client.delete('/api/invoices/', data={'invoice_id': invoice.id}, format='json')

		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['message'], 'Invoice deleted successfully')
		self.assertFalse(res.data['invoice']['forced'])
		self.assertEqual(res.data['invoice']['deleted_by'], 'test_customer@example.com')
		self.assertFalse(Invoice.objects.filter(id=invoice.id).exists())
		self.assertFalse(InvoiceItem.objects.filter(invoice_id=invoice.id).exists())
		self.assertEqual(InvoiceItem.all_objects.filter(invoice_id=invoice.id).count(), 2)

		res = client.delete('/api/invoices/', data={'invoice_id': invoice.id}, format='json')
		self.assertEqual(res.status_code, 404)

	def test_force_delete_rules(self):
		invoice = self.bare_invoice(status='paid', payment_status='paid', user=self.customer)

		res = self.client_for(self.customer).delete('/api/invoices/', data={'invoice_id': invoice.id}, format='json')
		self.assertEqual(res.status_code, 400)

		res = self.client_for(self.admin).delete('/api/invoices/', data={'invoice_id': invoice.id, 'force_delete': True}, format='json')
		self.assertEqual(res.status_code, 400)

		res = self.client_for(self.customer).delete(
			'/api/invoices/', data={'invoice_id': invoice.id, 'force_delete': True, 'deletion_reason': 'Duplicate'}, format='json'
		)
		self.assertEqual(res.status_code, 403)
		self.assertTrue(Invoice.objects.filter(id=invoice.id).exists())

		res = self.client_for(self.admin).delete(
			'/api/invoices/', data={'invoice_id': invoice.id, 'force_delete': True, 'deletion_reason': 'Duplicate'}, format='json'
		)
		self.assertEqual(res.status_code, 200)
		self.assertTrue(res.data['invoice']['forced'])
		self.assertEqual(Invoice.all_objects.get(id=invoice.id).deletion_reason, 'Duplicate')

	def test_delivered_order_blocks_plain_delete(self):
		order, _ = direct_checkout(self.customer, self.shirt.id, self.address.id)
		order.status = 'delivered'
		order.save()
		invoice = self.bare_invoice(status='sent', order=order, order_code=order.order_code)

		with self.assertRaisesMessage(BusinessRuleError, 'linked order is delivered'):
			lifecycle.delete_invoice(invoice.id, user=self.admin)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class InvoiceBulkTests(InvoiceFixtureMixin, TestCase):
	"""Bulk create and bulk delete."""

	def test_bulk_create_partial_success(self):
		res = self.client_for(self.admin).post('/api/invoices/bulk-create/', data={'invoices': [
			{'customer_name': 'A', 'customer_email': 'a@example.com', 'items': [{'sku': 'SHIRT-1', 'quantity': 1}]},
			{'customer_name': 'B', 'customer_email': 'b@example.com', 'items': [{'sku': 'MISSING', 'quantity': 1}]},
			{'customer_name': 'C', 'customer_email': 'c@example.com', 'items': [{'sku': 'SHIRT-1', 'quantity': 2}]},
		]}, format='json')

		self.assertEqual(res.status_code, 207)
		self.assertEqual([row['index'] for row in res.data['data']], [0, 2])
		self.assertEqual(res.data['errors'], [{'index': 1, 'error': 'Product not found for SKU: MISSING'}])
		self.assertEqual(res.data['message'], 'Processed 3 invoices. 2 successful, 1 failed.')
		self.assertEqual(Invoice.objects.count(), 2)

	def test_bulk_create_status_codes(self):
		client = self.client_for(self.admin)
		good = {'customer_name': 'A', 'customer_email': 'a@example.com', 'items': [{'sku': 'SHIRT-1', 'quantity': 1}]}

		self.assertEqual(client.post('/api/invoices/bulk-create/', data=[good, good], format='json').status_code, 201)
		self.assertEqual(client.post('/api/invoices/bulk-create/', data=[{'items': []}], format='json').status_code, 400)
		self.assertEqual(client.post('/api/invoices/bulk-create/', data=[], format='json').status_code, 400)

	def test_bulk_delete(self):
		draft = self.bare_invoice()
		paid = self.bare_invoice(status='paid', payment_status='paid')

		res = self.client_for(self.admin).delete(
			'/api/invoices/bulk-delete/', data={'invoice_ids': [draft.id, paid.id]}, format='json'
		)

		self.assertEqual(res.status_code, 207)
		self.assertEqual([row['id'] for row in res.data['data']], [draft.id])
		self.assertEqual(res.data['errors'][0]['invoice_id'], paid.id)
		self.assertTrue(re.search(r'status is paid', res.data['errors'][0]['error']))
		self.assertTrue(Invoice.objects.filter(id=paid.id).exists())
