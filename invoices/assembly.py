"""Invoice assembly: numbering, billing snapshots, line resolution and totals.

Every invoice type uses the same total formula::

    subtotal     = sum(quantity * unit_price) over live items
    tax_amount   = round(subtotal * tax_rate / 100, 2)
    total_amount = subtotal + tax_amount - discount_amount + shipping_amount
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound

from accounts.models import Address
from core.exceptions import BusinessRuleError, Conflict
from core.money import ZERO, to_money
from orders.models import Order
from products.models import Product
from .models import Invoice, InvoiceItem

logger = logging.getLogger(__name__)

INVOICE_NUMBER_MAX_ATTEMPTS = 5

BILLING_FIELDS = (
    'first_name', 'last_name', 'phone', 'email', 'company', 'city', 'state',
    'area', 'street', 'building', 'apartment', 'notes', 'address',
)


def compute_invoice_totals(subtotal, tax_rate, discount_amount, shipping_amount):
    """Return ``(tax_amount, total_amount)`` for the given components."""
    subtotal = to_money(subtotal)
    tax_amount = to_money(subtotal * to_money(tax_rate) / 100)
    total = to_money(subtotal + tax_amount - to_money(discount_amount) + to_money(shipping_amount))
    return tax_amount, total


def generate_invoice_number(now=None) -> str:
    """Next free ``INV-YYYY-MM-NNNN`` number for the month of ``now``."""
    now = now or timezone.now()
    prefix = f"INV-{now:%Y-%m}-"
    seq = Invoice.all_objects.filter(invoice_number__startswith=prefix).count() + 1
    while Invoice.all_objects.filter(invoice_number=f"{prefix}{seq:04d}").exists():
        seq += 1
    return f"{prefix}{seq:04d}"


def _create_invoice_row(**fields) -> Invoice:
    for attempt in range(1, INVOICE_NUMBER_MAX_ATTEMPTS + 1):
        number = generate_invoice_number(fields.get('invoice_date'))
        try:
            with transaction.atomic():
                return Invoice.objects.create(invoice_number=number, **fields)
        except IntegrityError:
            logger.warning('Invoice number collision on %s (attempt %d)', number, attempt)
    raise Conflict('Could not allocate a unique invoice number. Please retry.')


# Billing

def _billing_from_details(details) -> dict:
    fields = {f'billing_{name}': (details.get(name) or '') for name in BILLING_FIELDS}
    if not fields['billing_address']:
        parts = [
            fields['billing_building'],
            f"Apt {fields['billing_apartment']}" if fields['billing_apartment'] else '',
            fields['billing_street'],
            fields['billing_area'],
            fields['billing_city'],
            fields['billing_state'],
        ]
        fields['billing_address'] = ', '.join(p for p in parts if p)
    return fields


def resolve_billing(*, user=None, billing_address_id=None, billing_details=None,
                    customer_name='', customer_email='', customer_phone='') -> dict:
    """Build the ``customer_*`` and ``billing_*`` snapshot for a new invoice.

    The billing source is either a stored address of ``user`` or an inline
    details object, never both. Explicit ``customer_*`` values win over the
    ones derived from the billing source.
    """
    if billing_address_id and billing_details:
        raise BusinessRuleError('Provide either billing_address_id or billing_details, not both')

    billing = {}
    if billing_address_id:
        address = None
        if user is not None:
            address = Address.objects.select_related('state', 'user').filter(id=billing_address_id, user=user).first()
        if address is None:
            raise NotFound('Billing address not found')
        billing = address.as_billing_snapshot()
    elif billing_details:
        billing = _billing_from_details(billing_details)

    derived_name = f"{billing.get('billing_first_name', '')} {billing.get('billing_last_name', '')}".strip()
    if not derived_name and user is not None:
        derived_name = user.get_full_name() or user.username
    derived_email = billing.get('billing_email') or (user.email if user is not None else '')
    derived_phone = billing.get('billing_phone') or ((user.phone_number or '') if user is not None else '')

    customer = {
        'customer_name': customer_name or derived_name,
        'customer_email': customer_email or derived_email,
        'customer_phone': customer_phone or derived_phone,
    }
    if not customer['customer_name'] or not customer['customer_email']:
        raise BusinessRuleError('Billing information is required')

    return {**customer, **billing}


# Items

def products_by_sku(skus) -> dict[str, Product]:
    return {p.sku: p for p in Product.objects.filter(sku__in=set(skus))}


def resolve_item(data, products=None, missing=BusinessRuleError) -> dict:
    """Turn an item payload into ``InvoiceItem`` field values.

    Names default to the product's names, the unit price to the product's
    price. An unknown SKU is only accepted when ``unit_price`` is given.
    """
    sku = data['sku']
    if products is None:
        products = products_by_sku([sku])
    product = products.get(sku)

    unit_price = data.get('unit_price')
    if unit_price is None:
        if product is None:
            raise missing(f'Product not found for SKU: {sku}')
        unit_price = product.price
    unit_price = to_money(unit_price)
    quantity = int(data['quantity'])

    return {
        'product': product,
        'sku': sku,
        'product_name_en': data.get('product_name_en') or (product.name_en if product else f'Product {sku}'),
        'product_name_ar': data.get('product_name_ar') or (product.name_ar if product else ''),
        'quantity': quantity,
        'unit_price': unit_price,
        'total_price': to_money(unit_price * quantity),
        'size': data.get('size') or None,
        'color': data.get('color') or None,
    }


def recalculate_totals(invoice, actor=None) -> Invoice:
    """Recompute subtotal/tax/total from the live items, keeping rate, discount and shipping."""
    subtotal = InvoiceItem.objects.filter(invoice=invoice).aggregate(s=Sum('total_price'))['s'] or ZERO
    invoice.subtotal = to_money(subtotal)
    invoice.tax_amount, invoice.total_amount = compute_invoice_totals(
        invoice.subtotal, invoice.tax_rate, invoice.discount_amount, invoice.shipping_amount,
    )
    update_fields = ['subtotal', 'tax_amount', 'total_amount', 'updated_at']
    if actor is not None:
        invoice.updated_by = actor
        update_fields.append('updated_by')
    invoice.save(update_fields=update_fields)
    return invoice


# Creation

def _lock_uninvoiced_order(order) -> Order:
    """Lock ``order`` and make sure it has no live invoice yet."""
    order = Order.all_objects.select_for_update().get(pk=order.pk)
    if order.is_deleted:
        raise NotFound('Order not found')

    existing = Invoice.objects.filter(order=order).first()
    if existing is not None:
        raise Conflict('Invoice already exists for this order', extra={'invoice_number': existing.invoice_number})
    return order


def create_manual_invoice(data, *, user=None, actor='') -> Invoice:
    """Create a manual (or in-store) invoice from validated payload ``data``."""
    now = timezone.now()
    with transaction.atomic():
        order = data.get('order')
        if order is not None:
            order = _lock_uninvoiced_order(order)

        billing = resolve_billing(
            user=user,
            billing_address_id=data.get('billing_address_id'),
            billing_details=data.get('billing_details'),
            customer_name=data.get('customer_name', ''),
            customer_email=data.get('customer_email', ''),
            customer_phone=data.get('customer_phone', ''),
        )

        raw_items = data['items']
        products = products_by_sku(item['sku'] for item in raw_items)
        lines = [resolve_item(item, products) for item in raw_items]

        subtotal = to_money(sum((line['total_price'] for line in lines), ZERO))
        tax_rate = to_money(data.get('tax_rate'))
        discount = to_money(data.get('discount_amount'))
        shipping = data.get('shipping_amount')
        if shipping is None:
            shipping = data.get('delivery_fee')
        shipping = to_money(shipping)
        tax_amount, total = compute_invoice_totals(subtotal, tax_rate, discount, shipping)

        invoice_date = data.get('invoice_date') or now
        invoice = _create_invoice_row(
            order=order,
            order_code=order.order_code if order is not None else (data.get('order_code') or ''),
            user=user,
            invoice_type=data.get('invoice_type') or 'manual',
            is_manual=True,
            status=data.get('status') or 'draft',
            payment_status='pending',
            payment_method=data.get('payment_method') or '',
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            discount_amount=discount,
            shipping_amount=shipping,
            total_amount=total,
            currency=data.get('currency') or settings.INVOICE_CURRENCY,
            invoice_date=invoice_date,
            due_date=data.get('due_date') or (now + timedelta(days=settings.INVOICE_DUE_DAYS)),
            notes=data.get('notes') or '',
            internal_notes=data.get('internal_notes') or '',
            created_by=actor,
            updated_by=actor,
            **billing,
        )
        InvoiceItem.objects.bulk_create([InvoiceItem(invoice=invoice, **line) for line in lines])

    logger.info('Manual invoice %s created by %s: %d items, total=%s', invoice.invoice_number, actor, len(lines), total)
    return invoice


def create_invoice_from_order(order, actor='') -> Invoice:
    """Derive an ``online`` invoice from an order's snapshot.

    Order discounts are already in the item prices, so the invoice carries no
    discount and ``total_amount`` equals ``order.total_price``.
    """
    now = timezone.now()
    with transaction.atomic():
        order = _lock_uninvoiced_order(order)

        user = order.user
        billing = order.address.as_billing_snapshot() if order.address_id else {}
        customer_name = (
            f"{billing.get('billing_first_name', '')} {billing.get('billing_last_name', '')}".strip()
            or user.get_full_name()
            or user.username
        )

        lines = []
        for item in order.items.select_related('product'):
            product = item.product
            lines.append({
                'product': product,
                'sku': product.sku if product else f'SKU-{item.product_id}',
                'product_name_en': product.name_en if product else 'Unknown Product',
                'product_name_ar': product.name_ar if product else '',
                'quantity': item.quantity,
                'unit_price': to_money(item.price),
                'total_price': to_money(item.price * item.quantity),
                'size': item.size,
                'color': item.color,
            })

        subtotal = to_money(sum((line['total_price'] for line in lines), ZERO))
        tax_amount, total = compute_invoice_totals(subtotal, ZERO, ZERO, order.delivery_fee)

        invoice = _create_invoice_row(
            order=order,
            order_code=order.order_code,
            user=user,
            invoice_type='online',
            is_manual=False,
            status='sent',
            payment_status='pending',
            customer_name=customer_name,
            customer_email=user.email or billing.get('billing_email', ''),
            customer_phone=billing.get('billing_phone') or (user.phone_number or ''),
            subtotal=subtotal,
            tax_rate=ZERO,
            tax_amount=tax_amount,
            discount_amount=ZERO,
            shipping_amount=to_money(order.delivery_fee),
            total_amount=total,
            currency=settings.INVOICE_CURRENCY,
            invoice_date=now,
            due_date=now + timedelta(days=settings.INVOICE_DUE_DAYS),
            notes=f'Auto-generated from order {order.order_code}',
            created_by=actor,
            updated_by=actor,
            **billing,
        )
        InvoiceItem.objects.bulk_create([InvoiceItem(invoice=invoice, **line) for line in lines])

    logger.info('Invoice %s created from order %s, total=%s', invoice.invoice_number, order.order_code, total)
    return invoice


# Header update

HEADER_FIELDS = (
    'customer_name', 'customer_email', 'customer_phone', 'tax_rate', 'discount_amount',
    'shipping_amount', 'due_date', 'notes', 'internal_notes',
)


def update_invoice_header(invoice_id, data, *, queryset=None, actor='') -> Invoice:
    """Apply allow-listed header fields and recompute the totals."""
    queryset = queryset if queryset is not None else Invoice.objects.all()
    with transaction.atomic():
        invoice = queryset.select_for_update().filter(pk=invoice_id).first()
        if invoice is None:
            raise NotFound('Invoice not found')
        if invoice.payment_status == 'paid' or invoice.status in ('paid', 'cancelled', 'refunded'):
            raise BusinessRuleError(f'Cannot update {invoice.status} invoices')

        for field in HEADER_FIELDS:
            if field in data:
                value = data[field]
                if field in ('tax_rate', 'discount_amount', 'shipping_amount'):
                    value = to_money(value)
                elif value is None and field != 'due_date':
                    value = ''
                setattr(invoice, field, value)
        invoice.save()
        recalculate_totals(invoice, actor=actor)
    return invoice
