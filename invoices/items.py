"""Invoice line editing. Every mutation recomputes the parent invoice totals."""

import logging

from django.db import transaction
from rest_framework.exceptions import NotFound

from core.exceptions import BusinessRuleError
from core.money import to_money
from .assembly import recalculate_totals, resolve_item
from .models import Invoice, InvoiceItem

logger = logging.getLogger(__name__)

_FROZEN_STATUSES = {'cancelled', 'refunded'}


def _ensure_editable(invoice, action='modify items on'):
    if invoice.status == 'paid' or invoice.payment_status == 'paid':
        raise BusinessRuleError(f'Cannot {action} paid invoices')
    if invoice.status in _FROZEN_STATUSES:
        raise BusinessRuleError(f'Cannot {action} {invoice.status} invoices')


def _lock_invoice(invoice_id, queryset):
    invoice = queryset.select_for_update().filter(pk=invoice_id).first()
    if invoice is None:
        raise NotFound('Invoice not found')
    return invoice


def _locked_item(item_id, queryset):
    """Return ``(item, invoice)`` with the parent invoice row locked."""
    item = InvoiceItem.objects.filter(pk=item_id, invoice__in=queryset).first()
    if item is None:
        raise NotFound('Invoice item not found')
    invoice = _lock_invoice(item.invoice_id, queryset)
    # re-read under the invoice lock
    item = InvoiceItem.objects.filter(pk=item_id).first()
    if item is None:
        raise NotFound('Invoice item not found')
    return item, invoice


def add_item(invoice_id, data, *, actor='', queryset=None):
    queryset = queryset if queryset is not None else Invoice.objects.all()
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id, queryset)
        _ensure_editable(invoice)

        fields = resolve_item(data, missing=NotFound)
        item = InvoiceItem.objects.create(invoice=invoice, **fields)
        recalculate_totals(invoice, actor=actor)

    logger.info('Item %s added to invoice %s', item.sku, invoice.invoice_number)
    return item, invoice


def update_item(item_id, data, *, actor='', queryset=None):
    queryset = queryset if queryset is not None else Invoice.objects.all()
    with transaction.atomic():
        item, invoice = _locked_item(item_id, queryset)
        _ensure_editable(invoice)

        if data.get('quantity') is not None:
            item.quantity = int(data['quantity'])
        if data.get('unit_price') is not None:
            item.unit_price = to_money(data['unit_price'])
        for field in ('size', 'color'):
            if field in data:
                setattr(item, field, data[field] or None)
        item.total_price = to_money(item.unit_price * item.quantity)
        item.save()
        recalculate_totals(invoice, actor=actor)

    return item, invoice


def delete_item(item_id, *, actor='', queryset=None):
    queryset = queryset if queryset is not None else Invoice.objects.all()
    with transaction.atomic():
        item, invoice = _locked_item(item_id, queryset)
        _ensure_editable(invoice, action='delete items from')

        item.is_deleted = True
        item.save(update_fields=['is_deleted', 'updated_at'])
        recalculate_totals(invoice, actor=actor)

    logger.info('Item %s removed from invoice %s', item.sku, invoice.invoice_number)
    return item, invoice
