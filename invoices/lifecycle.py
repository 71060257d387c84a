"""Invoice state machine: status transitions, payment recording and deletion.

Transitions::

    draft    -> sent, cancelled
    sent     -> paid, overdue, cancelled
    paid     -> refunded
    overdue  -> paid, cancelled
    cancelled, refunded: terminal
"""

import logging
from functools import partial

from django.db import DatabaseError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from accounts.permissions import is_admin
from core.exceptions import BusinessRuleError
from core.money import to_money
from . import audit
from .models import Invoice, InvoiceItem

logger = logging.getLogger(__name__)

INVOICE_TRANSITIONS: dict[str, tuple[str, ...]] = {
    'draft': ('sent', 'cancelled'),
    'sent': ('paid', 'overdue', 'cancelled'),
    'paid': ('refunded',),
    'overdue': ('paid', 'cancelled'),
    'cancelled': (),
    'refunded': (),
}

# payment_status forced by entering a status
_PAYMENT_STATUS_ON_ENTER = {
    'paid': 'paid',
    'refunded': 'refunded',
    'cancelled': 'failed',
}

INVOICE_STATUSES = tuple(key for key, _ in Invoice.STATUS_CHOICES)
PAYMENT_METHODS = tuple(key for key, _ in Invoice.PAYMENT_METHOD_CHOICES)

# deletable without force
_SOFT_DELETABLE_STATUSES = {'draft', 'sent', 'cancelled'}
_LOCKED_ORDER_STATUSES = {'delivered', 'completed'}


def allowed_transitions(current: str) -> tuple[str, ...]:
    return INVOICE_TRANSITIONS.get(current, ())


def transition_allowed(current: str, new: str) -> bool:
    return new in allowed_transitions(current)


def _lock_invoice(invoice_id, queryset=None) -> Invoice:
    queryset = queryset if queryset is not None else Invoice.objects.all()
    invoice = queryset.select_for_update().filter(pk=invoice_id).first()
    if invoice is None:
        raise NotFound('Invoice not found')
    return invoice


def _stamp():
    return timezone.now().isoformat()


def update_status(invoice_id, new_status, *, reason='', notify_customer=False, actor='', queryset=None) -> dict:
    """Move an invoice along the transition table and apply payment side effects."""
    if new_status not in INVOICE_STATUSES:
        raise ValidationError({'new_status': [f"Invalid status. Valid statuses: {', '.join(INVOICE_STATUSES)}"]})

    with transaction.atomic():
        invoice = _lock_invoice(invoice_id, queryset)
        old_status = invoice.status

        if not transition_allowed(old_status, new_status):
            allowed = ', '.join(allowed_transitions(old_status)) or 'none'
            raise BusinessRuleError(
                f'Cannot transition from {old_status} to {new_status}. Allowed transitions: {allowed}'
            )

        invoice.status = new_status
        payment_status = _PAYMENT_STATUS_ON_ENTER.get(new_status)
        if payment_status:
            invoice.payment_status = payment_status
        if new_status == 'paid':
            invoice.payment_date = timezone.now()
        if reason:
            invoice.internal_notes = f"{invoice.internal_notes}\n[STATUS CHANGE {_stamp()}] {old_status} → {new_status}: {reason}"
        invoice.updated_by = actor
        invoice.save()

        transaction.on_commit(partial(audit.record_status_change, invoice.pk, old_status, new_status, reason, actor))
        if notify_customer and invoice.customer_email:
            transaction.on_commit(partial(audit.notify_status_change, invoice.pk, old_status, new_status, reason))

    logger.info('Invoice %s moved %s -> %s by %s', invoice.invoice_number, old_status, new_status, actor)
    return {
        'success': True,
        'invoice_id': invoice.pk,
        'invoice_number': invoice.invoice_number,
        'old_status': old_status,
        'new_status': new_status,
        'updated_at': invoice.updated_at,
        'updated_by': invoice.updated_by,
    }


def mark_paid(invoice_id, payment_method, *, amount=None, payment_date=None, reference='', notes='',
              actor='', queryset=None) -> dict:
    """Record a payment; anything below the invoice total is a partial payment."""
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError({'payment_method': [f"Invalid payment method. Valid methods: {', '.join(PAYMENT_METHODS)}"]})

    with transaction.atomic():
        invoice = _lock_invoice(invoice_id, queryset)
        if invoice.payment_status == 'paid':
            raise BusinessRuleError('Invoice is already marked as paid')
        if invoice.status == 'cancelled':
            raise BusinessRuleError('Cannot mark cancelled invoice as paid')

        amount = to_money(amount) if amount is not None else invoice.total_amount
        if amount < invoice.total_amount:
            invoice.payment_status = 'partial'
        else:
            invoice.payment_status = 'paid'
            invoice.status = 'paid'

        invoice.payment_method = payment_method
        invoice.payment_date = payment_date or timezone.now()
        invoice.payment_reference = reference or ''
        if notes:
            invoice.internal_notes = (
                f"{invoice.internal_notes}\n[PAYMENT {_stamp()}] {payment_method.upper()}: "
                f"{amount} ({invoice.payment_status}) - {notes}"
            )
        invoice.updated_by = actor
        invoice.save()

        transaction.on_commit(partial(
            audit.record_payment, invoice.pk, payment_method, amount, invoice.payment_date,
            invoice.payment_reference, notes, actor,
        ))
        if invoice.payment_status == 'paid' and invoice.customer_email:
            transaction.on_commit(partial(audit.notify_payment_received, invoice.pk))

    logger.info('Invoice %s payment %s via %s (%s)', invoice.invoice_number, amount, payment_method, invoice.payment_status)
    return {
        'success': True,
        'invoice_id': invoice.pk,
        'invoice_number': invoice.invoice_number,
        'payment_status': invoice.payment_status,
        'payment_amount': amount,
        'payment_date': invoice.payment_date,
        'payment_method': invoice.payment_method,
        'payment_reference': invoice.payment_reference,
    }


def delete_invoice(invoice_id, *, user, force=False, reason='', queryset=None) -> dict:
    """Soft-delete an invoice and its items.

    Paid, overdue or refunded invoices, and invoices of delivered/completed
    orders, need ``force=True`` with a reason, and only admins may force.
    """
    actor = user.actor_label
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id, queryset)

        blockers = []
        if invoice.status not in _SOFT_DELETABLE_STATUSES:
            blockers.append(f'status is {invoice.status}')
        if invoice.payment_status == 'paid':
            blockers.append('invoice is paid')
        if invoice.order_id and invoice.order.status in _LOCKED_ORDER_STATUSES:
            blockers.append(f'linked order is {invoice.order.status}')

        forced = bool(blockers)
        if forced:
            if not force:
                raise BusinessRuleError(
                    f"Invoice cannot be deleted ({'; '.join(blockers)}). Set force_delete with a deletion_reason to override."
                )
            if not reason:
                raise BusinessRuleError('deletion_reason is required when force deleting an invoice')
            if not is_admin(user):
                raise PermissionDenied('Only admins can force delete invoices')

        now = timezone.now()
        invoice.is_deleted = True
        invoice.deleted_at = now
        invoice.deleted_by = actor
        invoice.deletion_reason = reason or ''
        invoice.updated_by = actor
        invoice.save()

        try:
            with transaction.atomic():
                InvoiceItem.objects.filter(invoice=invoice).update(is_deleted=True, updated_at=now)
        except DatabaseError:
            logger.warning('Could not soft-delete items of invoice %s', invoice.invoice_number, exc_info=True)

    logger.info('Invoice %s deleted by %s (forced=%s)', invoice.invoice_number, actor, forced)
    return {
        'message': 'Invoice deleted successfully',
        'invoice': {
            'id': invoice.pk,
            'invoice_number': invoice.invoice_number,
            'is_deleted': True,
            'deleted_at': invoice.deleted_at,
            'deleted_by': invoice.deleted_by,
            'forced': forced,
        },
    }
