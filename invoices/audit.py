"""Best-effort audit and notification writes for invoices.

These run after the primary change has committed (scheduled with
``transaction.on_commit``). A failure here is logged and never reaches the
caller.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

from finance.models import InvoicePayment
from .models import Invoice, InvoiceStatusHistory

logger = logging.getLogger(__name__)


def record_status_change(invoice_id, old_status, new_status, reason='', changed_by=''):
    try:
        InvoiceStatusHistory.objects.create(
            invoice_id=invoice_id,
            old_status=old_status,
            new_status=new_status,
            reason=reason or '',
            changed_by=changed_by or '',
        )
    except Exception:
        logger.warning('Could not write status history for invoice %s (%s -> %s)', invoice_id, old_status, new_status, exc_info=True)


def record_payment(invoice_id, payment_method, amount, payment_date, reference='', notes='', created_by=''):
    try:
        InvoicePayment.objects.create(
            invoice_id=invoice_id,
            payment_method=payment_method,
            amount=amount,
            payment_date=payment_date,
            reference=reference or '',
            notes=notes or '',
            created_by=created_by or '',
        )
    except Exception:
        logger.warning('Could not write payment record for invoice %s', invoice_id, exc_info=True)


def _send(invoice_id, build_message):
    try:
        invoice = Invoice.all_objects.get(pk=invoice_id)
        if not invoice.customer_email:
            return
        subject, body = build_message(invoice)
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [invoice.customer_email])
    except Exception:
        logger.warning('Could not send notification for invoice %s', invoice_id, exc_info=True)


def notify_status_change(invoice_id, old_status, new_status, reason=''):
    def build(invoice):
        lines = [
            f"Dear {invoice.customer_name or 'customer'},",
            '',
            f"The status of invoice {invoice.invoice_number} changed from {old_status} to {new_status}.",
        ]
        if reason:
            lines.append(f"Reason: {reason}")
        lines += ['', f"Total: {invoice.total_amount} {invoice.currency}"]
        return f"Invoice {invoice.invoice_number} status update", '\n'.join(lines)

    _send(invoice_id, build)


def notify_payment_received(invoice_id):
    def build(invoice):
        body = (
            f"Dear {invoice.customer_name or 'customer'},\n\n"
            f"We received your payment of {invoice.total_amount} {invoice.currency} "
            f"for invoice {invoice.invoice_number}. Thank you."
        )
        return f"Payment received for invoice {invoice.invoice_number}", body

    _send(invoice_id, build)
