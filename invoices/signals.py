"""Signals for automatic invoice generation."""

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from core.exceptions import Conflict
from orders.models import Order
from .assembly import create_invoice_from_order

logger = logging.getLogger(__name__)


def _invoice_delivered_order(order_id, actor):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        return
    try:
        invoice = create_invoice_from_order(order, actor=actor)
    except Conflict:
        # already invoiced
        return
    except Exception:
        logger.warning('Auto-invoice failed for order %s', order.order_code, exc_info=True)
        return
    logger.info('Auto-generated invoice %s for delivered order %s', invoice.invoice_number, order.order_code)


@receiver(post_save, sender=Order)
def invoice_on_delivery(sender, instance, created, **kwargs):
    """Create the order's invoice once it is marked delivered.

    Runs after the status change commits; an order that already has an
    invoice is left alone.
    """
    if created or instance.status != 'delivered' or instance.is_deleted:
        return
    transaction.on_commit(partial(_invoice_delivered_order, instance.pk, instance.updated_by or 'system'))
