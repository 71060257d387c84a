"""Invoices API views.

Routes are wired explicitly in ``invoices/urls.py`` because several
operations (delete, item edits, status changes) take their target id in the
request body rather than in the URL.
"""

import logging

from django.db import transaction
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.exceptions import APIException, NotFound
from rest_framework.response import Response

from accounts.permissions import is_admin, resolve_target_user
from core.exceptions import BusinessRuleError, error_message
from orders.models import Order
from products.views import StandardResultsSetPagination
from . import items as item_ops
from . import lifecycle
from .assembly import create_invoice_from_order, create_manual_invoice, update_invoice_header
from .models import Invoice
from .serializers import (
    BulkDeleteSerializer,
    InvoiceDeleteSerializer,
    InvoiceDetailSerializer,
    InvoiceFromOrderSerializer,
    InvoiceHeaderUpdateSerializer,
    InvoiceItemCreateSerializer,
    InvoiceItemDeleteSerializer,
    InvoiceItemSerializer,
    InvoiceItemUpdateSerializer,
    InvoiceSerializer,
    InvoiceStatusUpdateSerializer,
    ManualInvoiceSerializer,
    MarkPaidSerializer,
)

logger = logging.getLogger(__name__)


def _batch_status(succeeded: int, failed: int) -> int:
    if not failed:
        return status.HTTP_201_CREATED
    if succeeded:
        return status.HTTP_207_MULTI_STATUS
    return status.HTTP_400_BAD_REQUEST


def _totals(invoice):
    return {
        'id': invoice.pk,
        'invoice_number': invoice.invoice_number,
        'subtotal': invoice.subtotal,
        'tax_amount': invoice.tax_amount,
        'total_amount': invoice.total_amount,
    }


class InvoiceViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Invoice API endpoints.

    Customers work on invoices billed to themselves; admins see and manage
    every live invoice.
    """

    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'payment_status', 'invoice_type', 'order_code']
    search_fields = ['invoice_number', 'customer_name', 'customer_email', 'order_code']
    ordering_fields = ['invoice_date', 'total_amount', 'created_at']
    ordering = ['-created_at']

    def scoped_invoices(self):
        qs = Invoice.objects.all()
        if not is_admin(self.request.user):
            qs = qs.filter(user=self.request.user)
        return qs

    def get_queryset(self):
        qs = self.scoped_invoices().select_related('order', 'user')
        if self.action == 'retrieve':
            qs = qs.prefetch_related('status_history', 'payments')
        return qs

    def get_object(self):
        """Resolve ``{pk}`` as a numeric id or, failing that, an invoice number."""
        identifier = self.kwargs[self.lookup_url_kwarg or self.lookup_field]
        field = 'pk' if identifier.isdigit() else 'invoice_number'
        invoice = self.get_queryset().filter(**{field: identifier}).first()
        if invoice is None:
            raise NotFound('Invoice not found')
        self.check_object_permissions(self.request, invoice)
        return invoice

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return InvoiceDetailSerializer
        return InvoiceSerializer

    def _actor(self):
        return self.request.user.actor_label

    def _find_order(self, order_id=None, order_code=None):
        qs = Order.objects.all()
        if not is_admin(self.request.user):
            qs = qs.filter(user=self.request.user)
        order = qs.filter(id=order_id).first() if order_id else qs.filter(order_code=order_code).first()
        if order is None:
            raise NotFound('Order not found')
        return order

    def _create_manual(self, data):
        """Resolve the billed user and linked order, then assemble the invoice."""
        request = self.request
        if data.get('user_id') is not None:
            user = resolve_target_user(request, data['user_id'])
        elif is_admin(request.user):
            user = None
        else:
            user = request.user

        payload = dict(data)
        if data.get('order_id'):
            payload['order'] = self._find_order(order_id=data['order_id'])
        return create_manual_invoice(payload, user=user, actor=self._actor())

    # Collection

    def create(self, request):
        """Create a manual or in-store invoice."""
        serializer = ManualInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = self._create_manual(serializer.validated_data)
        return Response(InvoiceDetailSerializer(invoice).data, status=status.HTTP_201_CREATED)

    def remove(self, request):
        """Soft-delete the invoice named by ``invoice_id`` in the body."""
        serializer = InvoiceDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = lifecycle.delete_invoice(
            data['invoice_id'],
            user=request.user,
            force=data['force_delete'],
            reason=data['deletion_reason'],
            queryset=self.scoped_invoices(),
        )
        return Response(result)

    def update_header(self, request, pk=None):
        serializer = InvoiceHeaderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = update_invoice_header(
            self.get_object().pk, serializer.validated_data, queryset=self.scoped_invoices(), actor=self._actor()
        )
        return Response(InvoiceDetailSerializer(invoice).data)

    def from_order(self, request):
        """Generate the invoice of an existing order (409 if it already has one)."""
        serializer = InvoiceFromOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = self._find_order(order_id=data.get('order_id'), order_code=data.get('order_code'))
        invoice = create_invoice_from_order(order, actor=self._actor())
        return Response(InvoiceDetailSerializer(invoice).data, status=status.HTTP_201_CREATED)

    # Lifecycle

    def update_status(self, request):
        serializer = InvoiceStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = lifecycle.update_status(
            data['invoice_id'],
            data['new_status'],
            reason=data['status_reason'],
            notify_customer=data['notify_customer'],
            actor=self._actor(),
            queryset=self.scoped_invoices(),
        )
        return Response(result)

    def mark_paid(self, request):
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = lifecycle.mark_paid(
            data['invoice_id'],
            data['payment_method'],
            amount=data.get('payment_amount'),
            payment_date=data.get('payment_date'),
            reference=data['payment_reference'],
            notes=data['payment_notes'],
            actor=self._actor(),
            queryset=self.scoped_invoices(),
        )
        return Response(result)

    # Items

    def add_item(self, request):
        serializer = InvoiceItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        invoice_id = data.pop('invoice_id')
        item, invoice = item_ops.add_item(invoice_id, data, actor=self._actor(), queryset=self.scoped_invoices())
        return Response(
            {'item': InvoiceItemSerializer(item).data, 'invoice': _totals(invoice)},
            status=status.HTTP_201_CREATED,
        )

    def update_item(self, request):
        serializer = InvoiceItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        item_id = data.pop('item_id')
        item, invoice = item_ops.update_item(item_id, data, actor=self._actor(), queryset=self.scoped_invoices())
        return Response({'item': InvoiceItemSerializer(item).data, 'invoice': _totals(invoice)})

    def delete_item(self, request):
        serializer = InvoiceItemDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item, invoice = item_ops.delete_item(
            serializer.validated_data['item_id'], actor=self._actor(), queryset=self.scoped_invoices()
        )
        return Response({
            'message': 'Invoice item deleted successfully',
            'item_id': item.pk,
            'invoice': _totals(invoice),
        })

    # Bulk

    def bulk_create(self, request):
        """Create several manual invoices; each row commits or fails on its own."""
        rows = request.data if isinstance(request.data, list) else request.data.get('invoices')
        if not isinstance(rows, list) or not rows:
            raise BusinessRuleError('Provide a non-empty list of invoices')

        created, errors = [], []
        for index, row in enumerate(rows):
            try:
                with transaction.atomic():
                    serializer = ManualInvoiceSerializer(data=row)
                    serializer.is_valid(raise_exception=True)
                    invoice = self._create_manual(serializer.validated_data)
            except APIException as exc:
                errors.append({'index': index, 'error': error_message(exc)})
                continue
            created.append({'index': index, 'invoice': InvoiceSerializer(invoice).data})

        logger.info('Bulk invoice create by %s: %d ok, %d failed', self._actor(), len(created), len(errors))
        return Response(
            {
                'data': created,
                'errors': errors,
                'message': f'Processed {len(rows)} invoices. {len(created)} successful, {len(errors)} failed.',
            },
            status=_batch_status(len(created), len(errors)),
        )

    def bulk_delete(self, request):
        serializer = BulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        deleted, errors = [], []
        for invoice_id in data['invoice_ids']:
            try:
                result = lifecycle.delete_invoice(
                    invoice_id,
                    user=request.user,
                    force=data['force_delete'],
                    reason=data['deletion_reason'],
                    queryset=self.scoped_invoices(),
                )
            except APIException as exc:
                errors.append({'invoice_id': invoice_id, 'error': error_message(exc)})
                continue
            deleted.append(result['invoice'])

        code = _batch_status(len(deleted), len(errors))
        return Response(
            {
                'data': deleted,
                'errors': errors,
                'message': f'Processed {len(data["invoice_ids"])} invoices. {len(deleted)} deleted, {len(errors)} failed.',
            },
            status=status.HTTP_200_OK if code == status.HTTP_201_CREATED else code,
        )
