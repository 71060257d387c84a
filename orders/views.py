"""Orders API views.

Includes cart checkout, direct checkout, admin status updates, list/detail
endpoints and soft deletion.
"""

import logging

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import is_admin, resolve_target_user
from core.exceptions import BusinessRuleError
from products.views import StandardResultsSetPagination
from .checkout import checkout_cart, direct_checkout as buy_now
from .models import Order, OrderStatusHistory
from .serializers import (
    CheckoutSerializer,
    DirectCheckoutSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
)

logger = logging.getLogger(__name__)


class OrderViewSet(mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    """Order API endpoints for customers and admins.

    Customers check out and see their own orders.
    Admins see every order and update statuses.
    """

    permission_classes = [permissions.IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status']
    search_fields = ['order_code']
    ordering_fields = ['created_at', 'total_price']
    ordering = ['-created_at']

    def get_queryset(self):
        """Admins: every live order. Customers: their own."""
        user = self.request.user
        qs = (
            Order.objects.select_related('user', 'address__state')
            .prefetch_related('items__product', 'status_history')
        )
        if not is_admin(user):
            qs = qs.filter(user=user)

        if self.action == 'list':
            date_from = parse_date(self.request.query_params.get('date_from') or '')
            if date_from:
                qs = qs.filter(created_at__date__gte=date_from)
            date_to = parse_date(self.request.query_params.get('date_to') or '')
            if date_to:
                qs = qs.filter(created_at__date__lte=date_to)
        return qs

    @action(detail=False, methods=['post'], url_path='checkout')
    def checkout(self, request):
        """Turn the caller's cart into an order.

        Payload: ``{address_id, note?, user_id?}`` (``user_id`` is admin-only).
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = resolve_target_user(request, data.get('user_id'))
        order, totals = checkout_cart(
            user,
            data['address_id'],
            note=data.get('note', ''),
            actor=request.user.actor_label,
        )
        return Response({
            'order_id': order.id,
            'order_code': order.order_code,
            'subtotal': totals.subtotal,
            'discount': totals.discount,
            'delivery_fee': totals.delivery_fee,
            'total_price': totals.total_price,
        }, status=201)

    @action(detail=False, methods=['post'], url_path='direct-checkout')
    def direct_checkout(self, request):
        """Buy one product right away, bypassing the cart."""
        serializer = DirectCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = resolve_target_user(request, data.get('user_id'))
        order, totals = buy_now(
            user,
            data['product_id'],
            data['address_id'],
            quantity=data['quantity'],
            size=data.get('size') or None,
            color=data.get('color') or None,
            note=data.get('note', ''),
            actor=request.user.actor_label,
        )
        return Response({
            'order_id': order.id,
            'order_code': order.order_code,
            'total_price': totals.total_price,
            'delivery_fee': totals.delivery_fee,
            'product_id': data['product_id'],
            'quantity': data['quantity'],
        }, status=201)

    @action(detail=False, methods=['put'], url_path='status')
    def update_status(self, request):
        """Admin-only: set an order's status and append a history row.

        Payload: ``{order_id | order_code, status, note?}``
        """
        if not is_admin(request.user):
            return Response({'error': 'Only admins can update order status.'}, status=403)

        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actor = request.user.actor_label

        with transaction.atomic():
            qs = Order.objects.select_for_update()
            if data.get('order_id'):
                order = qs.filter(id=data['order_id']).first()
            else:
                order = qs.filter(order_code=data['order_code']).first()
            if order is None:
                return Response({'error': 'Order not found'}, status=404)

            previous = order.status
            order.status = data['status']
            if 'note' in data:
                order.note = data['note']
            order.updated_by = actor
            order.save()

            OrderStatusHistory.objects.create(
                order=order,
                status=order.status,
                changed_by=actor,
                note=data.get('note', ''),
            )

        logger.info('Order %s status %s -> %s by %s', order.order_code, previous, order.status, actor)
        return Response({'status': 'updated'})

    def destroy(self, request, *args, **kwargs):
        """Soft-delete an order unless it already has a paid invoice."""
        order = self.get_object()
        self.perform_destroy(order)
        return Response({'message': 'Order deleted successfully', 'order_id': order.id, 'order_code': order.order_code})

    def perform_destroy(self, instance):
        if instance.invoices.filter(payment_status='paid').exists():
            raise BusinessRuleError('Cannot delete an order that has a paid invoice')
        instance.is_deleted = True
        instance.deleted_at = timezone.now()
        instance.updated_by = self.request.user.actor_label
        instance.save(update_fields=['is_deleted', 'deleted_at', 'updated_by', 'updated_at'])
        logger.info('Order %s soft-deleted by %s', instance.order_code, instance.updated_by)
