"""DRF serializers for orders APIs."""

from rest_framework import serializers
from .models import Order, OrderItem, OrderStatusHistory

MISSING_STATUS_FIELDS = "Missing 'status' and either 'order_id' or 'order_code'"


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line with the product identity copied next to the price snapshot."""

    sku = serializers.ReadOnlyField(source='product.sku')
    product_name_en = serializers.ReadOnlyField(source='product.name_en')
    product_name_ar = serializers.ReadOnlyField(source='product.name_ar')
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'sku', 'product_name_en', 'product_name_ar', 'quantity', 'price', 'size', 'color', 'line_total']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ['status', 'changed_by', 'changed_at', 'note']


class OrderSerializer(serializers.ModelSerializer):
    """
    Read representation of an order: money snapshot, lines and status history.
    """
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    customer_username = serializers.ReadOnlyField(source='user.username')
    shipping_address = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id',
            'order_code',
            'status',
            'customer_username',
            'shipping_address',
            'note',
            'user_note',
            'subtotal',
            'discount_amount',
            'delivery_fee',
            'total_price',
            'created_at',
            'updated_at',
            'items',
            'status_history',
        ]
        read_only_fields = fields

    def get_shipping_address(self, obj):
        if not obj.address_id:
            return None
        return obj.address.as_single_line()


class CheckoutSerializer(serializers.Serializer):
    address_id = serializers.IntegerField()
    note = serializers.CharField(required=False, allow_blank=True, default='')
    user_id = serializers.IntegerField(required=False)


class DirectCheckoutSerializer(CheckoutSerializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class OrderStatusUpdateSerializer(serializers.Serializer):
    """Payload of ``PUT /orders/status/``: ``order_id`` or ``order_code`` plus the new status."""

    order_id = serializers.IntegerField(required=False)
    order_code = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    note = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('status') or not (attrs.get('order_id') or attrs.get('order_code')):
            raise serializers.ValidationError(MISSING_STATUS_FIELDS)
        valid = [key for key, _ in Order.STATUS_CHOICES]
        if attrs['status'] not in valid:
            raise serializers.ValidationError({'status': f"Invalid status. Valid statuses: {', '.join(valid)}"})
        return attrs
