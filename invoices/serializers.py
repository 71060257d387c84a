"""DRF serializers for invoice APIs (read representations and request payloads)."""

from rest_framework import serializers

from accounts.validators import normalize_phone
from finance.serializers import InvoicePaymentSerializer
from .models import Invoice, InvoiceItem, InvoiceStatusHistory

MONEY = {'max_digits': 12, 'decimal_places': 2}


# 1. Read side

class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = [
            'id', 'product', 'sku', 'product_name_en', 'product_name_ar', 'quantity',
            'unit_price', 'total_price', 'size', 'color', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InvoiceStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceStatusHistory
        fields = ['old_status', 'new_status', 'reason', 'changed_by', 'changed_at']


class InvoiceSerializer(serializers.ModelSerializer):
    """Invoice header as shown in list responses."""

    order_id = serializers.PrimaryKeyRelatedField(source='order', read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'order_id', 'order_code', 'user', 'invoice_type', 'is_manual',
            'status', 'payment_status', 'payment_method', 'payment_date', 'payment_reference',
            'customer_name', 'customer_email', 'customer_phone',
            'billing_first_name', 'billing_last_name', 'billing_phone', 'billing_email', 'billing_company',
            'billing_city', 'billing_state', 'billing_area', 'billing_street', 'billing_building',
            'billing_apartment', 'billing_notes', 'billing_address',
            'subtotal', 'tax_rate', 'tax_amount', 'discount_amount', 'shipping_amount', 'total_amount',
            'currency', 'invoice_date', 'due_date', 'notes', 'internal_notes',
            'created_by', 'updated_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceSerializer):
    """Invoice with its live items, status history and recorded payments."""

    items = serializers.SerializerMethodField()
    status_history = InvoiceStatusHistorySerializer(many=True, read_only=True)
    payments = InvoicePaymentSerializer(many=True, read_only=True)

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['items', 'status_history', 'payments']
        read_only_fields = fields

    def get_items(self, obj):
        return InvoiceItemSerializer(InvoiceItem.objects.filter(invoice=obj), many=True).data


# 2. Payloads

class InvoiceItemInputSerializer(serializers.Serializer):
    """One line of a new invoice; ``product_sku`` is accepted for ``sku``."""

    sku = serializers.CharField(required=False, allow_blank=True)
    product_sku = serializers.CharField(required=False, allow_blank=True, write_only=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(required=False, allow_null=True, min_value=0, **MONEY)
    product_name_en = serializers.CharField(required=False, allow_blank=True)
    product_name_ar = serializers.CharField(required=False, allow_blank=True)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        sku = (attrs.pop('sku', '') or attrs.pop('product_sku', '') or '').strip()
        attrs.pop('product_sku', None)
        if not sku:
            raise serializers.ValidationError({'sku': 'This field is required.'})
        attrs['sku'] = sku
        return attrs


class BillingDetailsSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    company = serializers.CharField(required=False, allow_blank=True)
    city = serializers.CharField(required=False, allow_blank=True)
    state = serializers.CharField(required=False, allow_blank=True)
    area = serializers.CharField(required=False, allow_blank=True)
    street = serializers.CharField(required=False, allow_blank=True)
    building = serializers.CharField(required=False, allow_blank=True)
    apartment = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)

    def validate_phone(self, value):
        return normalize_phone(value)


class ManualInvoiceSerializer(serializers.Serializer):
    """Payload of ``POST /invoices/`` (and of every bulk-create row)."""

    user_id = serializers.IntegerField(required=False)
    order_id = serializers.IntegerField(required=False)
    order_code = serializers.CharField(required=False, allow_blank=True)
    invoice_type = serializers.ChoiceField(choices=['manual', 'instore'], default='manual')
    status = serializers.ChoiceField(choices=['draft', 'sent'], default='draft')
    payment_method = serializers.ChoiceField(choices=Invoice.PAYMENT_METHOD_CHOICES, required=False, allow_blank=True)

    customer_name = serializers.CharField(required=False, allow_blank=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_phone = serializers.CharField(required=False, allow_blank=True)
    billing_address_id = serializers.IntegerField(required=False, allow_null=True)
    billing_details = BillingDetailsSerializer(required=False, allow_null=True)

    items = InvoiceItemInputSerializer(many=True, allow_empty=False)

    tax_rate = serializers.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)
    discount_amount = serializers.DecimalField(required=False, min_value=0, **MONEY)
    shipping_amount = serializers.DecimalField(required=False, min_value=0, **MONEY)
    delivery_fee = serializers.DecimalField(required=False, min_value=0, **MONEY)
    currency = serializers.CharField(required=False, max_length=3)
    invoice_date = serializers.DateTimeField(required=False)
    due_date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)

    def validate_customer_phone(self, value):
        return normalize_phone(value)


class InvoiceFromOrderSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(required=False)
    order_code = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('order_id') and not attrs.get('order_code'):
            raise serializers.ValidationError('Missing required field: order_id or order_code')
        return attrs


class InvoiceStatusUpdateSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    new_status = serializers.CharField()
    status_reason = serializers.CharField(required=False, allow_blank=True, default='')
    notify_customer = serializers.BooleanField(required=False, default=False)


class MarkPaidSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    payment_method = serializers.CharField()
    payment_amount = serializers.DecimalField(required=False, allow_null=True, min_value=0, **MONEY)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    payment_reference = serializers.CharField(required=False, allow_blank=True, default='')
    payment_notes = serializers.CharField(required=False, allow_blank=True, default='')


class InvoiceItemCreateSerializer(InvoiceItemInputSerializer):
    invoice_id = serializers.IntegerField()


class InvoiceItemUpdateSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    quantity = serializers.IntegerField(required=False, min_value=1)
    unit_price = serializers.DecimalField(required=False, min_value=0, **MONEY)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class InvoiceItemDeleteSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()


class InvoiceDeleteSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    force_delete = serializers.BooleanField(required=False, default=False)
    deletion_reason = serializers.CharField(required=False, allow_blank=True, default='')


class BulkDeleteSerializer(serializers.Serializer):
    invoice_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    force_delete = serializers.BooleanField(required=False, default=False)
    deletion_reason = serializers.CharField(required=False, allow_blank=True, default='')


class InvoiceHeaderUpdateSerializer(serializers.Serializer):
    """Allow-listed header fields for ``PUT /invoices/{id}/``."""

    customer_name = serializers.CharField(required=False, allow_blank=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_phone = serializers.CharField(required=False, allow_blank=True)
    tax_rate = serializers.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)
    discount_amount = serializers.DecimalField(required=False, min_value=0, **MONEY)
    shipping_amount = serializers.DecimalField(required=False, min_value=0, **MONEY)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)

    def validate_customer_phone(self, value):
        return normalize_phone(value)
