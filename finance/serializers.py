"""DRF serializers for finance APIs."""

from rest_framework import serializers
from .models import InvoicePayment


class InvoicePaymentSerializer(serializers.ModelSerializer):
    """Payment audit row as embedded in invoice detail responses."""

    class Meta:
        model = InvoicePayment
        fields = ['id', 'payment_method', 'amount', 'payment_date', 'reference', 'notes', 'created_by', 'created_at']
