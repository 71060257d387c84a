"""Serializers for the product catalog."""

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Catalog entry used for SKU lookup when building invoices."""

    class Meta:
        model = Product
        fields = ['id', 'sku', 'name_en', 'name_ar', 'price', 'old_price', 'quantity']
        read_only_fields = fields
