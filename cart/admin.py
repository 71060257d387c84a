"""Django admin configuration for cart lines."""

from django.contrib import admin
from .models import CartItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    """Admin configuration for cart lines."""

    list_display = ('user', 'product', 'quantity', 'size', 'color', 'is_deleted', 'created_at')
    list_filter = ('is_deleted',)
    search_fields = ('user__username', 'user__email', 'product__sku')
