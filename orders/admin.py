"""Django admin configuration for orders and related models."""

from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory

# 1. Order lines, read-only: prices are checkout snapshots
class OrderItemInline(admin.TabularInline):
    """Inline display of order line items."""

    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'price', 'quantity', 'size', 'color')
    can_delete = False

# 2. Status history is append-only
class OrderStatusHistoryInline(admin.TabularInline):
    """Inline display of the order's status history."""

    model = OrderStatusHistory
    extra = 0
    can_delete = False
    max_num = 0

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

# 3. The order itself, soft-deleted rows included
@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin configuration for customer orders."""

    list_display = ('order_code', 'user', 'total_price', 'status', 'is_deleted', 'created_at')
    list_filter = ('status', 'is_deleted', 'created_at')
    search_fields = ('order_code', 'user__username', 'user__email')
    readonly_fields = ('order_code', 'subtotal', 'discount_amount', 'delivery_fee', 'total_price', 'created_by', 'updated_by')

    inlines = [OrderItemInline, OrderStatusHistoryInline]

    def get_queryset(self, request):
        return Order.all_objects.select_related('user')
