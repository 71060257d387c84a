"""Django admin configuration for invoices."""

from django.contrib import admin

from .models import Invoice, InvoiceItem, InvoiceStatusHistory


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ('sku', 'product_name_en', 'quantity', 'unit_price', 'total_price', 'size', 'color', 'is_deleted')
    readonly_fields = ('total_price',)

    def get_queryset(self, request):
        return InvoiceItem.all_objects.select_related('invoice')


class InvoiceStatusHistoryInline(admin.TabularInline):
    model = InvoiceStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ('old_status', 'new_status', 'reason', 'changed_by', 'changed_at')


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    """Admin configuration for invoices, including soft-deleted ones."""

    list_display = (
        'invoice_number', 'order_code', 'customer_name', 'invoice_type', 'status',
        'payment_status', 'total_amount', 'currency', 'invoice_date', 'is_deleted',
    )
    list_filter = ('status', 'payment_status', 'invoice_type', 'is_deleted')
    search_fields = ('invoice_number', 'order_code', 'customer_name', 'customer_email')
    readonly_fields = (
        'invoice_number', 'subtotal', 'tax_amount', 'total_amount',
        'created_by', 'updated_by', 'created_at', 'updated_at', 'deleted_at', 'deleted_by',
    )
    inlines = [InvoiceItemInline, InvoiceStatusHistoryInline]

    def get_queryset(self, request):
        return Invoice.all_objects.select_related('order', 'user')
