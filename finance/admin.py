"""Django admin configuration for finance models."""

from django.contrib import admin
from .models import InvoicePayment


@admin.register(InvoicePayment)
class InvoicePaymentAdmin(admin.ModelAdmin):
    """Read-only view over recorded invoice payments."""

    list_display = ('id', 'get_invoice_number', 'amount', 'payment_method', 'payment_date', 'created_by')
    list_filter = ('payment_method', 'payment_date')
    search_fields = ('invoice__invoice_number', 'reference')
    readonly_fields = ('created_at',)

    def get_invoice_number(self, obj):
        return obj.invoice.invoice_number
    get_invoice_number.short_description = 'Invoice'

    def has_add_permission(self, request):
        # payments come from the mark-paid workflow only
        return False
