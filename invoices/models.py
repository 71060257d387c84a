"""Database models for invoices, invoice lines and invoice status history."""

from decimal import Decimal

from django.db import models
from django.conf import settings

from core.managers import LiveManager


class Invoice(models.Model):
    """Invoice created manually or derived from an order.

    Customer and billing data are copied (``billing_*``) rather than referenced
    so later address edits never change an issued invoice.
    """

    STATUS_CHOICES = (
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
        ('refunded', 'Refunded'),
    )
    PAYMENT_STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('partial', 'Partial'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    )
    PAYMENT_METHOD_CHOICES = (
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('online', 'Online'),
        ('bank_transfer', 'Bank transfer'),
        ('check', 'Check'),
        ('other', 'Other'),
    )
    TYPE_CHOICES = (
        ('online', 'Online'),
        ('instore', 'In store'),
        ('manual', 'Manual'),
    )

    invoice_number = models.CharField(max_length=32, unique=True)
    # several invoices may point at one order over time (only one live)
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    order_code = models.CharField(max_length=32, blank=True, default='')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    invoice_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='manual')
    is_manual = models.BooleanField(default=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='draft')
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True, default='')
    payment_date = models.DateTimeField(null=True, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True, default='')

    customer_name = models.CharField(max_length=255, blank=True, default='')
    customer_email = models.EmailField(blank=True, default='')
    customer_phone = models.CharField(max_length=20, blank=True, default='')

    billing_first_name = models.CharField(max_length=100, blank=True, default='')
    billing_last_name = models.CharField(max_length=100, blank=True, default='')
    billing_phone = models.CharField(max_length=20, blank=True, default='')
    billing_email = models.EmailField(blank=True, default='')
    billing_company = models.CharField(max_length=255, blank=True, default='')
    billing_city = models.CharField(max_length=100, blank=True, default='')
    billing_state = models.CharField(max_length=100, blank=True, default='')
    billing_area = models.CharField(max_length=100, blank=True, default='')
    billing_street = models.CharField(max_length=255, blank=True, default='')
    billing_building = models.CharField(max_length=100, blank=True, default='')
    billing_apartment = models.CharField(max_length=50, blank=True, default='')
    billing_notes = models.TextField(blank=True, default='')
    billing_address = models.TextField(blank=True, default='')

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    shipping_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='AED')

    invoice_date = models.DateTimeField()
    due_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    internal_notes = models.TextField(blank=True, default='')

    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.CharField(max_length=254, blank=True, default='')
    deletion_reason = models.TextField(blank=True, default='')
    created_by = models.CharField(max_length=254, blank=True, default='')
    updated_by = models.CharField(max_length=254, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        ordering = ['-invoice_date', '-id']
        indexes = [
            models.Index(fields=['status', 'payment_status'], name='invoice_status_idx'),
            models.Index(fields=['order_code'], name='invoice_order_code_idx'),
        ]

    def __str__(self):
        return f"Invoice {self.invoice_number}"


class InvoiceItem(models.Model):
    """Invoice line; product names and unit price are snapshots."""

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoice_items')
    sku = models.CharField(max_length=64)
    product_name_en = models.CharField(max_length=255, blank=True, default='')
    product_name_ar = models.CharField(max_length=255, blank=True, default='')
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    size = models.CharField(max_length=20, null=True, blank=True)
    color = models.CharField(max_length=30, null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.sku} on {self.invoice.invoice_number}"


class InvoiceStatusHistory(models.Model):
    """Audit row per accepted invoice status transition."""

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='status_history')
    old_status = models.CharField(max_length=10, choices=Invoice.STATUS_CHOICES)
    new_status = models.CharField(max_length=10, choices=Invoice.STATUS_CHOICES)
    reason = models.TextField(blank=True, default='')
    changed_by = models.CharField(max_length=254, blank=True, default='')
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Invoice Status History"
        ordering = ['changed_at', 'id']

    def __str__(self):
        return f"{self.invoice.invoice_number}: {self.old_status} -> {self.new_status}"
