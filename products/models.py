"""Database models for the product catalog."""

from django.db import models

from core.managers import LiveManager


class Product(models.Model):
    """Sellable product identified by its SKU.

    ``price`` is what the customer pays; ``old_price`` (when set) is the
    strike-through price used to report the discount at checkout.
    """

    sku = models.CharField(max_length=64, unique=True)
    name_en = models.CharField(max_length=255)
    name_ar = models.CharField(max_length=255, blank=True, default='')
    price = models.DecimalField(max_digits=12, decimal_places=2)
    old_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    quantity = models.IntegerField(default=0)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['is_deleted', 'sku'], name='product_live_sku_idx'),
        ]

    def __str__(self):
        return f"{self.name_en} - SKU: {self.sku}"
