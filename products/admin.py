"""Django admin configuration for the product catalog."""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin configuration for products, including soft-deleted ones."""

    list_display = ('sku', 'name_en', 'price', 'old_price', 'quantity', 'is_deleted')
    search_fields = ('sku', 'name_en', 'name_ar')
    list_filter = ('is_deleted',)

    def get_queryset(self, request):
        return Product.all_objects.all()
