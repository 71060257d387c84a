import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


INVOICE_STATUS_CHOICES = [
    ('draft', 'Draft'),
    ('sent', 'Sent'),
    ('paid', 'Paid'),
    ('overdue', 'Overdue'),
    ('cancelled', 'Cancelled'),
    ('refunded', 'Refunded'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('orders', '0001_initial'),
        ('products', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(max_length=32, unique=True)),
                ('order_code', models.CharField(blank=True, default='', max_length=32)),
                ('invoice_type', models.CharField(choices=[('online', 'Online'), ('instore', 'In store'), ('manual', 'Manual')], default='manual', max_length=10)),
                ('is_manual', models.BooleanField(default=True)),
                ('status', models.CharField(choices=INVOICE_STATUS_CHOICES, default='draft', max_length=10)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('partial', 'Partial'), ('failed', 'Failed'), ('refunded', 'Refunded')], default='pending', max_length=10)),
                ('payment_method', models.CharField(blank=True, choices=[('cash', 'Cash'), ('card', 'Card'), ('online', 'Online'), ('bank_transfer', 'Bank transfer'), ('check', 'Check'), ('other', 'Other')], default='', max_length=20)),
                ('payment_date', models.DateTimeField(blank=True, null=True)),
                ('payment_reference', models.CharField(blank=True, default='', max_length=100)),
                ('customer_name', models.CharField(blank=True, default='', max_length=255)),
                ('customer_email', models.EmailField(blank=True, default='', max_length=254)),
                ('customer_phone', models.CharField(blank=True, default='', max_length=20)),
                ('billing_first_name', models.CharField(blank=True, default='', max_length=100)),
                ('billing_last_name', models.CharField(blank=True, default='', max_length=100)),
                ('billing_phone', models.CharField(blank=True, default='', max_length=20)),
                ('billing_email', models.EmailField(blank=True, default='', max_length=254)),
                ('billing_company', models.CharField(blank=True, default='', max_length=255)),
                ('billing_city', models.CharField(blank=True, default='', max_length=100)),
                ('billing_state', models.CharField(blank=True, default='', max_length=100)),
                ('billing_area', models.CharField(blank=True, default='', max_length=100)),
                ('billing_street', models.CharField(blank=True, default='', max_length=255)),
                ('billing_building', models.CharField(blank=True, default='', max_length=100)),
                ('billing_apartment', models.CharField(blank=True, default='', max_length=50)),
                ('billing_notes', models.TextField(blank=True, default='')),
                ('billing_address', models.TextField(blank=True, default='')),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tax_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('shipping_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('currency', models.CharField(default='AED', max_length=3)),
                ('invoice_date', models.DateTimeField()),
                ('due_date', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('internal_notes', models.TextField(blank=True, default='')),
                ('is_deleted', models.BooleanField(default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_by', models.CharField(blank=True, default='', max_length=254)),
                ('deletion_reason', models.TextField(blank=True, default='')),
                ('created_by', models.CharField(blank=True, default='', max_length=254)),
                ('updated_by', models.CharField(blank=True, default='', max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='orders.order')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Invoice',
                'verbose_name_plural': 'Invoices',
                'ordering': ['-invoice_date', '-id'],
                'indexes': [
                    models.Index(fields=['status', 'payment_status'], name='invoice_status_idx'),
                    models.Index(fields=['order_code'], name='invoice_order_code_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=64)),
                ('product_name_en', models.CharField(blank=True, default='', max_length=255)),
                ('product_name_ar', models.CharField(blank=True, default='', max_length=255)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('size', models.CharField(blank=True, max_length=20, null=True)),
                ('color', models.CharField(blank=True, max_length=30, null=True)),
                ('is_deleted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='invoices.invoice')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoice_items', to='products.product')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='InvoiceStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('old_status', models.CharField(choices=INVOICE_STATUS_CHOICES, max_length=10)),
                ('new_status', models.CharField(choices=INVOICE_STATUS_CHOICES, max_length=10)),
                ('reason', models.TextField(blank=True, default='')),
                ('changed_by', models.CharField(blank=True, default='', max_length=254)),
                ('changed_at', models.DateTimeField(auto_now_add=True)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='invoices.invoice')),
            ],
            options={
                'verbose_name_plural': 'Invoice Status History',
                'ordering': ['changed_at', 'id'],
            },
        ),
    ]
