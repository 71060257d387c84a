"""Database models for users, delivery geography and addresses."""

from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractUser

from core.managers import LiveManager


# 1. Users
class User(AbstractUser):
    """Custom user model.

    Extends Django's :class:`~django.contrib.auth.models.AbstractUser` with:
    - ``user_type`` to separate customer vs admin flows
    - optional ``phone_number``
    """

    USER_TYPE_CHOICES = (
        ('customer', 'Customer'),
        ('admin', 'Admin'),
    )
    phone_number = models.CharField(max_length=20, null=True, blank=True)
    user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES, default='customer')

    def __str__(self):
        return self.username

    @property
    def actor_label(self):
        """Identifier written into audit columns (email when set, else username)."""
        return self.email or self.username


# 2. Delivery geography
class Country(models.Model):
    """Country lookup table used by states."""

    name_en = models.CharField(max_length=100)
    name_ar = models.CharField(max_length=100, blank=True, default='')
    code = models.CharField(max_length=3, unique=True)
    currency = models.CharField(max_length=3, default='AED')

    def __str__(self): return self.name_en

    class Meta:
        verbose_name = "Country"
        verbose_name_plural = "Countries"


class State(models.Model):
    """State / emirate carrying the flat delivery fee charged at checkout."""

    country = models.ForeignKey(Country, on_delete=models.CASCADE, related_name='states')
    name_en = models.CharField(max_length=100)
    name_ar = models.CharField(max_length=100, blank=True, default='')
    code = models.CharField(max_length=10)
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    def __str__(self): return f"{self.name_en} ({self.code})"

    class Meta:
        unique_together = ('country', 'code')


# 3. Addresses
class Address(models.Model):
    """Delivery address owned by a single user."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='addresses')
    label = models.CharField(max_length=50, blank=True, default='')
    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    phone = models.CharField(max_length=20, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.ForeignKey(State, on_delete=models.SET_NULL, null=True, blank=True, related_name='addresses')
    area = models.CharField(max_length=100, blank=True, default='')
    street = models.CharField(max_length=255, blank=True, default='')
    building = models.CharField(max_length=100, blank=True, default='')
    apartment = models.CharField(max_length=50, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    is_default = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        verbose_name = "Address"
        verbose_name_plural = "Addresses"

    def __str__(self): return f"{self.label or self.street}, {self.city}"

    @property
    def delivery_fee(self):
        if self.state_id is None:
            return Decimal('0.00')
        return self.state.delivery_fee

    def as_single_line(self):
        parts = [
            self.building,
            f"Apt {self.apartment}" if self.apartment else '',
            self.street,
            self.area,
            self.city,
            self.state.code if self.state_id else '',
        ]
        line = ', '.join(p for p in parts if p)
        if self.notes:
            line = f"{line} ({self.notes})"
        return line

    def as_billing_snapshot(self):
        """Copy of this address in the ``billing_*`` shape stored on invoices."""
        user = self.user
        return {
            'billing_first_name': self.first_name or user.first_name,
            'billing_last_name': self.last_name or user.last_name,
            'billing_phone': self.phone or (user.phone_number or ''),
            'billing_email': user.email or '',
            'billing_company': '',
            'billing_city': self.city,
            'billing_state': self.state.name_en if self.state_id else '',
            'billing_area': self.area,
            'billing_street': self.street,
            'billing_building': self.building,
            'billing_apartment': self.apartment,
            'billing_notes': self.notes,
            'billing_address': self.as_single_line(),
        }
