from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User, Country, State, Address

# 1. Users
if admin.site.is_registered(User):
    admin.site.unregister(User)


class AddressInline(admin.TabularInline):
    model = Address
    extra = 0
    fields = ('label', 'city', 'state', 'street', 'building', 'is_default', 'is_deleted')


class CustomUserAdmin(UserAdmin):
    model = User
    list_display = ['username', 'email', 'user_type', 'is_staff', 'phone_number']
    list_filter = UserAdmin.list_filter + ('user_type',)

    fieldsets = UserAdmin.fieldsets + (
        ('Role & Contact', {'fields': ('user_type', 'phone_number')}),
    )

    def get_inline_instances(self, request, obj=None):
        # addresses only make sense for existing customers
        if not obj or obj.user_type != 'customer':
            return []
        return [AddressInline(self.model, self.admin_site)]


admin.site.register(User, CustomUserAdmin)


# 2. Delivery geography
class StateInline(admin.TabularInline):
    model = State
    extra = 1


@admin.register(Country)
class CountryAdmin(admin.ModelAdmin):
    list_display = ('name_en', 'code', 'currency')
    inlines = [StateInline]


@admin.register(State)
class StateAdmin(admin.ModelAdmin):
    list_display = ('name_en', 'code', 'country', 'delivery_fee')
    list_filter = ('country',)


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'label', 'city', 'state', 'is_default', 'is_deleted')
    list_filter = ('state', 'is_deleted')
    search_fields = ('user__username', 'user__email', 'street', 'city')

    def get_queryset(self, request):
        return Address.all_objects.select_related('user', 'state')
