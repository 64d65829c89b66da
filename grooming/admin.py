from django.contrib import admin

from .models import Appointment, AppointmentItem, CatalogEntry, Owner, Payment, Pet


@admin.register(Owner)
class OwnerAdmin(admin.ModelAdmin):
    list_display = ["name", "cpf", "phone", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["name", "cpf", "email"]
    readonly_fields = ["status"]


@admin.register(Pet)
class PetAdmin(admin.ModelAdmin):
    list_display = ["name", "species", "breed", "size", "owner"]
    list_filter = ["species", "size"]
    search_fields = ["name", "breed"]


@admin.register(CatalogEntry)
class CatalogEntryAdmin(admin.ModelAdmin):
    list_display = ["name", "price_small", "price_medium", "price_large", "duration_minutes", "status"]
    list_filter = ["status"]
    search_fields = ["name"]


class AppointmentItemInline(admin.TabularInline):
    model = AppointmentItem
    extra = 0
    can_delete = False
    readonly_fields = ["catalog_entry", "quantity", "unit_price_applied", "subtotal", "created_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    """Read-only view: lifecycle changes must go through the API so guards and locks apply."""

    list_display = ["id", "pet", "owner", "scheduled_at", "status", "total_gross"]
    list_filter = ["status"]
    search_fields = ["pet__name", "owner__name"]
    inlines = [AppointmentItemInline]

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["id", "appointment", "method", "installments", "final_amount", "status", "created_at"]
    list_filter = ["method", "status"]

    def has_change_permission(self, request, obj=None):
        return False
