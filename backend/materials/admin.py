from django.contrib import admin, messages

from core.admin import ReadOnlyAdmin

from .models import Material, MaterialPrice
from .services.price_ledger import find_ledger_violations


class MaterialPriceInline(admin.TabularInline):
    model = MaterialPrice
    fields = ("price_per_package", "valid_from", "valid_to", "created_at")
    readonly_fields = fields
    extra = 0
    can_delete = False
    ordering = ("valid_from",)

    def has_add_permission(self, request, obj=None):
        # New prices go through the price ledger so the previous interval is closed
        return False


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "material_type", "unit", "amount_per_package", "is_partition", "is_active")
    list_filter = ("material_type", "is_active", "is_partition")
    search_fields = ("name", "manufacturer")
    inlines = [MaterialPriceInline]
    actions = ["verify_price_ledger"]

    def verify_price_ledger(self, request, queryset):
        any_warn = False
        for material in queryset:
            for problem in find_ledger_violations(list(material.prices.all())):
                any_warn = True
                messages.warning(request, f"Material {material.id}: {problem}")
        if not any_warn:
            messages.info(request, "Selected materials have consistent price history.")

    verify_price_ledger.short_description = "Verify price history consistency"


@admin.register(MaterialPrice)
class MaterialPriceAdmin(ReadOnlyAdmin):
    list_display = ("id", "material", "price_per_package", "valid_from", "valid_to")
    list_filter = ("material",)
