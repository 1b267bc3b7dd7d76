from django.contrib import admin

from core.clock import SystemClock
from core.admin import ReadOnlyAdmin

from .models import MaterialDistribution


@admin.register(MaterialDistribution)
class MaterialDistributionAdmin(ReadOnlyAdmin):
    list_display = (
        "id", "plot_cultivation", "material", "quantity_distributed", "status",
        "scheduled_distribution_date", "supervisor_confirmation_deadline", "overdue",
    )
    list_filter = ("status", "material")
    search_fields = ("material__name",)
    list_select_related = ("plot_cultivation__plot", "material")

    @admin.display(boolean=True, description="Overdue")
    def overdue(self, obj):
        return obj.overdue_flags(SystemClock().now()).any
