from __future__ import annotations

from rest_framework import serializers

from core.clock import SystemClock

from .models import MaterialDistribution


class MaterialDistributionSerializer(serializers.ModelSerializer):
    """
    Read model for a distribution. Overdue flags are derived from
    context['now'] (wall clock when absent) and are never stored.
    """
    material_name = serializers.CharField(source="material.name", read_only=True)
    unit = serializers.CharField(source="material.unit", read_only=True)
    plot_id = serializers.IntegerField(source="plot_cultivation.plot_id", read_only=True)
    farmer_id = serializers.IntegerField(source="plot_cultivation.plot.farmer_id", read_only=True)
    is_overdue = serializers.SerializerMethodField()
    is_supervisor_overdue = serializers.SerializerMethodField()
    is_farmer_overdue = serializers.SerializerMethodField()
    is_distribution_overdue = serializers.SerializerMethodField()

    class Meta:
        model = MaterialDistribution
        fields = [
            "id", "plot_cultivation", "plot_id", "farmer_id", "material", "material_name", "unit",
            "related_task_id", "quantity_distributed", "status",
            "scheduled_distribution_date", "distribution_deadline", "actual_distribution_date",
            "supervisor_confirmation_deadline", "farmer_confirmation_deadline",
            "supervisor_confirmed_by", "supervisor_confirmed_at", "supervisor_notes",
            "farmer_confirmed_at", "farmer_notes", "rejection_reason", "image_urls", "version",
            "is_overdue", "is_supervisor_overdue", "is_farmer_overdue", "is_distribution_overdue",
        ]
        read_only_fields = fields

    def _flags(self, obj):
        now = self.context.get("now")
        if now is None:
            now = self.context["now"] = SystemClock().now()
        return obj.overdue_flags(now)

    def get_is_overdue(self, obj):
        return self._flags(obj).any

    def get_is_supervisor_overdue(self, obj):
        return self._flags(obj).supervisor

    def get_is_farmer_overdue(self, obj):
        return self._flags(obj).farmer

    def get_is_distribution_overdue(self, obj):
        return self._flags(obj).distribution
