from __future__ import annotations

from rest_framework import serializers

from .models import MaterialPrice


class MaterialPriceSerializer(serializers.ModelSerializer):
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = MaterialPrice
        fields = ["id", "material", "price_per_package", "valid_from", "valid_to", "is_open", "created_at"]
        read_only_fields = ["id", "material", "price_per_package", "valid_from", "valid_to", "created_at"]


# ---------- COST BREAKDOWN (read-only projection of costing dataclasses) ----------
class PackagedCostSerializer(serializers.Serializer):
    packages_needed        = serializers.DecimalField(max_digits=18, decimal_places=4)
    billed_quantity        = serializers.DecimalField(max_digits=18, decimal_places=4)
    total_cost             = serializers.DecimalField(max_digits=18, decimal_places=2)
    cost_per_unit_required = serializers.DecimalField(max_digits=18, decimal_places=4)
    amount_per_package     = serializers.DecimalField(max_digits=18, decimal_places=4)


class MaterialCostLineSerializer(serializers.Serializer):
    material_id       = serializers.IntegerField()
    material_name     = serializers.CharField()
    unit              = serializers.CharField()
    required_quantity = serializers.DecimalField(max_digits=18, decimal_places=4)
    price_per_package = serializers.DecimalField(max_digits=14, decimal_places=2)
    price_valid_from  = serializers.DateTimeField()
    cost              = PackagedCostSerializer()
