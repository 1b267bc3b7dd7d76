from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from core.utils import ZERO


@dataclass(frozen=True)
class PackagedCost:
    packages_needed: Decimal
    billed_quantity: Decimal
    total_cost: Decimal
    cost_per_unit_required: Decimal
    # Package size actually used, after normalization
    amount_per_package: Decimal


@dataclass
class MaterialQuantity:
    material_id: int
    quantity_per_ha: Decimal


@dataclass
class TaskMaterials:
    task_name: str
    materials: List[MaterialQuantity] = field(default_factory=list)


@dataclass
class PlotArea:
    plot_id: int
    area_ha: Decimal


@dataclass
class MaterialCostLine:
    material_id: int
    material_name: str
    unit: str
    required_quantity: Decimal
    price_per_package: Decimal
    price_valid_from: datetime
    cost: PackagedCost
    quantity_per_ha: Optional[Decimal] = None
    task_name: Optional[str] = None
    plot_id: Optional[int] = None

    @property
    def total_cost(self) -> Decimal:
        return self.cost.total_cost


@dataclass
class MaterialTotal:
    material_id: int
    material_name: str
    unit: str
    required_quantity: Decimal = ZERO
    packages_needed: Decimal = ZERO
    billed_quantity: Decimal = ZERO
    total_cost: Decimal = ZERO

    def add(self, line: MaterialCostLine) -> None:
        self.required_quantity += line.required_quantity
        self.packages_needed += line.cost.packages_needed
        self.billed_quantity += line.cost.billed_quantity
        self.total_cost += line.cost.total_cost


@dataclass
class AreaCostSummary:
    area_ha: Decimal
    lines: List[MaterialCostLine]
    materials: List[MaterialTotal]
    total_cost: Decimal
    cost_per_ha: Decimal
    warnings: List[str] = field(default_factory=list)


@dataclass
class PlanCostSummary:
    total_area_ha: Decimal
    lines: List[MaterialCostLine]
    materials: List[MaterialTotal]
    task_totals: Dict[str, Decimal]
    plot_totals: Dict[int, Decimal]
    total_cost: Decimal
    cost_per_ha: Decimal
    warnings: List[str] = field(default_factory=list)
