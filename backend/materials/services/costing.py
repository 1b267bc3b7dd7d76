from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Tuple

from django.db import DatabaseError

from core.clock import Clock, resolve_clock
from core.results import ErrorKind, Result
from core.utils import ZERO, d, money

from ..dataclasses import (
    AreaCostSummary,
    MaterialCostLine,
    MaterialQuantity,
    MaterialTotal,
    PlanCostSummary,
    PlotArea,
    TaskMaterials,
)
from ..models import Material, MaterialPrice
from . import packaging
from .price_ledger import PriceLedger

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Optional[Decimal]:
    try:
        dec = d(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    return dec if dec.is_finite() else None


def _cost_line(
    material: Material,
    price: MaterialPrice,
    required_quantity: Decimal,
    **extra,
) -> MaterialCostLine:
    cost = packaging.calculate(
        required_quantity,
        material.amount_per_package,
        price.price_per_package,
        partition=material.is_partition,
    )
    return MaterialCostLine(
        material_id=material.id,
        material_name=material.name,
        unit=material.unit,
        required_quantity=required_quantity,
        price_per_package=d(price.price_per_package),
        price_valid_from=price.valid_from,
        cost=cost,
        **extra,
    )


def _material_totals(lines: Iterable[MaterialCostLine]) -> List[MaterialTotal]:
    totals: "OrderedDict[int, MaterialTotal]" = OrderedDict()
    for line in lines:
        total = totals.get(line.material_id)
        if total is None:
            total = totals[line.material_id] = MaterialTotal(
                material_id=line.material_id,
                material_name=line.material_name,
                unit=line.unit,
            )
        total.add(line)
    return list(totals.values())


class MaterialCostService:
    """
    Costs material requirements against the price ledger.

    The packaging calculator runs once per purchase line (per material for a
    single request, per plot/task/material for a plan); totals are sums of
    those line costs.
    """

    def __init__(self, ledger: Optional[PriceLedger] = None, clock: Optional[Clock] = None):
        self.clock = resolve_clock(clock)
        self.ledger = ledger or PriceLedger(clock=self.clock)

    def _load(self, material_ids: Iterable[int], as_of: datetime) -> Tuple[Dict[int, Material], Dict[int, MaterialPrice]]:
        ids = set(material_ids)
        materials = {m.id: m for m in Material.objects.filter(id__in=ids, is_active=True)}
        prices = self.ledger.resolve_many(materials.keys(), as_of)
        return materials, prices

    def calculate_material_cost(
        self,
        material_id: int,
        quantity,
        as_of: Optional[datetime] = None,
    ) -> Result[MaterialCostLine]:
        required = _to_decimal(quantity)
        if required is None:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid quantity: {quantity!r}")

        as_of = as_of or self.clock.now()
        try:
            material = Material.objects.filter(pk=material_id).first()
        except DatabaseError:
            logger.exception("Error loading material %s", material_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Material lookup failed.")
        if material is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Material not found.")

        resolved = self.ledger.resolve_effective_price(material_id, as_of)
        if not resolved.ok:
            return Result.failure(resolved.error, resolved.message)

        line = _cost_line(material, resolved.value, required)
        logger.info(
            "Calculated cost for %s %s of %s. Packages needed: %s. Total cost: %s",
            required, material.unit, material.name, line.cost.packages_needed, line.total_cost,
        )
        return Result.success(line, "Price calculated successfully.")

    def calculate_cost_by_area(
        self,
        items: List[MaterialQuantity],
        area_ha,
        as_of: Optional[datetime] = None,
    ) -> Result[AreaCostSummary]:
        area = _to_decimal(area_ha)
        if area is None or area <= 0:
            return Result.failure(ErrorKind.INVALID_INPUT, "Area must be greater than zero.")

        as_of = as_of or self.clock.now()
        try:
            materials, prices = self._load((i.material_id for i in items), as_of)
        except DatabaseError:
            logger.exception("Error loading materials for area costing")
            return Result.failure(ErrorKind.STORAGE_ERROR, "Material lookup failed.")

        warnings: List[str] = []
        lines: List[MaterialCostLine] = []
        for item in items:
            material = materials.get(item.material_id)
            if material is None:
                warnings.append(f"Material ID {item.material_id} not found or is inactive.")
                continue
            price = prices.get(item.material_id)
            if price is None:
                warnings.append(f"No valid price found for material '{material.name}' (ID: {material.id}).")
                continue
            per_ha = d(item.quantity_per_ha)
            lines.append(_cost_line(material, price, per_ha * area, quantity_per_ha=per_ha))

        if not lines:
            return Result.failure(ErrorKind.NOT_FOUND, "No valid material cost calculations could be performed.")

        total = sum((line.total_cost for line in lines), ZERO)
        summary = AreaCostSummary(
            area_ha=area,
            lines=lines,
            materials=_material_totals(lines),
            total_cost=total,
            cost_per_ha=money(total / area),
            warnings=warnings,
        )
        logger.info(
            "Calculated material costs for area %sha. Total cost: %s. Lines: %s",
            area, total, len(lines),
        )
        message = (
            f"Successfully calculated material costs with {len(warnings)} warning(s)."
            if warnings else "Successfully calculated material costs."
        )
        return Result.success(summary, message)

    def calculate_plan_cost(
        self,
        tasks: List[TaskMaterials],
        plots: List[PlotArea],
        as_of: Optional[datetime] = None,
    ) -> Result[PlanCostSummary]:
        """
        Cost a production plan across plots.

        Each plot receives its own delivery, so packages are rounded per
        (plot, task, material) before anything is summed.
        """
        valid_plots = [p for p in plots if d(p.area_ha) > 0]
        if not valid_plots:
            return Result.failure(ErrorKind.INVALID_INPUT, "Plan has no plots with a positive area.")
        total_area = sum((d(p.area_ha) for p in valid_plots), ZERO)

        as_of = as_of or self.clock.now()
        material_ids = {m.material_id for task in tasks for m in task.materials}
        try:
            materials, prices = self._load(material_ids, as_of)
        except DatabaseError:
            logger.exception("Error loading materials for plan costing")
            return Result.failure(ErrorKind.STORAGE_ERROR, "Material lookup failed.")

        warnings: List[str] = []
        for material_id in sorted(material_ids):
            if material_id not in materials:
                warnings.append(f"Material ID {material_id} not found or is inactive.")
            elif material_id not in prices:
                warnings.append(
                    f"No valid price found for material '{materials[material_id].name}' (ID: {material_id})."
                )

        lines: List[MaterialCostLine] = []
        task_totals: Dict[str, Decimal] = OrderedDict()
        plot_totals: Dict[int, Decimal] = OrderedDict((p.plot_id, ZERO) for p in valid_plots)
        for task in tasks:
            task_totals.setdefault(task.task_name, ZERO)
            for item in task.materials:
                material = materials.get(item.material_id)
                price = prices.get(item.material_id)
                if material is None or price is None:
                    continue
                per_ha = d(item.quantity_per_ha)
                for plot in valid_plots:
                    line = _cost_line(
                        material,
                        price,
                        per_ha * d(plot.area_ha),
                        quantity_per_ha=per_ha,
                        task_name=task.task_name,
                        plot_id=plot.plot_id,
                    )
                    lines.append(line)
                    task_totals[task.task_name] += line.total_cost
                    plot_totals[plot.plot_id] += line.total_cost

        total = sum((line.total_cost for line in lines), ZERO)
        summary = PlanCostSummary(
            total_area_ha=total_area,
            lines=lines,
            materials=_material_totals(lines),
            task_totals=dict(task_totals),
            plot_totals=dict(plot_totals),
            total_cost=total,
            cost_per_ha=money(total / total_area),
            warnings=warnings,
        )
        logger.info(
            "Calculated plan cost over %s plots (%sha). Total cost: %s",
            len(valid_plots), total_area, total,
        )
        return Result.success(summary)
