"""
Packaging-aware cost calculation.

A required quantity is converted into a whole number of purchasable packages:
a fractional package cannot be bought, so the package count always rounds up
and the billed quantity may exceed what was asked for.

Rounding is not distributive. Callers that cost many tasks or plots must call
calculate() once per purchase line and sum the results; summing raw
quantities first and rounding once gives a different (wrong) answer.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from core.utils import FOURPLACES, ONE, ZERO, d, round_up_to_next_whole

from ..dataclasses import PackagedCost


def normalize_amount_per_package(amount_per_package: Optional[Decimal]) -> Decimal:
    """Treat a missing or non-positive package size as one unit per package."""
    if amount_per_package is None:
        return ONE
    amount = d(amount_per_package)
    if amount <= 0:
        return ONE
    return amount


def calculate(
    required_quantity: Decimal,
    amount_per_package: Optional[Decimal],
    price_per_package: Decimal,
    *,
    partition: bool = False,
) -> PackagedCost:
    amount = normalize_amount_per_package(amount_per_package)
    required = d(required_quantity)
    price = d(price_per_package)

    if required <= 0:
        return PackagedCost(
            packages_needed=ZERO,
            billed_quantity=ZERO,
            total_cost=ZERO,
            cost_per_unit_required=ZERO,
            amount_per_package=amount,
        )

    if partition:
        packages = required / amount
    else:
        packages = round_up_to_next_whole(required / amount)

    total = packages * price
    return PackagedCost(
        packages_needed=packages,
        billed_quantity=packages * amount,
        total_cost=total,
        cost_per_unit_required=(total / required).quantize(FOURPLACES),
        amount_per_package=amount,
    )
