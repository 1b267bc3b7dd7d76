"""
Temporally versioned price ledger per material.

Each material owns an append-only list of MaterialPrice intervals over
[valid_from, valid_to). At most one interval is open (valid_to is NULL) and it
is the latest by valid_from; intervals never overlap. A price change closes
the open interval at the change instant and appends a new open one.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from core.clock import Clock, resolve_clock
from core.results import ErrorKind, Result
from core.utils import TWOPLACES, d

from ..models import Material, MaterialPrice

logger = logging.getLogger(__name__)

MAX_PRICE_INTEGER_DIGITS = 12

PRICE_NOT_FOUND = "No valid price found for this material at this time."


def _covering(material_id: int, at: datetime):
    """Intervals containing `at`, latest valid_from first."""
    return (
        MaterialPrice.objects
        .filter(material_id=material_id, valid_from__lte=at)
        .filter(Q(valid_to__isnull=True) | Q(valid_to__gt=at))
        .order_by("-valid_from")
    )


def find_ledger_violations(intervals: Sequence[MaterialPrice]) -> List[str]:
    """
    Check one material's intervals against the ledger invariants.

    Returns human readable problems; an empty list means the ledger is
    consistent.
    """
    problems: List[str] = []
    ordered = sorted(intervals, key=lambda p: p.valid_from)
    open_rows = [p for p in ordered if p.valid_to is None]

    if len(open_rows) > 1:
        problems.append(f"{len(open_rows)} open intervals (expected at most one)")
    if open_rows and ordered and open_rows[-1] is not ordered[-1]:
        problems.append(
            f"Open interval starting {open_rows[-1].valid_from.isoformat()} is not the latest by valid_from"
        )

    for row in ordered:
        if d(row.price_per_package) <= 0:
            problems.append(f"Interval {row.pk} has non-positive price {row.price_per_package}")
        if row.valid_to is not None and row.valid_to <= row.valid_from:
            problems.append(f"Interval {row.pk} ends at or before it starts")

    for prev, cur in zip(ordered, ordered[1:]):
        if prev.valid_to is None or prev.valid_to > cur.valid_from:
            problems.append(
                f"Interval {prev.pk} overlaps interval {cur.pk} starting {cur.valid_from.isoformat()}"
            )
    return problems


class PriceLedger:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = resolve_clock(clock)

    def price_history(self, material_id: int) -> List[MaterialPrice]:
        return list(MaterialPrice.objects.filter(material_id=material_id).order_by("valid_from"))

    def resolve_effective_price(self, material_id: int, as_of: Optional[datetime] = None) -> Result[MaterialPrice]:
        as_of = as_of or self.clock.now()
        if timezone.is_naive(as_of):
            return Result.failure(ErrorKind.INVALID_INPUT, "Evaluation date must be timezone-aware.")
        try:
            if not Material.objects.filter(pk=material_id).exists():
                return Result.failure(ErrorKind.NOT_FOUND, "Material not found.")
            row = _covering(material_id, as_of).first()
        except DatabaseError:
            logger.exception("Error resolving price for material %s", material_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Price lookup failed.")

        if row is None:
            logger.warning("No effective price found for material %s at %s", material_id, as_of.isoformat())
            return Result.failure(ErrorKind.NOT_FOUND, PRICE_NOT_FOUND)
        return Result.success(row)

    def resolve_many(self, material_ids: Iterable[int], as_of: Optional[datetime] = None) -> Dict[int, MaterialPrice]:
        """Effective price per material in one query; materials without a price are absent."""
        as_of = as_of or self.clock.now()
        ids = set(material_ids)
        if not ids:
            return {}
        rows = (
            MaterialPrice.objects
            .filter(material_id__in=ids, valid_from__lte=as_of)
            .filter(Q(valid_to__isnull=True) | Q(valid_to__gt=as_of))
            .order_by("material_id", "-valid_from")
        )
        resolved: Dict[int, MaterialPrice] = {}
        for row in rows:
            resolved.setdefault(row.material_id, row)
        return resolved

    def apply_price_change(
        self,
        material_id: int,
        new_price,
        effective_from: Optional[datetime] = None,
    ) -> Result[MaterialPrice]:
        try:
            price = d(new_price)
        except (InvalidOperation, TypeError, ValueError):
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid price: {new_price!r}")
        if not price.is_finite():
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid price: {new_price!r}")
        # Must fit price_per_package (14 digits, 2 decimal places) exactly
        if price.adjusted() >= MAX_PRICE_INTEGER_DIGITS:
            return Result.failure(ErrorKind.INVALID_INPUT, "Price per package is too large.")
        if price != price.quantize(TWOPLACES):
            return Result.failure(ErrorKind.INVALID_INPUT, "Price per package allows at most two decimal places.")
        if price <= 0:
            return Result.failure(ErrorKind.INVALID_INPUT, "Price per package must be greater than zero.")

        effective_from = effective_from or self.clock.now()
        if timezone.is_naive(effective_from):
            return Result.failure(ErrorKind.INVALID_INPUT, "Effective date must be timezone-aware.")

        try:
            with transaction.atomic():
                # Serializes concurrent price changes for the same material
                material = Material.objects.select_for_update().filter(pk=material_id).first()
                if material is None:
                    return Result.failure(ErrorKind.NOT_FOUND, "Material not found.")

                current = _covering(material_id, effective_from).first()
                if current is not None and d(current.price_per_package) == price:
                    logger.debug("Price for material %s already %s; no change recorded", material_id, price)
                    return Result.success(current, "Price unchanged.")

                latest = MaterialPrice.objects.filter(material_id=material_id).order_by("-valid_from").first()
                if latest is not None:
                    if effective_from <= latest.valid_from:
                        return Result.failure(
                            ErrorKind.INVALID_INPUT,
                            "Price change must take effect after the start of the current price.",
                        )
                    if latest.valid_to is not None and latest.valid_to > effective_from:
                        return Result.failure(
                            ErrorKind.INVALID_INPUT,
                            "Price change would overlap existing price history.",
                        )
                    if latest.valid_to is None:
                        latest.valid_to = effective_from
                        latest.save(update_fields=["valid_to"])

                created = MaterialPrice.objects.create(
                    material=material,
                    price_per_package=price,
                    valid_from=effective_from,
                    valid_to=None,
                )
        except IntegrityError:
            logger.warning("Concurrent price change detected for material %s", material_id)
            return Result.failure(ErrorKind.CONFLICT, "Concurrent price change detected; retry.")
        except DatabaseError:
            logger.exception("Error applying price change for material %s", material_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Failed to store price change.")

        logger.info(
            "Material %s re-priced to %s effective %s",
            material_id, price, effective_from.isoformat(),
        )
        return Result.success(created, "Price updated.")
