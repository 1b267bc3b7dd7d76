"""
Creation of distribution records for a group's plot cultivations.

Deadlines are fixed at creation time from the scheduled date: materials must
be handed out the day before the scheduled date, and the supervisor has a
configurable number of days after it to confirm.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import InvalidOperation
from typing import List, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from core.config import distribution_days_before_task, supervisor_confirmation_window_days
from core.results import ErrorKind, Result
from core.utils import d
from farms.models import Group, GroupStatus, PlotCultivation
from materials.models import Material

from ..models import DistributionStatus, MaterialDistribution

logger = logging.getLogger(__name__)


@dataclass
class DistributionRequest:
    plot_cultivation_id: int
    material_id: int
    quantity: object
    scheduled_date: datetime
    related_task_id: Optional[int] = None


@dataclass
class ScheduleOutcome:
    created: List[MaterialDistribution] = field(default_factory=list)
    skipped: List[DistributionRequest] = field(default_factory=list)


def scheduled_date_for_task(task_start: datetime) -> datetime:
    """Distribution date for a task: MaterialDistributionDaysBeforeTask days before it starts."""
    return task_start - timedelta(days=distribution_days_before_task())


def _validate(item: DistributionRequest, cultivation_ids, material_ids) -> Optional[str]:
    if item.plot_cultivation_id not in cultivation_ids:
        return f"Plot cultivation {item.plot_cultivation_id} does not belong to this group."
    if item.material_id not in material_ids:
        return f"Material {item.material_id} not found."
    try:
        quantity = d(item.quantity)
    except (InvalidOperation, TypeError, ValueError):
        return f"Invalid quantity {item.quantity!r}."
    if not quantity.is_finite() or quantity <= 0:
        return "Quantity must be greater than zero."
    if item.scheduled_date is None or timezone.is_naive(item.scheduled_date):
        return "Scheduled date must be timezone-aware."
    return None


def schedule_distributions(group_id: int, items: List[DistributionRequest]) -> Result[ScheduleOutcome]:
    if not items:
        return Result.failure(ErrorKind.INVALID_INPUT, "No distributions to schedule.")

    try:
        group = Group.objects.filter(pk=group_id).first()
        if group is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Group not found.")
        if group.status != GroupStatus.ACTIVE:
            return Result.failure(ErrorKind.INVALID_STATE, "Group is not active.")

        cultivation_ids = set(
            PlotCultivation.objects.filter(plot__group_id=group_id).values_list("id", flat=True)
        )
        material_ids = set(
            Material.objects.filter(id__in={i.material_id for i in items}).values_list("id", flat=True)
        )
        for item in items:
            problem = _validate(item, cultivation_ids, material_ids)
            if problem:
                return Result.failure(ErrorKind.INVALID_INPUT, problem)

        existing = set(
            MaterialDistribution.objects
            .filter(plot_cultivation_id__in={i.plot_cultivation_id for i in items})
            .exclude(status=DistributionStatus.REJECTED)
            .values_list("plot_cultivation_id", "material_id")
        )
        window = timedelta(days=supervisor_confirmation_window_days())

        outcome = ScheduleOutcome()
        with transaction.atomic():
            for item in items:
                key = (item.plot_cultivation_id, item.material_id)
                if key in existing:
                    outcome.skipped.append(item)
                    continue
                existing.add(key)
                outcome.created.append(MaterialDistribution.objects.create(
                    plot_cultivation_id=item.plot_cultivation_id,
                    material_id=item.material_id,
                    related_task_id=item.related_task_id,
                    quantity_distributed=d(item.quantity),
                    status=DistributionStatus.SCHEDULED,
                    scheduled_distribution_date=item.scheduled_date,
                    distribution_deadline=item.scheduled_date - timedelta(days=1),
                    supervisor_confirmation_deadline=item.scheduled_date + window,
                ))
    except DatabaseError:
        logger.exception("Error scheduling distributions for group %s", group_id)
        return Result.failure(ErrorKind.STORAGE_ERROR, "Failed to store distributions.")

    logger.info(
        "Scheduled %s material distributions for group %s (%s skipped as already scheduled)",
        len(outcome.created), group_id, len(outcome.skipped),
    )
    return Result.success(outcome, f"Scheduled {len(outcome.created)} material distributions.")
