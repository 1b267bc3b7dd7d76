from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from django.db import DatabaseError

from core.clock import Clock, resolve_clock
from core.results import ErrorKind, Result
from farms.models import Group

from ..models import DistributionStatus, MaterialDistribution
from ..overdue import is_farmer_overdue, is_supervisor_overdue, overdue_flags

logger = logging.getLogger(__name__)

DUE_SOON = timedelta(hours=24)


@dataclass
class PendingSummary:
    now: datetime
    records: List[MaterialDistribution] = field(default_factory=list)
    overdue_count: int = 0
    due_soon_count: int = 0

    @property
    def total_pending(self) -> int:
        return len(self.records)


def _base_queryset():
    return MaterialDistribution.objects.select_related("plot_cultivation__plot__group", "material")


def _due_soon(deadline: Optional[datetime], now: datetime) -> bool:
    return deadline is not None and now <= deadline <= now + DUE_SOON


def pending_for_supervisor(supervisor_id: int, clock: Optional[Clock] = None) -> PendingSummary:
    """SCHEDULED distributions in the supervisor's groups, earliest supervisor deadline first."""
    now = resolve_clock(clock).now()
    records = list(
        _base_queryset()
        .filter(
            plot_cultivation__plot__group__supervisor_id=supervisor_id,
            status=DistributionStatus.SCHEDULED,
        )
        .order_by("supervisor_confirmation_deadline", "id")
    )
    return PendingSummary(
        now=now,
        records=records,
        overdue_count=sum(1 for r in records if is_supervisor_overdue(r, now)),
        due_soon_count=sum(1 for r in records if _due_soon(r.supervisor_confirmation_deadline, now)),
    )


def pending_receipts_for_farmer(farmer_id: int, clock: Optional[Clock] = None) -> PendingSummary:
    """Distributions on the farmer's plots that the supervisor confirmed and the farmer has not."""
    now = resolve_clock(clock).now()
    records = list(
        _base_queryset()
        .filter(
            plot_cultivation__plot__farmer_id=farmer_id,
            status=DistributionStatus.PARTIALLY_CONFIRMED,
            farmer_confirmed_at__isnull=True,
        )
        .order_by("farmer_confirmation_deadline", "id")
    )
    return PendingSummary(
        now=now,
        records=records,
        overdue_count=sum(1 for r in records if is_farmer_overdue(r, now)),
        due_soon_count=sum(1 for r in records if _due_soon(r.farmer_confirmation_deadline, now)),
    )


@dataclass
class PlotDistributions:
    plot_cultivation_id: int
    plot_id: int
    farmer_id: int
    status: str
    records: List[MaterialDistribution] = field(default_factory=list)
    is_supervisor_overdue: bool = False
    is_farmer_overdue: bool = False
    is_distribution_overdue: bool = False

    @property
    def total_count(self) -> int:
        return len(self.records)

    @property
    def pending_count(self) -> int:
        return sum(1 for r in self.records if r.status == DistributionStatus.SCHEDULED)

    @property
    def completed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DistributionStatus.COMPLETED)


@dataclass
class GroupDistributions:
    group_id: int
    now: datetime
    plots: List[PlotDistributions] = field(default_factory=list)
    status_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_distributions(self) -> int:
        return sum(p.total_count for p in self.plots)


def _plot_status(records: List[MaterialDistribution]) -> str:
    """Overall status of one plot cultivation's deliveries; rejected records are ignored."""
    active = [r for r in records if r.status != DistributionStatus.REJECTED]
    if not active:
        return DistributionStatus.REJECTED
    if all(r.farmer_confirmed_at is not None for r in active):
        return DistributionStatus.COMPLETED
    if all(r.supervisor_confirmed_at is not None for r in active):
        return DistributionStatus.PARTIALLY_CONFIRMED
    return DistributionStatus.SCHEDULED


def distributions_for_group(group_id: int, clock: Optional[Clock] = None) -> Result[GroupDistributions]:
    """Every distribution of a group, grouped by plot cultivation, with per-status counts."""
    now = resolve_clock(clock).now()
    try:
        if not Group.objects.filter(pk=group_id).exists():
            return Result.failure(ErrorKind.NOT_FOUND, "Group not found.")
        records = list(
            _base_queryset()
            .filter(plot_cultivation__plot__group_id=group_id)
            .order_by("plot_cultivation__plot__farmer_id", "plot_cultivation_id", "id")
        )
    except DatabaseError:
        logger.exception("Error loading distributions for group %s", group_id)
        return Result.failure(ErrorKind.STORAGE_ERROR, "Distribution lookup failed.")

    overview = GroupDistributions(
        group_id=group_id,
        now=now,
        status_counts={status: 0 for status in DistributionStatus.values},
    )
    by_cultivation: Dict[int, PlotDistributions] = OrderedDict()
    for record in records:
        overview.status_counts[record.status] += 1
        entry = by_cultivation.get(record.plot_cultivation_id)
        if entry is None:
            plot = record.plot_cultivation.plot
            entry = by_cultivation[record.plot_cultivation_id] = PlotDistributions(
                plot_cultivation_id=record.plot_cultivation_id,
                plot_id=plot.id,
                farmer_id=plot.farmer_id,
                status=DistributionStatus.SCHEDULED,
            )
        entry.records.append(record)
        flags = overdue_flags(record, now)
        entry.is_supervisor_overdue |= flags.supervisor
        entry.is_farmer_overdue |= flags.farmer
        entry.is_distribution_overdue |= flags.distribution

    for entry in by_cultivation.values():
        entry.status = _plot_status(entry.records)
    overview.plots = list(by_cultivation.values())
    return Result.success(overview)
