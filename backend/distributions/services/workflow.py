"""
Two-party confirmation workflow for material distributions.

    SCHEDULED --supervisor--> PARTIALLY_CONFIRMED --farmer--> COMPLETED
    SCHEDULED | PARTIALLY_CONFIRMED --reject--> REJECTED

Every transition is a compare-and-swap on (pk, version, status): the UPDATE
only matches the row as it was read, and bumps version. A concurrent writer
makes the update match zero rows, which is reported as CONFLICT and leaves the
record untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from core.clock import Clock, resolve_clock
from core.config import farmer_confirmation_window_days
from core.results import ErrorKind, Result
from farms.models import PlotCultivation

from ..models import DistributionStatus, MaterialDistribution

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500

SUPERVISOR_CONFIRMABLE = (DistributionStatus.SCHEDULED, DistributionStatus.PARTIALLY_CONFIRMED)
REJECTABLE = (DistributionStatus.SCHEDULED, DistributionStatus.PARTIALLY_CONFIRMED)


class _StaleRecord(Exception):
    """Raised inside a bulk transaction to roll back when one row lost its CAS."""


@dataclass
class BulkConfirmation:
    plot_cultivation_id: int
    confirmed_ids: List[int] = field(default_factory=list)
    farmer_confirmation_deadline: Optional[datetime] = None

    @property
    def total_confirmed(self) -> int:
        return len(self.confirmed_ids)


@dataclass
class BulkReceiptConfirmation:
    confirmed_ids: List[int] = field(default_factory=list)
    # distribution id -> why it was not confirmed
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def total_confirmed(self) -> int:
        return len(self.confirmed_ids)


def _text_error(label: str, value: Optional[str]) -> Optional[Result]:
    if value is not None and len(value) > MAX_TEXT_LENGTH:
        return Result.failure(ErrorKind.INVALID_INPUT, f"{label} must be at most {MAX_TEXT_LENGTH} characters.")
    return None


def _group_supervisor(record: MaterialDistribution) -> Optional[int]:
    group = record.plot_cultivation.plot.group
    return group.supervisor_id if group is not None else None


def _plot_farmer(record: MaterialDistribution) -> int:
    return record.plot_cultivation.plot.farmer_id


class DistributionWorkflow:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = resolve_clock(clock)

    def _load(self, distribution_id: int) -> Optional[MaterialDistribution]:
        return (
            MaterialDistribution.objects
            .select_related("plot_cultivation__plot__group", "material")
            .filter(pk=distribution_id)
            .first()
        )

    @staticmethod
    def _swap(record: MaterialDistribution, changes: Dict) -> bool:
        updated = (
            MaterialDistribution.objects
            .filter(pk=record.pk, version=record.version, status=record.status)
            .update(version=F("version") + 1, **changes)
        )
        return updated == 1

    def _commit(self, record: MaterialDistribution, changes: Dict, action: str) -> Result[MaterialDistribution]:
        try:
            if not self._swap(record, changes):
                logger.warning("Concurrent modification of distribution %s during %s", record.pk, action)
                return Result.failure(
                    ErrorKind.CONFLICT, "Distribution was modified concurrently; reload and retry."
                )
            record.refresh_from_db()
        except DatabaseError:
            logger.exception("Error storing %s for distribution %s", action, record.pk)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Failed to store distribution update.")
        return Result.success(record)

    def _fetch(self, distribution_id: int) -> Result[MaterialDistribution]:
        try:
            record = self._load(distribution_id)
        except DatabaseError:
            logger.exception("Error loading distribution %s", distribution_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Distribution lookup failed.")
        if record is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Material distribution not found.")
        if record.is_final:
            return Result.failure(
                ErrorKind.ALREADY_FINALIZED, f"Distribution is already {record.get_status_display().lower()}."
            )
        return Result.success(record)

    def _farmer_deadline(self, now: datetime, window_days: Optional[int]) -> datetime:
        if window_days is None or window_days <= 0:
            window_days = farmer_confirmation_window_days()
        return now + timedelta(days=window_days)

    def confirm_by_supervisor(
        self,
        distribution_id: int,
        supervisor_id: int,
        actual_date: datetime,
        notes: Optional[str] = None,
        image_urls: Optional[List[str]] = None,
        farmer_window_days: Optional[int] = None,
    ) -> Result[MaterialDistribution]:
        if timezone.is_naive(actual_date):
            return Result.failure(ErrorKind.INVALID_INPUT, "Actual distribution date must be timezone-aware.")
        invalid = _text_error("Notes", notes)
        if invalid:
            return invalid

        fetched = self._fetch(distribution_id)
        if not fetched.ok:
            return fetched
        record = fetched.value

        supervisor = _group_supervisor(record)
        if supervisor is None or supervisor != supervisor_id:
            logger.warning(
                "Supervisor %s attempted to confirm distribution %s outside their group",
                supervisor_id, distribution_id,
            )
            return Result.failure(ErrorKind.UNAUTHORIZED, "Supervisor not authorized for this group.")
        if record.status not in SUPERVISOR_CONFIRMABLE:
            return Result.failure(ErrorKind.INVALID_STATE, f"Cannot confirm a {record.status} distribution.")

        now = self.clock.now()
        if now > record.distribution_deadline or actual_date > record.distribution_deadline:
            logger.warning(
                "Distribution %s confirmed after deadline by supervisor %s", distribution_id, supervisor_id
            )

        changes = {
            "supervisor_confirmed_by": supervisor_id,
            "supervisor_confirmed_at": now,
            "actual_distribution_date": actual_date,
            "supervisor_notes": notes,
            "farmer_confirmation_deadline": self._farmer_deadline(now, farmer_window_days),
            "status": DistributionStatus.PARTIALLY_CONFIRMED,
        }
        if image_urls is not None:
            changes["image_urls"] = list(image_urls)

        result = self._commit(record, changes, "supervisor confirmation")
        if result.ok:
            logger.info("Supervisor %s confirmed distribution %s", supervisor_id, distribution_id)
            result.message = "Distribution confirmed; awaiting farmer confirmation."
        return result

    def confirm_by_farmer(
        self,
        distribution_id: int,
        farmer_id: int,
        notes: Optional[str] = None,
    ) -> Result[MaterialDistribution]:
        invalid = _text_error("Notes", notes)
        if invalid:
            return invalid

        fetched = self._fetch(distribution_id)
        if not fetched.ok:
            return fetched
        record = fetched.value

        if _plot_farmer(record) != farmer_id:
            return Result.failure(ErrorKind.UNAUTHORIZED, "Farmer does not own this plot.")
        if record.status != DistributionStatus.PARTIALLY_CONFIRMED:
            return Result.failure(
                ErrorKind.INVALID_STATE, "Supervisor must confirm the distribution before the farmer."
            )

        now = self.clock.now()
        if record.farmer_confirmation_deadline is not None and now > record.farmer_confirmation_deadline:
            logger.warning("Farmer %s confirmed distribution %s after deadline", farmer_id, distribution_id)

        result = self._commit(
            record,
            {"farmer_confirmed_at": now, "farmer_notes": notes, "status": DistributionStatus.COMPLETED},
            "farmer confirmation",
        )
        if result.ok:
            logger.info("Farmer %s confirmed receipt of distribution %s", farmer_id, distribution_id)
            result.message = "Receipt confirmed."
        return result

    def reject(self, distribution_id: int, actor_id: int, reason: str) -> Result[MaterialDistribution]:
        if not reason or not reason.strip():
            return Result.failure(ErrorKind.INVALID_INPUT, "A rejection reason is required.")
        invalid = _text_error("Reason", reason)
        if invalid:
            return invalid

        fetched = self._fetch(distribution_id)
        if not fetched.ok:
            return fetched
        record = fetched.value

        parties = {p for p in (_group_supervisor(record), _plot_farmer(record)) if p is not None}
        if actor_id not in parties:
            return Result.failure(
                ErrorKind.UNAUTHORIZED, "Only the group supervisor or the plot's farmer may reject."
            )
        if record.status not in REJECTABLE:
            return Result.failure(ErrorKind.INVALID_STATE, f"Cannot reject a {record.status} distribution.")

        result = self._commit(
            record,
            {"status": DistributionStatus.REJECTED, "rejection_reason": reason.strip()},
            "rejection",
        )
        if result.ok:
            logger.info("Distribution %s rejected by %s", distribution_id, actor_id)
            result.message = "Distribution rejected."
        return result

    def bulk_confirm_by_supervisor(
        self,
        plot_cultivation_id: int,
        supervisor_id: int,
        actual_date: datetime,
        notes: Optional[str] = None,
        image_urls: Optional[List[str]] = None,
        images_by_distribution: Optional[Dict[int, List[str]]] = None,
        farmer_window_days: Optional[int] = None,
    ) -> Result[BulkConfirmation]:
        """
        Confirm every SCHEDULED distribution of a plot cultivation at once.

        All records share one farmer deadline. A record listed in
        images_by_distribution gets its own images, the rest get image_urls.
        The batch is all or nothing: one stale record fails the whole call
        with CONFLICT.
        """
        if timezone.is_naive(actual_date):
            return Result.failure(ErrorKind.INVALID_INPUT, "Actual distribution date must be timezone-aware.")
        invalid = _text_error("Notes", notes)
        if invalid:
            return invalid
        images_by_distribution = images_by_distribution or {}

        try:
            cultivation = (
                PlotCultivation.objects.select_related("plot__group").filter(pk=plot_cultivation_id).first()
            )
            if cultivation is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Plot cultivation not found.")
            group = cultivation.plot.group
            if group is None or group.supervisor_id != supervisor_id:
                return Result.failure(ErrorKind.UNAUTHORIZED, "Supervisor not authorized for this group.")

            records = list(
                MaterialDistribution.objects
                .filter(plot_cultivation_id=plot_cultivation_id, status=DistributionStatus.SCHEDULED)
                .order_by("id")
            )
            if not records:
                return Result.failure(
                    ErrorKind.NOT_FOUND, "No scheduled material distributions found for this plot cultivation."
                )

            now = self.clock.now()
            deadline = self._farmer_deadline(now, farmer_window_days)
            if any(now > r.distribution_deadline or actual_date > r.distribution_deadline for r in records):
                logger.warning(
                    "Bulk distribution for plot cultivation %s confirmed after deadline by supervisor %s",
                    plot_cultivation_id, supervisor_id,
                )

            outcome = BulkConfirmation(plot_cultivation_id=plot_cultivation_id, farmer_confirmation_deadline=deadline)
            with transaction.atomic():
                for record in records:
                    changes = {
                        "supervisor_confirmed_by": supervisor_id,
                        "supervisor_confirmed_at": now,
                        "actual_distribution_date": actual_date,
                        "supervisor_notes": notes,
                        "farmer_confirmation_deadline": deadline,
                        "status": DistributionStatus.PARTIALLY_CONFIRMED,
                    }
                    images = images_by_distribution.get(record.pk, image_urls)
                    if images is not None:
                        changes["image_urls"] = list(images)
                    if not self._swap(record, changes):
                        raise _StaleRecord(record.pk)
                    outcome.confirmed_ids.append(record.pk)
        except _StaleRecord as exc:
            logger.warning("Concurrent modification of distribution %s during bulk confirmation", exc.args[0])
            return Result.failure(ErrorKind.CONFLICT, "A distribution was modified concurrently; reload and retry.")
        except DatabaseError:
            logger.exception("Error bulk confirming distributions for plot cultivation %s", plot_cultivation_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Failed to store distribution updates.")

        logger.info(
            "Supervisor %s bulk confirmed %s distributions for plot cultivation %s",
            supervisor_id, outcome.total_confirmed, plot_cultivation_id,
        )
        return Result.success(outcome, f"Successfully confirmed {outcome.total_confirmed} material distributions.")

    @staticmethod
    def _receipt_problem(record: Optional[MaterialDistribution], farmer_id: int) -> Optional[Tuple[ErrorKind, str]]:
        if record is None:
            return ErrorKind.NOT_FOUND, "Distribution not found."
        if _plot_farmer(record) != farmer_id:
            return ErrorKind.UNAUTHORIZED, "Farmer does not own this plot."
        if record.status == DistributionStatus.COMPLETED:
            return ErrorKind.ALREADY_FINALIZED, "Already completed."
        if record.status == DistributionStatus.REJECTED:
            return ErrorKind.ALREADY_FINALIZED, "Was rejected."
        if record.status != DistributionStatus.PARTIALLY_CONFIRMED:
            return ErrorKind.INVALID_STATE, "Must be confirmed by the supervisor first."
        return None

    def bulk_confirm_by_farmer(
        self,
        distribution_ids: Iterable[int],
        farmer_id: int,
        notes: Optional[str] = None,
    ) -> Result[BulkReceiptConfirmation]:
        """
        Confirm receipt of several distributions at once.

        Records are checked and swapped one by one; a record that fails its
        checks (or loses its CAS) is reported in `failures` and does not stop
        the others. When nothing could be confirmed the result is a failure
        that still carries the per-record reasons.
        """
        ids = list(dict.fromkeys(distribution_ids or ()))
        if not ids:
            return Result.failure(ErrorKind.INVALID_INPUT, "No distribution ids provided.")
        invalid = _text_error("Notes", notes)
        if invalid:
            return invalid

        outcome = BulkReceiptConfirmation()
        failure_kinds = set()
        try:
            records = {
                r.pk: r
                for r in MaterialDistribution.objects.select_related("plot_cultivation__plot").filter(pk__in=ids)
            }
            if not records:
                return Result.failure(ErrorKind.NOT_FOUND, "No matching distributions found.")

            now = self.clock.now()
            for pk in ids:
                record = records.get(pk)
                problem = self._receipt_problem(record, farmer_id)
                if problem is not None:
                    kind, reason = problem
                    if kind == ErrorKind.UNAUTHORIZED:
                        logger.warning("Farmer %s attempted to confirm distribution %s on another plot", farmer_id, pk)
                    failure_kinds.add(kind)
                    outcome.failures[pk] = reason
                    continue

                if record.farmer_confirmation_deadline is not None and now > record.farmer_confirmation_deadline:
                    logger.warning("Farmer %s confirmed distribution %s after deadline", farmer_id, pk)
                changes = {"farmer_confirmed_at": now, "farmer_notes": notes, "status": DistributionStatus.COMPLETED}
                if self._swap(record, changes):
                    outcome.confirmed_ids.append(pk)
                else:
                    logger.warning("Concurrent modification of distribution %s during bulk receipt", pk)
                    failure_kinds.add(ErrorKind.CONFLICT)
                    outcome.failures[pk] = "Modified concurrently; reload and retry."
        except DatabaseError:
            logger.exception("Error bulk confirming material receipts for farmer %s", farmer_id)
            return Result.failure(ErrorKind.STORAGE_ERROR, "Failed to store receipt confirmations.")

        if not outcome.confirmed_ids:
            kind = failure_kinds.pop() if len(failure_kinds) == 1 else ErrorKind.INVALID_STATE
            return Result(value=outcome, error=kind, message="No receipts were confirmed.")

        logger.info(
            "Farmer %s bulk confirmed %s material receipts (%s failed)",
            farmer_id, outcome.total_confirmed, len(outcome.failures),
        )
        if outcome.failures:
            message = f"Confirmed {outcome.total_confirmed} receipt(s), {len(outcome.failures)} failed."
        else:
            message = f"Successfully confirmed all {outcome.total_confirmed} receipt(s)."
        return Result.success(outcome, message)
