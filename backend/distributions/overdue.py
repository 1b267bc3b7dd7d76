"""
Overdue predicates for material distributions.

Pure functions of the stored timestamps and an explicit `now`; nothing here
is persisted. The three clocks are independent: once the supervisor confirms,
supervisor-overdue is permanently false (supervisor_confirmed_at is never
cleared), even if the confirmation itself was late.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def is_supervisor_overdue(record, now: datetime) -> bool:
    return record.supervisor_confirmed_at is None and now > record.supervisor_confirmation_deadline


def is_farmer_overdue(record, now: datetime) -> bool:
    return (
        record.supervisor_confirmed_at is not None
        and record.farmer_confirmed_at is None
        and record.farmer_confirmation_deadline is not None
        and now > record.farmer_confirmation_deadline
    )


def is_distribution_overdue(record, now: datetime) -> bool:
    return record.actual_distribution_date is None and now > record.distribution_deadline


def is_overdue(record, now: datetime) -> bool:
    return (
        is_supervisor_overdue(record, now)
        or is_farmer_overdue(record, now)
        or is_distribution_overdue(record, now)
    )


@dataclass(frozen=True)
class OverdueFlags:
    supervisor: bool
    farmer: bool
    distribution: bool

    @property
    def any(self) -> bool:
        return self.supervisor or self.farmer or self.distribution


def overdue_flags(record, now: datetime) -> OverdueFlags:
    return OverdueFlags(
        supervisor=is_supervisor_overdue(record, now),
        farmer=is_farmer_overdue(record, now),
        distribution=is_distribution_overdue(record, now),
    )
