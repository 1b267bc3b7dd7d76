from __future__ import annotations

from datetime import datetime, timedelta

from django.utils import timezone


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return timezone.now()


class FixedClock(Clock):
    """
    Clock pinned to a given instant; tests move it explicitly with advance().
    """

    def __init__(self, at: datetime):
        if timezone.is_naive(at):
            raise ValueError("FixedClock requires an aware datetime")
        self.at = at

    def now(self) -> datetime:
        return self.at

    def advance(self, **delta) -> datetime:
        self.at = self.at + timedelta(**delta)
        return self.at


def resolve_clock(clock: Clock | None) -> Clock:
    return clock if clock is not None else SystemClock()
