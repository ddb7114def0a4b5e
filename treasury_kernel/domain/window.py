"""
Settlement window evaluation for periodic treasuries (pure, ZERO I/O).

Monthly rules (the only interval unit with defined aggregation):
    - ``closes_at``: the configured day of the current calendar month at the
      configured hour:minute:59.999 (defaults 23:59).  A day past the end of
      the month is clamped to the month's last day.
    - Trigger window: ``[closes_at at 00:00:00, closes_at]``.  Aggregation
      only fires while "now" is inside it.
    - Collection range: ``[opens_at, closes_at)`` where ``opens_at`` is
      ``interval`` calendar months before ``closes_at`` at 00:00:00.

All arithmetic happens in the timezone of ``now`` (UTC from the Clock).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime

from treasury_kernel.domain.types import IntervalUnit, PeriodicSyncStrategyConfig
from treasury_kernel.exceptions import (
    MissingStrategyConfigError,
    UnsupportedIntervalError,
)

DEFAULT_HOUR = 23
DEFAULT_MINUTE = 59


@dataclass(frozen=True)
class SettlementWindow:
    """Trigger window plus the created_at range it aggregates."""

    trigger_opens_at: datetime
    opens_at: datetime
    closes_at: datetime
    # Start of the preceding period; its representatives can group rows of
    # the shared closing day.
    previous_opens_at: datetime

    def is_open(self, now: datetime) -> bool:
        return self.trigger_opens_at <= now <= self.closes_at

    def contains(self, created_at: datetime) -> bool:
        return self.opens_at <= created_at < self.closes_at


def settlement_window(
    config: PeriodicSyncStrategyConfig, now: datetime, treasury_id: int,
) -> SettlementWindow:
    """Compute the window for the period that ``now`` falls in.

    Raises:
        MissingStrategyConfigError: Month interval without ``day_of_month``.
        UnsupportedIntervalError: Day, week and year intervals.
    """
    if config.interval_unit == IntervalUnit.MONTH:
        if config.day_of_month is None:
            raise MissingStrategyConfigError(treasury_id, "day_of_month")
        return monthly_window(
            now,
            day_of_month=config.day_of_month,
            hour=DEFAULT_HOUR if config.hour is None else config.hour,
            minute=DEFAULT_MINUTE if config.minute is None else config.minute,
            interval=config.interval,
        )
    raise UnsupportedIntervalError(IntervalUnit(config.interval_unit).value)


def monthly_window(
    now: datetime, day_of_month: int, hour: int, minute: int, interval: int = 1,
) -> SettlementWindow:
    closes_at = now.replace(
        day=_clamp_day(now.year, now.month, day_of_month),
        hour=hour,
        minute=minute,
        second=59,
        microsecond=999_000,
    )
    trigger_opens_at = _midnight(closes_at)

    prev_year, prev_month = _months_before(closes_at.year, closes_at.month, interval)
    opens_at = _midnight(
        closes_at.replace(
            year=prev_year,
            month=prev_month,
            day=_clamp_day(prev_year, prev_month, closes_at.day),
        )
    )
    earlier_year, earlier_month = _months_before(opens_at.year, opens_at.month, interval)
    previous_opens_at = opens_at.replace(
        year=earlier_year,
        month=earlier_month,
        day=_clamp_day(earlier_year, earlier_month, opens_at.day),
    )
    return SettlementWindow(
        trigger_opens_at=trigger_opens_at,
        opens_at=opens_at,
        closes_at=closes_at,
        previous_opens_at=previous_opens_at,
    )


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _clamp_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def _months_before(year: int, month: int, count: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) - count
    return index // 12, index % 12 + 1
