import logging
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

from buckets import DailyBucket
from recurrence import parse_iso_date


logger = logging.getLogger(__name__)


@dataclass
class MonthlyAggregate:
    month: int
    label: str
    revenue_cents: int = 0
    expenses_cents: int = 0
    budget_revenue_cents: int = 0
    budget_expenses_cents: int = 0


@dataclass(frozen=True)
class PeriodTotals:
    start: date
    end: date
    income_cents: int
    expenses_cents: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expenses_cents

    @property
    def margin_percent(self) -> float:
        if self.income_cents <= 0:
            return 0.0
        return self.net_cents / self.income_cents * 100


def _bucket_date(key: str) -> Optional[date]:
    try:
        return parse_iso_date(key)
    except (ValueError, AttributeError):
        logger.warning(f"aggregate: skipping bucket with invalid date key {key!r}")
        return None


def aggregate_by_month(
    daily_buckets: Mapping[str, DailyBucket], year: int
) -> list[MonthlyAggregate]:
    months = [
        MonthlyAggregate(month=m, label=f"{year:04d}-{m:02d}") for m in range(1, 13)
    ]
    for key, bucket in daily_buckets.items():
        on = _bucket_date(key)
        if on is None or on.year != year:
            continue
        row = months[on.month - 1]
        row.revenue_cents += bucket.income_cents
        row.expenses_cents += bucket.expense_cents

    # Budget channels mirror the actual ones until planned/actual are split.
    for row in months:
        row.budget_revenue_cents = row.revenue_cents
        row.budget_expenses_cents = row.expenses_cents
    return months


def aggregate_period(
    daily_buckets: Mapping[str, DailyBucket], start: date, end: date
) -> PeriodTotals:
    income = 0
    expenses = 0
    for key, bucket in daily_buckets.items():
        on = _bucket_date(key)
        if on is None or not (start <= on <= end):
            continue
        income += bucket.income_cents
        expenses += bucket.expense_cents
    return PeriodTotals(start=start, end=end, income_cents=income, expenses_cents=expenses)
