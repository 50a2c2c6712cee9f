import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from models import Recurrence, SalaryType


logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10_000
PAY_PERIOD_DAYS = 14

DAY_STEPS = {
    Recurrence.weekly: 7,
    Recurrence.biweekly: 14,
}
MONTH_STEPS = {
    Recurrence.monthly: 1,
    Recurrence.bimonthly: 2,
    Recurrence.quarterly: 3,
    Recurrence.yearly: 12,
}

DateLike = Union[date, str]


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def parse_iso_date(value: str) -> date:
    """Build a calendar date from a ``YYYY-MM-DD`` string.

    The year, month and day are split out and passed to ``date`` directly so
    no timezone conversion can ever move the visible day.
    """
    parts = value.strip()[:10].split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid date: {value!r}")
    year, month, day = (int(p) for p in parts)
    return date(year, month, day)


def coerce_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_iso_date(value)
    raise ValueError(f"Invalid date: {value!r}")


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int, *, desired_day: Optional[int] = None) -> date:
    """Move ``base`` by whole calendar months, clamping to the month's last day."""
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = desired_day if desired_day is not None else base.day
    return date(year, month, min(day, days_in_month(year, month)))


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


@dataclass(frozen=True)
class RecurringExpenseRule:
    id: Optional[int]
    name: str
    amount_cents: int
    start_date: DateLike
    end_date: Optional[DateLike] = None
    recurrence: Recurrence = Recurrence.none
    category: Optional[str] = None


@dataclass(frozen=True)
class PayrollRule:
    salary_type: SalaryType
    salary_cents: int
    anchor_date: Optional[DateLike] = None
    name: str = "Salary"


@dataclass(frozen=True)
class Occurrence:
    date: date
    name: str
    amount_cents: int
    rule_id: Optional[int] = None
    category: Optional[str] = None


@dataclass
class Expansion:
    occurrences: list[Occurrence] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    steps: int = 0

    def __iter__(self) -> Iterator[Occurrence]:
        return iter(self.occurrences)

    def __len__(self) -> int:
        return len(self.occurrences)

    @property
    def dates(self) -> list[date]:
        return [occ.date for occ in self.occurrences]

    def fail(self, message: str) -> "Expansion":
        logger.warning(message)
        self.occurrences = []
        self.errors.append(message)
        return self


def _first_index(recurrence: Recurrence, start: date, window_start: date) -> int:
    """Index of the first step that can land inside the window.

    Stepping stays anchored on the rule's own start date; this only skips
    steps that are known to fall before the window.
    """
    if window_start <= start:
        return 0
    if recurrence in DAY_STEPS:
        step = DAY_STEPS[recurrence]
        return -(-(window_start - start).days // step)
    if recurrence in MONTH_STEPS:
        step = MONTH_STEPS[recurrence]
        return max(0, months_between(start, window_start) // step)
    return 0


def _step(recurrence: Recurrence, start: date, index: int) -> date:
    if recurrence in DAY_STEPS:
        return start + timedelta(days=DAY_STEPS[recurrence] * index)
    return add_months(start, MONTH_STEPS[recurrence] * index, desired_day=start.day)


def expand(
    rule: RecurringExpenseRule,
    window_start: date,
    window_end: date,
    *,
    horizon_end: Optional[date] = None,
) -> Expansion:
    """Every date on which ``rule`` falls inside ``[window_start, window_end]``.

    Rules without an end date are bounded by ``horizon_end`` when the caller
    provides one, otherwise by the window itself.
    """
    recurrence = Recurrence(rule.recurrence)
    result = Expansion()
    label = rule.name or f"rule {rule.id}"

    try:
        start = coerce_date(rule.start_date)
        end = coerce_date(rule.end_date) if rule.end_date else None
    except ValueError as exc:
        return result.fail(f"Recurring expense {label!r}: {exc}")
    if end is not None and end < start:
        return result.fail(
            f"Recurring expense {label!r}: end date {end} is before start date {start}"
        )
    if rule.amount_cents < 0:
        return result.fail(f"Recurring expense {label!r}: amount cannot be negative")

    stop = window_end
    if end is not None:
        stop = min(stop, end)
    elif horizon_end is not None:
        stop = min(stop, horizon_end)

    def emit(on: date) -> None:
        result.occurrences.append(
            Occurrence(
                date=on,
                name=rule.name,
                amount_cents=rule.amount_cents,
                rule_id=rule.id,
                category=rule.category,
            )
        )

    if recurrence == Recurrence.none:
        result.steps = 1
        if window_start <= start <= stop:
            emit(start)
        return result

    index = _first_index(recurrence, start, window_start)
    previous: Optional[date] = None
    while True:
        if result.steps >= MAX_ITERATIONS:
            message = (
                f"Recurring expense {label!r}: aborted after {MAX_ITERATIONS} steps"
            )
            logger.error(message)
            result.errors.append(message)
            break
        current = _step(recurrence, start, index)
        result.steps += 1
        if previous is not None and current <= previous:
            message = f"Recurring expense {label!r}: recurrence did not advance past {current}"
            logger.error(message)
            result.errors.append(message)
            break
        if current > stop:
            break
        if current >= window_start:
            emit(current)
        previous = current
        index += 1
    return result


def _annual_installment(salary_cents: int) -> int:
    return int(
        (Decimal(salary_cents) / Decimal(12)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )


def expand_payroll(rule: PayrollRule, window_start: date, window_end: date) -> Expansion:
    """Pay days of ``rule`` inside ``[window_start, window_end]``.

    Annual salaries pay one twelfth on the 1st of each month, and only when
    that 1st falls inside the window: a window starting mid-month (such as
    the budget outlook starting today) skips the current month's
    installment. Biweekly salaries step 14 days from the anchor date.
    """
    salary_type = SalaryType(rule.salary_type)
    result = Expansion()
    if rule.salary_cents < 0:
        return result.fail("Payroll: salary cannot be negative")

    if salary_type == SalaryType.annual:
        amount = _annual_installment(rule.salary_cents)
        current = window_start.replace(day=1)
        while current <= window_end:
            if result.steps >= MAX_ITERATIONS:
                logger.error("Payroll: aborted after %s monthly steps", MAX_ITERATIONS)
                result.errors.append(f"Payroll: aborted after {MAX_ITERATIONS} steps")
                break
            result.steps += 1
            if current >= window_start:
                result.occurrences.append(
                    Occurrence(date=current, name=rule.name, amount_cents=amount)
                )
            current = add_months(current, 1, desired_day=1)
        return result

    if rule.anchor_date is None:
        return result.fail("Payroll: biweekly salary requires an anchor date")
    try:
        anchor = coerce_date(rule.anchor_date)
    except ValueError as exc:
        return result.fail(f"Payroll: {exc}")

    index = 0
    if window_start > anchor:
        index = -(-(window_start - anchor).days // PAY_PERIOD_DAYS)
    while True:
        if result.steps >= MAX_ITERATIONS:
            logger.error("Payroll: aborted after %s pay periods", MAX_ITERATIONS)
            result.errors.append(f"Payroll: aborted after {MAX_ITERATIONS} steps")
            break
        current = anchor + timedelta(days=PAY_PERIOD_DAYS * index)
        result.steps += 1
        if current > window_end:
            break
        if current >= window_start:
            result.occurrences.append(
                Occurrence(date=current, name=rule.name, amount_cents=rule.salary_cents)
            )
        index += 1
    return result
