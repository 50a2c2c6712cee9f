from dataclasses import dataclass
from datetime import date
from typing import Optional

from recurrence import add_months, days_in_month, parse_iso_date


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 1 and 12")
    return Period(
        "month", date(year, month, 1), date(year, month, days_in_month(year, month))
    )


def year_period(year: int) -> Period:
    return Period("year", date(year, 1, 1), date(year, 12, 31))


def fiscal_year_period(year: int, start_month: int = 1) -> Period:
    if not 1 <= start_month <= 12:
        raise ValueError("Fiscal year start month must be between 1 and 12")
    start = date(year, start_month, 1)
    end = add_months(start, 12) - date.resolution
    return Period("fiscal_year", start, end)


def resolve_period(
    period: Optional[str],
    *,
    month: Optional[str] = None,
    year: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    fiscal_start_month: int = 1,
    today: Optional[date] = None,
) -> Period:
    today = today or date.today()
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = parse_iso_date(start)
        end_date = parse_iso_date(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period == "year":
        return year_period(year or today.year)
    if period == "fiscal_year":
        return fiscal_year_period(year or today.year, fiscal_start_month)

    # month
    if month:
        year_str, _, month_str = month.partition("-")
        if not (year_str.isdigit() and month_str.isdigit()):
            raise ValueError("Month must be formatted as YYYY-MM")
        return month_period(int(year_str), int(month_str))
    return month_period(today.year, today.month)
