import csv
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Mapping, Sequence

from aggregation import MonthlyAggregate
from buckets import DailyBucket
from recurrence import parse_iso_date


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_date(value: str) -> date:
    value = value.strip()
    try:
        return parse_iso_date(value)
    except ValueError:
        return datetime.strptime(value, "%d/%m/%Y").date()


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip().replace("$", "").replace(" ", "").replace("\u00a0", "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def export_daily_buckets(buckets: Mapping[str, DailyBucket]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Date", "Income", "Expense", "Items"])
    for key, bucket in buckets.items():
        items = "; ".join(
            f"{item.name} ({item.kind.value} {format_cents(item.amount_cents)})"
            for item in bucket.items
        )
        writer.writerow(
            [
                key,
                format_cents(bucket.income_cents),
                format_cents(bucket.expense_cents),
                sanitize_csv_value(items),
            ]
        )
    return output.getvalue()


def export_monthly_aggregates(months: Sequence[MonthlyAggregate]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Month", "Revenue", "Expenses", "BudgetRevenue", "BudgetExpenses"])
    for row in months:
        writer.writerow(
            [
                row.label,
                format_cents(row.revenue_cents),
                format_cents(row.expenses_cents),
                format_cents(row.budget_revenue_cents),
                format_cents(row.budget_expenses_cents),
            ]
        )
    return output.getvalue()
