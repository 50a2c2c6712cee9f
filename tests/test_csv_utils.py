import csv
from datetime import date
from io import StringIO

import pytest

from aggregation import MonthlyAggregate
from buckets import BucketItem, DailyBucket
from csv_utils import (
    export_daily_buckets,
    export_monthly_aggregates,
    parse_amount,
    parse_date,
    sanitize_csv_value,
)
from models import EntryKind


def test_sanitize_csv_value_prefixes_formulas() -> None:
    assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"
    assert sanitize_csv_value("https://example.com") == "\thttps://example.com"
    assert sanitize_csv_value("  Rent  ") == "Rent"
    assert sanitize_csv_value("   ") == ""


def test_parse_amount_accepts_french_format() -> None:
    assert parse_amount("1 234,56") == 123_456
    assert parse_amount("$12.50") == 1_250
    assert parse_amount("1.234,56") == 123_456
    assert parse_amount("-5", allow_negative=True) == -500


def test_parse_amount_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        parse_amount("abc")
    with pytest.raises(ValueError):
        parse_amount("-5")


def test_parse_date_accepts_iso_and_day_first() -> None:
    assert parse_date("2025-03-01") == date(2025, 3, 1)
    assert parse_date("01/03/2025") == date(2025, 3, 1)


def test_export_daily_buckets_writes_items() -> None:
    bucket = DailyBucket()
    bucket.add(BucketItem("Rent", 120_000, EntryKind.expense, "fixed"))
    bucket.add(BucketItem("=SUM(A1)", 500, EntryKind.income, "transaction"))

    rows = list(csv.reader(StringIO(export_daily_buckets({"2025-03-05": bucket}))))

    assert rows[0] == ["Date", "Income", "Expense", "Items"]
    assert rows[1][:3] == ["2025-03-05", "5.00", "1200.00"]
    assert rows[1][3] == "Rent (expense 1200.00); =SUM(A1) (income 5.00)"


def test_export_daily_buckets_sanitizes_leading_formula() -> None:
    bucket = DailyBucket()
    bucket.add(BucketItem("=SUM(A1)", 500, EntryKind.income, "transaction"))

    rows = list(csv.reader(StringIO(export_daily_buckets({"2025-03-05": bucket}))))

    assert rows[1][3].startswith("\t=")


def test_export_monthly_aggregates() -> None:
    months = [
        MonthlyAggregate(1, "2025-01", 500_000, 10_000, 500_000, 10_000),
        MonthlyAggregate(2, "2025-02"),
    ]

    rows = list(csv.reader(StringIO(export_monthly_aggregates(months))))

    assert rows == [
        ["Month", "Revenue", "Expenses", "BudgetRevenue", "BudgetExpenses"],
        ["2025-01", "5000.00", "100.00", "5000.00", "100.00"],
        ["2025-02", "0.00", "0.00", "0.00", "0.00"],
    ]
