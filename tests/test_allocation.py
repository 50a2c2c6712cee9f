from datetime import date
from decimal import Decimal

from allocation import (
    capital_cost_allowance,
    home_office_allocation,
    technology_allocation,
    vehicle_allocation,
)
from taxrules import DEFAULT_TAX_RULES


def test_vehicle_allocation_uses_km_ratio() -> None:
    result = vehicle_allocation(15_000, 20_000, [600_000, 150_000])

    assert result.ratio == Decimal("0.75")
    assert result.total_cents == 750_000
    assert result.deductible_cents == 562_500


def test_vehicle_allocation_clamps_ratio() -> None:
    assert vehicle_allocation(30_000, 20_000, [100_000]).deductible_cents == 100_000
    assert vehicle_allocation(100, 0, [100_000]).deductible_cents == 0


def test_home_office_allocation_uses_area_ratio() -> None:
    result = home_office_allocation(150, 1_000, [1_200_000, 240_000])

    assert result.ratio == Decimal("0.15")
    assert result.deductible_cents == 216_000


def test_technology_allocation_sums_lines() -> None:
    result = technology_allocation([(10_000, 0.5), (6_000, 1.5)])

    assert result.total_cents == 16_000
    assert result.deductible_cents == 11_000
    assert result.ratio == Decimal(11_000) / Decimal(16_000)


def test_technology_allocation_with_no_lines() -> None:
    result = technology_allocation([])

    assert (result.total_cents, result.deductible_cents, result.ratio) == (0, 0, 0)


def test_cca_declining_balance_over_two_years() -> None:
    first = capital_cost_allowance(
        100_000, "50", date(2023, 6, 1), 2023, rules=DEFAULT_TAX_RULES
    )
    second = capital_cost_allowance(
        100_000, "50", date(2023, 6, 1), 2024, rules=DEFAULT_TAX_RULES
    )

    assert (first.book_value_cents, first.cumulative_cca_cents) == (45_000, 55_000)
    assert (second.book_value_cents, second.cumulative_cca_cents) == (20_250, 79_750)


def test_cca_starts_when_asset_is_put_in_use() -> None:
    result = capital_cost_allowance(
        100_000,
        "8",
        date(2023, 12, 15),
        2023,
        use_start_date=date(2024, 1, 10),
        rules=DEFAULT_TAX_RULES,
    )

    assert result.cumulative_cca_cents == 0
    assert result.book_value_cents == 100_000


def test_cca_unknown_class_claims_nothing() -> None:
    result = capital_cost_allowance(
        50_000, "99", date(2024, 1, 1), 2025, rules=DEFAULT_TAX_RULES
    )

    assert result.rate == Decimal("0")
    assert result.book_value_cents == 50_000
