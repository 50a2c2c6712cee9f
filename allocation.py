import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from taxrules import TaxRules, load_tax_rules


logger = logging.getLogger(__name__)


def _clamp_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return Decimal("0")
    return min(max(numerator / denominator, Decimal("0")), Decimal("1"))


def _apply(total_cents: int, ratio: Decimal) -> int:
    return int(
        (Decimal(total_cents) * ratio).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )


@dataclass(frozen=True)
class Allocation:
    ratio: Decimal
    total_cents: int
    deductible_cents: int


def vehicle_allocation(
    business_km: float, total_km: float, annual_costs_cents: Iterable[int]
) -> Allocation:
    ratio = _clamp_ratio(Decimal(str(business_km)), Decimal(str(total_km)))
    total = sum(annual_costs_cents)
    return Allocation(ratio, total, _apply(total, ratio))


def home_office_allocation(
    office_area: float, total_area: float, home_costs_cents: Iterable[int]
) -> Allocation:
    ratio = _clamp_ratio(Decimal(str(office_area)), Decimal(str(total_area)))
    total = sum(home_costs_cents)
    return Allocation(ratio, total, _apply(total, ratio))


def technology_allocation(lines: Iterable[tuple[int, float]]) -> Allocation:
    """``lines`` are ``(amount_cents, business_ratio)`` pairs, each ratio clamped to [0, 1]."""
    total = 0
    deductible = 0
    for amount_cents, ratio in lines:
        clamped = min(max(Decimal(str(ratio)), Decimal("0")), Decimal("1"))
        total += amount_cents
        deductible += _apply(amount_cents, clamped)
    overall = Decimal(deductible) / Decimal(total) if total else Decimal("0")
    return Allocation(overall, total, deductible)


@dataclass(frozen=True)
class CCAResult:
    year: int
    cca_class: str
    rate: Decimal
    cumulative_cca_cents: int
    book_value_cents: int


def capital_cost_allowance(
    cost_cents: int,
    cca_class: str,
    purchase_date: date,
    year: int,
    *,
    use_start_date: Optional[date] = None,
    rules: Optional[TaxRules] = None,
) -> CCAResult:
    """Declining-balance CCA claimed from the first year of use through ``year``."""
    rules = rules or load_tax_rules()
    cls = rules.cca_class(cca_class)
    if cls is None:
        logger.warning(f"cca: unknown class {cca_class!r}, no allowance computed")
        return CCAResult(year, cca_class, Decimal("0"), 0, cost_cents)

    first_year = max(purchase_date.year, use_start_date.year if use_start_date else 0)
    if year < first_year:
        return CCAResult(year, cls.code, cls.rate, 0, cost_cents)

    book_value = Decimal(cost_cents)
    for _ in range(year - first_year + 1):
        book_value -= book_value * cls.rate
    book_value_cents = int(book_value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return CCAResult(
        year,
        cls.code,
        cls.rate,
        cost_cents - book_value_cents,
        book_value_cents,
    )
