import json
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from config import get_settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CCAClass:
    code: str
    description: str
    rate: Decimal


@dataclass(frozen=True)
class TaxRules:
    version: str
    gst_rate: Decimal
    qst_rate: Decimal
    small_supplier_threshold_cents: int
    deductible_ratios: dict[str, Decimal] = field(default_factory=dict)
    cca_classes: tuple[CCAClass, ...] = ()
    phone_internet_business_ratio: Decimal = Decimal("0.5")

    def deductible_ratio(self, category_code: str) -> Decimal:
        return self.deductible_ratios.get(category_code.upper(), Decimal("1"))

    def cca_class(self, code: str) -> Optional[CCAClass]:
        for cls in self.cca_classes:
            if cls.code == str(code):
                return cls
        return None


@dataclass(frozen=True)
class SalesTaxes:
    amount_before_tax_cents: int
    gst_cents: int
    qst_cents: int

    @property
    def total_cents(self) -> int:
        return self.amount_before_tax_cents + self.gst_cents + self.qst_cents


@dataclass
class ExpenseCheck:
    is_valid: bool
    deductible_ratio: Decimal
    warnings: list[str] = field(default_factory=list)


DEFAULT_TAX_RULES = TaxRules(
    version="2025-11-16",
    gst_rate=Decimal("0.05"),
    qst_rate=Decimal("0.09975"),
    small_supplier_threshold_cents=3_000_000,
    deductible_ratios={"MEALS": Decimal("0.5"), "TELECOM": Decimal("0.5")},
    cca_classes=(
        CCAClass("8", "Mobilier, équipement général", Decimal("0.2")),
        CCAClass("50", "Ordinateurs et matériel connexe", Decimal("0.55")),
        CCAClass("12", "Logiciels", Decimal("1.0")),
    ),
    phone_internet_business_ratio=Decimal("0.5"),
)

TELECOM_KEYWORDS = ("téléphone", "telephone", "internet", "cellulaire")
MEALS_KEYWORDS = ("repas", "divertissement", "meals")


def _dec(value: object) -> Decimal:
    return Decimal(str(value))


def _cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_tax_rules(payload: dict) -> TaxRules:
    """Read the nested rules document (``meta`` / ``tax`` / ``bookkeeping_rules``)."""
    federal = payload["tax"]["federal"]
    quebec = payload["tax"]["provincial_quebec"]
    gst = federal["sales_tax_GST"]
    categories = federal.get("deductible_expenses", {}).get("categories", [])
    classes = federal.get("CCA_capital_cost_allowance", {}).get("classes", [])
    mixed_use = payload.get("bookkeeping_rules", {}).get("mixed_use_rules", {})
    phone_ratio = mixed_use.get("phone_internet", {}).get(
        "default_business_ratio", DEFAULT_TAX_RULES.phone_internet_business_ratio
    )
    return TaxRules(
        version=str(payload.get("meta", {}).get("version", "unknown")),
        gst_rate=_dec(gst["rate"]),
        qst_rate=_dec(quebec["sales_tax_QST"]["rate"]),
        small_supplier_threshold_cents=_cents(
            _dec(gst.get("small_supplier_threshold_last_12_months", 30000)) * 100
        ),
        deductible_ratios={
            str(cat["code"]).upper(): _dec(cat.get("default_deductible_ratio", 1))
            for cat in categories
        },
        cca_classes=tuple(
            CCAClass(
                str(cls["class"]),
                str(cls.get("description", "")),
                _dec(cls["rate_declining_balance"]),
            )
            for cls in classes
        ),
        phone_internet_business_ratio=_dec(phone_ratio),
    )


@lru_cache(maxsize=8)
def _load_from_path(path: str) -> TaxRules:
    try:
        text = Path(path).read_text(encoding="utf-8")
        if not text.strip():
            raise ValueError("rules file is empty")
        return parse_tax_rules(json.loads(text))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning(f"tax_rules: falling back to defaults ({path}): {exc}")
        return DEFAULT_TAX_RULES


def load_tax_rules(path: Optional[str] = None) -> TaxRules:
    path = path or get_settings().tax_rules_path
    if not path:
        return DEFAULT_TAX_RULES
    return _load_from_path(path)


def calculate_sales_taxes(
    amount_cents: int, *, taxable: bool = True, rules: Optional[TaxRules] = None
) -> SalesTaxes:
    """GST on the amount, QST on the amount plus GST."""
    if not taxable:
        return SalesTaxes(amount_cents, 0, 0)
    rules = rules or load_tax_rules()
    gst = Decimal(amount_cents) * rules.gst_rate
    qst = (Decimal(amount_cents) + gst) * rules.qst_rate
    return SalesTaxes(amount_cents, _cents(gst), _cents(qst))


def should_register_for_taxes(
    taxable_revenue_cents: int, *, rules: Optional[TaxRules] = None
) -> dict[str, bool]:
    rules = rules or load_tax_rules()
    required = taxable_revenue_cents > rules.small_supplier_threshold_cents
    return {"gst_required": required, "qst_required": required}


def validate_expense(
    category: str,
    *,
    has_receipt: bool,
    business_purpose: Optional[str] = None,
    rules: Optional[TaxRules] = None,
) -> ExpenseCheck:
    rules = rules or load_tax_rules()
    check = ExpenseCheck(
        is_valid=has_receipt and bool(business_purpose),
        deductible_ratio=Decimal("1"),
    )
    if not has_receipt:
        check.warnings.append("Missing receipt: deductibility may be affected")
    if not business_purpose:
        check.warnings.append("Business purpose not specified")

    lowered = category.lower()
    if any(word in lowered for word in TELECOM_KEYWORDS):
        check.deductible_ratio = rules.phone_internet_business_ratio
        check.warnings.append(
            f"Mixed use detected: default deductible ratio {check.deductible_ratio * 100:.0f}%"
        )
    if any(word in lowered for word in MEALS_KEYWORDS):
        check.deductible_ratio = rules.deductible_ratio("MEALS")
        check.warnings.append(
            f"Meals and entertainment: limited to {check.deductible_ratio * 100:.0f}%"
        )
    return check
