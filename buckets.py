import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Union

from rapidfuzz.distance import Levenshtein

from models import EntryKind, LedgerType, TransferType, UsageMode
from recurrence import (
    DateLike,
    PayrollRule,
    RecurringExpenseRule,
    coerce_date,
    expand,
    expand_payroll,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariableExpense:
    date: DateLike
    name: str
    amount_cents: int
    id: Optional[int] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class LedgerTransaction:
    date: DateLike
    type: Union[LedgerType, str]
    amount_cents: int
    description: str = ""
    transfer_type: Optional[TransferType] = None
    id: Optional[int] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class BucketItem:
    name: str
    amount_cents: int
    kind: EntryKind
    source: str
    counted: bool = True


@dataclass
class DailyBucket:
    income_cents: int = 0
    expense_cents: int = 0
    items: list[BucketItem] = field(default_factory=list)

    def add(self, item: BucketItem) -> None:
        if item.counted:
            if item.kind == EntryKind.income:
                self.income_cents += item.amount_cents
            else:
                self.expense_cents += item.amount_cents
        self.items.append(item)


class DailyBuckets(dict):
    """Date key (``YYYY-MM-DD``) -> ``DailyBucket`` plus the problems met while building."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.errors: list[str] = []

    def bucket(self, on: date) -> DailyBucket:
        key = on.isoformat()
        if key not in self:
            self[key] = DailyBucket()
        return self[key]


BUSINESS_TYPES = {
    LedgerType.income: EntryKind.income,
    LedgerType.expense: EntryKind.expense,
}

PERSONAL_TYPES = {
    LedgerType.income: EntryKind.income,
    LedgerType.revenu: EntryKind.income,
    LedgerType.depense: EntryKind.expense,
    LedgerType.remboursement: EntryKind.expense,
    LedgerType.paiement_facture: EntryKind.expense,
}

INCOME_LABELS = ("income", "revenu", "revenus", "salaire", "salary")


def _ledger_type(value: Union[LedgerType, str]) -> Optional[LedgerType]:
    try:
        return LedgerType(value)
    except ValueError:
        return None


def is_internal_transfer(txn: LedgerTransaction, mode: UsageMode) -> bool:
    return (
        mode == UsageMode.personal
        and _ledger_type(txn.type) == LedgerType.transfert
        and txn.transfer_type == TransferType.between_accounts
    )


def classify_business(txn: LedgerTransaction) -> Optional[EntryKind]:
    ledger_type = _ledger_type(txn.type)
    if ledger_type is None:
        return None
    return BUSINESS_TYPES.get(ledger_type)


def classify_personal(txn: LedgerTransaction) -> Optional[EntryKind]:
    ledger_type = _ledger_type(txn.type)
    if ledger_type is None:
        return None
    if ledger_type == LedgerType.transfert:
        if txn.transfer_type == TransferType.between_persons:
            return EntryKind.expense
        return None
    return PERSONAL_TYPES.get(ledger_type)


def classify_transaction(txn: LedgerTransaction, mode: UsageMode) -> Optional[EntryKind]:
    """Income/expense for ``txn`` under ``mode``; ``None`` when unrecognized."""
    if UsageMode(mode) == UsageMode.business:
        return classify_business(txn)
    return classify_personal(txn)


def guess_kind(type_value: Union[LedgerType, str]) -> EntryKind:
    """Display-only guess for transactions the mode does not recognize."""
    raw = str(getattr(type_value, "value", type_value) or "").strip().lower()
    if raw and any(Levenshtein.distance(raw, label) <= 2 for label in INCOME_LABELS):
        return EntryKind.income
    return EntryKind.expense


def _in_window(value: date, window_start: date, window_end: date) -> bool:
    return window_start <= value <= window_end


def build_daily_buckets(
    recurring_rules: Iterable[RecurringExpenseRule],
    payroll_rule: Optional[PayrollRule],
    variable_expenses: Iterable[VariableExpense],
    ledger_transactions: Iterable[LedgerTransaction],
    mode: UsageMode,
    window_start: date,
    window_end: date,
    *,
    horizon_end: Optional[date] = None,
) -> DailyBuckets:
    """Merge planned occurrences and actual transactions into per-day totals.

    Planned and actual amounts landing on the same day are summed; an actual
    transaction never replaces a planned occurrence.
    """
    mode = UsageMode(mode)
    buckets = DailyBuckets()

    if payroll_rule is not None:
        payroll = expand_payroll(payroll_rule, window_start, window_end)
        buckets.errors.extend(payroll.errors)
        for occ in payroll:
            buckets.bucket(occ.date).add(
                BucketItem(occ.name, occ.amount_cents, EntryKind.income, "payroll")
            )

    for rule in recurring_rules:
        expansion = expand(rule, window_start, window_end, horizon_end=horizon_end)
        buckets.errors.extend(expansion.errors)
        for occ in expansion:
            buckets.bucket(occ.date).add(
                BucketItem(occ.name, occ.amount_cents, EntryKind.expense, "fixed")
            )

    for expense in variable_expenses:
        try:
            on = coerce_date(expense.date)
        except ValueError as exc:
            message = f"Variable expense {expense.name!r} skipped: {exc}"
            logger.warning(message)
            buckets.errors.append(message)
            continue
        if not _in_window(on, window_start, window_end):
            continue
        buckets.bucket(on).add(
            BucketItem(
                expense.name, abs(expense.amount_cents), EntryKind.expense, "variable"
            )
        )

    for txn in ledger_transactions:
        try:
            on = coerce_date(txn.date)
        except ValueError as exc:
            message = f"Transaction {txn.id or txn.description!r} skipped: {exc}"
            logger.warning(message)
            buckets.errors.append(message)
            continue
        if not _in_window(on, window_start, window_end):
            continue
        if is_internal_transfer(txn, mode):
            continue
        kind = classify_transaction(txn, mode)
        counted = kind is not None
        if kind is None:
            kind = guess_kind(txn.type)
            logger.info(
                f"unclassified_transaction: id={txn.id} type={txn.type} mode={mode.value}"
            )
        buckets.bucket(on).add(
            BucketItem(
                txn.description or str(txn.type),
                abs(txn.amount_cents),
                kind,
                "transaction",
                counted=counted,
            )
        )

    ordered = DailyBuckets(sorted(buckets.items()))
    ordered.errors = buckets.errors
    return ordered
