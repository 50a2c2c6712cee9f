from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from aggregation import MonthlyAggregate, PeriodTotals, aggregate_by_month, aggregate_period
from allocation import CCAResult, capital_cost_allowance
from buckets import DailyBuckets, LedgerTransaction, VariableExpense, build_daily_buckets
from cache import TTLCache
from config import get_settings
from models import (
    Asset,
    EntryKind,
    FixedExpense,
    PayrollSetting,
    Transaction,
    UsageMode,
    VariableExpenseEntry,
)
from periods import Period, fiscal_year_period, month_period, year_period
from recurrence import (
    PayrollRule,
    RecurringExpenseRule,
    add_months,
    expand,
    expand_payroll,
    local_today,
)
from schemas import AssetIn, FixedExpenseIn, PayrollIn, TransactionIn, VariableExpenseIn


logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


class FixedExpenseService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, expense_id: int) -> FixedExpense:
        row = self.session.get(FixedExpense, expense_id)
        if not row or row.user_id != self.user_id:
            raise ValueError("Fixed expense not found")
        return row

    def list(self, mode: UsageMode) -> list[FixedExpense]:
        stmt = (
            select(FixedExpense)
            .where(
                FixedExpense.user_id == self.user_id,
                FixedExpense.mode == UsageMode(mode),
            )
            .order_by(FixedExpense.start_date, FixedExpense.id)
        )
        return list(self.session.scalars(stmt).all())

    def _check(self, data: FixedExpenseIn) -> None:
        if data.end_date is not None and data.end_date < data.start_date:
            raise ValueError("End date must be on or after start date")

    def create(self, mode: UsageMode, data: FixedExpenseIn) -> FixedExpense:
        self._check(data)
        row = FixedExpense(user_id=self.user_id, mode=UsageMode(mode), **data.model_dump())
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def update(self, expense_id: int, data: FixedExpenseIn) -> FixedExpense:
        row = self.get(expense_id)
        self._check(data)
        for name, value in data.model_dump().items():
            setattr(row, name, value)
        self.session.commit()
        self.session.refresh(row)
        return row

    def delete(self, expense_id: int) -> None:
        row = self.get(expense_id)
        self.session.delete(row)
        self.session.commit()


class PayrollService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, mode: UsageMode) -> Optional[PayrollSetting]:
        return self.session.scalar(
            select(PayrollSetting).where(
                PayrollSetting.user_id == self.user_id,
                PayrollSetting.mode == UsageMode(mode),
            )
        )

    def upsert(self, mode: UsageMode, data: PayrollIn) -> PayrollSetting:
        row = self.get(mode)
        if row is None:
            row = PayrollSetting(user_id=self.user_id, mode=UsageMode(mode))
            self.session.add(row)
        row.salary_type = data.salary_type
        row.salary_cents = data.salary_cents
        row.anchor_date = data.anchor_date
        self.session.commit()
        self.session.refresh(row)
        return row

    def delete(self, mode: UsageMode) -> None:
        row = self.get(mode)
        if row is None:
            raise ValueError("Payroll settings not found")
        self.session.delete(row)
        self.session.commit()


class VariableExpenseService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list(self, mode: UsageMode, start: date, end: date) -> list[VariableExpenseEntry]:
        stmt = (
            select(VariableExpenseEntry)
            .where(
                VariableExpenseEntry.user_id == self.user_id,
                VariableExpenseEntry.mode == UsageMode(mode),
                VariableExpenseEntry.date.between(start, end),
            )
            .order_by(VariableExpenseEntry.date, VariableExpenseEntry.id)
        )
        return list(self.session.scalars(stmt).all())

    def create(self, mode: UsageMode, data: VariableExpenseIn) -> VariableExpenseEntry:
        row = VariableExpenseEntry(
            user_id=self.user_id, mode=UsageMode(mode), **data.model_dump()
        )
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def delete(self, expense_id: int) -> None:
        row = self.session.get(VariableExpenseEntry, expense_id)
        if not row or row.user_id != self.user_id:
            raise ValueError("Variable expense not found")
        self.session.delete(row)
        self.session.commit()


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn

    def list(self, mode: UsageMode, start: date, end: date) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.mode == UsageMode(mode),
                Transaction.date.between(start, end),
            )
            .order_by(Transaction.date, Transaction.id)
        )
        return list(self.session.scalars(stmt).all())

    def list_for_year(self, mode: UsageMode, year: int) -> list[Transaction]:
        period = year_period(year)
        return self.list(mode, period.start, period.end)

    def create(self, mode: UsageMode, data: TransactionIn) -> Transaction:
        txn = Transaction(user_id=self.user_id, mode=UsageMode(mode), **data.model_dump())
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class AssetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, asset_id: int) -> Asset:
        asset = self.session.get(Asset, asset_id)
        if not asset or asset.user_id != self.user_id:
            raise ValueError("Asset not found")
        return asset

    def list(self, mode: UsageMode) -> list[Asset]:
        stmt = (
            select(Asset)
            .where(Asset.user_id == self.user_id, Asset.mode == UsageMode(mode))
            .order_by(Asset.purchase_date, Asset.id)
        )
        return list(self.session.scalars(stmt).all())

    def create(self, mode: UsageMode, data: AssetIn) -> Asset:
        asset = Asset(user_id=self.user_id, mode=UsageMode(mode), **data.model_dump())
        self.session.add(asset)
        self.session.commit()
        self.session.refresh(asset)
        return asset

    def delete(self, asset_id: int) -> None:
        asset = self.get(asset_id)
        self.session.delete(asset)
        self.session.commit()

    def cca(self, asset_id: int, year: int) -> CCAResult:
        asset = self.get(asset_id)
        return capital_cost_allowance(
            asset.cost_cents,
            asset.cca_class,
            asset.purchase_date,
            year,
            use_start_date=asset.use_start_date,
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    recurring_rules: tuple[RecurringExpenseRule, ...] = ()
    payroll_rule: Optional[PayrollRule] = None
    variable_expenses: tuple[VariableExpense, ...] = ()
    transactions: tuple[LedgerTransaction, ...] = ()

    def fingerprint(self) -> str:
        return hashlib.sha1(repr(self).encode("utf-8")).hexdigest()


class LedgerLoader:
    """Reads stored rows for one user and mode into immutable engine inputs."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def load(self, mode: UsageMode, start: date, end: date) -> LedgerSnapshot:
        mode = UsageMode(mode)
        fixed = FixedExpenseService(self.session, self.user_id).list(mode)
        payroll = PayrollService(self.session, self.user_id).get(mode)
        variable = VariableExpenseService(self.session, self.user_id).list(
            mode, start, end
        )
        transactions = TransactionService(self.session, self.user_id).list(
            mode, start, end
        )
        return LedgerSnapshot(
            recurring_rules=tuple(
                RecurringExpenseRule(
                    id=row.id,
                    name=row.name,
                    amount_cents=row.amount_cents,
                    start_date=row.start_date,
                    end_date=row.end_date,
                    recurrence=row.recurrence,
                    category=row.category,
                )
                for row in fixed
            ),
            payroll_rule=(
                PayrollRule(
                    salary_type=payroll.salary_type,
                    salary_cents=payroll.salary_cents,
                    anchor_date=payroll.anchor_date,
                )
                if payroll
                else None
            ),
            variable_expenses=tuple(
                VariableExpense(
                    id=row.id,
                    date=row.date,
                    name=row.name,
                    amount_cents=row.amount_cents,
                    category=row.category,
                )
                for row in variable
            ),
            transactions=tuple(
                LedgerTransaction(
                    id=txn.id,
                    date=txn.date,
                    type=txn.type,
                    amount_cents=txn.amount_cents,
                    description=txn.description,
                    transfer_type=txn.transfer_type,
                    category=txn.category,
                )
                for txn in transactions
            ),
        )


def _buckets_for(
    snapshot: LedgerSnapshot,
    mode: UsageMode,
    period: Period,
    horizon_end: date,
) -> DailyBuckets:
    return build_daily_buckets(
        snapshot.recurring_rules,
        snapshot.payroll_rule,
        snapshot.variable_expenses,
        snapshot.transactions,
        mode,
        period.start,
        period.end,
        horizon_end=horizon_end,
    )


class CalendarService:
    """Month grid of the budget calendar."""

    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.cache = cache

    def month(
        self,
        year: int,
        month: int,
        mode: UsageMode,
        *,
        today: Optional[date] = None,
    ) -> DailyBuckets:
        mode = UsageMode(mode)
        today = today or local_today()
        period = month_period(year, month)
        # Open-ended rules only show up to the live horizon.
        horizon_end = add_months(today, get_settings().calendar_horizon_months)
        snapshot = LedgerLoader(self.session, self.user_id).load(
            mode, period.start, period.end
        )
        if self.cache is None:
            return _buckets_for(snapshot, mode, period, horizon_end)
        key = TTLCache.make_key(
            "calendar",
            self.user_id,
            mode.value,
            period.start.isoformat(),
            horizon_end.isoformat(),
            snapshot.fingerprint(),
        )
        return self.cache.get_or_compute(
            key, lambda: _buckets_for(snapshot, mode, period, horizon_end)
        )


@dataclass(frozen=True)
class PlannedEntry:
    date: date
    name: str
    amount_cents: int
    kind: EntryKind
    category: Optional[str] = None


@dataclass
class BudgetOutlook:
    start: date
    end: date
    entries: list[PlannedEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def income_cents(self) -> int:
        return sum(e.amount_cents for e in self.entries if e.kind == EntryKind.income)

    @property
    def expense_cents(self) -> int:
        return sum(e.amount_cents for e in self.entries if e.kind == EntryKind.expense)


class BudgetService:
    """Upcoming planned income and fixed expenses for the budget page."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def upcoming(
        self,
        mode: UsageMode,
        *,
        today: Optional[date] = None,
        months: Optional[int] = None,
    ) -> BudgetOutlook:
        mode = UsageMode(mode)
        today = today or local_today()
        months = months or get_settings().calendar_horizon_months
        end = add_months(today, months)
        snapshot = LedgerLoader(self.session, self.user_id).load(mode, today, end)
        outlook = BudgetOutlook(start=today, end=end)

        if snapshot.payroll_rule is not None:
            payroll = expand_payroll(snapshot.payroll_rule, today, end)
            outlook.errors.extend(payroll.errors)
            outlook.entries.extend(
                PlannedEntry(occ.date, occ.name, occ.amount_cents, EntryKind.income)
                for occ in payroll
            )
        for rule in snapshot.recurring_rules:
            expansion = expand(rule, today, end, horizon_end=end)
            outlook.errors.extend(expansion.errors)
            outlook.entries.extend(
                PlannedEntry(
                    occ.date, occ.name, occ.amount_cents, EntryKind.expense, occ.category
                )
                for occ in expansion
            )
        outlook.entries.sort(key=lambda e: (e.date, e.kind.value, e.name))
        return outlook


@dataclass
class DashboardView:
    year: int
    months: list[MonthlyAggregate]
    totals: PeriodTotals
    errors: list[str] = field(default_factory=list)


class DashboardService:
    """Yearly chart data: twelve monthly aggregates and the year totals."""

    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.cache = cache

    def _buckets(self, mode: UsageMode, period: Period) -> DailyBuckets:
        snapshot = LedgerLoader(self.session, self.user_id).load(
            mode, period.start, period.end
        )
        if self.cache is None:
            return _buckets_for(snapshot, mode, period, period.end)
        key = TTLCache.make_key(
            "dashboard",
            self.user_id,
            mode.value,
            period.start.isoformat(),
            period.end.isoformat(),
            snapshot.fingerprint(),
        )
        return self.cache.get_or_compute(
            key, lambda: _buckets_for(snapshot, mode, period, period.end)
        )

    def year(self, year: int, mode: UsageMode) -> DashboardView:
        mode = UsageMode(mode)
        period = year_period(year)
        buckets = self._buckets(mode, period)
        if buckets.errors:
            logger.warning(
                f"dashboard: year={year} mode={mode.value} problems={len(buckets.errors)}"
            )
        return DashboardView(
            year=year,
            months=aggregate_by_month(buckets, year),
            totals=aggregate_period(buckets, period.start, period.end),
            errors=list(buckets.errors),
        )

    def fiscal_year(
        self, year: int, mode: UsageMode, *, start_month: Optional[int] = None
    ) -> PeriodTotals:
        mode = UsageMode(mode)
        start_month = start_month or get_settings().fiscal_year_start_month
        period = fiscal_year_period(year, start_month)
        return aggregate_period(self._buckets(mode, period), period.start, period.end)
