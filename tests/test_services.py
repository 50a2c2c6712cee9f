from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cache import TTLCache
from database import Base
from models import Recurrence, SalaryType, TransferType, UsageMode
from schemas import (
    AssetIn,
    FixedExpenseIn,
    PayrollIn,
    TransactionIn,
    VariableExpenseIn,
)
from services import (
    AssetService,
    BudgetService,
    CalendarService,
    DashboardService,
    FixedExpenseService,
    LedgerLoader,
    PayrollService,
    TransactionService,
    VariableExpenseService,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_fixed_expense_crud_is_scoped_by_mode() -> None:
    session = make_session()
    service = FixedExpenseService(session)

    rent = service.create(
        UsageMode.personal,
        FixedExpenseIn(name="Rent", amount_cents=120_000, start_date=date(2025, 1, 1)),
    )
    service.create(
        UsageMode.business,
        FixedExpenseIn(
            name="Hosting",
            amount_cents=2_500,
            start_date=date(2025, 1, 1),
            recurrence=Recurrence.yearly,
        ),
    )

    assert [row.name for row in service.list(UsageMode.personal)] == ["Rent"]
    assert rent.recurrence == Recurrence.monthly

    updated = service.update(
        rent.id,
        FixedExpenseIn(
            name="Rent",
            amount_cents=125_000,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 12, 31),
        ),
    )
    assert updated.amount_cents == 125_000

    service.delete(rent.id)
    assert service.list(UsageMode.personal) == []
    with pytest.raises(ValueError):
        service.get(rent.id)


def test_fixed_expense_rejects_end_before_start() -> None:
    session = make_session()

    with pytest.raises(ValueError):
        FixedExpenseService(session).create(
            UsageMode.business,
            FixedExpenseIn(
                name="Backwards",
                amount_cents=1_000,
                start_date=date(2025, 5, 1),
                end_date=date(2025, 4, 1),
            ),
        )


def test_payroll_upsert_keeps_one_row_per_mode() -> None:
    session = make_session()
    service = PayrollService(session)

    service.upsert(
        UsageMode.personal,
        PayrollIn(salary_type=SalaryType.annual, salary_cents=6_000_000),
    )
    row = service.upsert(
        UsageMode.personal,
        PayrollIn(
            salary_type=SalaryType.biweekly,
            salary_cents=230_000,
            anchor_date=date(2025, 1, 3),
        ),
    )

    assert row.salary_type == SalaryType.biweekly
    assert service.get(UsageMode.business) is None

    service.delete(UsageMode.personal)
    assert service.get(UsageMode.personal) is None
    with pytest.raises(ValueError):
        service.delete(UsageMode.personal)


def test_ledger_loader_builds_engine_inputs() -> None:
    session = make_session()
    FixedExpenseService(session).create(
        UsageMode.personal,
        FixedExpenseIn(name="Gym", amount_cents=4_000, start_date=date(2025, 1, 2)),
    )
    VariableExpenseService(session).create(
        UsageMode.personal,
        VariableExpenseIn(date=date(2025, 3, 4), name="Books", amount_cents=3_000),
    )
    TransactionService(session).create(
        UsageMode.personal,
        TransactionIn(
            date=date(2025, 3, 5),
            type="transfert",
            transfer_type=TransferType.between_accounts,
            amount_cents=50_000,
            description="To savings",
        ),
    )
    TransactionService(session).create(
        UsageMode.personal,
        TransactionIn(date=date(2025, 4, 5), type="depense", amount_cents=900),
    )

    snapshot = LedgerLoader(session).load(
        UsageMode.personal, date(2025, 3, 1), date(2025, 3, 31)
    )

    assert [rule.name for rule in snapshot.recurring_rules] == ["Gym"]
    assert snapshot.payroll_rule is None
    assert [exp.name for exp in snapshot.variable_expenses] == ["Books"]
    assert [txn.description for txn in snapshot.transactions] == ["To savings"]


def test_calendar_month_clamps_and_respects_horizon() -> None:
    session = make_session()
    FixedExpenseService(session).create(
        UsageMode.business,
        FixedExpenseIn(name="Office", amount_cents=5_000, start_date=date(2025, 1, 31)),
    )
    calendar = CalendarService(session)

    february = calendar.month(2025, 2, UsageMode.business, today=date(2025, 1, 15))
    august = calendar.month(2025, 8, UsageMode.business, today=date(2025, 1, 15))

    assert list(february) == ["2025-02-28"]
    assert february["2025-02-28"].expense_cents == 5_000
    assert dict(august) == {}


def test_budget_upcoming_lists_payroll_and_fixed_expenses() -> None:
    session = make_session()
    PayrollService(session).upsert(
        UsageMode.personal,
        PayrollIn(
            salary_type=SalaryType.biweekly,
            salary_cents=200_000,
            anchor_date=date(2025, 1, 3),
        ),
    )
    FixedExpenseService(session).create(
        UsageMode.personal,
        FixedExpenseIn(name="Rent", amount_cents=120_000, start_date=date(2025, 1, 1)),
    )

    outlook = BudgetService(session).upcoming(
        UsageMode.personal, today=date(2025, 1, 10), months=2
    )

    assert outlook.end == date(2025, 3, 10)
    assert [(e.date, e.kind.value) for e in outlook.entries] == [
        (date(2025, 1, 17), "income"),
        (date(2025, 1, 31), "income"),
        (date(2025, 2, 1), "expense"),
        (date(2025, 2, 14), "income"),
        (date(2025, 2, 28), "income"),
        (date(2025, 3, 1), "expense"),
    ]
    assert outlook.income_cents == 800_000
    assert outlook.expense_cents == 240_000


def _seed_dashboard(session) -> None:
    PayrollService(session).upsert(
        UsageMode.business,
        PayrollIn(salary_type=SalaryType.annual, salary_cents=6_000_000),
    )
    FixedExpenseService(session).create(
        UsageMode.business,
        FixedExpenseIn(name="Software", amount_cents=10_000, start_date=date(2025, 1, 15)),
    )
    TransactionService(session).create(
        UsageMode.business,
        TransactionIn(
            date=date(2025, 3, 10),
            type="income",
            amount_cents=20_000,
            description="Invoice 42",
        ),
    )


def test_dashboard_year_aggregates_every_source() -> None:
    session = make_session()
    _seed_dashboard(session)

    view = DashboardService(session).year(2025, UsageMode.business)

    assert len(view.months) == 12
    assert view.months[2].revenue_cents == 520_000
    assert view.months[0].revenue_cents == 500_000
    assert all(row.expenses_cents == 10_000 for row in view.months)
    assert view.totals.income_cents == 6_020_000
    assert view.totals.expenses_cents == 120_000
    assert view.errors == []


def test_dashboard_fiscal_year_uses_start_month() -> None:
    session = make_session()
    _seed_dashboard(session)

    totals = DashboardService(session).fiscal_year(
        2025, UsageMode.business, start_month=4
    )

    assert (totals.start, totals.end) == (date(2025, 4, 1), date(2026, 3, 31))
    assert totals.income_cents == 12 * 500_000
    assert totals.expenses_cents == 12 * 10_000


def test_dashboard_cache_tracks_ledger_changes() -> None:
    session = make_session()
    _seed_dashboard(session)
    cache = TTLCache(default_ttl=300)
    service = DashboardService(session, cache=cache)

    first = service.year(2025, UsageMode.business)
    second = service.year(2025, UsageMode.business)
    assert len(cache) == 1
    assert second.totals == first.totals

    TransactionService(session).create(
        UsageMode.business,
        TransactionIn(date=date(2025, 6, 1), type="expense", amount_cents=7_500),
    )
    third = service.year(2025, UsageMode.business)

    assert len(cache) == 2
    assert third.totals.expenses_cents == first.totals.expenses_cents + 7_500


def test_asset_cca_uses_stored_dates() -> None:
    session = make_session()
    service = AssetService(session)
    laptop = service.create(
        UsageMode.business,
        AssetIn(
            name="Laptop",
            cost_cents=100_000,
            purchase_date=date(2023, 6, 1),
            cca_class="50",
        ),
    )

    result = service.cca(laptop.id, 2024)

    assert result.book_value_cents == 20_250
    assert [asset.name for asset in service.list(UsageMode.business)] == ["Laptop"]
    with pytest.raises(ValueError):
        service.cca(laptop.id + 1, 2024)


def test_views_are_repeatable_for_a_fixed_today() -> None:
    session = make_session()
    PayrollService(session).upsert(
        UsageMode.personal,
        PayrollIn(
            salary_type=SalaryType.biweekly,
            salary_cents=200_000,
            anchor_date=date(2025, 1, 3),
        ),
    )
    FixedExpenseService(session).create(
        UsageMode.personal,
        FixedExpenseIn(name="Rent", amount_cents=120_000, start_date=date(2025, 1, 31)),
    )
    calendar = CalendarService(session)
    budget = BudgetService(session)
    today = date(2025, 2, 10)

    first_month = calendar.month(2025, 3, UsageMode.personal, today=today)
    second_month = calendar.month(2025, 3, UsageMode.personal, today=today)
    first_outlook = budget.upcoming(UsageMode.personal, today=today, months=3)
    second_outlook = budget.upcoming(UsageMode.personal, today=today, months=3)

    assert first_month == second_month
    assert list(first_month) == ["2025-03-14", "2025-03-28", "2025-03-31"]
    assert first_outlook == second_outlook
    assert first_outlook.start == today

    # A different today moves the horizon, so open-ended rules stop earlier.
    early = calendar.month(2025, 8, UsageMode.personal, today=date(2025, 1, 15))
    late = calendar.month(2025, 8, UsageMode.personal, today=date(2025, 3, 1))
    assert "2025-08-31" not in early
    assert late["2025-08-31"].expense_cents == 120_000
