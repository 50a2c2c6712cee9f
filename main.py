from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from sqlalchemy.orm import Session

from aggregation import MonthlyAggregate, PeriodTotals
from allocation import (
    Allocation,
    home_office_allocation,
    technology_allocation,
    vehicle_allocation,
)
from buckets import DailyBuckets
from cache import TTLCache
from config import get_settings
from csv_utils import (
    export_daily_buckets,
    export_monthly_aggregates,
    parse_amount,
    parse_date,
)
from database import SessionLocal, init_db
from models import (
    Asset,
    FixedExpense,
    PayrollSetting,
    Transaction,
    UsageMode,
    VariableExpenseEntry,
)
from periods import Period, resolve_period
from recurrence import local_today
from scheduler import SchedulerManager
from schemas import (
    AssetIn,
    ExpenseCheckIn,
    FixedExpenseIn,
    HomeOfficeAllocationIn,
    PayrollIn,
    TechnologyAllocationIn,
    TransactionIn,
    VariableExpenseIn,
    VehicleAllocationIn,
)
from services import (
    AssetService,
    BudgetService,
    CalendarService,
    DashboardService,
    FixedExpenseService,
    PayrollService,
    TransactionService,
    VariableExpenseService,
)
from taxrules import calculate_sales_taxes, should_register_for_taxes, validate_expense


app = FastAPI(title="Tenue de livres")


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app_cache = TTLCache(default_ttl=get_settings().cache_ttl_secs)
scheduler_manager = SchedulerManager(app_cache)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cache() -> TTLCache:
    return app_cache


@app.on_event("startup")
def startup_event():
    init_db()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def mode_from_request(request: Request) -> UsageMode:
    raw = request.query_params.get("mode") or get_settings().default_mode
    try:
        return UsageMode(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown mode: {raw}") from exc


def today_from_request(request: Request) -> Optional[date]:
    raw = request.query_params.get("today")
    if not raw:
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def int_param(request: Request, name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {raw}") from exc


def period_from_request(request: Request, default: str) -> Period:
    params = request.query_params
    try:
        return resolve_period(
            params.get("period") or default,
            month=params.get("month"),
            year=int_param(request, "year"),
            start=params.get("start"),
            end=params.get("end"),
            fiscal_start_month=get_settings().fiscal_year_start_month,
            today=today_from_request(request),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def fixed_expense_out(row: FixedExpense) -> dict[str, object]:
    return {
        "id": row.id,
        "name": row.name,
        "amount_cents": row.amount_cents,
        "start_date": row.start_date.isoformat(),
        "end_date": row.end_date.isoformat() if row.end_date else None,
        "recurrence": row.recurrence.value,
        "category": row.category,
    }


def payroll_out(row: PayrollSetting) -> dict[str, object]:
    return {
        "salary_type": row.salary_type.value,
        "salary_cents": row.salary_cents,
        "anchor_date": row.anchor_date.isoformat() if row.anchor_date else None,
    }


def variable_expense_out(row: VariableExpenseEntry) -> dict[str, object]:
    return {
        "id": row.id,
        "date": row.date.isoformat(),
        "name": row.name,
        "amount_cents": row.amount_cents,
        "category": row.category,
    }


def transaction_out(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "type": txn.type,
        "transfer_type": txn.transfer_type.value if txn.transfer_type else None,
        "amount_cents": txn.amount_cents,
        "description": txn.description,
        "category": txn.category,
        "company": txn.company,
    }


def asset_out(asset: Asset) -> dict[str, object]:
    return {
        "id": asset.id,
        "name": asset.name,
        "cost_cents": asset.cost_cents,
        "purchase_date": asset.purchase_date.isoformat(),
        "use_start_date": (
            asset.use_start_date.isoformat() if asset.use_start_date else None
        ),
        "cca_class": asset.cca_class,
    }


def buckets_out(buckets: DailyBuckets) -> dict[str, object]:
    return {
        "days": {
            key: {
                "income_cents": bucket.income_cents,
                "expense_cents": bucket.expense_cents,
                "items": [
                    {
                        "name": item.name,
                        "amount_cents": item.amount_cents,
                        "kind": item.kind.value,
                        "source": item.source,
                        "counted": item.counted,
                    }
                    for item in bucket.items
                ],
            }
            for key, bucket in buckets.items()
        },
        "errors": list(buckets.errors),
    }


def month_out(row: MonthlyAggregate) -> dict[str, object]:
    return {
        "month": row.month,
        "label": row.label,
        "revenue_cents": row.revenue_cents,
        "expenses_cents": row.expenses_cents,
        "budget_revenue_cents": row.budget_revenue_cents,
        "budget_expenses_cents": row.budget_expenses_cents,
    }


def totals_out(totals: PeriodTotals) -> dict[str, object]:
    return {
        "start": totals.start.isoformat(),
        "end": totals.end.isoformat(),
        "income_cents": totals.income_cents,
        "expenses_cents": totals.expenses_cents,
        "net_cents": totals.net_cents,
        "margin_percent": round(totals.margin_percent, 1),
    }


def allocation_out(allocation: Allocation) -> dict[str, object]:
    return {
        "ratio": float(allocation.ratio),
        "total_cents": allocation.total_cents,
        "deductible_cents": allocation.deductible_cents,
    }


@app.get("/api/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/fixed-expenses")
def list_fixed_expenses(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    return [fixed_expense_out(row) for row in FixedExpenseService(db).list(mode)]


@app.post("/api/fixed-expenses", status_code=201)
def create_fixed_expense(
    data: FixedExpenseIn, request: Request, db: Session = Depends(get_db)
):
    mode = mode_from_request(request)
    try:
        row = FixedExpenseService(db).create(mode, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return fixed_expense_out(row)


@app.put("/api/fixed-expenses/{expense_id}")
def update_fixed_expense(
    expense_id: int, data: FixedExpenseIn, db: Session = Depends(get_db)
):
    service = FixedExpenseService(db)
    try:
        service.get(expense_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        row = service.update(expense_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return fixed_expense_out(row)


@app.delete("/api/fixed-expenses/{expense_id}", status_code=204)
def delete_fixed_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        FixedExpenseService(db).delete(expense_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/payroll")
def get_payroll(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    row = PayrollService(db).get(mode)
    if row is None:
        raise HTTPException(status_code=404, detail="Payroll settings not found")
    return payroll_out(row)


@app.put("/api/payroll")
def put_payroll(data: PayrollIn, request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    return payroll_out(PayrollService(db).upsert(mode, data))


@app.delete("/api/payroll", status_code=204)
def delete_payroll(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    try:
        PayrollService(db).delete(mode)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/variable-expenses")
def list_variable_expenses(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    period = period_from_request(request, "month")
    rows = VariableExpenseService(db).list(mode, period.start, period.end)
    return [variable_expense_out(row) for row in rows]


@app.post("/api/variable-expenses", status_code=201)
def create_variable_expense(
    data: VariableExpenseIn, request: Request, db: Session = Depends(get_db)
):
    mode = mode_from_request(request)
    return variable_expense_out(VariableExpenseService(db).create(mode, data))


@app.delete("/api/variable-expenses/{expense_id}", status_code=204)
def delete_variable_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        VariableExpenseService(db).delete(expense_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/transactions")
def list_transactions(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    period = period_from_request(request, "year")
    rows = TransactionService(db).list(mode, period.start, period.end)
    return [transaction_out(txn) for txn in rows]


@app.post("/api/transactions", status_code=201)
def create_transaction(
    data: TransactionIn, request: Request, db: Session = Depends(get_db)
):
    mode = mode_from_request(request)
    return transaction_out(TransactionService(db).create(mode, data))


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/assets")
def list_assets(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    return [asset_out(asset) for asset in AssetService(db).list(mode)]


@app.post("/api/assets", status_code=201)
def create_asset(data: AssetIn, request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    return asset_out(AssetService(db).create(mode, data))


@app.delete("/api/assets/{asset_id}", status_code=204)
def delete_asset(asset_id: int, db: Session = Depends(get_db)):
    try:
        AssetService(db).delete(asset_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/assets/{asset_id}/cca")
def asset_cca(asset_id: int, request: Request, db: Session = Depends(get_db)):
    year = int_param(request, "year", local_today().year)
    try:
        result = AssetService(db).cca(asset_id, year)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "year": result.year,
        "cca_class": result.cca_class,
        "rate": float(result.rate),
        "cumulative_cca_cents": result.cumulative_cca_cents,
        "book_value_cents": result.book_value_cents,
    }


def _calendar(request: Request, db: Session, cache: TTLCache) -> DailyBuckets:
    mode = mode_from_request(request)
    period = period_from_request(request, "month")
    if period.slug != "month":
        raise HTTPException(status_code=400, detail="Calendar shows one month")
    return CalendarService(db, cache=cache).month(
        period.start.year,
        period.start.month,
        mode,
        today=today_from_request(request),
    )


@app.get("/api/calendar")
def calendar_view(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    return buckets_out(_calendar(request, db, cache))


@app.get("/api/calendar/export.csv")
def calendar_export(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    csv_content = export_daily_buckets(_calendar(request, db, cache))
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=calendar.csv"},
    )


@app.get("/api/budget/upcoming")
def budget_upcoming(request: Request, db: Session = Depends(get_db)):
    mode = mode_from_request(request)
    outlook = BudgetService(db).upcoming(
        mode,
        today=today_from_request(request),
        months=int_param(request, "months"),
    )
    return {
        "start": outlook.start.isoformat(),
        "end": outlook.end.isoformat(),
        "income_cents": outlook.income_cents,
        "expense_cents": outlook.expense_cents,
        "entries": [
            {
                "date": entry.date.isoformat(),
                "name": entry.name,
                "amount_cents": entry.amount_cents,
                "kind": entry.kind.value,
                "category": entry.category,
            }
            for entry in outlook.entries
        ],
        "errors": outlook.errors,
    }


@app.get("/api/dashboard")
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    mode = mode_from_request(request)
    year = int_param(request, "year", local_today().year)
    view = DashboardService(db, cache=cache).year(year, mode)
    return {
        "year": view.year,
        "months": [month_out(row) for row in view.months],
        "totals": totals_out(view.totals),
        "errors": view.errors,
    }


@app.get("/api/dashboard/fiscal-year")
def dashboard_fiscal_year(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    mode = mode_from_request(request)
    year = int_param(request, "year", local_today().year)
    start_month = int_param(request, "start_month")
    try:
        totals = DashboardService(db, cache=cache).fiscal_year(
            year, mode, start_month=start_month
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return totals_out(totals)


@app.get("/api/dashboard/export.csv")
def dashboard_export(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    mode = mode_from_request(request)
    year = int_param(request, "year", local_today().year)
    view = DashboardService(db, cache=cache).year(year, mode)
    return Response(
        content=export_monthly_aggregates(view.months),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=dashboard-{year}.csv"},
    )


@app.get("/api/taxes/sales")
def sales_taxes(request: Request):
    try:
        amount_cents = parse_amount(request.query_params.get("amount", "0"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    taxable = request.query_params.get("taxable", "true").lower() != "false"
    taxes = calculate_sales_taxes(amount_cents, taxable=taxable)
    return {
        "amount_before_tax_cents": taxes.amount_before_tax_cents,
        "gst_cents": taxes.gst_cents,
        "qst_cents": taxes.qst_cents,
        "total_cents": taxes.total_cents,
    }


@app.get("/api/taxes/registration")
def tax_registration(request: Request):
    try:
        revenue_cents = parse_amount(request.query_params.get("revenue", "0"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return should_register_for_taxes(revenue_cents)


@app.post("/api/taxes/validate-expense")
def check_expense(data: ExpenseCheckIn):
    check = validate_expense(
        data.category,
        has_receipt=data.has_receipt,
        business_purpose=data.business_purpose,
    )
    return {
        "is_valid": check.is_valid,
        "deductible_ratio": float(check.deductible_ratio),
        "warnings": check.warnings,
    }


@app.post("/api/allocations/vehicle")
def allocate_vehicle(data: VehicleAllocationIn):
    costs = [
        data.lease_or_loan_cents,
        data.insurance_cents,
        data.registration_cents,
        data.fuel_cents,
        data.maintenance_cents,
        data.other_cents,
    ]
    return allocation_out(vehicle_allocation(data.business_km, data.total_km, costs))


@app.post("/api/allocations/home-office")
def allocate_home_office(data: HomeOfficeAllocationIn):
    costs = [
        data.rent_cents,
        data.electricity_heating_cents,
        data.condo_fees_cents,
        data.property_taxes_cents,
        data.home_insurance_cents,
        data.other_cents,
    ]
    return allocation_out(
        home_office_allocation(data.office_area, data.total_area, costs)
    )


@app.post("/api/allocations/technology")
def allocate_technology(data: TechnologyAllocationIn):
    lines = [(line.amount_cents, line.business_ratio) for line in data.lines]
    return allocation_out(technology_allocation(lines))


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
