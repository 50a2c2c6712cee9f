from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from models import Recurrence, SalaryType, TransferType


class FixedExpenseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., ge=0)
    start_date: date
    end_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.monthly
    category: Optional[str] = Field(default=None, max_length=100)


class PayrollIn(BaseModel):
    salary_type: SalaryType
    salary_cents: int = Field(..., ge=0)
    anchor_date: Optional[date] = None


class VariableExpenseIn(BaseModel):
    date: date
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., ge=0)
    category: Optional[str] = Field(default=None, max_length=100)


class TransactionIn(BaseModel):
    date: date
    type: str = Field(..., min_length=1, max_length=40)
    transfer_type: Optional[TransferType] = None
    amount_cents: int = Field(..., ge=0)
    description: str = Field(default="", max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    company: Optional[str] = Field(default=None, max_length=120)


class AssetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    cost_cents: int = Field(..., ge=0)
    purchase_date: date
    use_start_date: Optional[date] = None
    cca_class: str = Field(..., min_length=1, max_length=10)


class ExpenseCheckIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    has_receipt: bool
    business_purpose: Optional[str] = Field(default=None, max_length=200)


class VehicleAllocationIn(BaseModel):
    business_km: float = Field(..., ge=0)
    total_km: float = Field(..., ge=0)
    lease_or_loan_cents: int = Field(default=0, ge=0)
    insurance_cents: int = Field(default=0, ge=0)
    registration_cents: int = Field(default=0, ge=0)
    fuel_cents: int = Field(default=0, ge=0)
    maintenance_cents: int = Field(default=0, ge=0)
    other_cents: int = Field(default=0, ge=0)


class HomeOfficeAllocationIn(BaseModel):
    office_area: float = Field(..., ge=0)
    total_area: float = Field(..., ge=0)
    rent_cents: int = Field(default=0, ge=0)
    electricity_heating_cents: int = Field(default=0, ge=0)
    condo_fees_cents: int = Field(default=0, ge=0)
    property_taxes_cents: int = Field(default=0, ge=0)
    home_insurance_cents: int = Field(default=0, ge=0)
    other_cents: int = Field(default=0, ge=0)


class TechnologyLineIn(BaseModel):
    label: str = Field(..., min_length=1, max_length=60)
    amount_cents: int = Field(..., ge=0)
    business_ratio: float = Field(..., ge=0, le=1)


class TechnologyAllocationIn(BaseModel):
    lines: list[TechnologyLineIn] = Field(default_factory=list)
