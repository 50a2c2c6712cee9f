from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class UsageMode(str, Enum):
    business = "business"
    personal = "personal"


class Recurrence(str, Enum):
    none = "none"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    bimonthly = "bimonthly"
    quarterly = "quarterly"
    yearly = "yearly"


class SalaryType(str, Enum):
    annual = "annual"
    biweekly = "biweekly"


class LedgerType(str, Enum):
    income = "income"
    expense = "expense"
    revenu = "revenu"
    depense = "depense"
    remboursement = "remboursement"
    paiement_facture = "paiement_facture"
    transfert = "transfert"


class TransferType(str, Enum):
    between_accounts = "between_accounts"
    between_persons = "between_persons"


class EntryKind(str, Enum):
    income = "income"
    expense = "expense"


USAGE_MODE_ENUM = SAEnum(UsageMode, name="usagemode")


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class FixedExpense(Base, TimestampMixin):
    __tablename__ = "fixed_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    mode: Mapped[UsageMode] = mapped_column(USAGE_MODE_ENUM, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    recurrence: Mapped[Recurrence] = mapped_column(
        SAEnum(Recurrence), nullable=False, default=Recurrence.monthly
    )
    category: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_fixed_expense_amount_positive"),
        Index("ix_fixed_expenses_user_mode", "user_id", "mode"),
    )


class PayrollSetting(Base, TimestampMixin):
    __tablename__ = "payroll_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    mode: Mapped[UsageMode] = mapped_column(USAGE_MODE_ENUM, nullable=False)
    salary_type: Mapped[SalaryType] = mapped_column(
        SAEnum(SalaryType), nullable=False
    )
    salary_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    anchor_date: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        UniqueConstraint("user_id", "mode", name="uq_payroll_user_mode"),
        CheckConstraint("salary_cents >= 0", name="ck_payroll_salary_positive"),
    )


class VariableExpenseEntry(Base, TimestampMixin):
    __tablename__ = "variable_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    mode: Mapped[UsageMode] = mapped_column(USAGE_MODE_ENUM, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_variable_expense_amount_positive"),
        Index("ix_variable_expenses_user_mode_date", "user_id", "mode", "date"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    mode: Mapped[UsageMode] = mapped_column(USAGE_MODE_ENUM, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    # Free-form so legacy records with unknown types are still surfaced.
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    transfer_type: Mapped[Optional[TransferType]] = mapped_column(
        SAEnum(TransferType)
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100))
    company: Mapped[Optional[str]] = mapped_column(String(120))

    __table_args__ = (
        Index("ix_transactions_user_mode_date", "user_id", "mode", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class Asset(Base, TimestampMixin):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    mode: Mapped[UsageMode] = mapped_column(USAGE_MODE_ENUM, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    cost_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    use_start_date: Mapped[Optional[date]] = mapped_column(Date)
    cca_class: Mapped[str] = mapped_column(String(10), nullable=False)

    __table_args__ = (
        CheckConstraint("cost_cents >= 0", name="ck_asset_cost_positive"),
        Index("ix_assets_user_mode", "user_id", "mode"),
    )
