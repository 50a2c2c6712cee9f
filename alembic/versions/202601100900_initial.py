"""initial ledger tables

Revision ID: 202601100900
Revises:
Create Date: 2026-01-10 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202601100900"
down_revision = None
branch_labels = None
depends_on = None

USAGE_MODE = sa.Enum("business", "personal", name="usagemode")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "fixed_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mode", USAGE_MODE, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column(
            "recurrence",
            sa.Enum(
                "none",
                "weekly",
                "biweekly",
                "monthly",
                "bimonthly",
                "quarterly",
                "yearly",
                name="recurrence",
            ),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_fixed_expense_amount_positive"),
    )
    op.create_index("ix_fixed_expenses_user_mode", "fixed_expenses", ["user_id", "mode"])

    op.create_table(
        "payroll_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mode", USAGE_MODE, nullable=False),
        sa.Column(
            "salary_type",
            sa.Enum("annual", "biweekly", name="salarytype"),
            nullable=False,
        ),
        sa.Column("salary_cents", sa.Integer(), nullable=False),
        sa.Column("anchor_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "mode", name="uq_payroll_user_mode"),
        sa.CheckConstraint("salary_cents >= 0", name="ck_payroll_salary_positive"),
    )

    op.create_table(
        "variable_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mode", USAGE_MODE, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_variable_expense_amount_positive"
        ),
    )
    op.create_index(
        "ix_variable_expenses_user_mode_date",
        "variable_expenses",
        ["user_id", "mode", "date"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mode", USAGE_MODE, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column(
            "transfer_type",
            sa.Enum("between_accounts", "between_persons", name="transfertype"),
            nullable=True,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("company", sa.String(length=120), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_user_mode_date", "transactions", ["user_id", "mode", "date"]
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("mode", USAGE_MODE, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("cost_cents", sa.Integer(), nullable=False),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("use_start_date", sa.Date(), nullable=True),
        sa.Column("cca_class", sa.String(length=10), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("cost_cents >= 0", name="ck_asset_cost_positive"),
    )
    op.create_index("ix_assets_user_mode", "assets", ["user_id", "mode"])


def downgrade() -> None:
    op.drop_index("ix_assets_user_mode", table_name="assets")
    op.drop_table("assets")
    op.drop_index("ix_transactions_user_mode_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_variable_expenses_user_mode_date", table_name="variable_expenses")
    op.drop_table("variable_expenses")
    op.drop_table("payroll_settings")
    op.drop_index("ix_fixed_expenses_user_mode", table_name="fixed_expenses")
    op.drop_table("fixed_expenses")
