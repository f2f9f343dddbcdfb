"""Create billing tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

Tenancies, bills, payments (hash-chained), credit balances and the
scheduled job run marker.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LINE_ITEMS = ("rent_amount", "security_deposit_amount", "water", "electrical", "wifi", "other")
BILL_STATUSES = ("pending", "pending_confirmation", "paid", "cancelled", "rejected")
PAYMENT_METHODS = ("cash", "qr_code", "gateway", "credit")


def upgrade() -> None:
    op.create_table(
        "tenancies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("contract_end_date", sa.Date(), nullable=True),
        sa.Column("monthly_rent", sa.Numeric(12, 2), nullable=False),
        sa.Column("security_deposit", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "ended", name="tenancy_status"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenancies_tenant_id", "tenancies", ["tenant_id"])
    op.create_index("ix_tenancies_landlord_id", "tenancies", ["landlord_id"])
    op.create_index("ix_tenancies_property_id", "tenancies", ["property_id"])
    op.create_index("ix_tenancies_status", "tenancies", ["status"])

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenancy_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        *[sa.Column(name, sa.Numeric(12, 2), nullable=True) for name in LINE_ITEMS],
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("receipt_url", sa.String(500), nullable=True),
        sa.Column("payment_method", sa.Enum(*PAYMENT_METHODS, name="payment_method"), nullable=True),
        sa.Column("reference_number", sa.String(255), nullable=True),
        sa.Column("proof_url", sa.String(500), nullable=True),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=True),
        sa.Column("credit_applied", sa.Numeric(12, 2), nullable=True),
        sa.Column("advance_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("months_covered", sa.Integer(), nullable=True),
        sa.Column("gateway_transaction_id", sa.String(255), nullable=True),
        sa.Column("status", sa.Enum(*BILL_STATUSES, name="bill_status"), nullable=False),
        sa.Column("is_advance_payment", sa.Boolean(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["tenancy_id"],
            ["tenancies.id"],
            name="fk_bills_tenancy_id",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("gateway_transaction_id", name="uq_bills_gateway_transaction_id"),
        *[
            sa.CheckConstraint(f"{name} IS NULL OR {name} >= 0", name=f"ck_bills_{name}_non_negative")
            for name in LINE_ITEMS
        ],
    )
    op.create_index("ix_bills_tenancy_id", "bills", ["tenancy_id"])
    op.create_index("ix_bills_tenant_id", "bills", ["tenant_id"])
    op.create_index("ix_bills_landlord_id", "bills", ["landlord_id"])
    op.create_index("ix_bills_due_date", "bills", ["due_date"])
    op.create_index("ix_bills_status", "bills", ["status"])
    op.create_index("ix_bills_payment_id", "bills", ["payment_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("tenancy_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", sa.Enum(*PAYMENT_METHODS, name="payment_method"), nullable=False),
        sa.Column("months_covered", sa.Integer(), nullable=False),
        sa.Column("gateway_transaction_id", sa.String(255), nullable=True),
        sa.Column("transaction_hash", sa.String(64), nullable=False),
        sa.Column("previous_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["bill_id"],
            ["bills.id"],
            name="fk_payments_bill_id",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("bill_id", name="uq_payments_bill_id"),
        sa.UniqueConstraint("gateway_transaction_id", name="uq_payments_gateway_transaction_id"),
        sa.UniqueConstraint("transaction_hash", name="uq_payments_transaction_hash"),
    )
    op.create_index("ix_payments_bill_id", "payments", ["bill_id"])
    op.create_index("ix_payments_tenancy_id", "payments", ["tenancy_id"])
    op.create_index("ix_payments_tenant_id", "payments", ["tenant_id"])
    op.create_index("ix_payments_landlord_id", "payments", ["landlord_id"])
    op.create_index("ix_payments_previous_hash", "payments", ["previous_hash"])

    op.create_table(
        "credit_balances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("tenancy_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "tenancy_id", name="uq_credit_balances_tenant_tenancy"),
        sa.CheckConstraint("amount >= 0", name="ck_credit_balances_non_negative"),
    )
    op.create_index("ix_credit_balances_tenant_id", "credit_balances", ["tenant_id"])
    op.create_index("ix_credit_balances_tenancy_id", "credit_balances", ["tenancy_id"])

    op.create_table(
        "automated_job_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_type", sa.String(100), nullable=False),
        sa.Column("last_period", sa.String(7), nullable=False),
        sa.Column("last_run_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_type", name="uq_automated_job_runs_job_type"),
    )


def downgrade() -> None:
    op.drop_table("automated_job_runs")
    op.drop_index("ix_credit_balances_tenancy_id", table_name="credit_balances")
    op.drop_index("ix_credit_balances_tenant_id", table_name="credit_balances")
    op.drop_table("credit_balances")
    op.drop_index("ix_payments_previous_hash", table_name="payments")
    op.drop_index("ix_payments_landlord_id", table_name="payments")
    op.drop_index("ix_payments_tenant_id", table_name="payments")
    op.drop_index("ix_payments_tenancy_id", table_name="payments")
    op.drop_index("ix_payments_bill_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_bills_payment_id", table_name="bills")
    op.drop_index("ix_bills_status", table_name="bills")
    op.drop_index("ix_bills_due_date", table_name="bills")
    op.drop_index("ix_bills_landlord_id", table_name="bills")
    op.drop_index("ix_bills_tenant_id", table_name="bills")
    op.drop_index("ix_bills_tenancy_id", table_name="bills")
    op.drop_table("bills")
    op.drop_index("ix_tenancies_status", table_name="tenancies")
    op.drop_index("ix_tenancies_property_id", table_name="tenancies")
    op.drop_index("ix_tenancies_landlord_id", table_name="tenancies")
    op.drop_index("ix_tenancies_tenant_id", table_name="tenancies")
    op.drop_table("tenancies")
