"""initial schema: stock records, procurements, sales, users, notifications

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# les enums stockent le NOM du membre (manager, sales_agent...)
ROLE = sa.Enum("manager", "sales_agent", "director", name="role")
SALE_TYPE = sa.Enum("cash", "credit", name="sale_type")
SOURCE_TYPE = sa.Enum("individual_dealer", "company", "farm", name="source_type")


def _timestamps() -> list[sa.Column]:
    return [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]


def upgrade() -> None:
    op.create_table(
        "stock_records",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("produce_name", sa.String(100), nullable=False),
        sa.Column("produce_type", sa.String(100), nullable=False),
        sa.Column("branch", sa.String(64), nullable=False),
        sa.Column("quantity_kg", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("produce_name", "produce_type", "branch", name="uq_stock_record_key"),
        sa.CheckConstraint("quantity_kg >= 0", name="ck_stock_record_qty_nonneg"),
        sa.CheckConstraint("unit_price > 0", name="ck_stock_record_price_pos"),
    )
    op.create_index("ix_stock_records_name_branch", "stock_records", ["produce_name", "branch"])

    op.create_table(
        "procurements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("produce_name", sa.String(100), nullable=False),
        sa.Column("produce_type", sa.String(100), nullable=False),
        sa.Column("branch", sa.String(64), nullable=False),
        sa.Column("tonnage", sa.Numeric(14, 2), nullable=False),
        sa.Column("cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("selling_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("replaced_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("source_type", SOURCE_TYPE, nullable=False),
        sa.Column("source_name", sa.String(200), nullable=False),
        sa.Column("contact", sa.String(32), nullable=False),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("purchase_time", sa.String(5), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("tonnage > 0", name="ck_procurement_tonnage_pos"),
        sa.CheckConstraint("selling_price > 0", name="ck_procurement_price_pos"),
    )
    op.create_index("ix_procurements_branch", "procurements", ["branch"])

    op.create_table(
        "sales",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sale_type", SALE_TYPE, nullable=False),
        sa.Column("produce_name", sa.String(100), nullable=False),
        sa.Column("produce_type", sa.String(100), nullable=False),
        sa.Column("branch", sa.String(64), nullable=False),
        sa.Column("tonnage", sa.Numeric(14, 2), nullable=False),
        sa.Column("unit_price_used", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_expected", sa.Numeric(16, 2), nullable=False),
        sa.Column("buyer_name", sa.String(200), nullable=False),
        sa.Column("sales_agent_name", sa.String(200), nullable=False),
        # cash
        sa.Column("amount_paid", sa.Numeric(16, 2), nullable=True),
        sa.Column("sale_date", sa.Date(), nullable=True),
        sa.Column("sale_time", sa.String(5), nullable=True),
        # credit
        sa.Column("amount_due", sa.Numeric(16, 2), nullable=True),
        sa.Column("national_id", sa.String(32), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("contact", sa.String(32), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("dispatch_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("tonnage > 0", name="ck_sale_tonnage_pos"),
    )
    op.create_index("ix_sales_branch", "sales", ["branch"])
    op.create_index("ix_sales_branch_created", "sales", ["branch", "created_at"])

    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("branch", sa.String(64), nullable=True),
        sa.Column("staff_slot", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("staff_slot IS NULL OR staff_slot IN (1, 2)", name="ck_user_staff_slot"),
    )
    # plancher = plafond : 1 manager, 2 slots agents par branche
    op.create_index(
        "uq_users_branch_manager",
        "users",
        ["branch"],
        unique=True,
        postgresql_where=sa.text("role = 'manager'"),
    )
    op.create_index(
        "uq_users_branch_agent_slot",
        "users",
        ["branch", "staff_slot"],
        unique=True,
        postgresql_where=sa.text("role = 'sales_agent'"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        # le type "role" existe déjà (table users)
        sa.Column(
            "target_role",
            postgresql.ENUM("manager", "sales_agent", "director", name="role", create_type=False),
            nullable=False,
            server_default="manager",
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("branch", sa.String(64), nullable=False),
        sa.Column("produce_name", sa.String(100), nullable=True),
        sa.Column("produce_type", sa.String(100), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_notifications_branch_created", "notifications", ["branch", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_notifications_branch_created", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("uq_users_branch_agent_slot", table_name="users")
    op.drop_index("uq_users_branch_manager", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_sales_branch_created", table_name="sales")
    op.drop_index("ix_sales_branch", table_name="sales")
    op.drop_table("sales")

    op.drop_index("ix_procurements_branch", table_name="procurements")
    op.drop_table("procurements")

    op.drop_index("ix_stock_records_name_branch", table_name="stock_records")
    op.drop_table("stock_records")

    bind = op.get_bind()
    for enum in (ROLE, SALE_TYPE, SOURCE_TYPE):
        enum.drop(bind, checkfirst=True)
