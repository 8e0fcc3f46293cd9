from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db.base import Base
from backend.app.db.models.core_types import Role, SaleType, SourceType

# SQLite n'autoincrémente que les INTEGER PRIMARY KEY
PK = BigInteger().with_variant(Integer, "sqlite")


# ---------- INVENTORY ----------
class StockRecord(Base):
    __tablename__ = "stock_records"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    produce_name: Mapped[str] = mapped_column(String(100), nullable=False)
    produce_type: Mapped[str] = mapped_column(String(100), nullable=False)
    branch: Mapped[str] = mapped_column(String(64), nullable=False)

    quantity_kg: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("produce_name", "produce_type", "branch", name="uq_stock_record_key"),
        CheckConstraint("quantity_kg >= 0", name="ck_stock_record_qty_nonneg"),
        CheckConstraint("unit_price > 0", name="ck_stock_record_price_pos"),
        Index("ix_stock_records_name_branch", "produce_name", "branch"),
    )


# ---------- PROCUREMENT / INBOUND ----------
class Procurement(Base):
    __tablename__ = "procurements"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    produce_name: Mapped[str] = mapped_column(String(100), nullable=False)
    produce_type: Mapped[str] = mapped_column(String(100), nullable=False)
    branch: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    tonnage: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    # prix du ledger écrasé par cette saisie (restauré à la suppression)
    replaced_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))

    source_type: Mapped[SourceType] = mapped_column(Enum(SourceType, name="source_type"), nullable=False)
    source_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact: Mapped[str] = mapped_column(String(32), nullable=False)

    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    purchase_time: Mapped[str] = mapped_column(String(5), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("tonnage > 0", name="ck_procurement_tonnage_pos"),
        CheckConstraint("selling_price > 0", name="ck_procurement_price_pos"),
    )


# ---------- SALES / OUTBOUND ----------
class Sale(Base):
    __tablename__ = "sales"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    sale_type: Mapped[SaleType] = mapped_column(Enum(SaleType, name="sale_type"), nullable=False)

    produce_name: Mapped[str] = mapped_column(String(100), nullable=False)
    produce_type: Mapped[str] = mapped_column(String(100), nullable=False)
    branch: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    tonnage: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    unit_price_used: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_expected: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    buyer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sales_agent_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Cash
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    sale_date: Mapped[date | None] = mapped_column(Date)
    sale_time: Mapped[str | None] = mapped_column(String(5))

    # Credit
    amount_due: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    national_id: Mapped[str | None] = mapped_column(String(32))
    location: Mapped[str | None] = mapped_column(String(200))
    contact: Mapped[str | None] = mapped_column(String(32))
    due_date: Mapped[date | None] = mapped_column(Date)
    dispatch_date: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("tonnage > 0", name="ck_sale_tonnage_pos"),
        Index("ix_sales_branch_created", "branch", "created_at"),
    )


# ---------- ROSTER ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    username: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False)
    branch: Mapped[str | None] = mapped_column(String(64))
    staff_slot: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("staff_slot IS NULL OR staff_slot IN (1, 2)", name="ck_user_staff_slot"),
        # 1 manager max par branche
        Index(
            "uq_users_branch_manager",
            "branch",
            unique=True,
            postgresql_where=text("role = 'manager'"),
            sqlite_where=text("role = 'manager'"),
        ),
        # 2 sales agents max par branche (slot 1 / slot 2)
        Index(
            "uq_users_branch_agent_slot",
            "branch",
            "staff_slot",
            unique=True,
            postgresql_where=text("role = 'sales_agent'"),
            sqlite_where=text("role = 'sales_agent'"),
        ),
    )


# ---------- NOTIFICATIONS ----------
class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    target_role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.manager, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    branch: Mapped[str] = mapped_column(String(64), nullable=False)
    produce_name: Mapped[str | None] = mapped_column(String(100))
    produce_type: Mapped[str | None] = mapped_column(String(100))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_notifications_branch_created", "branch", "created_at"),)
