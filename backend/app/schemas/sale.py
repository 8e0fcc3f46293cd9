from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import SaleType
from backend.app.schemas.procurement import TIME_24H

NIN = r"^(CM|CF|cm|cf)[A-Za-z0-9]{12}$"
PHONE = r"^\+?[0-9]{10,15}$"


class SaleCreateBase(BaseModel):
    produce_name: str = Field(min_length=2, max_length=100)
    # optionnel : résolu depuis le ledger si un seul type existe pour la branche
    produce_type: str | None = Field(default=None, min_length=2, max_length=100)
    branch: str
    tonnage: Decimal = Field(gt=0, decimal_places=2)
    buyer_name: str = Field(min_length=2, max_length=200)
    sales_agent_name: str = Field(min_length=2, max_length=200)


class CashSaleCreate(SaleCreateBase):
    amount_paid: Decimal = Field(gt=0, decimal_places=2)
    sale_date: date
    sale_time: str = Field(pattern=TIME_24H)


class CreditSaleCreate(SaleCreateBase):
    amount_due: Decimal = Field(gt=0, decimal_places=2)
    national_id: str = Field(pattern=NIN)
    location: str = Field(min_length=2, max_length=200)
    # alias historique : contacts
    contact: str | None = Field(default=None, pattern=PHONE)
    contacts: str | None = Field(default=None, pattern=PHONE)
    due_date: date
    dispatch_date: date


class SaleUpdate(BaseModel):
    sale_type: SaleType | None = None
    produce_name: str | None = Field(default=None, min_length=2, max_length=100)
    produce_type: str | None = Field(default=None, min_length=2, max_length=100)
    branch: str | None = None
    tonnage: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    buyer_name: str | None = Field(default=None, min_length=2, max_length=200)
    sales_agent_name: str | None = Field(default=None, min_length=2, max_length=200)

    amount_paid: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    sale_date: date | None = None
    sale_time: str | None = Field(default=None, pattern=TIME_24H)

    amount_due: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    national_id: str | None = Field(default=None, pattern=NIN)
    location: str | None = Field(default=None, min_length=2, max_length=200)
    contact: str | None = Field(default=None, pattern=PHONE)
    contacts: str | None = Field(default=None, pattern=PHONE)
    due_date: date | None = None
    dispatch_date: date | None = None


class SaleRead(BaseModel):
    id: int
    sale_type: SaleType
    produce_name: str
    produce_type: str
    branch: str
    tonnage: Decimal
    unit_price_used: Decimal
    total_expected: Decimal
    buyer_name: str
    sales_agent_name: str
    amount_paid: Decimal | None = None
    sale_date: date | None = None
    sale_time: str | None = None
    amount_due: Decimal | None = None
    national_id: str | None = None
    location: str | None = None
    contact: str | None = None
    due_date: date | None = None
    dispatch_date: date | None = None
    created_at: datetime

    class Config:
        from_attributes = True
