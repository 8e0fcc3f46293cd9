from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from backend.app.config import settings
from backend.app.db.models.core_types import SourceType

TIME_24H = r"^([01]\d|2[0-3]):([0-5]\d)$"


class ProcurementCreate(BaseModel):
    produce_name: str = Field(min_length=2, max_length=100)
    produce_type: str = Field(min_length=2, max_length=100)
    branch: str
    tonnage: Decimal = Field(ge=settings.procurement_min_tonnage, decimal_places=2)
    cost: Decimal = Field(ge=settings.procurement_min_cost, decimal_places=2)
    selling_price: Decimal = Field(ge=1, decimal_places=2)
    source_type: SourceType
    # alias historique : dealer_name
    source_name: str | None = Field(default=None, min_length=2)
    dealer_name: str | None = Field(default=None, min_length=2)
    contact: str = Field(min_length=2, max_length=32)
    purchase_date: date
    purchase_time: str = Field(pattern=TIME_24H)


class ProcurementUpdate(BaseModel):
    produce_name: str | None = Field(default=None, min_length=2, max_length=100)
    produce_type: str | None = Field(default=None, min_length=2, max_length=100)
    branch: str | None = None
    tonnage: Decimal | None = Field(default=None, ge=settings.procurement_min_tonnage, decimal_places=2)
    cost: Decimal | None = Field(default=None, ge=settings.procurement_min_cost, decimal_places=2)
    selling_price: Decimal | None = Field(default=None, ge=1, decimal_places=2)
    source_type: SourceType | None = None
    source_name: str | None = Field(default=None, min_length=2)
    dealer_name: str | None = Field(default=None, min_length=2)
    contact: str | None = Field(default=None, min_length=2, max_length=32)
    purchase_date: date | None = None
    purchase_time: str | None = Field(default=None, pattern=TIME_24H)


class ProcurementRead(BaseModel):
    id: int
    produce_name: str
    produce_type: str
    branch: str
    tonnage: Decimal
    cost: Decimal
    selling_price: Decimal
    source_type: SourceType
    source_name: str
    contact: str
    purchase_date: date
    purchase_time: str
    created_at: datetime

    class Config:
        from_attributes = True
