from decimal import Decimal

from pydantic import BaseModel


class StockRecordRead(BaseModel):
    produce_name: str
    produce_type: str
    branch: str

    quantity_kg: Decimal
    unit_price: Decimal  # lecture seule : écrit uniquement par les achats
