from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor, get_db
from backend.app.db.models.core_types import Role
from backend.app.schemas.stock import StockRecordRead
from backend.services.actor import Actor
from backend.services.inventory import InventoryLedger

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[StockRecordRead],
)
def get_stock(
    branch: str | None = None,
    produce_name: str | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Stock (READ ONLY)
    - quantity_kg n'est écrit que par les achats / ventes
    - le personnel de branche ne voit que sa branche
    """
    if actor.role != Role.director:
        branch = actor.branch

    return [
        StockRecordRead(
            produce_name=s.key.produce_name,
            produce_type=s.key.produce_type,
            branch=s.key.branch,
            quantity_kg=s.quantity_kg,
            unit_price=s.unit_price,
        )
        for s in InventoryLedger(db).list(branch=branch, produce_name=produce_name)
    ]
