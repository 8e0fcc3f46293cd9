from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor, get_db
from backend.app.schemas.procurement import ProcurementCreate, ProcurementRead, ProcurementUpdate
from backend.services.actor import Actor
from backend.services.procurement import ProcurementReconciler

router = APIRouter(prefix="/procurements")


@router.get("", response_model=list[ProcurementRead])
def list_procurements(
    branch: str | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return ProcurementReconciler(db).list(actor, branch=branch)


@router.get("/{procurement_id}", response_model=ProcurementRead)
def get_procurement(procurement_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return ProcurementReconciler(db).get(actor, procurement_id)


@router.post("", status_code=201)
def create_procurement(payload: ProcurementCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    result = ProcurementReconciler(db).intake(actor, payload)
    return {
        "procurement": ProcurementRead.model_validate(result.procurement),
        "inventory": {
            "produce_name": payload.produce_name,
            "produce_type": payload.produce_type,
            "branch": payload.branch,
            "quantity_kg": result.quantity_kg,
            "unit_price": result.unit_price,
        },
    }


@router.patch("/{procurement_id}", response_model=ProcurementRead)
def update_procurement(
    procurement_id: int,
    payload: ProcurementUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return ProcurementReconciler(db).revise(actor, procurement_id, payload)


@router.delete("/{procurement_id}")
def delete_procurement(procurement_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    ProcurementReconciler(db).remove(actor, procurement_id)
    return {"message": "Procurement deleted"}
