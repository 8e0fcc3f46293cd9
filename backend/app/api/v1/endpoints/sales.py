from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor, get_db
from backend.app.db.models.core_types import SaleType
from backend.app.schemas.sale import CashSaleCreate, CreditSaleCreate, SaleRead, SaleUpdate
from backend.services.actor import Actor
from backend.services.reports import sales_totals
from backend.services.sales import SaleReconciler

router = APIRouter(prefix="/sales")


@router.get("", response_model=list[SaleRead])
def list_sales(
    sale_type: SaleType | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return SaleReconciler(db).list(actor, sale_type=sale_type)


@router.get("/reports/totals")
def get_sales_totals(
    start_date: date | None = None,
    end_date: date | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return sales_totals(db, actor, start_date=start_date, end_date=end_date)


@router.get("/{sale_id}", response_model=SaleRead)
def get_sale(sale_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return SaleReconciler(db).get(actor, sale_id)


@router.post("/cash", response_model=SaleRead, status_code=201)
def create_cash_sale(payload: CashSaleCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return SaleReconciler(db).create_cash(actor, payload)


@router.post("/credit", response_model=SaleRead, status_code=201)
def create_credit_sale(payload: CreditSaleCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return SaleReconciler(db).create_credit(actor, payload)


@router.patch("/{sale_id}", response_model=SaleRead)
def update_sale(
    sale_id: int,
    payload: SaleUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return SaleReconciler(db).revise(actor, sale_id, payload)


@router.delete("/{sale_id}")
def delete_sale(sale_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    SaleReconciler(db).remove(actor, sale_id)
    return {"message": "Sale deleted"}
