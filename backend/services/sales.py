"""
Sales service.

Une vente CONSOMME du stock : les signes sont inversés par rapport aux
achats (augmenter le tonnage d'une vente vérifie la disponibilité,
le diminuer rend du stock sans condition).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.config import settings
from backend.app.db.models.core_types import Role, SaleType
from backend.app.db.models.models_v1 import Sale
from backend.app.schemas.sale import CashSaleCreate, CreditSaleCreate, SaleUpdate
from backend.services import notifications
from backend.services.actor import Actor
from backend.services.errors import (
    AmbiguousProduceType,
    BelowMinimumTransactionValue,
    InsufficientStock,
    LedgerKeyNotFound,
    PriceMismatch,
    RecordNotFound,
    SaleTypeImmutable,
)
from backend.services.fields import first_defined, first_populated
from backend.services.inventory import CENT, LedgerKey, StockSnapshot
from backend.services.stock_mutation import StockMutationEngine

logger = logging.getLogger(__name__)

BRANCH_STAFF = (Role.manager, Role.sales_agent)

# champ du montant déclaré selon le type de vente
DECLARED_FIELD = {
    SaleType.cash: "amount_paid",
    SaleType.credit: "amount_due",
}


def compute_total(unit_price: Decimal, tonnage: Decimal) -> Decimal:
    return (Decimal(unit_price) * Decimal(tonnage)).quantize(CENT)


def check_amount(sale_type: SaleType, declared: Decimal | None, total: Decimal) -> None:
    minimum = settings.min_transaction_value
    if total < minimum:
        raise BelowMinimumTransactionValue(total, minimum)

    field = DECLARED_FIELD[sale_type]
    if declared is None or abs(Decimal(declared) - total) > settings.price_tolerance:
        raise PriceMismatch(field, declared, total)


class SaleReconciler:
    def __init__(self, db: Session, engine: StockMutationEngine | None = None) -> None:
        self.db = db
        self.engine = engine or StockMutationEngine(db)

    @property
    def ledger(self):
        return self.engine.ledger

    def _branch_guard(self, actor: Actor, branch: str) -> None:
        actor.require_role(*BRANCH_STAFF, message="Only branch staff can manage sales")
        actor.require_branch(
            branch,
            mismatch_message="You can only manage sales for your assigned branch",
        )

    # ---------- KEY RESOLUTION ----------
    def resolve(self, produce_name: str, produce_type: str | None, branch: str) -> StockSnapshot:
        """
        - type fourni : clé exacte
        - type omis : 1 seul type pour (produit, branche) -> résolu
                      0 -> LedgerKeyNotFound, >1 -> AmbiguousProduceType
        """
        if produce_type:
            key = LedgerKey(produce_name, produce_type, branch)
            snap = self.ledger.get(key)
            if snap is None:
                raise LedgerKeyNotFound(key, "Product is out of stock for this branch")
            return snap

        matches = self.ledger.find(produce_name, branch)
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise AmbiguousProduceType(produce_name, branch, [m.key.produce_type for m in matches])
        # type omis : pas de clé complète à renvoyer
        raise LedgerKeyNotFound(
            None,
            "Product is out of stock for this branch",
            produce_name=produce_name,
            branch=branch,
        )

    # ---------- READ ----------
    def list(self, actor: Actor, sale_type: SaleType | None = None) -> list[Sale]:
        stmt = select(Sale).order_by(Sale.created_at.desc(), Sale.id.desc())
        if actor.role in BRANCH_STAFF:
            stmt = stmt.where(Sale.branch == actor.branch)
        if sale_type is not None:
            stmt = stmt.where(Sale.sale_type == sale_type)
        return list(self.db.execute(stmt).scalars().all())

    def get(self, actor: Actor, sale_id: int) -> Sale:
        sale = self.db.get(Sale, sale_id)
        if not sale:
            raise RecordNotFound("Sale not found", id=sale_id)
        if actor.role in BRANCH_STAFF and sale.branch != actor.branch:
            actor.require_branch(sale.branch, mismatch_message="Access denied for this branch sale record")
        return sale

    # ---------- CREATE ----------
    def create_cash(self, actor: Actor, payload: CashSaleCreate) -> Sale:
        return self.create(actor, payload, SaleType.cash)

    def create_credit(self, actor: Actor, payload: CreditSaleCreate) -> Sale:
        return self.create(actor, payload, SaleType.credit)

    def create(self, actor: Actor, payload, sale_type: SaleType) -> Sale:
        self._branch_guard(actor, payload.branch)

        try:
            stock = self.resolve(payload.produce_name, payload.produce_type, payload.branch)
        except LedgerKeyNotFound:
            notifications.notify(
                self.db,
                title=notifications.STOCK_UNAVAILABLE,
                message=f"{payload.produce_name} is unavailable at {payload.branch}",
                branch=payload.branch,
                produce_name=payload.produce_name,
                produce_type=payload.produce_type,
            )
            raise

        tonnage = Decimal(payload.tonnage).quantize(CENT)
        total = compute_total(stock.unit_price, tonnage)
        declared = getattr(payload, DECLARED_FIELD[sale_type])
        check_amount(sale_type, declared, total)

        try:
            with self.engine.unit_of_work() as uow:
                adj = uow.adjust(stock.key, -tonnage)
                sale = self._build(payload, sale_type, stock, tonnage, total)
                uow.persist(lambda: self.db.add(sale))
        except InsufficientStock:
            notifications.notify(
                self.db,
                title=notifications.LOW_STOCK_BLOCK,
                message=f"{payload.produce_name} has insufficient stock at {payload.branch}",
                branch=payload.branch,
                produce_name=payload.produce_name,
                produce_type=stock.key.produce_type,
            )
            raise

        logger.info(
            "sale recorded id=%s type=%s key=%s tonnage=%s remaining=%s",
            sale.id, sale_type.value, stock.key, tonnage, adj.record.quantity_kg,
        )

        if adj.record.quantity_kg == 0:
            notifications.notify(
                self.db,
                title=notifications.OUT_OF_STOCK,
                message=f"{payload.produce_name} is now out of stock at {payload.branch}",
                branch=payload.branch,
                produce_name=payload.produce_name,
                produce_type=stock.key.produce_type,
            )
        self.db.refresh(sale)
        return sale

    # ---------- REVISE ----------
    def revise(self, actor: Actor, sale_id: int, payload: SaleUpdate) -> Sale:
        sale = self.get(actor, sale_id)
        self._branch_guard(actor, sale.branch)

        # le type de règlement est figé à la création
        if payload.sale_type is not None and payload.sale_type != sale.sale_type:
            raise SaleTypeImmutable(sale.sale_type, payload.sale_type)

        sale_type = sale.sale_type
        produce_name = first_populated(payload.produce_name, sale.produce_name)
        produce_type = first_populated(payload.produce_type, sale.produce_type)
        branch = first_populated(payload.branch, sale.branch)
        tonnage = Decimal(first_defined(payload.tonnage, sale.tonnage)).quantize(CENT)

        self._branch_guard(actor, branch)

        stock = self.resolve(produce_name, produce_type, branch)
        total = compute_total(stock.unit_price, tonnage)
        if sale_type == SaleType.cash:
            declared = first_defined(payload.amount_paid, sale.amount_paid)
        else:
            declared = first_defined(payload.amount_due, sale.amount_due)
        check_amount(sale_type, declared, total)

        old_key = LedgerKey(sale.produce_name, sale.produce_type, sale.branch)
        new_key = stock.key
        old_tonnage = Decimal(sale.tonnage)

        with self.engine.unit_of_work() as uow:
            if old_key == new_key:
                # > 0 : on rend du stock ; < 0 : la garde vérifie la disponibilité
                uow.adjust(old_key, old_tonnage - tonnage)
            else:
                uow.adjust(old_key, old_tonnage)
                uow.adjust(new_key, -tonnage)

            def write():
                sale.produce_name = new_key.produce_name
                sale.produce_type = new_key.produce_type
                sale.branch = new_key.branch
                sale.tonnage = tonnage
                sale.unit_price_used = stock.unit_price
                sale.total_expected = total
                sale.buyer_name = first_populated(payload.buyer_name, sale.buyer_name)
                sale.sales_agent_name = first_populated(payload.sales_agent_name, sale.sales_agent_name)
                if sale_type == SaleType.cash:
                    sale.amount_paid = Decimal(declared)
                    sale.sale_date = first_defined(payload.sale_date, sale.sale_date)
                    sale.sale_time = first_populated(payload.sale_time, sale.sale_time)
                else:
                    sale.amount_due = Decimal(declared)
                    sale.national_id = first_populated(payload.national_id, sale.national_id)
                    sale.location = first_populated(payload.location, sale.location)
                    sale.contact = first_populated(payload.contacts, payload.contact, sale.contact)
                    sale.due_date = first_defined(payload.due_date, sale.due_date)
                    sale.dispatch_date = first_defined(payload.dispatch_date, sale.dispatch_date)

            uow.persist(write)

        self.db.refresh(sale)
        logger.info("sale revised id=%s %s -> %s tonnage=%s", sale_id, old_key, new_key, tonnage)
        return sale

    # ---------- REMOVE ----------
    def remove(self, actor: Actor, sale_id: int) -> None:
        sale = self.get(actor, sale_id)
        self._branch_guard(actor, sale.branch)

        key = LedgerKey(sale.produce_name, sale.produce_type, sale.branch)
        tonnage = Decimal(sale.tonnage)

        with self.engine.unit_of_work() as uow:
            uow.adjust(key, tonnage)
            uow.persist(lambda: self.db.delete(sale))

        logger.info("sale deleted id=%s key=%s credited=%s", sale_id, key, tonnage)

    # ---------- Helpers ----------
    @staticmethod
    def _build(payload, sale_type: SaleType, stock: StockSnapshot, tonnage: Decimal, total: Decimal) -> Sale:
        sale = Sale(
            sale_type=sale_type,
            produce_name=stock.key.produce_name,
            produce_type=stock.key.produce_type,
            branch=stock.key.branch,
            tonnage=tonnage,
            unit_price_used=stock.unit_price,
            total_expected=total,
            buyer_name=payload.buyer_name,
            sales_agent_name=payload.sales_agent_name,
        )
        if sale_type == SaleType.cash:
            sale.amount_paid = payload.amount_paid
            sale.sale_date = payload.sale_date
            sale.sale_time = payload.sale_time
        else:
            sale.amount_due = payload.amount_due
            sale.national_id = payload.national_id
            sale.location = payload.location
            sale.contact = first_populated(payload.contacts, payload.contact)
            sale.due_date = payload.due_date
            sale.dispatch_date = payload.dispatch_date
        return sale
