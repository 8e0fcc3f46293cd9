"""
Procurement service.

Traduit saisie / révision / suppression d'un achat en appels au
StockMutationEngine. Toute écriture de stock passe par l'engine ;
ce module ne touche jamais `stock_records` directement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.config import settings
from backend.app.db.models.core_types import Role, SourceType
from backend.app.db.models.models_v1 import Procurement
from backend.app.schemas.procurement import ProcurementCreate, ProcurementUpdate
from backend.services.actor import Actor
from backend.services.errors import ProcurementSourceRuleViolation, RecordNotFound
from backend.services.fields import first_defined, first_populated
from backend.services.inventory import CENT, LedgerKey
from backend.services.stock_mutation import StockMutationEngine

logger = logging.getLogger(__name__)

MANAGER_MISMATCH = "Manager can only manage procurement for assigned branch"


def validate_source_rules(source_type: SourceType, source_name: str | None, tonnage: Decimal) -> None:
    if source_type == SourceType.individual_dealer and Decimal(tonnage) < settings.dealer_min_tonnage:
        raise ProcurementSourceRuleViolation(
            f"IndividualDealer procurements must be at least {settings.dealer_min_tonnage}kg",
            source_type=source_type.value,
            tonnage=tonnage,
        )
    if source_type == SourceType.farm and source_name not in settings.own_farm_names:
        raise ProcurementSourceRuleViolation(
            f"Farm source_name must be one of {', '.join(settings.own_farm_names)}",
            source_type=source_type.value,
            source_name=source_name,
        )


@dataclass
class IntakeResult:
    procurement: Procurement
    quantity_kg: Decimal
    unit_price: Decimal


def _key_of(p) -> LedgerKey:
    return LedgerKey(p.produce_name, p.produce_type, p.branch)


def resolve_revision(procurement: Procurement, payload: ProcurementUpdate) -> dict:
    """État cible : champ de la requête s'il est renseigné, sinon valeur stockée."""
    return {
        "produce_name": first_populated(payload.produce_name, procurement.produce_name),
        "produce_type": first_populated(payload.produce_type, procurement.produce_type),
        "branch": first_populated(payload.branch, procurement.branch),
        "tonnage": Decimal(first_defined(payload.tonnage, procurement.tonnage)).quantize(CENT),
        "cost": first_defined(payload.cost, procurement.cost),
        "selling_price": Decimal(first_defined(payload.selling_price, procurement.selling_price)),
        "source_type": first_defined(payload.source_type, procurement.source_type),
        "source_name": first_populated(payload.source_name, payload.dealer_name, procurement.source_name),
        "contact": first_populated(payload.contact, procurement.contact),
        "purchase_date": first_defined(payload.purchase_date, procurement.purchase_date),
        "purchase_time": first_populated(payload.purchase_time, procurement.purchase_time),
    }


class ProcurementReconciler:
    def __init__(self, db: Session, engine: StockMutationEngine | None = None) -> None:
        self.db = db
        self.engine = engine or StockMutationEngine(db)

    def _manager_guard(self, actor: Actor, branch: str) -> None:
        actor.require_role(Role.manager, message="Only managers can manage procurement")
        actor.require_branch(
            branch,
            missing_message="Manager branch assignment is required",
            mismatch_message=MANAGER_MISMATCH,
        )

    # ---------- READ ----------
    def list(self, actor: Actor, branch: str | None = None) -> list[Procurement]:
        stmt = select(Procurement).order_by(
            Procurement.purchase_date.desc(), Procurement.purchase_time.desc(), Procurement.id.desc()
        )
        if actor.role == Role.manager:
            stmt = stmt.where(Procurement.branch == actor.branch)
        elif branch:
            stmt = stmt.where(Procurement.branch == branch)
        return list(self.db.execute(stmt).scalars().all())

    def get(self, actor: Actor, procurement_id: int) -> Procurement:
        p = self.db.get(Procurement, procurement_id)
        if not p:
            raise RecordNotFound("Procurement not found", id=procurement_id)
        if actor.role == Role.manager and p.branch != actor.branch:
            actor.require_branch(p.branch, mismatch_message="Access denied for this branch procurement record")
        return p

    # ---------- INTAKE ----------
    def intake(self, actor: Actor, payload: ProcurementCreate) -> IntakeResult:
        self._manager_guard(actor, payload.branch)

        source_name = first_populated(payload.source_name, payload.dealer_name)
        validate_source_rules(payload.source_type, source_name, payload.tonnage)
        if source_name is None:
            raise ProcurementSourceRuleViolation("source_name (or dealer_name) is required")

        key = LedgerKey(payload.produce_name, payload.produce_type, payload.branch)
        tonnage = Decimal(payload.tonnage).quantize(CENT)

        with self.engine.unit_of_work() as uow:
            adj = uow.adjust(key, tonnage, price=payload.selling_price)

            procurement = Procurement(
                produce_name=payload.produce_name,
                produce_type=payload.produce_type,
                branch=payload.branch,
                tonnage=tonnage,
                cost=payload.cost,
                selling_price=payload.selling_price,
                replaced_price=adj.previous_price,
                source_type=payload.source_type,
                source_name=source_name,
                contact=payload.contact,
                purchase_date=payload.purchase_date,
                purchase_time=payload.purchase_time,
            )
            uow.persist(lambda: self.db.add(procurement))

        self.db.refresh(procurement)
        logger.info("procurement recorded id=%s key=%s tonnage=%s", procurement.id, key, tonnage)
        return IntakeResult(procurement, adj.record.quantity_kg, adj.record.unit_price)

    # ---------- REVISE ----------
    def revise(self, actor: Actor, procurement_id: int, payload: ProcurementUpdate) -> Procurement:
        procurement = self.get(actor, procurement_id)
        self._manager_guard(actor, procurement.branch)

        nxt = resolve_revision(procurement, payload)
        self._manager_guard(actor, nxt["branch"])
        return self.apply_revision(procurement, nxt)

    def apply_revision(self, procurement: Procurement, nxt: dict) -> Procurement:
        """
        Applique un état cible complet (champs résolus) à un achat existant.

        Même clé : UN ajustement de (nouveau - ancien) tonnage, nouveau prix.
        Clé différente (migration) : retrait gardé sur l'ancienne clé PUIS
        ajout sur la nouvelle ; si l'ajout échoue, le retrait est compensé.
        """
        validate_source_rules(nxt["source_type"], nxt["source_name"], nxt["tonnage"])

        old_key = _key_of(procurement)
        new_key = LedgerKey(nxt["produce_name"], nxt["produce_type"], nxt["branch"])
        old_tonnage = Decimal(procurement.tonnage)
        new_tonnage = nxt["tonnage"]
        new_price = nxt["selling_price"]

        with self.engine.unit_of_work() as uow:
            if old_key == new_key:
                delta = new_tonnage - old_tonnage
                # delta < 0 : le stock courant doit couvrir |delta|
                uow.adjust(old_key, delta, price=new_price)
                replaced_price = procurement.replaced_price
            else:
                # migration : retrait borné par le stock de l'ancienne clé, puis ajout sur la nouvelle
                uow.adjust(old_key, -old_tonnage)
                adj = uow.adjust(new_key, new_tonnage, price=new_price)
                replaced_price = adj.previous_price

            def write():
                for name, value in nxt.items():
                    setattr(procurement, name, value)
                procurement.replaced_price = replaced_price

            uow.persist(write)

        self.db.refresh(procurement)
        logger.info("procurement revised id=%s %s -> %s", procurement.id, old_key, new_key)
        return procurement

    # ---------- REMOVE ----------
    def remove(self, actor: Actor, procurement_id: int) -> None:
        procurement = self.get(actor, procurement_id)
        self._manager_guard(actor, procurement.branch)

        key = _key_of(procurement)
        tonnage = Decimal(procurement.tonnage)

        with self.engine.unit_of_work() as uow:
            uow.adjust(key, -tonnage, price=self._price_to_restore(procurement))
            uow.persist(lambda: self.db.delete(procurement))

        logger.info("procurement deleted id=%s key=%s tonnage=%s", procurement_id, key, tonnage)

    # ---------- Helpers ----------
    def _price_to_restore(self, procurement: Procurement) -> Decimal | None:
        """Prix d'avant la saisie, seulement si personne ne l'a ré-écrasé depuis."""
        if procurement.replaced_price is None:
            return None
        current = self.engine.ledger.get(_key_of(procurement))
        if current is None or current.unit_price != Decimal(procurement.selling_price):
            return None
        return Decimal(procurement.replaced_price)
