"""
Stock mutation engine.

Chaque ajustement est une unité atomique (une ligne, un commit) et rend
sa compensation : delta opposé + restauration du prix s'il a été écrasé.

Les opérations composites passent par `UnitOfWork` : une liste ordonnée
de paires {do, undo}. Si une étape ultérieure échoue, les undo déjà
enregistrés sont joués en ordre inverse AVANT de relever l'erreur.

Ce n'est PAS une transaction : un crash entre deux étapes (ou entre une
étape et sa compensation) laisse le ledger et le journal d'événements
divergents jusqu'à réconciliation manuelle. Fenêtre de risque connue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.services.errors import PersistenceFailure, StockError
from backend.services.inventory import ZERO, InventoryLedger, LedgerKey, StockSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Adjustment:
    key: LedgerKey
    delta: Decimal
    record: StockSnapshot
    compensate: Callable[[], StockSnapshot]
    # prix du ledger avant l'ajustement (None si la ligne vient d'être créée)
    previous_price: Decimal | None = None


@dataclass
class _Step:
    label: str
    undo: Callable[[], object]


class StockMutationEngine:
    def __init__(self, db: Session, ledger: InventoryLedger | None = None) -> None:
        self.db = db
        self.ledger = ledger or InventoryLedger(db)

    def adjust(
        self,
        key: LedgerKey,
        delta: Decimal,
        *,
        required_floor: Decimal = ZERO,
        price: Decimal | None = None,
    ) -> Adjustment:
        result = self._commit_adjust(key, delta, required_floor=required_floor, price=price)

        restore_price = result.previous_price if (price is not None and not result.created) else None

        def compensate() -> StockSnapshot:
            logger.warning("compensating key=%s delta=%s", key, -delta)
            undone = self._commit_adjust(key, -delta, price=restore_price)
            return undone.record

        return Adjustment(
            key=key,
            delta=Decimal(delta),
            record=result.record,
            compensate=compensate,
            previous_price=result.previous_price,
        )

    def unit_of_work(self) -> "UnitOfWork":
        return UnitOfWork(self)

    def _commit_adjust(self, key, delta, *, required_floor=ZERO, price=None):
        try:
            result = self.ledger.adjust(key, delta, required_floor=required_floor, price=price)
            self.db.commit()
        except StockError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceFailure("Failed to update inventory", key=key) from exc
        return result


@dataclass
class UnitOfWork:
    """
    with engine.unit_of_work() as uow:
        uow.adjust(old_key, -old_qty)
        uow.adjust(new_key, +new_qty, price=p)
        uow.persist(lambda: ...)

    - erreur typée (StockError) : compensation puis ré-émission telle quelle
    - erreur SQLAlchemy : rollback, compensation, puis PersistenceFailure
    """

    engine: StockMutationEngine
    steps: list[_Step] = field(default_factory=list)

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            return False

        self.engine.db.rollback()
        failures = self.compensate()

        if isinstance(exc, StockError):
            exc.compensation_failures.extend(failures)
            return False
        if isinstance(exc, SQLAlchemyError):
            err = PersistenceFailure("Failed to persist record; inventory changes were reverted")
            err.compensation_failures.extend(failures)
            raise err from exc
        return False

    def adjust(self, key: LedgerKey, delta: Decimal, **kwargs) -> Adjustment:
        adj = self.engine.adjust(key, delta, **kwargs)
        self.steps.append(_Step(label=f"adjust {key} {delta}", undo=adj.compensate))
        return adj

    def persist(self, write: Callable[[], object]):
        """Écrit l'événement (add/delete) et commit. Les erreurs DB remontent à __exit__."""
        out = write()
        self.engine.db.commit()
        return out

    def compensate(self) -> list[str]:
        failures: list[str] = []
        while self.steps:
            step = self.steps.pop()
            try:
                step.undo()
            except Exception as exc:
                # la ligne a bougé entre-temps : on ne force pas sous zéro
                logger.exception("compensation failed step=%r", step.label)
                failures.append(f"{step.label}: {exc}")
        return failures
