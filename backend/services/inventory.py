from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import StockRecord
from backend.services.errors import InsufficientStock, LedgerKeyNotFound

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# précision des colonnes Numeric(14, 2)
CENT = Decimal("0.01")


class LedgerKey(NamedTuple):
    produce_name: str
    produce_type: str
    branch: str

    def __str__(self) -> str:
        return f"{self.produce_name}/{self.produce_type}@{self.branch}"


@dataclass(frozen=True)
class StockSnapshot:
    key: LedgerKey
    quantity_kg: Decimal
    unit_price: Decimal

    @classmethod
    def of(cls, rec: StockRecord) -> "StockSnapshot":
        return cls(
            key=LedgerKey(rec.produce_name, rec.produce_type, rec.branch),
            quantity_kg=Decimal(rec.quantity_kg),
            unit_price=Decimal(rec.unit_price),
        )


@dataclass(frozen=True)
class AdjustResult:
    record: StockSnapshot
    previous_price: Decimal | None
    created: bool = False


def _key_filter(key: LedgerKey):
    return (
        StockRecord.produce_name == key.produce_name,
        StockRecord.produce_type == key.produce_type,
        StockRecord.branch == key.branch,
    )


class InventoryLedger:
    """
    Source de vérité du stock par (produce_name, produce_type, branch).

    Une seule primitive d'écriture : `adjust`, UPDATE conditionnel
    (compare-and-update) sur UNE ligne. Jamais de read-modify-write aveugle.

    Le ledger ne commit pas : c'est le StockMutationEngine qui décide
    des frontières de transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- READ ----------
    def get(self, key: LedgerKey) -> StockSnapshot | None:
        rec = self._load(key)
        return StockSnapshot.of(rec) if rec else None

    def find(self, produce_name: str, branch: str) -> list[StockSnapshot]:
        rows = (
            self.db.execute(
                select(StockRecord)
                .where(StockRecord.produce_name == produce_name)
                .where(StockRecord.branch == branch)
                .order_by(StockRecord.produce_type)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        return [StockSnapshot.of(r) for r in rows]

    def list(self, *, branch: str | None = None, produce_name: str | None = None) -> list[StockSnapshot]:
        stmt = select(StockRecord).order_by(StockRecord.branch, StockRecord.produce_name, StockRecord.produce_type)
        if branch is not None:
            stmt = stmt.where(StockRecord.branch == branch)
        if produce_name is not None:
            stmt = stmt.where(StockRecord.produce_name == produce_name)
        return [StockSnapshot.of(r) for r in self.db.execute(stmt).scalars().all()]

    # ---------- WRITE ----------
    def adjust(
        self,
        key: LedgerKey,
        delta: Decimal,
        *,
        required_floor: Decimal = ZERO,
        price: Decimal | None = None,
    ) -> AdjustResult:
        """
        quantity += delta SI quantity + delta >= required_floor,
        et unit_price = price dans le même UPDATE si fourni.

        - clé absente + delta > 0 + price -> insert (upsert)
        - clé absente sinon -> LedgerKeyNotFound
        - garde non respectée -> InsufficientStock, ligne inchangée
        """
        delta = Decimal(delta).quantize(CENT)
        required_floor = Decimal(required_floor)
        if price is not None:
            price = Decimal(price).quantize(CENT)

        # snapshot verrouillé (FOR UPDATE) : prix précédent pour la compensation
        current = self._load(key, lock=True)
        if current is None:
            if delta > 0 and price is not None and delta >= required_floor:
                created = self._insert(key, delta, price)
                if created is not None:
                    return AdjustResult(record=created, previous_price=None, created=True)
                # insert concurrent : la ligne existe maintenant, on retombe sur l'UPDATE gardé
                current = self._load(key, lock=True)
            if current is None:
                raise LedgerKeyNotFound(key)

        previous_price = Decimal(current.unit_price)

        values = {"quantity_kg": StockRecord.quantity_kg + delta}
        if price is not None:
            values["unit_price"] = price

        res = self.db.execute(
            update(StockRecord)
            .where(*_key_filter(key))
            .where(StockRecord.quantity_kg + delta >= required_floor)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            available = self._load(key)
            available_qty = Decimal(available.quantity_kg) if available else ZERO
            logger.info(
                "guarded adjust refused key=%s delta=%s floor=%s available=%s",
                key, delta, required_floor, available_qty,
            )
            raise InsufficientStock(key, required=required_floor - delta, available=available_qty)

        after = self._load(key)
        logger.debug("adjusted key=%s delta=%s qty=%s", key, delta, after.quantity_kg)
        return AdjustResult(record=StockSnapshot.of(after), previous_price=previous_price)

    # ---------- Helpers ----------
    def _load(self, key: LedgerKey, *, lock: bool = False) -> StockRecord | None:
        stmt = select(StockRecord).where(*_key_filter(key)).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _insert(self, key: LedgerKey, quantity: Decimal, price: Decimal) -> StockSnapshot | None:
        sp = self.db.begin_nested()
        try:
            rec = StockRecord(
                produce_name=key.produce_name,
                produce_type=key.produce_type,
                branch=key.branch,
                quantity_kg=quantity,
                unit_price=price,
            )
            self.db.add(rec)
            self.db.flush()
        except IntegrityError:
            sp.rollback()
            return None
        sp.commit()
        logger.info("stock record created key=%s qty=%s price=%s", key, quantity, price)
        return StockSnapshot(key=key, quantity_kg=Decimal(quantity), unit_price=Decimal(price))
