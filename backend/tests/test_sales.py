from decimal import Decimal

import pytest
from sqlalchemy import select
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from backend.app.db.models.core_types import Role, SaleType
from backend.app.db.models.models_v1 import Notification, Sale
from backend.app.schemas.sale import SaleUpdate
from backend.services import notifications
from backend.services.actor import Actor
from backend.services.errors import (
    AmbiguousProduceType,
    BelowMinimumTransactionValue,
    BranchAccessDenied,
    InsufficientStock,
    LedgerKeyNotFound,
    PersistenceFailure,
    PriceMismatch,
    SaleTypeImmutable,
)
from backend.services.inventory import InventoryLedger, LedgerKey
from backend.services.procurement import ProcurementReconciler
from backend.services.sales import SaleReconciler
from backend.services.stock_mutation import UnitOfWork

BEANS = LedgerKey("Beans", "Grain", "Maganjo")


@pytest.fixture
def stocked(db_session, manager, procurement_payload):
    """(Beans, Grain, Maganjo) = 500 @ 100."""
    ProcurementReconciler(db_session).intake(manager, procurement_payload())
    return db_session


def _qty(db_session, key=BEANS):
    return InventoryLedger(db_session).get(key).quantity_kg


def _titles(db_session):
    return [n.title for n in db_session.execute(select(Notification).order_by(Notification.id)).scalars()]


def test_cash_sale_consumes_stock(stocked, agent, cash_payload):
    """
    GIVEN
    - ledger 500 @ 100
    - vente comptant 200 kg, montant déclaré 20000 (= 100 x 200)

    THEN
    - la vente est enregistrée, quantity = 300
    """
    sale = SaleReconciler(stocked).create_cash(agent, cash_payload())

    assert sale.sale_type == SaleType.cash
    assert sale.total_expected == Decimal("20000")
    assert sale.unit_price_used == Decimal("100")
    assert _qty(stocked) == Decimal("300")


def test_sale_beyond_stock_fails_and_leaves_quantity(stocked, agent, cash_payload):
    """
    GIVEN
    - ledger 300 (après une vente de 200)
    - vente de 400

    THEN
    - InsufficientStock, quantity reste 300
    - une notification "Low stock block" est écrite pour le manager
    """
    rec = SaleReconciler(stocked)
    rec.create_cash(agent, cash_payload())

    with pytest.raises(InsufficientStock) as err:
        rec.create_cash(agent, cash_payload(tonnage=Decimal("400"), amount_paid=Decimal("40000")))

    assert err.value.context["available"] == Decimal("300")
    assert _qty(stocked) == Decimal("300")
    assert notifications.LOW_STOCK_BLOCK in _titles(stocked)
    assert len(rec.list(agent)) == 1


def test_credit_sale_records_deferred_settlement(stocked, agent, credit_payload):
    sale = SaleReconciler(stocked).create_credit(agent, credit_payload(contact=None, contacts="+256711111111"))

    assert sale.sale_type == SaleType.credit
    assert sale.amount_due == Decimal("20000")
    assert sale.amount_paid is None
    assert sale.contact == "+256711111111"
    assert _qty(stocked) == Decimal("300")


def test_produce_type_resolved_when_unique(stocked, agent, cash_payload):
    sale = SaleReconciler(stocked).create_cash(agent, cash_payload(produce_type=None))

    assert sale.produce_type == "Grain"
    assert _qty(stocked) == Decimal("300")


def test_produce_type_ambiguous_when_several(stocked, manager, agent, procurement_payload, cash_payload):
    ProcurementReconciler(stocked).intake(manager, procurement_payload(produce_type="Red"))

    with pytest.raises(AmbiguousProduceType) as err:
        SaleReconciler(stocked).create_cash(agent, cash_payload(produce_type=None))

    assert err.value.context["produce_types"] == ["Grain", "Red"]
    assert _qty(stocked) == Decimal("500")


def test_unknown_produce_notifies_stock_unavailable(db_session, agent, cash_payload):
    with pytest.raises(LedgerKeyNotFound):
        SaleReconciler(db_session).create_cash(agent, cash_payload(produce_name="Maize", produce_type=None))

    n = db_session.execute(select(Notification)).scalar_one()
    assert n.title == notifications.STOCK_UNAVAILABLE
    assert n.branch == "Maganjo"
    assert n.produce_name == "Maize"


def test_declared_amount_must_match_price(stocked, agent, cash_payload):
    rec = SaleReconciler(stocked)

    with pytest.raises(PriceMismatch) as err:
        rec.create_cash(agent, cash_payload(amount_paid=Decimal("19000")))
    assert err.value.context["expected_amount"] == Decimal("20000")
    assert err.value.context["field"] == "amount_paid"
    assert _qty(stocked) == Decimal("500")

    # écart de 0.01 toléré
    rec.create_cash(agent, cash_payload(amount_paid=Decimal("20000.01")))
    assert _qty(stocked) == Decimal("300")


def test_minimum_value_checked_before_price(stocked, agent, credit_payload):
    with pytest.raises(BelowMinimumTransactionValue) as err:
        SaleReconciler(stocked).create_credit(
            agent, credit_payload(tonnage=Decimal("50"), amount_due=Decimal("1"))
        )

    assert err.value.context["computed_amount"] == Decimal("5000")
    assert _qty(stocked) == Decimal("500")


def test_draining_stock_notifies_out_of_stock(stocked, agent, cash_payload):
    SaleReconciler(stocked).create_cash(agent, cash_payload(tonnage=Decimal("500"), amount_paid=Decimal("50000")))

    assert _qty(stocked) == Decimal("0")
    assert _titles(stocked) == [notifications.OUT_OF_STOCK]


def test_revise_inverts_procurement_signs(stocked, agent, cash_payload):
    """
    GIVEN
    - ledger 500, vente 200 (ledger 300)

    THEN
    - vente 200 -> 250 : 50 de plus consommés (ledger 250)
    - vente 250 -> 100 : 150 rendus sans condition (ledger 400)
    """
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    rec.revise(agent, sale.id, SaleUpdate(tonnage=Decimal("250"), amount_paid=Decimal("25000")))
    assert _qty(stocked) == Decimal("250")

    revised = rec.revise(agent, sale.id, SaleUpdate(tonnage=Decimal("100"), amount_paid=Decimal("10000")))
    assert _qty(stocked) == Decimal("400")
    assert revised.total_expected == Decimal("10000")


def test_revise_increase_is_guarded(stocked, agent, cash_payload):
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    with pytest.raises(InsufficientStock):
        rec.revise(agent, sale.id, SaleUpdate(tonnage=Decimal("600"), amount_paid=Decimal("60000")))

    assert _qty(stocked) == Decimal("300")
    stocked.expire_all()
    assert stocked.get(Sale, sale.id).tonnage == Decimal("200")


def test_revise_moves_sale_between_keys(stocked, manager, agent, procurement_payload, cash_payload):
    ProcurementReconciler(stocked).intake(manager, procurement_payload(produce_type="Red", selling_price=Decimal("120")))
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    revised = rec.revise(agent, sale.id, SaleUpdate(produce_type="Red", amount_paid=Decimal("24000")))

    assert revised.produce_type == "Red"
    assert revised.unit_price_used == Decimal("120")
    assert _qty(stocked) == Decimal("500")
    assert _qty(stocked, LedgerKey("Beans", "Red", "Maganjo")) == Decimal("300")


def test_sale_type_is_immutable(stocked, agent, cash_payload):
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    with pytest.raises(SaleTypeImmutable):
        rec.revise(agent, sale.id, SaleUpdate(sale_type=SaleType.credit))

    assert _qty(stocked) == Decimal("300")


def test_remove_credits_stock_back(stocked, agent, cash_payload):
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    rec.remove(agent, sale.id)

    assert _qty(stocked) == Decimal("500")
    assert stocked.get(Sale, sale.id) is None


def test_create_persistence_failure_reverts_stock(stocked, agent, cash_payload, monkeypatch):
    def failing_persist(self, write):
        write()
        raise OperationalError("INSERT INTO sales", {}, Exception("connection lost"))

    monkeypatch.setattr(UnitOfWork, "persist", failing_persist)

    with pytest.raises(PersistenceFailure):
        SaleReconciler(stocked).create_cash(agent, cash_payload())

    assert _qty(stocked) == Decimal("500")
    assert stocked.execute(select(Sale)).first() is None


def test_branch_staff_only_sell_in_their_branch(stocked, director, cash_payload):
    rec = SaleReconciler(stocked)
    other_agent = Actor(role=Role.sales_agent, branch="Matugga")

    with pytest.raises(BranchAccessDenied):
        rec.create_cash(other_agent, cash_payload())
    with pytest.raises(BranchAccessDenied):
        rec.create_cash(director, cash_payload())

    assert _qty(stocked) == Decimal("500")


def test_fractional_tonnage_keeps_sale_and_ledger_in_step(stocked, agent, cash_payload):
    """
    GIVEN
    - ledger 500 @ 100
    - vente de 101.67 kg (précision des colonnes)

    THEN
    - ledger + tonnage de la vente = 500 exactement
    - une saisie à 3 décimales est refusée par le schéma
    """
    sale = SaleReconciler(stocked).create_cash(
        agent, cash_payload(tonnage=Decimal("101.67"), amount_paid=Decimal("10167"))
    )

    stocked.expire_all()
    assert _qty(stocked) + stocked.get(Sale, sale.id).tonnage == Decimal("500")
    assert sale.total_expected == Decimal("10167.00")

    with pytest.raises(ValidationError):
        cash_payload(tonnage=Decimal("101.675"), amount_paid=Decimal("10167.50"))


def test_missing_produce_error_carries_no_partial_key(db_session, agent, cash_payload):
    with pytest.raises(LedgerKeyNotFound) as err:
        SaleReconciler(db_session).create_cash(agent, cash_payload(produce_name="Maize", produce_type=None))

    body = err.value.to_dict()
    assert body["key"] is None
    assert body["produce_name"] == "Maize"
    assert body["branch"] == "Maganjo"


def test_remove_persistence_failure_restores_withdrawal(stocked, agent, cash_payload, monkeypatch):
    """
    GIVEN
    - ledger 500, vente 200 (ledger 300)
    - la suppression de la vente échoue après le recrédit de 200

    THEN
    - PersistenceFailure
    - ledger revenu à 300, la vente existe toujours
    """
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    def failing_persist(self, write):
        raise OperationalError("DELETE FROM sales", {}, Exception("connection lost"))

    monkeypatch.setattr(UnitOfWork, "persist", failing_persist)

    with pytest.raises(PersistenceFailure):
        rec.remove(agent, sale.id)

    assert _qty(stocked) == Decimal("300")
    stocked.expire_all()
    assert stocked.get(Sale, sale.id) is not None


def test_revise_to_short_key_leaves_both_keys(stocked, manager, agent, procurement_payload, cash_payload):
    """
    GIVEN
    - Grain 500, vente Grain 200 (Grain 300)
    - Red 100 @ 120

    THEN
    - déplacer la vente (200 kg) vers Red : InsufficientStock
    - Grain reste à 300, Red à 100, la vente reste sur Grain
    """
    red = LedgerKey("Beans", "Red", "Maganjo")
    ProcurementReconciler(stocked).intake(
        manager, procurement_payload(produce_type="Red", tonnage=Decimal("100"), selling_price=Decimal("120"))
    )
    rec = SaleReconciler(stocked)
    sale = rec.create_cash(agent, cash_payload())

    with pytest.raises(InsufficientStock) as err:
        rec.revise(agent, sale.id, SaleUpdate(produce_type="Red", amount_paid=Decimal("24000")))

    assert err.value.compensation_failures == []
    assert _qty(stocked) == Decimal("300")
    assert _qty(stocked, red) == Decimal("100")
    stocked.expire_all()
    assert stocked.get(Sale, sale.id).produce_type == "Grain"
