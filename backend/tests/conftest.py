from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.db.base import Base
from backend.app.db.models import models_v1  # noqa: F401  (tables)
from backend.app.db.models.core_types import Role, SourceType
from backend.app.schemas.procurement import ProcurementCreate
from backend.app.schemas.sale import CashSaleCreate, CreditSaleCreate
from backend.services.actor import Actor


def make_engine(url: str = "sqlite://", *, begin: str = "BEGIN", **kwargs):
    """
    Engine SQLite de test.

    pysqlite gère mal BEGIN / SAVEPOINT : on désactive son transactionnel
    implicite et on émet BEGIN nous-mêmes (recette SQLAlchemy).
    """
    connect_args = {"check_same_thread": False, **kwargs.pop("connect_args", {})}
    engine = create_engine(url, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin)

    return engine


@pytest.fixture(scope="function")
def engine():
    """
    Base en mémoire isolée par test.
    StaticPool : une seule connexion, donc une seule base partagée par les sessions.
    """
    engine = make_engine(poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """
    Base fichier pour les tests multi-threads : une connexion par thread,
    BEGIN IMMEDIATE pour sérialiser les écrivains (timeout = attente du verrou).
    """
    engine = make_engine(
        f"sqlite:///{tmp_path / 'stock.db'}",
        begin="BEGIN IMMEDIATE",
        connect_args={"timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=True)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- ACTORS ----------
@pytest.fixture
def manager() -> Actor:
    return Actor(role=Role.manager, branch="Maganjo", name="Grace")


@pytest.fixture
def matugga_manager() -> Actor:
    return Actor(role=Role.manager, branch="Matugga", name="Peter")


@pytest.fixture
def agent() -> Actor:
    return Actor(role=Role.sales_agent, branch="Maganjo", name="Amos")


@pytest.fixture
def director() -> Actor:
    return Actor(role=Role.director, name="Orban")


# ---------- PAYLOADS ----------
@pytest.fixture
def procurement_payload():
    def build(**overrides) -> ProcurementCreate:
        data = {
            "produce_name": "Beans",
            "produce_type": "Grain",
            "branch": "Maganjo",
            "tonnage": Decimal("500"),
            "cost": Decimal("40000"),
            "selling_price": Decimal("100"),
            "source_type": SourceType.company,
            "source_name": "Kampala Grains Ltd",
            "contact": "+256700000001",
            "purchase_date": date(2026, 3, 2),
            "purchase_time": "09:30",
        }
        data.update(overrides)
        return ProcurementCreate(**data)

    return build


@pytest.fixture
def cash_payload():
    def build(**overrides) -> CashSaleCreate:
        data = {
            "produce_name": "Beans",
            "produce_type": "Grain",
            "branch": "Maganjo",
            "tonnage": Decimal("200"),
            "buyer_name": "Mukasa",
            "sales_agent_name": "Amos",
            "amount_paid": Decimal("20000"),
            "sale_date": date(2026, 3, 3),
            "sale_time": "10:15",
        }
        data.update(overrides)
        return CashSaleCreate(**data)

    return build


@pytest.fixture
def credit_payload():
    def build(**overrides) -> CreditSaleCreate:
        data = {
            "produce_name": "Beans",
            "produce_type": "Grain",
            "branch": "Maganjo",
            "tonnage": Decimal("200"),
            "buyer_name": "Nakato Stores",
            "sales_agent_name": "Amos",
            "amount_due": Decimal("20000"),
            "national_id": "CM1234567890AB",
            "location": "Wakiso",
            "contact": "+256700000002",
            "due_date": date(2026, 4, 3),
            "dispatch_date": date(2026, 3, 4),
        }
        data.update(overrides)
        return CreditSaleCreate(**data)

    return build
