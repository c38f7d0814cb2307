import os

# Must be set before partsorders.db builds its engine.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from partsorders.db import SessionLocal, engine
from partsorders.lookups import SqlCustomerLookup, SqlPartCatalog
from partsorders.models import Base, Customer, SparePart
from partsorders.schemas import OrderCreate
from partsorders.store import OrderAggregateStore
from partsorders.workflows import OrderCreationWorkflow, OrderUpdateWorkflow


@pytest.fixture(autouse=True)
def db():
    """Fresh tables per test, seeded with two customers and three parts."""
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as s:
        s.add_all(
            [
                Customer(id=8, name="Ravi Kumar", address="12 MG Road", pincode="560001", state="KA", city="Bengaluru"),
                Customer(id=9, name="Anita Shah", address="4 Marine Drive", pincode="400002", state="MH", city="Mumbai"),
                SparePart(id=165, part_name="Brake Pad", category="Brakes", stock_quantity=5, price=Decimal("280.25")),
                SparePart(id=123, part_name="Oil Filter", category="Engine", stock_quantity=10, price=Decimal("500.00")),
                SparePart(id=77, part_name="Spark Plug", category="Ignition", stock_quantity=2, price=Decimal("90.00")),
            ]
        )
        s.commit()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session():
    s = SessionLocal()
    yield s
    s.close()


@pytest.fixture
def store(session):
    return OrderAggregateStore(session)


@pytest.fixture
def creator(store):
    return OrderCreationWorkflow(store, SqlCustomerLookup(store.session), SqlPartCatalog(store.session))


@pytest.fixture
def updater(store):
    return OrderUpdateWorkflow(store, SqlCustomerLookup(store.session), SqlPartCatalog(store.session))


@pytest.fixture
def client():
    from partsorders.main import app

    return TestClient(app)


def _draft(**overrides) -> OrderCreate:
    data = {
        "customer_id": 8,
        "order_date": "2025-05-19",
        "orderitems": [
            {"part_id": 165, "quantity": 1, "price": "280.25", "totalprice": "280.25"},
            {"part_id": 123, "quantity": 3, "price": "500", "totalprice": "1500"},
        ],
    }
    data.update(overrides)
    return OrderCreate(**data)


@pytest.fixture
def make_draft():
    """Build an OrderCreate for customer 8 with two valid items; keyword overrides replace fields."""
    return _draft
