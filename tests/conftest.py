from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, TransactionCoordinator, get_coordinator
from app.models.offer import Offer
from app.models.product import Product
from app.utils.cache import product_cache


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    """SQLite only honours ON DELETE rules with foreign keys switched on."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

testing_coordinator = TransactionCoordinator(TestingSessionLocal, retry_attempts=1)

# Override the dependency
app.dependency_overrides[get_coordinator] = lambda: testing_coordinator


@pytest.fixture(autouse=True)
def fake_cache(monkeypatch):
    """Replace the Redis client so tests never touch a real server."""
    client = MagicMock()
    client.get.return_value = None
    monkeypatch.setattr(product_cache, "client", client)
    return client


@pytest.fixture(scope="function")
def coordinator():
    """Transaction coordinator bound to a fresh test database."""
    Base.metadata.create_all(bind=engine)

    yield testing_coordinator

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(coordinator):
    """Create test client with fresh database for each test."""
    # Not used as a context manager: the lifespan would create tables on the real engine
    yield TestClient(app)


@pytest.fixture
def make_product(coordinator):
    """Factory inserting a product and returning its id."""
    counter = {"n": 0}

    def _make(stock="10", sale_price="100.00", **fields):
        counter["n"] += 1
        values = {
            "name": f"Product {counter['n']}",
            "barcode": f"750000000{counter['n']:04d}",
            "purchase_price": Decimal("50.00"),
            "sale_price": Decimal(sale_price),
            "stock": Decimal(stock),
        }
        values.update(fields)

        def _insert(tx):
            product = Product(**values)
            tx.add(product)
            tx.flush()
            return product.id

        return coordinator.run(_insert)

    return _make


@pytest.fixture
def make_offer(coordinator):
    """Factory inserting an offer and returning its id."""
    counter = {"n": 0}

    def _make(discount_pct="25", active=True, start_date=None, end_date=None, **fields):
        counter["n"] += 1
        values = {
            "name": f"Offer {counter['n']}",
            "discount_pct": Decimal(discount_pct),
            "start_date": start_date or date(2000, 1, 1),
            "end_date": end_date or date(2999, 12, 31),
            "active": active,
        }
        values.update(fields)

        def _insert(tx):
            offer = Offer(**values)
            tx.add(offer)
            tx.flush()
            return offer.id

        return coordinator.run(_insert)

    return _make


@pytest.fixture
def read(coordinator):
    """Run a read-only callable in its own transaction."""
    def _read(fn):
        return coordinator.run(fn)

    return _read
