"""
Shared pytest fixtures for the tax engine test suite.

API tests use FastAPI TestClient against an isolated temporary SQLite database
so they never touch a real datastore. Engine tests build Transaction objects
through the make_tx factory.
"""

import os
import pytest
import tempfile
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from taxengine.database import Base, get_db
from taxengine.main import app
from taxengine.schemas.transaction import Transaction

# Import all models so Base.metadata knows about them
from taxengine.models.transaction import StoredTransaction  # noqa: F401


@pytest.fixture
def make_tx():
    """
    Factory: make_tx("1", "2024-01-01", "buy", "BTC", "1", "30000", fee_usd="10").
    Strings are parsed by the schema, so amounts stay exact Decimals.
    """
    def _make(tx_id, timestamp, tx_type, asset, amount, value, **extra):
        if len(timestamp) == 10:
            timestamp = f"{timestamp}T00:00:00"
        return Transaction(
            id=tx_id,
            timestamp=timestamp,
            type=tx_type,
            asset_symbol=asset,
            amount=amount,
            value_usd=value,
            **extra,
        )
    return _make


@pytest.fixture
def test_engine():
    """Create a temporary SQLite database for one test."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = create_engine(
        f"sqlite:///{tmp.name}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    os.unlink(tmp.name)


@pytest.fixture
def client(test_engine):
    """TestClient wired to the temporary database."""
    TestSessionLocal = sessionmaker(bind=test_engine)

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_db(test_engine):
    """Direct SQLAlchemy session for tests that need DB access."""
    TestSessionLocal = sessionmaker(bind=test_engine)
    db = TestSessionLocal()
    yield db
    db.close()
