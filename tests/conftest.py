"""
pytest configuration and fixtures for the quote follow-up tests.
"""
import os
from datetime import datetime

# Keep the module-level engine off the developer's real database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dispatch_quotes import crud, schemas
from dispatch_quotes.clock import FixedClock
from dispatch_quotes.database import init_db

START = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (TestClient runs in a worker thread)."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def dana(db):
    return crud.create_user(db, "Dana Reyes", "dana@example.com", user_id="user-dana")


@pytest.fixture
def marco(db):
    return crud.create_user(db, "Marco Bell", "marco@example.com", user_id="user-marco")


@pytest.fixture
def make_quote(db, dana, clock):
    """Factory creating a quote as Dana at the fixture clock's current time."""
    def _make(client_name="Brenda Caulfield", service_type="Airport Transfer", **fields):
        data = schemas.QuoteCreate(client_name=client_name, service_type=service_type, **fields)
        return crud.create_quote(db, data, dana.id, clock=clock)
    return _make
