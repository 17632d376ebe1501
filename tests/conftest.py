"""Shared fixtures: an isolated in-memory SQLite database per test."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before doorcount.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ID_HASH_SALT", "test-salt")
os.environ["API_KEY"] = ""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from doorcount.database import create_tables, get_db
from doorcount.models.venue import Area, Business, Venue


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def venues(db):
    """biz-1 with two venues: v-1 (areas a-1, a-2) and v-2 (area a-3). biz-2 has v-9."""
    now = datetime.utcnow()
    db.add_all([
        Business(id="biz-1", name="Night Owl Group", timezone="UTC", created_at=now),
        Business(id="biz-2", name="Other Group", timezone="UTC", created_at=now),
        Venue(id="v-1", business_id="biz-1", name="Downtown", created_at=now),
        Venue(id="v-2", business_id="biz-1", name="Uptown", created_at=now),
        Venue(id="v-9", business_id="biz-2", name="Elsewhere", created_at=now),
        Area(id="a-1", business_id="biz-1", venue_id="v-1", name="Main Floor", capacity=100,
             counting_mode="BOTH", created_at=now),
        Area(id="a-2", business_id="biz-1", venue_id="v-1", name="Patio", capacity=20,
             counting_mode="BOTH", created_at=now),
        Area(id="a-3", business_id="biz-1", venue_id="v-2", name="Bar", capacity=50,
             counting_mode="BOTH", created_at=now),
    ])
    db.commit()
    return db


@pytest.fixture
def client(session_factory):
    from doorcount.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: startup (create_tables on the configured DB) is skipped
    yield TestClient(app)
    app.dependency_overrides.clear()
