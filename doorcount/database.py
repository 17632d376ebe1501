"""
Engine and session factory for the DoorCount store.
PostgreSQL in production. SQLite (file or in-memory) is accepted for local
runs and tests; the occupancy ledger picks its upsert flavour from the
dialect.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from doorcount.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Concurrent writers queue on the database lock for up to 30s
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        # in-memory: one shared connection, or each thread sees an empty DB
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """One session per request; services commit, this only closes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Create missing tables for the directory, scan, ban and occupancy models.
    Existing tables are not altered; there are no migrations.
    """
    # Venue directory
    from doorcount.models.venue import Business, Venue, Area             # noqa
    # Ledgers
    from doorcount.models.scan_event import ScanEvent, Identity          # noqa
    from doorcount.models.ban import Ban                                 # noqa
    from doorcount.models.occupancy import OccupancyEvent, OccupancySnapshot  # noqa

    Base.metadata.create_all(bind=bind or engine)
