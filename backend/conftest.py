from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

# Must be set before hssedb.database is imported.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("NOTIFICATIONS_PROVIDER", "noop")

import hssedb  # noqa: E402,F401  (registers every table)
from hssedb.database import Base, get_read_db, get_write_db, make_engine  # noqa: E402


@pytest.fixture()
def db_session():
    engine = make_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def api_client(db_session):
    """TestClient whose read and write dependencies hand out `db_session`."""
    from fastapi.testclient import TestClient

    from hssedb.main import app

    def _session():
        yield db_session

    app.dependency_overrides[get_read_db] = _session
    app.dependency_overrides[get_write_db] = _session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
