import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.services.data_source_service import DataSourceRegistry, SOURCE_MODELS  # noqa: E402


OWNER_ID = 1
OTHER_USER_ID = 2


class RecordStore:
    """In-memory records behind a DataSourceRegistry"""

    def __init__(self):
        self.records = {source_id: [] for source_id in SOURCE_MODELS}
        self.fetch_count = 0
        self.registry = DataSourceRegistry()
        for source_id in self.records:
            self.registry.register(source_id, self._fetcher(source_id))

    def _fetcher(self, source_id):
        def fetch(filters, date_range=None):
            self.fetch_count += 1
            return [dict(record) for record in self.records[source_id]]
        return fetch

    def add(self, source_id, *records):
        self.records[source_id].extend(records)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def client(session_factory, store):
    from fastapi.testclient import TestClient

    from app.api import deps
    from server import app

    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_data_source_registry] = lambda: store.registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user_id=OWNER_ID):
    """Bearer header with a token signed the way the authentication service signs it"""
    from jose import jwt

    from app.core.config import settings
    from app.core.security import ALGORITHM

    claims = {"sub": str(user_id), "exp": datetime.utcnow() + timedelta(hours=1)}
    return {"Authorization": f"Bearer {jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)}"}


@pytest.fixture
def headers():
    return auth_headers(OWNER_ID)


@pytest.fixture
def other_headers():
    return auth_headers(OTHER_USER_ID)
