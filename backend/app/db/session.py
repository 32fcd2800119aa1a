from contextlib import contextmanager
from typing import Callable, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

SQLALCHEMY_DATABASE_URL = settings.sqlalchemy_database_uri

engine = create_engine(SQLALCHEMY_DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(session_factory: Optional[Callable[[], Session]] = None):
    """
    Database session context manager.

    For code that runs outside FastAPI dependency injection (the scheduled
    report sweep, live dashboard sessions). The session is always closed,
    even when the block raises.

    Usage:
        with get_db_session() as db:
            reports = crud.crud_scheduled_report.get_due(db, now=now)
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()
