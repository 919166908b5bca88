# marketboard/db.py
from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import StoreError

logger = logging.getLogger(__name__)


def make_engine(url: str):
    # sqlite needs check_same_thread=False for the threadpool FastAPI runs sync routes in
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            future=True,
        )
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    return create_engine(url, pool_pre_ping=True, future=True)


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def init_db(bind=None) -> None:
    """Create all tables. Migrations are expected to take over in production."""
    from .models import Base  # registers every table

    Base.metadata.create_all(bind=bind or engine)


def commit_or_fail(db: Session, what: str) -> None:
    """Commit, or roll back and raise StoreError so nothing is half applied."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("store failure while %s", what)
        raise StoreError(f"could not {what}, try again") from e


def flush_or_fail(db: Session, what: str) -> None:
    """Flush pending rows (to get ids), same failure contract as commit_or_fail."""
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("store failure while %s", what)
        raise StoreError(f"could not {what}, try again") from e


# ---------- Dependency ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
