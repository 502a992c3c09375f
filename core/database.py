from contextlib import contextmanager
from typing import Dict, Generator, Iterator
import logging

from sqlmodel import SQLModel, Session, create_engine, func, select

from core.config import settings

logger = logging.getLogger(__name__)

# ============================================================
# ✅ Engine (SQLite for local dev, PostgreSQL in prod)
# ============================================================
DATABASE_URL = settings.DATABASE_URL
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# SQLite connections are shared with FastAPI's worker threads
connect_args = {"check_same_thread": False} if IS_SQLITE else {}

engine = create_engine(
    DATABASE_URL,
    echo=settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG",
    pool_pre_ping=True,
    connect_args=connect_args,
)


# ============================================================
# ✅ Schema
# ============================================================
def create_db_and_tables() -> None:
    """Create every table (and the partial unique indexes) declared in models.models."""
    import models.models  # noqa: F401

    try:
        SQLModel.metadata.create_all(engine)
        logger.info("Database schema ready (%s).", "sqlite" if IS_SQLITE else engine.dialect.name)
    except Exception:
        logger.exception("Failed to create database schema")
        raise


# ============================================================
# ✅ Sessions
# ============================================================
def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts outside a request; rolls back on error."""
    session = Session(engine)
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ============================================================
# ✅ Pagination
# ============================================================
def paginate(session: Session, statement, page: int = 1, limit: int = 20) -> Dict:
    """One page of `statement`'s rows; `total` counts every matching row."""
    total = session.exec(select(func.count()).select_from(statement.order_by(None).subquery())).one()
    items = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": -(-total // limit),
    }
