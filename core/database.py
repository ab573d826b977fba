import logging
from typing import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from core.config import settings

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


# ============================================================
# ✅ Engine
# ============================================================
def build_engine(url: str):
    """
    SQLite for local dev and tests, PostgreSQL in production.
    An in-memory SQLite database lives on a single shared connection.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_URLS:
            kwargs["poolclass"] = StaticPool
        logger.info("🗄️ Using SQLite database (%s)", url)
        return create_engine(url, echo=False, **kwargs)

    # pool_pre_ping avoids stale PostgreSQL connections
    return create_engine(url, echo=False, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)


# ============================================================
# ✅ Schema
# ============================================================
def create_db_and_tables(bind=None) -> None:
    """Create every table registered on SQLModel.metadata (runs at startup)."""
    import models.models  # noqa: F401

    try:
        SQLModel.metadata.create_all(bind or engine)
        logger.info("✅ All database tables created successfully.")
    except Exception as e:
        logger.error(f"❌ Failed to create tables: {e}")
        raise


# ============================================================
# ✅ Dependency: one session per request
# ============================================================
def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
