"""
CRM Inbox backend
Database module (single-file)

Provides:
- SQLAlchemy engine + SessionLocal
- get_db() generator for FastAPI dependency injection
- test_db_connection() for the health endpoint
"""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.config import load_settings

# ---- Config ----
settings = load_settings()

# ---- Engine + Session ----
engine = create_engine(settings.database_url, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db():
    """
    FastAPI dependency:
    - opens a DB session
    - yields it to the request handler
    - always closes it afterwards
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def test_db_connection() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
