# coin_wallet/db.py
import os
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

# -----------------------------------------------------------------------------
# Build & normalize DATABASE_URL
#   - Accepts postgres:// or postgresql://; converts to postgresql+psycopg://
#   - Appends ?sslmode=require for non-local connections if not present
# -----------------------------------------------------------------------------

def _normalize_db_url(raw: Optional[str]) -> str:
    db_url = (raw or "").strip()

    if not db_url:
        # Local dev falls back to a SQLite file next to the process.
        return "sqlite:///./app.db"

    db_url = db_url.replace("postgres://", "postgresql://", 1)

    # psycopg (v3) unless a driver is already named
    if db_url.startswith("postgresql://") and "+psycopg" not in db_url and "+psycopg2" not in db_url:
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)

    # Hosted Postgres (Supabase/Render/Neon) requires SSL.
    is_local = "localhost" in db_url or "127.0.0.1" in db_url
    if db_url.startswith("postgresql") and not is_local and "sslmode=" not in db_url:
        db_url += ("&" if "?" in db_url else "?") + "sslmode=require"

    return db_url


DATABASE_URL = _normalize_db_url(os.getenv("DATABASE_URL"))

# -----------------------------------------------------------------------------
# SQLAlchemy setup
# -----------------------------------------------------------------------------

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,   # drop dead connections before issuing queries
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session and ensures close."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create tables if they don't exist yet."""
    from . import models  # noqa: F401  (registers the tables on Base)
    Base.metadata.create_all(bind=bind or engine)
