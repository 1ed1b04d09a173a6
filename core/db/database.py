"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration and exposes the
``get_db`` FastAPI dependency. Under pytest the engine falls back to an
in-memory SQLite database so unit tests need no running Postgres.
"""
import os
import sys
from typing import Any, Dict, Tuple

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    parts = {
        "POSTGRES_USER": os.getenv("POSTGRES_USER"),
        "POSTGRES_PASSWORD": os.getenv("POSTGRES_PASSWORD"),
        "POSTGRES_HOST": os.getenv("POSTGRES_HOST"),
        "POSTGRES_PORT": os.getenv("POSTGRES_PORT"),
        "POSTGRES_DB": os.getenv("POSTGRES_DB"),
    }
    missing = [name for name, value in parts.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{parts['POSTGRES_USER']}:{parts['POSTGRES_PASSWORD']}"
        f"@{parts['POSTGRES_HOST']}:{parts['POSTGRES_PORT']}/{parts['POSTGRES_DB']}"
    )


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so module import
    during collection is detected through ``sys.modules`` instead.
    ``PYTEST_RUNNING=1`` forces the test behaviour explicitly.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


def _resolve_engine_config() -> Tuple[str, Dict[str, Any]]:
    # Test override order:
    # 1. HEALY_TEST_DB
    # 2. TEST_DATABASE_URL (migration tests against a real Postgres)
    # 3. pytest runtime -> in-memory sqlite shared through StaticPool
    explicit_test_db = os.getenv("HEALY_TEST_DB")
    if explicit_test_db:
        kwargs = {"connect_args": {"check_same_thread": False}} if explicit_test_db.startswith("sqlite") else {}
        return explicit_test_db, kwargs
    explicit_e2e_db = os.getenv("TEST_DATABASE_URL")
    if explicit_e2e_db:
        return explicit_e2e_db, {}
    if _is_pytest_runtime():
        return "sqlite+pysqlite:///:memory:", {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return _get_database_url(), {}


DATABASE_URL, _engine_kwargs = _resolve_engine_config()

engine = create_engine(DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_SCHEMA_INIT_DONE = False


def _ensure_sqlite_schema() -> None:
    """Create tables once for SQLite URLs; Postgres schemas come from Alembic."""
    global _SCHEMA_INIT_DONE
    if _SCHEMA_INIT_DONE:
        return
    if str(engine.url).startswith("sqlite"):
        from core.db import models  # local import to avoid a cycle at module load

        models.Base.metadata.create_all(bind=engine)
    _SCHEMA_INIT_DONE = True


def get_db():
    """Dependency to get a database session."""
    _ensure_sqlite_schema()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
