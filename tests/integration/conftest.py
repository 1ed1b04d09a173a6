"""Docker-backed Postgres fixtures (skipped when docker is unavailable)."""
from __future__ import annotations

import os
from pathlib import Path

import pytest
from alembic.config import Config


@pytest.fixture
def postgres_url(monkeypatch):
    if os.getenv("SKIP_DOCKER_TESTS") == "1":
        pytest.skip("SKIP_DOCKER_TESTS=1")
    postgres = pytest.importorskip("testcontainers.postgres")
    # Needs the pgvector extension available in the server image
    image = os.getenv("TEST_POSTGRES_IMAGE", "pgvector/pgvector:pg16")
    try:
        container = postgres.PostgresContainer(image, driver=None)
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available: {exc}")
    try:
        url = container.get_connection_url()
        # env.py prefers these over the ini url
        monkeypatch.setenv("DATABASE_URL", url)
        monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
        yield url
    finally:
        container.stop()


@pytest.fixture
def alembic_config(postgres_url) -> Config:
    """Alembic config pointing at the service migrations and the container."""
    service_root = Path(__file__).resolve().parents[2]
    cfg = Config(str(service_root / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", postgres_url)
    cfg.set_main_option("script_location", str(service_root / "migrations"))
    return cfg
