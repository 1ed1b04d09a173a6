from __future__ import annotations

import pytest
from alembic import command
from sqlalchemy import create_engine, inspect, text

EXPECTED_TABLES = {
    "users",
    "doctor_profiles",
    "verification_tokens",
    "session_tokens",
    "patients",
    "treatment_plans",
    "audit_logs",
    "severe_conditions",
    "knowledge_documents",
}


@pytest.mark.e2e
def test_upgrade_and_downgrade_cycle(alembic_config, postgres_url) -> None:
    """Migrations upgrade from base to head and cleanly downgrade back to base."""
    engine = create_engine(postgres_url)

    command.upgrade(alembic_config, "head")
    tables = set(inspect(engine).get_table_names())
    assert EXPECTED_TABLES <= tables

    columns = {c["name"] for c in inspect(engine).get_columns("audit_logs")}
    assert {"event_type", "severity", "phi_accessed", "phi_fields"} <= columns

    with engine.connect() as conn:
        udt = conn.execute(text(
            "SELECT udt_name FROM information_schema.columns "
            "WHERE table_name = 'knowledge_documents' AND column_name = 'embedding'"
        )).scalar()
    assert udt == "vector"

    command.downgrade(alembic_config, "base")
    assert not EXPECTED_TABLES & set(inspect(engine).get_table_names())

    command.upgrade(alembic_config, "head")
    engine.dispose()
