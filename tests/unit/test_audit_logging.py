import csv
import io
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from core import audit
from core.db import models


@pytest.mark.parametrize(
    "event,success,expected",
    [
        ("authorization_failure", False, "critical"),
        ("safety_alert", False, "critical"),
        ("login_failed", False, "warning"),
        ("patient_access", False, "error"),
        ("safety_alert", True, "warning"),
        ("patient_delete", True, "warning"),
        ("treatment_plan_delete", True, "warning"),
        ("error", True, "error"),
        ("patient_access", True, "info"),
        (audit.AuditEventType.LOGIN, True, "info"),
    ],
)
def test_determine_severity(event, success, expected):
    assert audit.determine_severity(event, success) == expected


def test_log_persists_normalized_entry(db):
    user_id = uuid.uuid4()
    row = audit.log(
        db,
        audit.AuditEventType.PATIENT_ACCESS,
        "Patient view",
        user_id=str(user_id),
        patient_id="not-a-uuid",
        resource_id=123,
        duration_ms=12.7,
    )
    assert row is not None
    assert row.user_id == user_id
    assert row.patient_id is None
    assert row.resource_id == "123"
    assert row.duration_ms == 12
    assert row.severity == "info"
    assert row.details == {}
    assert row.phi_fields == []


def test_log_respects_explicit_severity(db):
    row = audit.log(db, "error", "Boom", success=False, severity=audit.AuditSeverity.WARNING)
    assert row.severity == "warning"


def test_log_disabled_by_flag(db, monkeypatch):
    from core.utils.feature_flags import refresh_feature_flag_cache

    monkeypatch.setenv("AUDIT_LOGGING_ENABLED", "false")
    refresh_feature_flag_cache()
    assert audit.log(db, "login", "User logged in") is None
    assert db.query(models.AuditLog).count() == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"details": {"payload": object()}},
        {"duration_ms": "fast"},
    ],
)
def test_log_swallows_unpersistable_entries(db, caplog, kwargs):
    with caplog.at_level("ERROR", logger="core.audit"):
        assert audit.log(db, "patient_access", "Viewed patient", **kwargs) is None
    assert "audit_persist_failed: event=patient_access" in caplog.text
    assert db.query(models.AuditLog).count() == 0

    # The session is still usable for the rest of the request
    assert audit.log(db, "patient_access", "Viewed patient") is not None


def test_wrappers_set_event_types(db):
    user_id = uuid.uuid4()
    patient_id = uuid.uuid4()
    failed = audit.log_login(db, user_id=None, email="x@example.com", success=False, error_message="Invalid credentials")
    assert failed.event_type == "login_failed"
    assert failed.severity == "warning"

    listed = audit.log_patient_access(db, "list", user_id=user_id)
    assert listed.event_type == "patient_list"
    assert listed.phi_accessed is False
    assert listed.phi_fields == ["patient_record"]

    approved = audit.log_treatment_plan_action(
        db, "approve", user_id=user_id, patient_id=patient_id, plan_id=uuid.uuid4(), modifications=["status"]
    )
    assert approved.event_type == "treatment_plan_approve"
    assert approved.details["modifications"] == ["status"]

    alert = audit.log_safety_alert(db, "interaction", severity="critical", details={"drugs": ["a", "b"]})
    assert alert.severity == "critical"
    assert alert.details["alertType"] == "interaction"

    response = audit.log_ai_interaction(
        db,
        "response",
        user_id=user_id,
        session_id="sess",
        ai_details={"requestId": "req-1", "safetyAlertsTriggered": 2},
        patient_id=patient_id,
    )
    assert response.event_type == "ai_response"
    assert response.severity == "warning"
    assert response.resource_id == "req-1"

    phi = audit.log_phi_operation(db, "deidentify", user_id=user_id, session_id="sess", fields_processed=["name"])
    assert phi.event_type == "phi_deidentify"
    assert phi.phi_fields == ["name"]


def test_search_is_scoped_and_paginated(db):
    mine = uuid.uuid4()
    other = uuid.uuid4()
    for i in range(3):
        audit.log(db, "patient_access", f"view {i}", user_id=mine)
    audit.log(db, "patient_access", "other view", user_id=other)
    audit.log(db, "login_failed", "Login failed", user_id=mine, success=False)

    result = audit.search(db, user_id=mine, limit=2)
    assert result["total"] == 4
    assert len(result["logs"]) == 2
    assert all(entry["userId"] == str(mine) for entry in result["logs"])

    failed = audit.search(db, user_id=mine, success=False)
    assert failed["total"] == 1
    assert failed["logs"][0]["eventType"] == "login_failed"

    warnings = audit.search(db, user_id=mine, severity=["warning"])
    assert warnings["total"] == 1


def test_get_stats(db):
    user_id = uuid.uuid4()
    audit.log(db, "ai_analysis", "AI analysis", user_id=user_id, duration_ms=100, phi_accessed=True)
    audit.log(db, "ai_request", "AI request", user_id=user_id, duration_ms=300)
    audit.log(db, "login_failed", "Login failed", user_id=user_id, success=False)
    audit.log(db, "patient_list", "Patient list", user_id=user_id)

    stats = audit.get_stats(db, user_id=user_id)
    assert stats["totalEvents"] == 4
    assert stats["eventsByType"]["ai_analysis"] == 1
    assert stats["eventsBySeverity"] == {"info": 3, "warning": 1}
    assert stats["successRate"] == 0.75
    assert stats["phiAccessCount"] == 1
    assert stats["aiInteractionCount"] == 2
    assert stats["averageResponseTime"] == 200


def test_get_stats_empty_window(db):
    stats = audit.get_stats(db, user_id=uuid.uuid4())
    assert stats["totalEvents"] == 0
    assert stats["successRate"] == 1
    assert stats["averageResponseTime"] == 0


def test_export_csv_and_json(db):
    user_id = uuid.uuid4()
    audit.log(db, "patient_access", "Patient view", user_id=user_id, duration_ms=5)
    start = datetime.now(timezone.utc) - timedelta(days=1)
    end = datetime.now(timezone.utc) + timedelta(days=1)

    body = audit.export_for_compliance(db, start_date=start, end_date=end, user_id=user_id, fmt="csv")
    rows = list(csv.reader(io.StringIO(body)))
    assert rows[0] == audit.EXPORT_CSV_COLUMNS
    assert len(rows) == 2
    assert rows[1][2] == "patient_access"
    assert rows[1][7] == "true"
    assert rows[1][9] == "5"

    # The CSV export itself was audited, so the JSON export sees both rows
    exported = json.loads(audit.export_for_compliance(db, start_date=start, end_date=end, user_id=user_id))
    event_types = {entry["eventType"] for entry in exported}
    assert event_types == {"patient_access", "data_export"}
