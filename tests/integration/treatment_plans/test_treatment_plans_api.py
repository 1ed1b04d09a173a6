import uuid

import pytest

from core.db import models
from core.services import analysis_service
from core.utils.feature_flags import refresh_feature_flag_cache


def _analyze_payload(patient, **overrides):
    payload = {
        "patient": {
            "id": str(patient.id),
            "name": patient.name,
            "dateOfBirth": patient.date_of_birth.isoformat(),
            "gender": patient.gender,
            "allergies": list(patient.allergies),
            "chronicConditions": list(patient.chronic_conditions),
        },
        "chiefComplaint": "Lower back pain after lifting",
        "currentSymptoms": ["back pain", "stiffness"],
        "currentMedications": [],
        "vitalSigns": {"heartRate": 78, "temperature": 98.4},
    }
    payload.update(overrides)
    return payload


def _events(db, event_type):
    return db.query(models.AuditLog).filter(models.AuditLog.event_type == event_type).all()


def test_create_plan_for_own_patient(authed_client, db, doctor, patient_factory):
    patient = patient_factory(doctor)
    r = authed_client.post("/api/treatment-plans", json={
        "patientId": str(patient.id),
        "chiefComplaint": "Cough",
        "currentSymptoms": "dry cough, fatigue",
        "riskLevel": "MEDIUM",
        "aiRecommendations": {"medications": []},
    })
    assert r.status_code == 201, r.text
    plan = r.json()["treatmentPlan"]
    assert plan["status"] == "DRAFT"
    assert plan["riskLevel"] == "MEDIUM"
    assert plan["patient"]["name"] == patient.name

    entry = _events(db, "treatment_plan_create")[0]
    assert entry.details["aiGenerated"] is True


@pytest.mark.parametrize("patient_id", ["not-a-uuid", None])
def test_create_plan_unknown_patient(authed_client, doctor_factory, patient_factory, patient_id):
    if patient_id is None:
        patient_id = str(patient_factory(doctor_factory()).id)
    r = authed_client.post("/api/treatment-plans", json={
        "patientId": patient_id,
        "chiefComplaint": "Cough",
        "currentSymptoms": "cough",
    })
    assert r.status_code == 404
    assert r.json()["detail"] == "Patient not found"


def test_list_plans_filters(authed_client, doctor, doctor_factory, patient_factory, plan_factory):
    jane = patient_factory(doctor, name="Jane Roe")
    mark = patient_factory(doctor, name="Mark Poe")
    plan_factory(doctor, jane, chief_complaint="Migraine", risk_level="HIGH")
    plan_factory(doctor, mark, chief_complaint="Sprained ankle", status="APPROVED")
    other = doctor_factory()
    plan_factory(other, patient_factory(other), chief_complaint="Migraine")

    body = authed_client.get("/api/treatment-plans").json()
    assert body["total"] == 2
    assert body["totalPages"] == 1

    body = authed_client.get("/api/treatment-plans", params={"search": "mark"}).json()
    assert [p["chiefComplaint"] for p in body["plans"]] == ["Sprained ankle"]

    body = authed_client.get("/api/treatment-plans", params={"status": "DRAFT", "riskLevel": "HIGH"}).json()
    assert [p["chiefComplaint"] for p in body["plans"]] == ["Migraine"]

    body = authed_client.get("/api/treatment-plans", params={"patientId": str(mark.id), "status": "ALL"}).json()
    assert body["total"] == 1


def test_foreign_plan_reads_as_missing(authed_client, doctor_factory, patient_factory, plan_factory):
    other = doctor_factory()
    plan = plan_factory(other, patient_factory(other))
    for method in ("get", "delete"):
        r = getattr(authed_client, method)(f"/api/treatment-plans/{plan.id}")
        assert r.status_code == 404
        assert r.json()["detail"] == "Treatment plan not found"
    assert authed_client.get(f"/api/treatment-plans/{uuid.uuid4()}").status_code == 404


def test_approve_sets_timestamp_and_audits(authed_client, db, doctor, patient_factory, plan_factory):
    plan = plan_factory(doctor, patient_factory(doctor))

    r = authed_client.patch(f"/api/treatment-plans/{plan.id}", json={
        "status": "APPROVED",
        "finalPlan": {"medications": [{"name": "Acetaminophen"}]},
    })
    assert r.status_code == 200, r.text
    updated = r.json()["treatmentPlan"]
    assert updated["status"] == "APPROVED"
    assert updated["approvedAt"] is not None
    assert updated["wasModified"] is True

    approve = _events(db, "treatment_plan_approve")
    assert len(approve) == 1
    assert approve[0].details["modifications"] == ["final_plan", "status"]


def test_reject_and_plain_update_actions(authed_client, db, doctor, patient_factory, plan_factory):
    plan = plan_factory(doctor, patient_factory(doctor))

    authed_client.patch(f"/api/treatment-plans/{plan.id}", json={"physicalExamNotes": "Clear lungs"})
    authed_client.patch(f"/api/treatment-plans/{plan.id}", json={"status": "REJECTED"})

    assert len(_events(db, "treatment_plan_update")) == 1
    assert len(_events(db, "treatment_plan_reject")) == 1


def test_only_draft_plans_can_be_deleted(authed_client, db, doctor, patient_factory, plan_factory):
    patient = patient_factory(doctor)
    approved = plan_factory(doctor, patient, status="APPROVED")
    draft = plan_factory(doctor, patient)

    r = authed_client.delete(f"/api/treatment-plans/{approved.id}")
    assert r.status_code == 400
    assert r.json()["detail"] == "Only draft treatment plans can be deleted"

    r = authed_client.delete(f"/api/treatment-plans/{draft.id}")
    assert r.status_code == 200
    db.expire_all()
    assert db.query(models.TreatmentPlan).count() == 1
    assert _events(db, "treatment_plan_delete")[0].severity == "warning"


def test_analyze_returns_mock_analysis(authed_client, db, doctor, patient_factory):
    patient = patient_factory(doctor, chronic_conditions=["Chronic Kidney Disease"])

    r = authed_client.post("/api/treatment-plans/analyze", json=_analyze_payload(patient, useRAG=True))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["usedRAG"] is True
    analysis = body["analysis"]
    assert analysis["medications"][0]["genericName"] == "Acetaminophen"
    assert analysis["severityAssessment"]["severityLevel"] == "STANDARD"
    assert "safetyValidation" not in analysis

    entry = _events(db, "ai_analysis")[0]
    assert entry.success is True
    assert entry.phi_accessed is True


def test_analyze_runs_cascade_when_enabled(authed_client, doctor, patient_factory, monkeypatch):
    monkeypatch.setenv("SAFETY_CASCADE_ENABLED", "true")
    monkeypatch.setenv("EXTERNAL_VALIDATION_ENABLED", "false")
    refresh_feature_flag_cache()

    patient = patient_factory(doctor)
    r = authed_client.post("/api/treatment-plans/analyze", json=_analyze_payload(patient))
    assert r.status_code == 200, r.text
    validation = r.json()["analysis"]["safetyValidation"]
    assert validation["isApproved"] is True
    assert validation["sources"] == []
    assert validation["requiresManualReview"] is False


def test_analyze_failure_is_audited(authed_client, db, doctor, patient_factory, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("model offline")

    monkeypatch.setattr(analysis_service, "analyze_treatment", boom)
    patient = patient_factory(doctor)

    r = authed_client.post("/api/treatment-plans/analyze", json=_analyze_payload(patient))
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to analyze treatment"
    entry = _events(db, "ai_analysis")[0]
    assert entry.success is False
    assert entry.error_message == "model offline"


def test_analyze_requires_chief_complaint(authed_client, doctor, patient_factory):
    patient = patient_factory(doctor)
    r = authed_client.post("/api/treatment-plans/analyze", json=_analyze_payload(patient, chiefComplaint=""))
    assert r.status_code == 400
    assert r.json()["detail"] == "Chief complaint is required"
