import uuid

from core.db import models
from core.services.safety.severe_conditions import SEVERE_CONDITIONS

GUIDELINE = {
    "title": "Acute Low Back Pain",
    "content": "First-line therapy for acute low back pain is NSAIDs or acetaminophen with activity as tolerated.",
    "source": "ACP",
    "category": "musculoskeletal",
    "severityRelevance": ["STANDARD"],
}


def _ingest_guideline(client, **overrides):
    return client.post("/api/knowledge/ingest", json={"type": "guidelines", "guidelines": [{**GUIDELINE, **overrides}]})


def test_knowledge_requires_authentication(client):
    assert client.get("/api/knowledge/status").status_code == 401


def test_seed_conditions_is_idempotent(authed_client):
    r = authed_client.post("/api/knowledge/seed-conditions")
    assert r.status_code == 200, r.text
    first = r.json()
    assert first["success"] is True
    assert first["created"] == len(SEVERE_CONDITIONS)
    assert first["updated"] == 0

    second = authed_client.post("/api/knowledge/seed-conditions").json()
    assert second["created"] == 0
    assert second["updated"] == len(SEVERE_CONDITIONS)
    assert second["seeded"] == len(SEVERE_CONDITIONS)

    body = authed_client.get("/api/knowledge/seed-conditions").json()
    assert body["count"] == len(SEVERE_CONDITIONS)
    assert {"conditionName", "riskCategory", "autoEscalate"} <= set(body["conditions"][0])


def test_ingest_guidelines_and_status(authed_client, db):
    r = _ingest_guideline(authed_client)
    assert r.status_code == 200, r.text
    result = r.json()["result"]
    assert result["documentsIngested"] == 1
    assert result["chunksCreated"] == 1
    assert result["sourceType"] == "clinical_guideline"

    entry = db.query(models.AuditLog).filter(models.AuditLog.event_type == "knowledge_ingest").one()
    assert entry.resource_type == "knowledge_base"
    assert entry.action == "Knowledge ingestion: guidelines"

    status = authed_client.get("/api/knowledge/status").json()
    assert status["totalDocuments"] == 1
    assert status["bySourceType"]["clinical_guideline"] == 1
    assert status["embeddingsEnabled"] is False


def test_ingest_rejects_unknown_type(authed_client):
    r = authed_client.post("/api/knowledge/ingest", json={"type": "wiki", "pages": []})
    assert r.status_code == 400


def test_delete_document(authed_client, db):
    _ingest_guideline(authed_client)
    doc = db.query(models.KnowledgeDocument).one()

    r = authed_client.delete(f"/api/knowledge/{doc.id}")
    assert r.status_code == 200
    assert r.json() == {"success": True, "deletedId": str(doc.id)}

    r = authed_client.delete(f"/api/knowledge/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["detail"] == "Document not found"


def test_clear_by_source_type(authed_client):
    _ingest_guideline(authed_client)
    _ingest_guideline(authed_client, title="Migraine Management", source="AHS")
    authed_client.post("/api/knowledge/ingest", json={
        "type": "interactions",
        "interactions": [{
            "drug1": "Warfarin",
            "drug2": "Aspirin",
            "severity": "major",
            "description": "Increased bleeding risk.",
            "recommendation": "Avoid combination.",
        }],
    })

    r = authed_client.delete("/api/knowledge", params={"sourceType": "clinical_guideline"})
    assert r.json() == {"success": True, "deletedCount": 2, "sourceType": "clinical_guideline"}

    r = authed_client.delete("/api/knowledge")
    assert r.json() == {"success": True, "deletedCount": 1, "sourceType": "all"}

    r = authed_client.delete("/api/knowledge", params={"sourceType": "blog"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid sourceType: blog"
