"""
Knowledge base endpoints: severe-condition seeding, document ingestion,
status and removal.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core import audit
from core.api.deps import get_current_user_context
from core.db import schemas
from core.db.database import get_db
from core.db.repositories.knowledge import SOURCE_TYPES
from core.services.knowledge_service import get_knowledge_service
from core.services.safety.severe_conditions import list_severe_conditions, seed_severe_conditions
from core.services.safety.severity_detection import get_severity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])


@router.post("/seed-conditions")
def seed_conditions(db: Session = Depends(get_db), user_context=Depends(get_current_user_context)):
    counts = seed_severe_conditions(db)
    get_severity_service().clear_cache()
    return {
        "success": True,
        "seeded": counts["total"],
        "created": counts["created"],
        "updated": counts["updated"],
        "message": f"Seeded {counts['created']} new conditions, updated {counts['updated']} existing",
    }


@router.get("/seed-conditions")
def get_seeded_conditions(db: Session = Depends(get_db), user_context=Depends(get_current_user_context)):
    conditions = [schemas.SevereConditionOut.model_validate(c).to_api() for c in list_severe_conditions(db)]
    return {"conditions": conditions, "count": len(conditions)}


def _ingest(db: Session, payload):
    service = get_knowledge_service()
    if payload.type == "fda":
        return service.ingest_fda_drug_labels(db, [d.to_api() for d in payload.drugs])
    if payload.type == "pubmed":
        return service.ingest_pubmed_articles(db, [q.to_api() for q in payload.queries])
    if payload.type == "guidelines":
        return service.ingest_clinical_guidelines(db, [g.to_api() for g in payload.guidelines])
    return service.ingest_drug_interactions(db, [i.to_api() for i in payload.interactions])


@router.post("/ingest")
def ingest(
    payload: schemas.IngestRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    result = _ingest(db, payload)
    logger.info(
        "Knowledge ingestion type=%s documents=%d chunks=%d errors=%d",
        payload.type,
        result.documents_ingested,
        result.chunks_created,
        len(result.errors),
    )
    audit.log(
        db,
        audit.AuditEventType.KNOWLEDGE_INGEST,
        f"Knowledge ingestion: {payload.type}",
        user_id=user.id,
        session_id=current_user["session_id"],
        resource_type="knowledge_base",
        details=result.to_api(),
        success=not result.errors or result.documents_ingested > 0,
    )
    return {"success": True, "result": result.to_api()}


@router.get("/status")
def knowledge_status(db: Session = Depends(get_db), user_context=Depends(get_current_user_context)):
    return get_knowledge_service().get_status(db)


@router.delete("")
def clear_knowledge(
    source_type: Optional[str] = Query(default=None, alias="sourceType"),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    if source_type is not None and source_type not in SOURCE_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid sourceType: {source_type}")
    deleted = get_knowledge_service().clear(db, source_type)
    return {"success": True, "deletedCount": deleted, "sourceType": source_type or "all"}


@router.delete("/{document_id}")
def delete_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    if not get_knowledge_service().delete_document(db, document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "deletedId": str(document_id)}
