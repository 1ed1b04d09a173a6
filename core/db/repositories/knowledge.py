"""
Knowledge-base document and severe-condition repositories.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from core.db import models

SOURCE_TYPES = ("clinical_guideline", "drug_label", "pubmed", "interaction")


def upsert_document(
    db: Session,
    *,
    source_type: str,
    source_id: str,
    title: str,
    content: str,
    chunk_index: int = 0,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> models.KnowledgeDocument:
    """Insert a chunk or replace the one already stored under (source_type, source_id)."""
    doc = (
        db.query(models.KnowledgeDocument)
        .filter(
            models.KnowledgeDocument.source_type == source_type,
            models.KnowledgeDocument.source_id == source_id,
        )
        .first()
    )
    if doc is None:
        doc = models.KnowledgeDocument(source_type=source_type, source_id=source_id)
        db.add(doc)
    doc.title = title
    doc.content = content
    doc.chunk_index = chunk_index
    doc.metadata_json = metadata or {}
    doc.embedding = None
    if commit:
        db.commit()
        db.refresh(doc)
    else:
        db.flush()
    return doc


def get_document(db: Session, *, document_id: uuid.UUID) -> Optional[models.KnowledgeDocument]:
    return (
        db.query(models.KnowledgeDocument)
        .filter(models.KnowledgeDocument.id == document_id)
        .first()
    )


def list_documents(db: Session, *, source_type: Optional[str] = None) -> List[models.KnowledgeDocument]:
    query = db.query(models.KnowledgeDocument)
    if source_type:
        query = query.filter(models.KnowledgeDocument.source_type == source_type)
    return query.order_by(models.KnowledgeDocument.created_at.asc()).all()


def nearest_documents_query(
    db: Session,
    *,
    query_vector: Sequence[float],
    max_distance: float,
    limit: int,
    source_type: Optional[str] = None,
) -> Query:
    """Embedded chunks within ``max_distance`` (pgvector cosine distance), nearest first."""
    distance = models.KnowledgeDocument.embedding.cosine_distance(list(query_vector)).label("distance")
    query = db.query(models.KnowledgeDocument, distance).filter(models.KnowledgeDocument.embedding.isnot(None))
    if source_type:
        query = query.filter(models.KnowledgeDocument.source_type == source_type)
    return (
        query.filter(distance <= max_distance)
        .order_by(distance.asc(), models.KnowledgeDocument.created_at.desc())
        .limit(limit)
    )


def nearest_documents(db: Session, **kwargs: Any) -> List[Tuple[models.KnowledgeDocument, float]]:
    return [(doc, float(distance)) for doc, distance in nearest_documents_query(db, **kwargs).all()]


def delete_document(db: Session, *, document: models.KnowledgeDocument) -> None:
    db.delete(document)
    db.commit()


def delete_by_source_type(db: Session, *, source_type: str) -> int:
    deleted = (
        db.query(models.KnowledgeDocument)
        .filter(models.KnowledgeDocument.source_type == source_type)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def count_by_source_type(db: Session) -> Dict[str, int]:
    counts = {source_type: 0 for source_type in SOURCE_TYPES}
    rows = (
        db.query(models.KnowledgeDocument.source_type, func.count(models.KnowledgeDocument.id))
        .group_by(models.KnowledgeDocument.source_type)
        .all()
    )
    for source_type, count in rows:
        counts[source_type] = int(count)
    return counts


def count_severe_conditions(db: Session) -> int:
    return db.query(func.count(models.SevereCondition.id)).scalar() or 0
