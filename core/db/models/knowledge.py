import uuid
from sqlalchemy import Column, String, Text, Integer, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from core.db.types import EmbeddingVector
from .base import Base, now_utc


class KnowledgeDocument(Base):
    __tablename__ = 'knowledge_documents'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source_type = Column(String(32), nullable=False)  # clinical_guideline|drug_label|pubmed|interaction
    source_id = Column(String(128), nullable=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False, default=0)
    # Use a non-reserved Python attribute name while keeping DB column name 'metadata'
    metadata_json = Column('metadata', JSONB, nullable=True)
    # Absent when no embedding provider is configured
    embedding = Column(EmbeddingVector(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_knowledge_documents_source_type', 'source_type'),
        Index('ix_knowledge_documents_source_id', 'source_id'),
    )
