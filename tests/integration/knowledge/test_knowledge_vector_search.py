from __future__ import annotations

import pytest
from alembic import command
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.db import models
from core.services.embedding_service import EmbeddingConfig, EmbeddingService
from core.services.knowledge_service import KnowledgeService


@pytest.mark.e2e
def test_search_ranks_by_pgvector_distance(alembic_config, postgres_url):
    command.upgrade(alembic_config, "head")
    engine = create_engine(postgres_url)
    session = sessionmaker(bind=engine)()
    service = KnowledgeService(embeddings=EmbeddingService(EmbeddingConfig(provider="mock", dimension=32)))
    try:
        service.ingest_clinical_guidelines(session, [
            {"title": "Gout", "content": "Colchicine for acute flares."},
            {"title": "Asthma", "content": "Inhaled corticosteroids for persistent asthma."},
            {"title": "Migraine", "content": "Triptans abort acute migraine attacks."},
        ])
        stored = session.query(models.KnowledgeDocument).filter(models.KnowledgeDocument.title == "Gout").one()
        assert len(stored.embedding) == 32
        assert all(isinstance(v, float) for v in stored.embedding)

        matches = service.search_similar(session, "Gout Colchicine for acute flares.", match_threshold=0.99)
        assert [m["sourceName"] for m in matches] == ["Gout"]
        assert matches[0]["similarity"] == pytest.approx(1.0, abs=1e-4)

        everything = service.search_similar(session, "Asthma Inhaled corticosteroids for persistent asthma.",
                                             match_threshold=-1.0, match_count=2)
        assert len(everything) == 2
        assert everything[0]["sourceName"] == "Asthma"
        assert everything[0]["similarity"] >= everything[1]["similarity"]
    finally:
        session.close()
        engine.dispose()
