"""Business logic services package with public service helpers."""

from .embedding_service import (
    EmbeddingConfig,
    EmbeddingService,
    get_embedding_service,
    reset_embedding_service_for_tests,
)
from .knowledge_service import (
    KnowledgeService,
    get_knowledge_service,
    reset_knowledge_service_for_tests,
)

__all__ = [
    "EmbeddingConfig",
    "EmbeddingService",
    "get_embedding_service",
    "reset_embedding_service_for_tests",
    "KnowledgeService",
    "get_knowledge_service",
    "reset_knowledge_service_for_tests",
]
