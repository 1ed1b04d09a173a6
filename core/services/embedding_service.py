"""
Embedding providers for knowledge-base retrieval.

``EMBEDDING_PROVIDER`` selects one of:

* ``api``: a batch endpoint accepting ``{"texts": [...], "normalize": true}``
  and answering ``{"embeddings": [[...]], "model", "dimensions", "tokenCounts"}``
* ``huggingface``: the HuggingFace inference API
* ``mock``: deterministic, unit-length vectors derived from the text
* ``disabled`` (default): no vectors; search falls back to term overlap
"""
from __future__ import annotations

import logging
import math
import os
import re
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests

from core.db import models

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = (3, 60)
MAX_INPUT_CHARS = 8000
DEFAULT_DIMENSION = 384
DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass
class EmbeddingConfig:
    provider: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    dimension: Optional[int] = None

    @classmethod
    def from_env(cls) -> "EmbeddingConfig":
        provider = (os.getenv("EMBEDDING_PROVIDER") or "disabled").strip().lower()
        dimension = os.getenv("EMBEDDING_DIMENSION")
        dim_value = int(dimension) if dimension and dimension.isdigit() else None

        if provider == "api":
            return cls(
                provider=provider,
                model=os.getenv("EMBEDDING_MODEL", DEFAULT_MODEL),
                base_url=os.getenv("EMBEDDING_API_URL"),
                api_key=os.getenv("EMBEDDING_API_KEY"),
                dimension=dim_value,
            )
        if provider in {"huggingface", "hf"}:
            return cls(
                provider="huggingface",
                model=os.getenv("HUGGINGFACE_EMBEDDING_MODEL", DEFAULT_MODEL),
                base_url=os.getenv("HUGGINGFACE_API_BASE", "https://api-inference.huggingface.co"),
                api_key=os.getenv("HUGGINGFACE_API_KEY"),
                dimension=dim_value,
            )
        if provider == "mock":
            return cls(provider=provider, dimension=dim_value or DEFAULT_DIMENSION)
        if provider in {"disabled", "none", "off", ""}:
            return cls(provider="disabled")
        logger.warning("Unknown EMBEDDING_PROVIDER '%s'; embeddings disabled.", provider)
        return cls(provider="disabled")

    @property
    def is_enabled(self) -> bool:
        if self.provider == "disabled":
            return False
        if self.provider == "api" and not self.base_url:
            logger.warning("EMBEDDING_API_URL must be set for the api embedding provider; disabling provider.")
            return False
        if self.provider == "huggingface" and not self.api_key:
            logger.warning("HUGGINGFACE_API_KEY must be set for HuggingFace embeddings; disabling provider.")
            return False
        return True


class BaseEmbeddingProvider:
    dimension: Optional[int] = None

    def embed(self, text: str) -> List[float]:
        raise NotImplementedError

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


def _string_hash(text: str) -> int:
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


class MockEmbeddingProvider(BaseEmbeddingProvider):
    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        self.dimension = dimension

    def embed(self, text: str) -> List[float]:
        if not text:
            return [0.0] * self.dimension
        seed = _string_hash(text)
        values = [math.sin(seed + i) for i in range(self.dimension)]
        norm = math.sqrt(sum(v * v for v in values)) or 1.0
        return [v / norm for v in values]


class BatchApiEmbeddingProvider(BaseEmbeddingProvider):
    """Client for a self-hosted batch embedding endpoint."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, dimension: Optional[int] = None) -> None:
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.dimension = dimension

    def embed(self, text: str) -> List[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        response = requests.post(
            self.base_url,
            headers=headers,
            json={"texts": list(texts), "normalize": True},
            timeout=_DEFAULT_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        vectors = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(vectors, list) or len(vectors) != len(texts):
            raise RuntimeError("Unexpected embedding API response structure")
        if data.get("dimensions"):
            self.dimension = int(data["dimensions"])
        return vectors


class HuggingFaceEmbeddingProvider(BaseEmbeddingProvider):
    def __init__(self, model: str, base_url: str, api_key: str, dimension: Optional[int] = None) -> None:
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.dimension = dimension

    def embed(self, text: str) -> List[float]:
        url = f"{self.base_url}/models/{self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        response = requests.post(url, headers=headers, json={"inputs": text}, timeout=_DEFAULT_TIMEOUT)
        response.raise_for_status()
        payload = response.json()
        vector: Optional[List[float]] = None
        if isinstance(payload, list):
            if payload and isinstance(payload[0], list):
                vector = payload[0]
            elif all(isinstance(x, (int, float)) for x in payload):
                vector = payload
        elif isinstance(payload, dict):
            embeddings = payload.get("embeddings")
            if isinstance(embeddings, list):
                vector = embeddings
            else:
                data = payload.get("data")
                if isinstance(data, list) and data:
                    item = data[0]
                    if isinstance(item, dict) and isinstance(item.get("embedding"), list):
                        vector = item["embedding"]
        if vector is None:
            raise RuntimeError("Unable to parse HuggingFace embedding response")
        return vector


class EmbeddingService:
    """Attach vectors to knowledge documents and embed search queries."""

    def __init__(self, config: Optional[EmbeddingConfig] = None) -> None:
        self.config = config or EmbeddingConfig.from_env()
        self._provider = self._build_provider()
        self._lock = threading.Lock()

    def _build_provider(self) -> Optional[BaseEmbeddingProvider]:
        if not self.config.is_enabled:
            return None
        provider = self.config.provider
        if provider == "api":
            return BatchApiEmbeddingProvider(
                base_url=self.config.base_url or "",
                api_key=self.config.api_key,
                dimension=self.config.dimension,
            )
        if provider == "huggingface":
            return HuggingFaceEmbeddingProvider(
                model=self.config.model or DEFAULT_MODEL,
                base_url=self.config.base_url or "https://api-inference.huggingface.co",
                api_key=self.config.api_key or "",
                dimension=self.config.dimension,
            )
        if provider == "mock":
            return MockEmbeddingProvider(dimension=self.config.dimension or DEFAULT_DIMENSION)
        return None

    @property
    def is_enabled(self) -> bool:
        return self._provider is not None

    def embedding_dimension(self) -> Optional[int]:
        if self._provider is None:
            return None
        return getattr(self._provider, "dimension", self.config.dimension)

    def embed_text(self, text: str) -> Optional[List[float]]:
        if not self._provider:
            return None
        text = preprocess_text(text)
        if not text:
            return None
        with self._lock:
            vector = self._provider.embed(text)
        return vector

    @staticmethod
    def compose_document_text(document: models.KnowledgeDocument) -> str:
        return "\n\n".join(part for part in (document.title, document.content) if part)

    def attach_embedding(self, document: models.KnowledgeDocument) -> None:
        self.attach_embeddings([document])

    def attach_embeddings(self, documents: Sequence[models.KnowledgeDocument]) -> int:
        """Embed ``documents`` in one provider call; returns how many got a vector.

        Provider failures are logged and leave the documents without a vector
        so a later backfill can retry them.
        """
        if not self._provider or not documents:
            return 0
        texts = [preprocess_text(self.compose_document_text(doc)) for doc in documents]
        pending = [(doc, text) for doc, text in zip(documents, texts) if text]
        if not pending:
            return 0
        try:
            with self._lock:
                vectors = self._provider.embed_many([text for _, text in pending])
        except (requests.RequestException, RuntimeError, ValueError) as exc:
            logger.error("Failed to compute embeddings for %d document(s): %s", len(pending), exc)
            return 0
        for (doc, _), vector in zip(pending, vectors):
            doc.embedding = vector
        return len(pending)

    def backfill_missing_embeddings(
        self, db_session, *, batch_size: int = 100, source_type: Optional[str] = None
    ) -> int:
        if not self.is_enabled:
            logger.info("Embedding service disabled; skipping backfill.")
            return 0
        run_started = time.perf_counter()
        updated = 0
        batch_count = 0
        seen_ids = set()
        while True:
            query = db_session.query(models.KnowledgeDocument).filter(
                models.KnowledgeDocument.embedding.is_(None)
            )
            if source_type:
                query = query.filter(models.KnowledgeDocument.source_type == source_type)
            if seen_ids:
                query = query.filter(models.KnowledgeDocument.id.notin_(seen_ids))
            batch = query.order_by(models.KnowledgeDocument.created_at.asc()).limit(batch_size).all()
            if not batch:
                break
            batch_count += 1
            batch_started = time.perf_counter()
            seen_ids.update(doc.id for doc in batch)
            updated += self.attach_embeddings(batch)
            db_session.commit()
            logger.info(
                "Embedding backfill batch committed",
                extra={
                    "batch_number": batch_count,
                    "batch_size": len(batch),
                    "duration_seconds": round(time.perf_counter() - batch_started, 3),
                },
            )
        logger.info(
            "Embedding backfill completed",
            extra={
                "batches": batch_count,
                "total_updated": updated,
                "duration_seconds": round(time.perf_counter() - run_started, 3),
            },
        )
        return updated


def preprocess_text(text: str) -> str:
    """Collapse whitespace and cap the input length sent to providers."""
    return re.sub(r"\s+", " ", text or "").strip()[:MAX_INPUT_CHARS]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same dimensions")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service


def reset_embedding_service_for_tests() -> None:
    global _embedding_service
    _embedding_service = None
