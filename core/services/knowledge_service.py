"""
Clinical knowledge base: ingestion, chunking and similarity search.

Documents are stored as chunks in ``knowledge_documents``. When an embedding
provider is configured each chunk carries a pgvector ``vector`` and search
ranks by cosine distance in SQL; otherwise search falls back to query-term
overlap.
"""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from core.db.repositories import knowledge as knowledge_repo
from core.services.embedding_service import EmbeddingService, cosine_similarity, get_embedding_service
from core.services.medical_apis import OpenFDAService
from core.services.pubmed_service import PubMedService, get_pubmed_service

logger = logging.getLogger(__name__)

MAX_CHUNK_WORDS = 500
OVERLAP_WORDS = 50

FDA_SECTIONS = ("contraindications", "warnings", "dosage", "interactions", "indications")

_TERM_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is", "it",
    "of", "on", "or", "the", "to", "with",
})


@dataclass
class IngestionResult:
    source_type: str
    documents_ingested: int = 0
    chunks_created: int = 0
    errors: List[str] = field(default_factory=list)

    def to_api(self) -> Dict[str, Any]:
        return {
            "documentsIngested": self.documents_ingested,
            "chunksCreated": self.chunks_created,
            "errors": self.errors,
            "sourceType": self.source_type,
        }


def chunk_content(content: str, max_words: int = MAX_CHUNK_WORDS, overlap: int = OVERLAP_WORDS) -> List[Dict[str, Any]]:
    """Split ``content`` into overlapping word windows with chunk metadata."""
    words = content.split()
    original_length = len(content)
    if len(words) <= max_words:
        return [{
            "content": content.strip(),
            "metadata": {"chunkIndex": 0, "totalChunks": 1, "originalLength": original_length},
        }]

    chunks = []
    step = max(1, max_words - overlap)
    for index, start in enumerate(range(0, len(words), step)):
        chunks.append({
            "content": " ".join(words[start:start + max_words]),
            "metadata": {"chunkIndex": index, "originalLength": original_length},
        })
        if start + max_words >= len(words):
            break
    for chunk in chunks:
        chunk["metadata"]["totalChunks"] = len(chunks)
    return chunks


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:50]


def severity_relevance_for_section(section: str, content: str) -> List[str]:
    relevance: List[str] = []
    lower = content.lower()
    if section in ("contraindications", "warnings"):
        relevance.append("drug_safety")
    groups = (
        ("cardiac", ("cardiac", "heart", "myocardial", "arrhythmia")),
        ("respiratory", ("respiratory", "breathing", "pulmonary", "asthma")),
        ("renal", ("renal", "kidney", "nephro")),
        ("hepatic", ("hepatic", "liver")),
        ("allergic", ("anaphylaxis", "allergic reaction")),
        ("neurological", ("neurological", "seizure", "stroke")),
    )
    for tag, needles in groups:
        if any(n in lower for n in needles):
            relevance.append(tag)
    return relevance


def severity_relevance_for_condition(condition: str) -> List[str]:
    lower = condition.lower()
    relevance: List[str] = []
    if any(n in lower for n in ("heart", "cardiac", "chest pain")):
        relevance.append("cardiac")
    if any(n in lower for n in ("asthma", "copd", "respiratory")):
        relevance.append("respiratory")
    if any(n in lower for n in ("diabetes", "hypertension", "kidney")):
        relevance.append("chronic")
    return relevance


def _terms(text: str) -> set:
    return {t for t in _TERM_RE.findall(text.lower()) if t not in _STOPWORDS}


def term_overlap(query: str, text: str) -> float:
    query_terms = _terms(query)
    if not query_terms:
        return 0.0
    return len(query_terms & _terms(text)) / len(query_terms)


class KnowledgeService:
    def __init__(
        self,
        embeddings: Optional[EmbeddingService] = None,
        openfda: Optional[OpenFDAService] = None,
        pubmed: Optional[PubMedService] = None,
    ) -> None:
        self.embeddings = embeddings or get_embedding_service()
        self.openfda = openfda or OpenFDAService()
        self.pubmed = pubmed or get_pubmed_service()

    def _store_chunks(
        self,
        db: Session,
        *,
        source_type: str,
        source_prefix: str,
        title: str,
        content: str,
        metadata: Dict[str, Any],
    ) -> int:
        chunks = chunk_content(content)
        stored = []
        for chunk in chunks:
            stored.append(knowledge_repo.upsert_document(
                db,
                source_type=source_type,
                source_id=f"{source_prefix}-{chunk['metadata']['chunkIndex']}",
                title=title,
                content=chunk["content"],
                chunk_index=chunk["metadata"]["chunkIndex"],
                metadata={**metadata, **chunk["metadata"]},
                commit=False,
            ))
        self.embeddings.attach_embeddings(stored)
        db.commit()
        return len(chunks)

    def ingest_clinical_guidelines(self, db: Session, guidelines: Sequence[Dict[str, Any]]) -> IngestionResult:
        result = IngestionResult(source_type="clinical_guideline")
        for guideline in guidelines:
            try:
                result.chunks_created += self._store_chunks(
                    db,
                    source_type="clinical_guideline",
                    source_prefix=f"guideline-{slugify(guideline['title'])}",
                    title=guideline["title"],
                    content=guideline["content"],
                    metadata={
                        "source": guideline.get("source"),
                        "category": guideline.get("category"),
                        "title": guideline["title"],
                        "severityRelevance": guideline.get("severityRelevance") or [],
                    },
                )
                result.documents_ingested += 1
            except Exception as exc:
                db.rollback()
                logger.error("Guideline ingestion failed for %s: %s", guideline.get("title"), exc)
                result.errors.append(f'Error processing guideline "{guideline.get("title")}": {exc}')
        return result

    def ingest_drug_interactions(self, db: Session, interactions: Sequence[Dict[str, Any]]) -> IngestionResult:
        result = IngestionResult(source_type="interaction")
        for item in interactions:
            try:
                content = (
                    f"Drug Interaction: {item['drug1']} and {item['drug2']}\n"
                    f"Severity: {item['severity']}\n"
                    f"Description: {item['description']}\n"
                    f"Recommendation: {item['recommendation']}"
                )
                doc = knowledge_repo.upsert_document(
                    db,
                    source_type="interaction",
                    source_id=f"interaction-{slugify(item['drug1'])}-{slugify(item['drug2'])}",
                    title=f"{item['drug1']} - {item['drug2']} Interaction",
                    content=content,
                    metadata={
                        "drug1": item["drug1"],
                        "drug2": item["drug2"],
                        "severity": item["severity"],
                        "severityRelevance": (
                            ["drug_safety"] if item["severity"] in ("Major", "Contraindicated") else []
                        ),
                    },
                    commit=False,
                )
                self.embeddings.attach_embedding(doc)
                db.commit()
                result.documents_ingested += 1
                result.chunks_created += 1
            except Exception as exc:
                db.rollback()
                logger.error("Interaction ingestion failed: %s", exc)
                result.errors.append(
                    f"Error processing interaction {item.get('drug1')}-{item.get('drug2')}: {exc}"
                )
        return result

    def ingest_fda_drug_labels(self, db: Session, drugs: Sequence[Dict[str, Any]]) -> IngestionResult:
        """Fetch OpenFDA labels and store one document per requested label section."""
        result = IngestionResult(source_type="drug_label")
        for drug in drugs:
            name = drug["drugName"]
            label = self.openfda.get_drug_label(name)
            if not label:
                result.errors.append(f"Drug not found: {name}")
                continue
            section_text = {
                "contraindications": label["contraindications"],
                "warnings": label["warnings"],
                "dosage": [label["dosageAndAdministration"]] if label["dosageAndAdministration"] else [],
                "interactions": label["drugInteractions"],
                "indications": label["indications"],
            }
            for section in drug.get("sections") or FDA_SECTIONS:
                content = section_text.get(section) or []
                if not content:
                    continue
                full = "\n\n".join(content)
                try:
                    result.chunks_created += self._store_chunks(
                        db,
                        source_type="drug_label",
                        source_prefix=f"fda-{name}-{section}",
                        title=f"{label['brandName']} ({label['genericName']}) - {section}",
                        content=full,
                        metadata={
                            "drugName": name,
                            "brandName": label["brandName"],
                            "genericName": label["genericName"],
                            "section": section,
                            "severityRelevance": severity_relevance_for_section(section, full),
                        },
                    )
                    result.documents_ingested += 1
                except Exception as exc:
                    db.rollback()
                    logger.error("FDA label ingestion failed for %s: %s", name, exc)
                    result.errors.append(f"Error processing {name}: {exc}")
        return result

    def ingest_pubmed_articles(self, db: Session, queries: Sequence[Dict[str, Any]]) -> IngestionResult:
        result = IngestionResult(source_type="pubmed")
        for query in queries:
            search = self.pubmed.search_articles(
                query["condition"],
                query.get("medication"),
                max_results=query.get("maxArticles") or 10,
                article_types=query.get("articleTypes"),
            )
            for article in search["references"]:
                abstract = self.pubmed.fetch_abstract(article["pmid"])
                if not abstract:
                    continue
                try:
                    result.chunks_created += self._store_chunks(
                        db,
                        source_type="pubmed",
                        source_prefix=f"pubmed-{article['pmid']}",
                        title=f"{article['title']} ({article['journal']}, {article['year']})",
                        content=abstract,
                        metadata={
                            "pmid": article["pmid"],
                            "title": article["title"],
                            "authors": article["authors"][:5],
                            "journal": article["journal"],
                            "year": article["year"],
                            "publicationType": article["publicationType"],
                            "doi": article.get("doi"),
                            "url": article["url"],
                            "severityRelevance": severity_relevance_for_condition(query["condition"]),
                        },
                    )
                    result.documents_ingested += 1
                except Exception as exc:
                    db.rollback()
                    logger.error("PubMed ingestion failed for %s: %s", article.get("pmid"), exc)
                    result.errors.append(f'Error processing PubMed query "{query["condition"]}": {exc}')
        return result

    def search_similar(
        self,
        db: Session,
        query: str,
        *,
        match_threshold: float = 0.5,
        match_count: int = 10,
        filter_source_type: Optional[str] = None,
        severity_relevance: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents scoring above ``match_threshold``, best first.

        On PostgreSQL with an embedding provider the candidates are ranked by
        pgvector cosine distance in SQL. Otherwise (SQLite, or no provider)
        documents are scored in Python, by cosine similarity when both sides
        carry a vector and by query-term overlap when they do not.
        """
        tags = set(severity_relevance or [])
        query_vector = self.embeddings.embed_text(query) if self.embeddings.is_enabled else None
        if query_vector is not None and db.get_bind().dialect.name == "postgresql":
            threshold = max(min(float(match_threshold), 1.0), -1.0)
            rows = knowledge_repo.nearest_documents(
                db,
                query_vector=query_vector,
                max_distance=1.0 - threshold,
                # Severity boosting reorders, so pull a wider candidate pool
                limit=match_count * 3 if tags else match_count,
                source_type=filter_source_type,
            )
            scored = [(1.0 - distance, doc) for doc, distance in rows if 1.0 - distance > match_threshold]
        else:
            scored = self._score_in_python(db, query, query_vector, match_threshold, filter_source_type)

        def rank(item):
            similarity, doc = item
            doc_tags = set((doc.metadata_json or {}).get("severityRelevance") or [])
            return (len(doc_tags & tags), similarity)

        scored.sort(key=rank, reverse=True)
        return [
            {
                "id": str(doc.id),
                "content": doc.content,
                "sourceType": doc.source_type,
                "sourceId": doc.source_id,
                "sourceName": doc.title,
                "metadata": doc.metadata_json or {},
                "similarity": round(similarity, 4),
            }
            for similarity, doc in scored[:match_count]
        ]

    @staticmethod
    def _score_in_python(db, query, query_vector, match_threshold, source_type):
        scored = []
        for doc in knowledge_repo.list_documents(db, source_type=source_type):
            if query_vector is not None and doc.embedding:
                try:
                    similarity = cosine_similarity(query_vector, doc.embedding)
                except ValueError:
                    continue
            else:
                similarity = term_overlap(query, f"{doc.title} {doc.content}")
            if similarity > match_threshold:
                scored.append((similarity, doc))
        return scored

    def get_status(self, db: Session) -> Dict[str, Any]:
        by_source = knowledge_repo.count_by_source_type(db)
        return {
            "totalDocuments": sum(by_source.values()),
            "bySourceType": by_source,
            "severeConditions": knowledge_repo.count_severe_conditions(db),
            "embeddingsEnabled": self.embeddings.is_enabled,
        }

    def delete_document(self, db: Session, document_id: uuid.UUID) -> bool:
        doc = knowledge_repo.get_document(db, document_id=document_id)
        if doc is None:
            return False
        knowledge_repo.delete_document(db, document=doc)
        return True

    def clear(self, db: Session, source_type: Optional[str] = None) -> int:
        types = [source_type] if source_type else list(knowledge_repo.SOURCE_TYPES)
        return sum(knowledge_repo.delete_by_source_type(db, source_type=t) for t in types)


_knowledge_service: Optional[KnowledgeService] = None


def get_knowledge_service() -> KnowledgeService:
    global _knowledge_service
    if _knowledge_service is None:
        _knowledge_service = KnowledgeService()
    return _knowledge_service


def reset_knowledge_service_for_tests() -> None:
    global _knowledge_service
    _knowledge_service = None
