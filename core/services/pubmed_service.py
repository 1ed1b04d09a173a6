"""Clinical literature references from NCBI PubMed (E-utilities)."""
from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

PUBMED_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

_DEFAULT_TIMEOUT = (3, 20)

_ABSTRACT_RE = re.compile(r"<AbstractText([^>]*)>([^<]*)</AbstractText>")
_LABEL_RE = re.compile(r'Label="([^"]*)"')


def _current_year() -> int:
    return datetime.now().year


class PubMedService:
    """Searches PubMed and converts article summaries into reference dicts."""

    def __init__(self, base_url: str = PUBMED_BASE_URL, api_key: Optional[str] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("NCBI_API_KEY", "")

    def _params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.api_key:
            return {**params, "api_key": self.api_key}
        return params

    @staticmethod
    def build_search_query(
        condition: str,
        medication: Optional[str] = None,
        article_types: Optional[List[str]] = None,
    ) -> str:
        query = f"({condition}[Title/Abstract])"
        if medication:
            query += f" AND ({medication}[Title/Abstract] OR {medication}[MeSH Terms])"
        if article_types:
            type_filter = " OR ".join(f'"{t}"[Publication Type]' for t in article_types)
            query += f" AND ({type_filter})"
        return query + " AND English[lang]"

    def search_articles(
        self,
        condition: str,
        medication: Optional[str] = None,
        *,
        max_results: int = 5,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        article_types: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Return ``{totalCount, references, searchQuery}``; empty on any failure."""
        query = self.build_search_query(condition, medication, article_types)
        if year_from or year_to:
            query += f" AND {year_from or 1900}:{year_to or _current_year()}[pdat]"

        try:
            response = requests.get(
                f"{self.base_url}/esearch.fcgi",
                params=self._params({
                    "db": "pubmed",
                    "term": query,
                    "retmax": str(max_results),
                    "sort": "relevance",
                    "retmode": "json",
                }),
                timeout=_DEFAULT_TIMEOUT,
            )
            response.raise_for_status()
            search = response.json().get("esearchresult") or {}
        except (requests.RequestException, ValueError) as exc:
            logger.error("PubMed search error: %s", exc)
            return {"totalCount": 0, "references": [], "searchQuery": condition}

        pmids = search.get("idlist") or []
        if not pmids:
            return {"totalCount": 0, "references": [], "searchQuery": query}

        try:
            total = int(search.get("count") or 0)
        except ValueError:
            total = len(pmids)
        return {
            "totalCount": total,
            "references": self.fetch_article_summaries(pmids),
            "searchQuery": query,
        }

    def fetch_article_summaries(self, pmids: List[str]) -> List[Dict[str, Any]]:
        try:
            response = requests.get(
                f"{self.base_url}/esummary.fcgi",
                params=self._params({"db": "pubmed", "id": ",".join(pmids), "retmode": "json"}),
                timeout=_DEFAULT_TIMEOUT,
            )
            response.raise_for_status()
            summaries = response.json().get("result") or {}
        except (requests.RequestException, ValueError) as exc:
            logger.error("PubMed summary fetch error: %s", exc)
            return []

        references: List[Dict[str, Any]] = []
        for position, pmid in enumerate(pmids):
            article = summaries.get(pmid)
            if not isinstance(article, dict) or not article.get("uid"):
                continue

            year_match = re.search(r"\d{4}", article.get("pubdate") or "")
            year = int(year_match.group(0)) if year_match else _current_year()
            doi = next(
                (a.get("value") for a in article.get("articleids") or [] if a.get("idtype") == "doi"),
                None,
            )
            relevance = min(100, 100 - position * 10 + max(0, (year - 2015) * 2))

            references.append({
                "pmid": article["uid"],
                "title": article.get("title") or "No title available",
                "authors": [a.get("name") for a in article.get("authors") or [] if a.get("name")],
                "journal": article.get("source") or "Unknown Journal",
                "year": year,
                "doi": doi,
                "url": f"https://pubmed.ncbi.nlm.nih.gov/{article['uid']}/",
                "relevanceScore": relevance,
                "publicationType": article.get("pubtype") or [],
            })
        return references

    def search_clinical_trials(self, condition: str, medication: Optional[str] = None, max_results: int = 3):
        return self.search_articles(
            condition,
            medication,
            max_results=max_results,
            article_types=["Clinical Trial", "Randomized Controlled Trial"],
        )["references"]

    def search_systematic_reviews(self, condition: str, medication: Optional[str] = None, max_results: int = 3):
        return self.search_articles(
            condition,
            medication,
            max_results=max_results,
            article_types=["Systematic Review", "Meta-Analysis"],
        )["references"]

    def search_guidelines(self, condition: str, max_results: int = 3):
        return self.search_articles(
            condition,
            max_results=max_results,
            article_types=["Practice Guideline", "Guideline"],
        )["references"]

    def get_references_for_treatment(self, condition: str, medications: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Guidelines, trials and reviews for a condition, fetched concurrently."""
        first_med = medications[0] if medications else None
        with ThreadPoolExecutor(max_workers=3) as pool:
            guidelines = pool.submit(self.search_guidelines, condition, 2)
            trials = pool.submit(self.search_clinical_trials, condition, first_med, 3)
            reviews = pool.submit(self.search_systematic_reviews, condition, first_med, 2)
            return {
                "guidelines": guidelines.result(),
                "clinicalTrials": trials.result(),
                "reviews": reviews.result(),
            }

    def get_article_by_pmid(self, pmid: str) -> Optional[Dict[str, Any]]:
        summaries = self.fetch_article_summaries([pmid])
        return summaries[0] if summaries else None

    def fetch_abstract(self, pmid: str) -> Optional[str]:
        try:
            response = requests.get(
                f"{self.base_url}/efetch.fcgi",
                params=self._params({"db": "pubmed", "id": pmid, "retmode": "xml", "rettype": "abstract"}),
                timeout=_DEFAULT_TIMEOUT,
            )
            if not response.ok:
                return None
            xml_text = response.text
        except requests.RequestException as exc:
            logger.error("PubMed abstract fetch error for %s: %s", pmid, exc)
            return None

        sections = _ABSTRACT_RE.findall(xml_text)
        if not sections:
            return None
        if len(sections) == 1 or not any(_LABEL_RE.search(attrs) for attrs, _ in sections):
            return sections[0][1]
        parts = []
        for attrs, text in sections:
            label = _LABEL_RE.search(attrs)
            parts.append(f"{label.group(1)}: {text}" if label else text)
        return "\n\n".join(parts)

    @staticmethod
    def get_evidence_level(publication_types: List[str]) -> str:
        """Map publication types to evidence levels A (strongest) through D."""
        types = [t.lower() for t in publication_types]
        if any("systematic review" in t or "meta-analysis" in t for t in types):
            return "A"
        if any("randomized controlled trial" in t or "clinical trial" in t for t in types):
            return "B"
        if any("cohort" in t or "case-control" in t or "observational" in t for t in types):
            return "C"
        return "D"

    @staticmethod
    def format_citation(reference: Dict[str, Any]) -> str:
        authors = reference.get("authors") or []
        if len(authors) > 3:
            author_text = f"{', '.join(authors[:3])}, et al."
        else:
            author_text = ", ".join(authors)
        doi = f" doi:{reference['doi']}" if reference.get("doi") else ""
        return (
            f"{author_text} {reference['title']}. {reference['journal']}. "
            f"{reference['year']}.{doi} PMID: {reference['pmid']}"
        )


_pubmed_service: Optional[PubMedService] = None


def get_pubmed_service() -> PubMedService:
    global _pubmed_service
    if _pubmed_service is None:
        _pubmed_service = PubMedService()
    return _pubmed_service
