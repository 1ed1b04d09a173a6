"""
Multi-source validation of AI medication recommendations.

Sources run in a fixed order: FDA label checks, drug interactions, clinical
guidelines from the knowledge base, and PubMed evidence. FDA and interaction
checks can block a recommendation outright; the later sources only add
warnings and lower the confidence modifier.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from core.services.medical_apis import OpenFDAService, RxNormService
from core.services.pubmed_service import PubMedService, get_pubmed_service
from core.services.safety.severity_detection import SeverityAssessment
from core.utils.feature_flags import external_validation_enabled

logger = logging.getLogger(__name__)

HIGH_QUALITY_EVIDENCE = ("systematic review", "meta-analysis", "randomized controlled trial")


@dataclass
class SourceResult:
    source: str
    is_approved: bool
    confidence: int
    reason: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_api(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": self.source,
            "isApproved": self.is_approved,
            "confidence": self.confidence,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass
class CascadeResult:
    is_approved: bool = True
    blocked_by: Optional[str] = None
    block_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    confidence_modifier: float = 0
    sources: List[SourceResult] = field(default_factory=list)
    requires_manual_review: bool = False

    def to_api(self) -> Dict[str, Any]:
        return {
            "isApproved": self.is_approved,
            "blockedBy": self.blocked_by,
            "blockReason": self.block_reason,
            "warnings": self.warnings,
            "confidenceModifier": self.confidence_modifier,
            "sources": [s.to_api() for s in self.sources],
            "requiresManualReview": self.requires_manual_review,
        }


def _lower_all(values: Sequence[str]) -> List[str]:
    return [v.lower() for v in values]


class CascadeValidatorService:
    """Runs the validation cascade for one AI response.

    ``knowledge`` only needs a ``search_similar(db, query, ...)`` method; it is
    resolved lazily so the knowledge service is not built unless guidelines
    are required.
    """

    def __init__(
        self,
        openfda: Optional[OpenFDAService] = None,
        rxnorm: Optional[RxNormService] = None,
        pubmed: Optional[PubMedService] = None,
        knowledge=None,
        external_validation: Optional[bool] = None,
    ) -> None:
        self.openfda = openfda or OpenFDAService()
        self.rxnorm = rxnorm or RxNormService()
        self.pubmed = pubmed or get_pubmed_service()
        self._knowledge = knowledge
        self._external_validation = external_validation

    @property
    def knowledge(self):
        if self._knowledge is None:
            from core.services.knowledge_service import get_knowledge_service

            self._knowledge = get_knowledge_service()
        return self._knowledge

    @property
    def external_validation(self) -> bool:
        if self._external_validation is None:
            return external_validation_enabled()
        return self._external_validation

    def validate(
        self,
        ai_response: Dict[str, Any],
        patient: Dict[str, Any],
        severity: SeverityAssessment,
        db: Optional[Session] = None,
    ) -> CascadeResult:
        """Validate ``ai_response['medications']`` for ``patient``.

        ``patient`` uses the API keys ``allergies``, ``chronicConditions``,
        ``currentMedications`` and ``chiefComplaint``.
        """
        result = CascadeResult()
        medications = ai_response.get("medications") or []
        current_medications = patient.get("currentMedications") or []
        live = self.external_validation

        if live:
            for medication in medications:
                fda = self.validate_with_fda(medication, patient)
                result.sources.append(fda)
                if not fda.is_approved:
                    self._block(result, "FDA", fda.reason)
                    break
                if fda.confidence < 80:
                    result.confidence_modifier -= (80 - fda.confidence) / 4

            if result.is_approved and current_medications:
                for medication in medications:
                    interaction = self.validate_interactions(medication, current_medications)
                    result.sources.append(interaction)
                    if not interaction.is_approved:
                        self._block(result, "INTERACTION", interaction.reason)
                        break
                    if interaction.reason:
                        result.warnings.append(interaction.reason)
        else:
            logger.info("External validation disabled; skipping FDA and interaction checks")

        if result.is_approved and "GUIDELINE" in severity.required_validations and medications:
            guideline = self.validate_with_guidelines(medications, patient.get("chiefComplaint") or "", db)
            result.sources.append(guideline)
            if not guideline.is_approved:
                result.warnings.append(guideline.reason or "Guideline mismatch detected")
                result.confidence_modifier -= 15

        if live and result.is_approved and "PUBMED" in severity.required_validations and medications:
            evidence = self.validate_with_pubmed(medications, patient.get("chiefComplaint") or "")
            result.sources.append(evidence)
            if not evidence.is_approved:
                result.warnings.append("Limited evidence support in medical literature")
                result.confidence_modifier -= 10

        result.requires_manual_review = (
            severity.auto_escalate
            or severity.severity_level == "CRITICAL"
            or len(result.warnings) >= 3
            or result.confidence_modifier <= -30
        )
        return result

    @staticmethod
    def _block(result: CascadeResult, source: str, reason: Optional[str]) -> None:
        result.is_approved = False
        result.blocked_by = source
        result.block_reason = reason

    def validate_with_fda(self, medication: Dict[str, Any], patient: Dict[str, Any]) -> SourceResult:
        name = medication.get("name") or ""
        try:
            label = self.openfda.get_drug_label(name)
            if label is None and medication.get("genericName"):
                label = self.openfda.get_drug_label(medication["genericName"])
            if label is None:
                return SourceResult("FDA", True, 50, reason=f"Drug {name} not found in FDA database")

            warnings = label.get("warnings") or []
            contraindications = _lower_all(label.get("contraindications") or [])
            boxed = next(
                (w for w in warnings if "black box" in w.lower() or "boxed warning" in w.lower()),
                None,
            )
            if boxed is not None:
                return SourceResult(
                    "FDA", False, 0,
                    reason=f"Black box warning: {boxed[:200]}...",
                    data={"hasBlackBoxWarning": True},
                )

            lowered_warnings = _lower_all(warnings)
            for allergy in patient.get("allergies") or []:
                needle = allergy.lower()
                if any(needle in c for c in contraindications) or any(needle in w for w in lowered_warnings):
                    return SourceResult(
                        "FDA", False, 0,
                        reason=f"Contraindicated due to patient allergy to {allergy}",
                        data={"allergyConflict": allergy},
                    )

            for condition in patient.get("chronicConditions") or []:
                if any(condition.lower() in c for c in contraindications):
                    return SourceResult(
                        "FDA", False, 0,
                        reason=f"Contraindicated due to patient condition: {condition}",
                        data={"conditionConflict": condition},
                    )

            return SourceResult("FDA", True, 90, data={"labelFound": True, "hasWarnings": bool(warnings)})
        except Exception as exc:
            logger.error("FDA validation failed for %s: %s", name, exc)
            return SourceResult("FDA", True, 40, reason="FDA validation unavailable")

    def validate_interactions(self, medication: Dict[str, Any], current_medications: Sequence[str]) -> SourceResult:
        name = medication.get("name") or ""
        try:
            rxcui = self.rxnorm.get_rxcui(name)
            if not rxcui:
                return SourceResult("INTERACTION", True, 50, reason=f"Unable to verify interactions for {name}")

            current_rxcuis = [c for c in (self.rxnorm.get_rxcui(m) for m in current_medications) if c]
            if not current_rxcuis:
                return SourceResult("INTERACTION", True, 70)

            interactions = self.rxnorm.check_multi_drug_interactions([rxcui, *current_rxcuis])
            contraindicated = next((i for i in interactions if i["severity"] == "Contraindicated"), None)
            if contraindicated:
                return SourceResult(
                    "INTERACTION", False, 0,
                    reason=(
                        f"Contraindicated interaction between {contraindicated['drug1']} and "
                        f"{contraindicated['drug2']}: {contraindicated['description']}"
                    ),
                    data={"interaction": contraindicated},
                )
            major = next((i for i in interactions if i["severity"] == "Major"), None)
            if major:
                return SourceResult(
                    "INTERACTION", True, 60,
                    reason=f"Major interaction warning: {major['drug1']} with {major['drug2']}",
                    data={"interaction": major},
                )
            return SourceResult("INTERACTION", True, 90, data={"interactionsChecked": len(interactions)})
        except Exception as exc:
            logger.error("Interaction validation failed for %s: %s", name, exc)
            return SourceResult("INTERACTION", True, 40, reason="Interaction check unavailable")

    def validate_with_guidelines(
        self,
        medications: Sequence[Dict[str, Any]],
        chief_complaint: str,
        db: Optional[Session],
    ) -> SourceResult:
        if db is None:
            return SourceResult("GUIDELINE", True, 40, reason="Guideline validation unavailable")
        names = " ".join(m.get("genericName") or m.get("name") or "" for m in medications)
        try:
            docs = self.knowledge.search_similar(
                db,
                f"{chief_complaint} treatment {names}",
                match_threshold=0.5,
                match_count=5,
                filter_source_type="clinical_guideline",
            )
        except Exception as exc:
            logger.error("Guideline validation failed: %s", exc)
            return SourceResult("GUIDELINE", True, 40, reason="Guideline validation unavailable")

        if not docs:
            return SourceResult(
                "GUIDELINE", True, 50, reason="No relevant clinical guidelines found in knowledge base"
            )
        if any(doc["similarity"] > 0.7 for doc in docs):
            return SourceResult("GUIDELINE", True, 85, data={"guidelinesFound": len(docs)})
        return SourceResult(
            "GUIDELINE", True, 65,
            reason="Limited guideline support found",
            data={"guidelinesFound": len(docs)},
        )

    def validate_with_pubmed(self, medications: Sequence[Dict[str, Any]], chief_complaint: str) -> SourceResult:
        primary = medications[0]
        med_name = primary.get("genericName") or primary.get("name") or ""
        try:
            search = self.pubmed.search_articles(
                chief_complaint,
                med_name,
                max_results=5,
                article_types=["Clinical Trial", "Randomized Controlled Trial", "Systematic Review"],
            )
        except Exception as exc:
            logger.error("PubMed validation failed for %s: %s", med_name, exc)
            return SourceResult("PUBMED", True, 40, reason="PubMed validation unavailable")

        if search["totalCount"] == 0:
            return SourceResult(
                "PUBMED", False, 30,
                reason=f"No clinical evidence found for {med_name} in treating {chief_complaint}",
            )
        high_quality = any(
            any(marker in t.lower() for t in ref.get("publicationType") or [] for marker in HIGH_QUALITY_EVIDENCE)
            for ref in search["references"]
        )
        data = {"evidenceCount": search["totalCount"], "hasHighQualityEvidence": high_quality}
        if high_quality:
            return SourceResult("PUBMED", True, 90, data=data)
        return SourceResult("PUBMED", True, 70, reason="Limited high-quality evidence available", data=data)


_cascade_validator: Optional[CascadeValidatorService] = None


def get_cascade_validator() -> CascadeValidatorService:
    global _cascade_validator
    if _cascade_validator is None:
        _cascade_validator = CascadeValidatorService()
    return _cascade_validator
