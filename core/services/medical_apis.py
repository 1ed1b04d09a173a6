"""Drug reference lookups against OpenFDA, RxNorm and DailyMed.

Every public call degrades to an empty result (``None``/``[]``) when the
upstream API is unreachable or answers with an error; failures are logged.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

OPENFDA_BASE_URL = "https://api.fda.gov/drug"
RXNORM_BASE_URL = "https://rxnav.nlm.nih.gov/REST"
DAILYMED_BASE_URL = "https://dailymed.nlm.nih.gov/dailymed/services/v2"

_DEFAULT_TIMEOUT = (3, 15)

_DOSAGE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(mg|g|mcg|ml|mL)", re.IGNORECASE)
_FREQUENCY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"once daily",
        r"twice daily",
        r"three times daily",
        r"four times daily",
        r"every \d+ hours",
        r"every \d+-\d+ hours",
        r"once a day",
        r"twice a day",
        r"q\d+h",
        r"bid",
        r"tid",
        r"qid",
    )
]


def _get(url: str, *, params: Optional[Dict[str, Any]] = None) -> requests.Response:
    return requests.get(url, params=params, timeout=_DEFAULT_TIMEOUT)


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def map_severity(severity: Optional[str]) -> str:
    """Normalise a free-text interaction severity into the four-level scale."""
    if not severity:
        return "Moderate"
    lower = severity.lower()
    if "contraindicated" in lower:
        return "Contraindicated"
    if "major" in lower or "severe" in lower or "high" in lower:
        return "Major"
    if "minor" in lower or "low" in lower:
        return "Minor"
    return "Moderate"


def _interaction(pair: Dict[str, Any], comment: str, recommendation: str) -> Dict[str, Any]:
    concepts = pair.get("interactionConcept") or []

    def concept_name(idx: int) -> str:
        if len(concepts) > idx:
            return ((concepts[idx] or {}).get("minConceptItem") or {}).get("name") or "Unknown"
        return "Unknown"

    return {
        "drug1": concept_name(0),
        "drug2": concept_name(1),
        "severity": map_severity(pair.get("severity")),
        "description": pair.get("description") or "",
        "clinicalEffects": comment or "",
        "recommendation": recommendation,
        "source": "RxNorm",
    }


class OpenFDAService:
    """OpenFDA NDC, label and adverse-event endpoints."""

    def __init__(self, base_url: str = OPENFDA_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def search_drug(self, drug_name: str) -> Optional[Dict[str, Any]]:
        name = quote(drug_name)
        url = (
            f"{self.base_url}/ndc.json?search=brand_name:\"{name}\"+generic_name:\"{name}\"&limit=1"
        )
        try:
            response = _get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            results = response.json().get("results") or []
        except (requests.RequestException, ValueError) as exc:
            logger.error("OpenFDA search error for %s: %s", drug_name, exc)
            return None
        if not results:
            return None

        result = results[0]
        ingredients = result.get("active_ingredients") or []
        return {
            "brandName": result.get("brand_name") or drug_name,
            "genericName": result.get("generic_name") or drug_name,
            "rxcui": _first((result.get("openfda") or {}).get("rxcui")),
            "ndcCodes": [result["product_ndc"]] if result.get("product_ndc") else [],
            "activeIngredients": [i.get("name") for i in ingredients if i.get("name")],
            "dosageForm": result.get("dosage_form") or "Unknown",
            "route": _first(result.get("route")) or "Unknown",
            "strength": (ingredients[0].get("strength") if ingredients else None) or "Unknown",
            "manufacturer": result.get("labeler_name"),
        }

    def get_drug_label(self, drug_name: str) -> Optional[Dict[str, Any]]:
        name = quote(drug_name)
        url = (
            f"{self.base_url}/label.json?search=openfda.brand_name:\"{name}\""
            f"+openfda.generic_name:\"{name}\"&limit=1"
        )
        try:
            response = _get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            results = response.json().get("results") or []
        except (requests.RequestException, ValueError) as exc:
            logger.error("OpenFDA label error for %s: %s", drug_name, exc)
            return None
        if not results:
            return None

        label = results[0]
        openfda = label.get("openfda") or {}
        return {
            "brandName": _first(openfda.get("brand_name")) or drug_name,
            "genericName": _first(openfda.get("generic_name")) or drug_name,
            "indications": label.get("indications_and_usage") or [],
            "dosageAndAdministration": _first(label.get("dosage_and_administration")) or "",
            "contraindications": label.get("contraindications") or [],
            "warnings": list(label.get("warnings") or []) + list(label.get("boxed_warning") or []),
            "boxedWarning": label.get("boxed_warning") or [],
            "adverseReactions": label.get("adverse_reactions") or [],
            "drugInteractions": label.get("drug_interactions") or [],
            "useInSpecificPopulations": {
                "pregnancy": _first(label.get("pregnancy")),
                "nursing": _first(label.get("nursing_mothers")),
                "pediatric": _first(label.get("pediatric_use")),
                "geriatric": _first(label.get("geriatric_use")),
                "renalImpairment": None,
                "hepaticImpairment": None,
            },
            "overdosage": _first(label.get("overdosage")),
        }

    def get_adverse_events(self, drug_name: str, limit: int = 10) -> List[str]:
        url = (
            f"{self.base_url}/event.json?search=patient.drug.medicinalproduct:\"{quote(drug_name)}\""
            f"&count=patient.reaction.reactionmeddrapt.exact&limit={limit}"
        )
        try:
            response = _get(url)
            if not response.ok:
                return []
            results = response.json().get("results") or []
        except (requests.RequestException, ValueError) as exc:
            logger.error("OpenFDA adverse events error for %s: %s", drug_name, exc)
            return []
        return [r["term"] for r in results if r.get("term")]


class RxNormService:
    """NIH RxNav concept lookup and interaction endpoints."""

    def __init__(self, base_url: str = RXNORM_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def get_rxcui(self, drug_name: str) -> Optional[str]:
        try:
            response = _get(f"{self.base_url}/rxcui.json", params={"name": drug_name})
            if not response.ok:
                return None
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("RxNorm RXCUI error for %s: %s", drug_name, exc)
            return None
        return _first((data.get("idGroup") or {}).get("rxnormId"))

    def get_drug_interactions(self, rxcui: str) -> List[Dict[str, Any]]:
        try:
            response = _get(
                f"{self.base_url}/interaction/interaction.json", params={"rxcui": rxcui}
            )
            if not response.ok:
                return []
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("RxNorm interactions error for %s: %s", rxcui, exc)
            return []

        interactions: List[Dict[str, Any]] = []
        for group in data.get("interactionTypeGroup") or []:
            for itype in group.get("interactionType") or []:
                for pair in itype.get("interactionPair") or []:
                    interactions.append(
                        _interaction(
                            pair,
                            itype.get("comment") or "",
                            pair.get("description") or "Consult healthcare provider",
                        )
                    )
        return interactions

    def check_multi_drug_interactions(self, rxcuis: List[str]) -> List[Dict[str, Any]]:
        if len(rxcuis) < 2:
            return []
        url = f"{self.base_url}/interaction/list.json?rxcuis={'+'.join(rxcuis)}"
        try:
            response = _get(url)
            if not response.ok:
                return []
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("RxNorm multi-drug interactions error: %s", exc)
            return []

        interactions: List[Dict[str, Any]] = []
        for group in data.get("fullInteractionTypeGroup") or []:
            for itype in group.get("fullInteractionType") or []:
                for pair in itype.get("interactionPair") or []:
                    interactions.append(
                        _interaction(pair, itype.get("comment") or "", "Review and adjust as needed")
                    )
        return interactions

    def get_related_drugs(self, rxcui: str) -> List[str]:
        url = f"{self.base_url}/rxcui/{rxcui}/related.json?tty=SBD+SCD"
        try:
            response = _get(url)
            if not response.ok:
                return []
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("RxNorm related drugs error for %s: %s", rxcui, exc)
            return []

        drugs: List[str] = []
        for group in (data.get("relatedGroup") or {}).get("conceptGroup") or []:
            for concept in group.get("conceptProperties") or []:
                if concept.get("name"):
                    drugs.append(concept["name"])
        return drugs[:5]


class DailyMedService:
    def __init__(self, base_url: str = DAILYMED_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def _spls(self, drug_name: str, pagesize: int) -> List[Dict[str, Any]]:
        response = _get(
            f"{self.base_url}/spls.json", params={"drug_name": drug_name, "pagesize": pagesize}
        )
        if not response.ok:
            return []
        return response.json().get("data") or []

    def search_drug_spl(self, drug_name: str) -> Optional[str]:
        try:
            spls = self._spls(drug_name, 1)
        except (requests.RequestException, ValueError) as exc:
            logger.error("DailyMed SPL search error for %s: %s", drug_name, exc)
            return None
        return spls[0].get("setid") if spls else None

    def get_dosage_forms(self, drug_name: str) -> List[str]:
        try:
            spls = self._spls(drug_name, 10)
        except (requests.RequestException, ValueError) as exc:
            logger.error("DailyMed dosage forms error for %s: %s", drug_name, exc)
            return []
        forms: List[str] = []
        for spl in spls:
            form = spl.get("dosage_form")
            if form and form not in forms:
                forms.append(form)
        return forms


def extract_dosage_from_text(text: str) -> str:
    match = _DOSAGE_RE.search(text or "")
    return match.group(0) if match else "See prescribing information"


def extract_frequency_from_text(text: str) -> str:
    for pattern in _FREQUENCY_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(0)
    return "As directed"


class MedicalApisService:
    """Aggregates the drug reference sources into a single validation result."""

    def __init__(
        self,
        openfda: Optional[OpenFDAService] = None,
        rxnorm: Optional[RxNormService] = None,
        dailymed: Optional[DailyMedService] = None,
    ) -> None:
        self.openfda = openfda or OpenFDAService()
        self.rxnorm = rxnorm or RxNormService()
        self.dailymed = dailymed or DailyMedService()

    def validate_drug(self, drug_name: str, current_medications: Optional[List[str]] = None) -> Dict[str, Any]:
        """Look a drug up everywhere and collect label warnings, dosing and interactions."""
        current_medications = current_medications or []
        result: Dict[str, Any] = {
            "isValid": False,
            "drugInfo": None,
            "labelInfo": None,
            "dosageRecommendations": [],
            "interactions": [],
            "warnings": [],
        }

        drug_info = self.openfda.search_drug(drug_name)
        if drug_info:
            result["isValid"] = True
            result["drugInfo"] = drug_info

        label_info = self.openfda.get_drug_label(drug_name)
        if label_info:
            result["isValid"] = True
            result["labelInfo"] = label_info
            result["warnings"] = label_info["warnings"][:3] + label_info["contraindications"][:2]

            dosing_text = label_info["dosageAndAdministration"]
            if dosing_text:
                populations = label_info["useInSpecificPopulations"]
                result["dosageRecommendations"].append({
                    "indication": _first(label_info["indications"]) or "General use",
                    "adultDose": extract_dosage_from_text(dosing_text),
                    "frequency": extract_frequency_from_text(dosing_text),
                    "route": (drug_info or {}).get("route") or "Oral",
                    "specialInstructions": dosing_text[:200],
                    "geriatricDose": populations.get("geriatric"),
                    "pediatricDose": populations.get("pediatric"),
                    "renalAdjustment": populations.get("renalImpairment"),
                    "hepaticAdjustment": populations.get("hepaticImpairment"),
                })

        rxcui = self.rxnorm.get_rxcui(drug_name)
        if rxcui:
            if result["drugInfo"] is not None:
                result["drugInfo"]["rxcui"] = rxcui
            result["interactions"].extend(self.rxnorm.get_drug_interactions(rxcui))

            if current_medications:
                current_rxcuis = [c for c in (self.rxnorm.get_rxcui(m) for m in current_medications) if c]
                if current_rxcuis:
                    result["interactions"].extend(
                        self.rxnorm.check_multi_drug_interactions([rxcui, *current_rxcuis])
                    )

        adverse_events = self.openfda.get_adverse_events(drug_name, 5)
        if adverse_events:
            result["warnings"].append(f"Common adverse reactions: {', '.join(adverse_events)}")

        return result

    def check_drug_interactions(self, medications: List[str]) -> List[Dict[str, Any]]:
        rxcuis = [c for c in (self.rxnorm.get_rxcui(m) for m in medications) if c]
        if len(rxcuis) < 2:
            return []
        return self.rxnorm.check_multi_drug_interactions(rxcuis)

    def get_alternatives(self, drug_name: str) -> List[str]:
        rxcui = self.rxnorm.get_rxcui(drug_name)
        if not rxcui:
            return []
        return self.rxnorm.get_related_drugs(rxcui)


_medical_apis: Optional[MedicalApisService] = None


def get_medical_apis_service() -> MedicalApisService:
    global _medical_apis
    if _medical_apis is None:
        _medical_apis = MedicalApisService()
    return _medical_apis
