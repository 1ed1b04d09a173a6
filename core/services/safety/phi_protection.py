"""
PHI de-identification for text sent to external AI providers.

Identifiers are swapped for opaque ``[PHI-xxxxxxxx]`` tokens and the mapping is
kept in memory (per session id, or in a shared map) so responses can be
re-identified before they reach the doctor.
"""
from __future__ import annotations

import copy
import re
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

_PHI_TOKEN_RE = re.compile(r"\[PHI-[a-f0-9]{8}\]")

# (category, patterns) in the order they are applied.
PHI_PATTERNS: List[Tuple[str, List[re.Pattern]]] = [
    ("social_security", [
        re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
        re.compile(r"\b\d{9}\b(?=.*(?:ssn|social|security))", re.IGNORECASE),
    ]),
    ("medical_record_number", [
        re.compile(r"\b(?:MRN|MR#?|Medical Record)\s*[:#]?\s*([A-Z0-9]{6,12})\b", re.IGNORECASE),
        re.compile(r"\b[A-Z]{2,3}\d{6,10}\b"),
    ]),
    ("phone_number", [
        re.compile(r"\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
        re.compile(r"\b\d{3}[-.\s]\d{4}\b"),
    ]),
    ("email", [
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    ]),
    ("date_of_birth", [
        re.compile(r"\b(?:DOB|Date of Birth|Birth Date)\s*[:#]?\s*(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\b", re.IGNORECASE),
        re.compile(r"\b(?:born|birthdate)\s*[:#]?\s*(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\b", re.IGNORECASE),
    ]),
    ("address", [
        re.compile(
            r"\b\d{1,5}\s+(?:[A-Za-z]+\s*){1,4}"
            r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Court|Ct|Way|Place|Pl)\b\.?"
            r"\s*(?:,?\s*(?:Apt|Suite|Unit|#)\s*\d+)?",
            re.IGNORECASE,
        ),
        re.compile(r"\b(?:P\.?O\.?\s*Box|Post Office Box)\s*\d+\b", re.IGNORECASE),
    ]),
    ("health_plan_id", [
        re.compile(r"\b(?:Insurance|Policy|Member|Subscriber)\s*(?:ID|#|Number)\s*[:#]?\s*([A-Z0-9]{8,15})\b", re.IGNORECASE),
        re.compile(r"\b(?:Group|Plan)\s*(?:ID|#|Number)\s*[:#]?\s*([A-Z0-9]{6,12})\b", re.IGNORECASE),
    ]),
    ("account_number", [
        re.compile(r"\b(?:Account|Acct)\s*(?:ID|#|Number)\s*[:#]?\s*([A-Z0-9]{6,15})\b", re.IGNORECASE),
    ]),
    ("ip_address", [
        re.compile(
            r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
            r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b"
        ),
    ]),
]

COMMON_FIRST_NAMES = frozenset({
    "james", "john", "robert", "michael", "william", "david", "richard", "joseph", "thomas", "charles",
    "mary", "patricia", "jennifer", "linda", "elizabeth", "barbara", "susan", "jessica", "sarah", "karen",
    "daniel", "matthew", "anthony", "mark", "donald", "steven", "paul", "andrew", "joshua", "kenneth",
    "nancy", "betty", "margaret", "sandra", "ashley", "dorothy", "kimberly", "emily", "donna", "michelle",
})

TITLE_PREFIXES = ("mr", "mrs", "ms", "miss", "dr", "prof", "patient")

# Title matched case-insensitively, the name itself must be capitalised.
_TITLED_NAME_RE = re.compile(
    r"\b(?i:" + "|".join(TITLE_PREFIXES) + r")\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b"
)
_FULL_NAME_RE = re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?\b")

DEFAULT_SENSITIVE_FIELDS = ("name", "patientName", "email", "phone", "address", "ssn", "mrn")


@dataclass
class PHIToken:
    token: str
    category: str
    original_value: str


@dataclass
class DeidentificationResult:
    deidentified_text: str
    tokens: List[PHIToken] = field(default_factory=list)

    @property
    def phi_detected(self) -> bool:
        return bool(self.tokens)

    @property
    def categories(self) -> List[str]:
        return list(dict.fromkeys(t.category for t in self.tokens))


@dataclass
class ReidentificationResult:
    original_text: str
    tokens_restored: int


def _new_token() -> str:
    return f"[PHI-{uuid.uuid4().hex[:8]}]"


class PHIProtectionService:
    """Reversible tokenisation of identifiers in free text and nested objects."""

    def __init__(self) -> None:
        self._global_tokens: Dict[str, PHIToken] = {}
        self._session_tokens: Dict[str, Dict[str, PHIToken]] = {}
        self._lock = threading.Lock()

    def _store(self, token: PHIToken, session_id: Optional[str]) -> None:
        with self._lock:
            if session_id:
                self._session_tokens.setdefault(session_id, {})[token.token] = token
            else:
                self._global_tokens[token.token] = token

    def _lookup(self, token: str, session_id: Optional[str]) -> Optional[PHIToken]:
        with self._lock:
            if session_id:
                return self._session_tokens.get(session_id, {}).get(token)
            return self._global_tokens.get(token)

    def _tokenize(self, pattern: re.Pattern, text: str, category: str,
                  session_id: Optional[str], tokens: List[PHIToken], name_filter=None) -> str:
        def replace(match: re.Match) -> str:
            if _PHI_TOKEN_RE.fullmatch(match.group(0)):
                return match.group(0)
            if name_filter is not None and not name_filter(match.group(0)):
                return match.group(0)
            phi = PHIToken(token=_new_token(), category=category, original_value=match.group(0))
            tokens.append(phi)
            self._store(phi, session_id)
            return phi.token

        return pattern.sub(replace, text)

    def deidentify(self, text: str, session_id: Optional[str] = None) -> DeidentificationResult:
        tokens: List[PHIToken] = []
        result = text or ""
        for category, patterns in PHI_PATTERNS:
            for pattern in patterns:
                result = self._tokenize(pattern, result, category, session_id, tokens)

        result = self._tokenize(_TITLED_NAME_RE, result, "patient_name", session_id, tokens)
        result = self._tokenize(
            _FULL_NAME_RE,
            result,
            "patient_name",
            session_id,
            tokens,
            name_filter=lambda name: name.split()[0].lower() in COMMON_FIRST_NAMES,
        )
        return DeidentificationResult(deidentified_text=result, tokens=tokens)

    def reidentify(self, text: str, session_id: Optional[str] = None) -> ReidentificationResult:
        restored = 0

        def replace(match: re.Match) -> str:
            nonlocal restored
            phi = self._lookup(match.group(0), session_id)
            if phi is None:
                return match.group(0)
            restored += 1
            return phi.original_value

        original = _PHI_TOKEN_RE.sub(replace, text or "")
        return ReidentificationResult(original_text=original, tokens_restored=restored)

    def deidentify_object(
        self,
        obj: Dict[str, Any],
        session_id: Optional[str] = None,
        sensitive_fields: Sequence[str] = DEFAULT_SENSITIVE_FIELDS,
    ) -> Tuple[Dict[str, Any], List[PHIToken]]:
        """De-identify string values whose key contains one of ``sensitive_fields``."""
        tokens: List[PHIToken] = []
        lowered = [f.lower() for f in sensitive_fields]

        def process(value: Any, key: str) -> Any:
            if isinstance(value, str):
                if any(f in key.lower() for f in lowered):
                    result = self.deidentify(value, session_id)
                    tokens.extend(result.tokens)
                    return result.deidentified_text
                return value
            if isinstance(value, list):
                return [process(item, f"{key}[{i}]") for i, item in enumerate(value)]
            if isinstance(value, dict):
                return {k: process(v, k) for k, v in value.items()}
            return value

        return {k: process(v, k) for k, v in copy.deepcopy(obj).items()}, tokens

    def reidentify_object(self, obj: Any, session_id: Optional[str] = None) -> Any:
        if isinstance(obj, str):
            return self.reidentify(obj, session_id).original_text
        if isinstance(obj, list):
            return [self.reidentify_object(item, session_id) for item in obj]
        if isinstance(obj, dict):
            return {k: self.reidentify_object(v, session_id) for k, v in obj.items()}
        return obj

    def clear_session(self, session_id: str) -> None:
        with self._lock:
            self._session_tokens.pop(session_id, None)

    def get_session_stats(self, session_id: str) -> Dict[str, Any]:
        with self._lock:
            session = dict(self._session_tokens.get(session_id, {}))
        counts: Dict[str, int] = {}
        for phi in session.values():
            counts[phi.category] = counts.get(phi.category, 0) + 1
        return {"tokenCount": len(session), "categoryCounts": counts}

    def detect_phi(self, text: str) -> Dict[str, Any]:
        """Classify the PHI risk of ``text`` as none, low, medium or high."""
        session_id = f"detect-{uuid.uuid4().hex}"
        try:
            result = self.deidentify(text, session_id)
        finally:
            self.clear_session(session_id)

        categories = result.categories
        if not result.tokens:
            risk = "none"
        elif "social_security" in categories or "medical_record_number" in categories:
            risk = "high"
        elif "patient_name" in categories or "date_of_birth" in categories:
            risk = "medium"
        else:
            risk = "low"
        return {"hasPHI": result.phi_detected, "categories": categories, "riskLevel": risk}

    def create_safe_patient_context(self, context: Dict[str, Any], session_id: str) -> Tuple[Dict[str, Any], int]:
        """Return a de-identified copy of a patient context and the number of tokens created."""
        safe: Dict[str, Any] = {}
        count = 0

        if context.get("name"):
            result = self.deidentify(context["name"], session_id)
            safe["name"] = result.deidentified_text
            count += len(result.tokens)
        if context.get("dateOfBirth"):
            result = self.deidentify(f"DOB: {context['dateOfBirth']}", session_id)
            safe["dateOfBirth"] = result.deidentified_text.replace("DOB: ", "", 1)
            count += len(result.tokens)
        for key in ("age", "gender", "allergies", "chronicConditions", "currentMedications"):
            if context.get(key) is not None:
                safe[key] = context[key]
        if context.get("chiefComplaint"):
            result = self.deidentify(context["chiefComplaint"], session_id)
            safe["chiefComplaint"] = result.deidentified_text
            count += len(result.tokens)
        if context.get("currentSymptoms") is not None:
            symptoms = []
            for symptom in context["currentSymptoms"]:
                result = self.deidentify(symptom, session_id)
                count += len(result.tokens)
                symptoms.append(result.deidentified_text)
            safe["currentSymptoms"] = symptoms
        return safe, count


_phi_service: Optional[PHIProtectionService] = None


def get_phi_service() -> PHIProtectionService:
    global _phi_service
    if _phi_service is None:
        _phi_service = PHIProtectionService()
    return _phi_service
