from core.services.safety.cascade_validator import CascadeValidatorService
from core.services.safety.severity_detection import SeverityAssessment


class StubFDA:
    def __init__(self, labels=None, error=None):
        self.labels = labels or {}
        self.error = error

    def get_drug_label(self, name):
        if self.error:
            raise self.error
        return self.labels.get(name.lower())


class StubRxNorm:
    def __init__(self, rxcuis=None, interactions=None):
        self.rxcuis = rxcuis or {}
        self.interactions = interactions or []

    def get_rxcui(self, name):
        return self.rxcuis.get(name.lower())

    def check_multi_drug_interactions(self, rxcuis):
        return self.interactions


class StubPubMed:
    def __init__(self, total=0, references=None):
        self.total = total
        self.references = references or []
        self.calls = []

    def search_articles(self, condition, treatment, max_results=5, article_types=None):
        self.calls.append((condition, treatment))
        return {"totalCount": self.total, "references": self.references}


class StubKnowledge:
    def __init__(self, docs):
        self.docs = docs

    def search_similar(self, db, query, **kwargs):
        assert kwargs["filter_source_type"] == "clinical_guideline"
        return self.docs


def _severity(level="STANDARD", validations=("FDA",)):
    return SeverityAssessment(
        severity_level=level,
        triggers=[],
        required_validations=list(validations),
        confidence_modifier=0,
    )


PATIENT = {
    "allergies": ["Penicillin"],
    "chronicConditions": ["Asthma"],
    "currentMedications": ["warfarin"],
    "chiefComplaint": "Sore throat",
}

AMOX = {"name": "Amoxicillin", "dosage": "500mg"}


def _validator(**kwargs):
    kwargs.setdefault("openfda", StubFDA())
    kwargs.setdefault("rxnorm", StubRxNorm())
    kwargs.setdefault("pubmed", StubPubMed())
    kwargs.setdefault("knowledge", StubKnowledge([]))
    kwargs.setdefault("external_validation", True)
    return CascadeValidatorService(**kwargs)


def test_allergy_conflict_blocks_at_fda():
    fda = StubFDA({"amoxicillin": {"warnings": [], "contraindications": ["Known penicillin hypersensitivity"]}})
    result = _validator(openfda=fda).validate({"medications": [AMOX]}, PATIENT, _severity())
    assert not result.is_approved
    assert result.blocked_by == "FDA"
    assert result.block_reason == "Contraindicated due to patient allergy to Penicillin"
    assert [s.source for s in result.sources] == ["FDA"]


def test_black_box_warning_blocks():
    fda = StubFDA({"amoxicillin": {"warnings": ["BOXED WARNING: serious risk"], "contraindications": []}})
    result = _validator(openfda=fda).validate({"medications": [AMOX]}, {}, _severity())
    assert result.blocked_by == "FDA"
    assert result.block_reason.startswith("Black box warning: BOXED WARNING")
    assert result.sources[0].data == {"hasBlackBoxWarning": True}


def test_unknown_label_lowers_confidence():
    result = _validator().validate({"medications": [AMOX]}, {"currentMedications": []}, _severity())
    assert result.is_approved
    assert result.sources[0].confidence == 50
    assert result.confidence_modifier == -7.5


def test_fda_failure_is_soft():
    result = _validator(openfda=StubFDA(error=RuntimeError("down"))).validate(
        {"medications": [AMOX]}, {}, _severity()
    )
    assert result.is_approved
    assert result.sources[0].reason == "FDA validation unavailable"
    assert result.sources[0].confidence == 40


def test_contraindicated_interaction_blocks():
    fda = StubFDA({"amoxicillin": {"warnings": [], "contraindications": []}})
    rxnorm = StubRxNorm(
        rxcuis={"amoxicillin": "723", "warfarin": "11289"},
        interactions=[{
            "drug1": "amoxicillin",
            "drug2": "warfarin",
            "severity": "Contraindicated",
            "description": "bleeding risk",
        }],
    )
    patient = {**PATIENT, "allergies": [], "chronicConditions": []}
    result = _validator(openfda=fda, rxnorm=rxnorm).validate({"medications": [AMOX]}, patient, _severity())
    assert result.blocked_by == "INTERACTION"
    assert result.block_reason == "Contraindicated interaction between amoxicillin and warfarin: bleeding risk"


def test_major_interaction_adds_warning():
    fda = StubFDA({"amoxicillin": {"warnings": [], "contraindications": []}})
    rxnorm = StubRxNorm(
        rxcuis={"amoxicillin": "723", "warfarin": "11289"},
        interactions=[{"drug1": "amoxicillin", "drug2": "warfarin", "severity": "Major", "description": "x"}],
    )
    patient = {**PATIENT, "allergies": [], "chronicConditions": []}
    result = _validator(openfda=fda, rxnorm=rxnorm).validate({"medications": [AMOX]}, patient, _severity())
    assert result.is_approved
    assert result.warnings == ["Major interaction warning: amoxicillin with warfarin"]


def test_disabled_external_validation_skips_live_sources():
    pubmed = StubPubMed()
    validator = _validator(
        openfda=StubFDA(error=AssertionError("should not be called")),
        pubmed=pubmed,
        external_validation=False,
    )
    severity = _severity("CRITICAL", ("FDA", "INTERACTION", "GUIDELINE", "PUBMED"))
    result = validator.validate({"medications": [AMOX]}, PATIENT, severity, db=object())
    assert [s.source for s in result.sources] == ["GUIDELINE"]
    assert pubmed.calls == []
    assert result.requires_manual_review


def test_guideline_without_matches_is_warning_free():
    severity = _severity("URGENT", ("FDA", "INTERACTION", "GUIDELINE"))
    result = _validator(external_validation=False).validate({"medications": [AMOX]}, PATIENT, severity, db=object())
    guideline = result.sources[0]
    assert guideline.source == "GUIDELINE"
    assert guideline.confidence == 50
    assert result.warnings == []
    assert not result.requires_manual_review


def test_guideline_strong_match():
    knowledge = StubKnowledge([{"similarity": 0.82}, {"similarity": 0.6}])
    severity = _severity("URGENT", ("FDA", "INTERACTION", "GUIDELINE"))
    result = _validator(knowledge=knowledge, external_validation=False).validate(
        {"medications": [AMOX]}, PATIENT, severity, db=object()
    )
    assert result.sources[0].confidence == 85
    assert result.sources[0].data == {"guidelinesFound": 2}


def test_pubmed_without_evidence_warns():
    fda = StubFDA({"amoxicillin": {"warnings": [], "contraindications": []}})
    pubmed = StubPubMed(total=0)
    severity = _severity("CRITICAL", ("FDA", "INTERACTION", "GUIDELINE", "PUBMED"))
    result = _validator(openfda=fda, pubmed=pubmed).validate(
        {"medications": [AMOX]}, {"chiefComplaint": "Sore throat"}, severity, db=object()
    )
    assert pubmed.calls == [("Sore throat", "Amoxicillin")]
    assert "Limited evidence support in medical literature" in result.warnings
    assert result.confidence_modifier == -10


def test_pubmed_high_quality_evidence():
    pubmed = StubPubMed(total=3, references=[{"publicationType": ["Meta-Analysis"]}])
    validator = _validator(pubmed=pubmed)
    source = validator.validate_with_pubmed([AMOX], "Sore throat")
    assert source.is_approved
    assert source.confidence == 90
    assert source.data == {"evidenceCount": 3, "hasHighQualityEvidence": True}


def test_result_serializes_camel_case():
    result = _validator(external_validation=False).validate({"medications": []}, {}, _severity())
    assert result.to_api() == {
        "isApproved": True,
        "blockedBy": None,
        "blockReason": None,
        "warnings": [],
        "confidenceModifier": 0,
        "sources": [],
        "requiresManualReview": False,
    }
