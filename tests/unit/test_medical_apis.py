from unittest.mock import MagicMock, patch

import requests

from core.services.medical_apis import (
    MedicalApisService,
    OpenFDAService,
    RxNormService,
    extract_dosage_from_text,
    extract_frequency_from_text,
    map_severity,
)


def _response(payload=None, status=200):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload or {}
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(str(status))
    else:
        response.raise_for_status.return_value = None
    return response


def test_map_severity():
    assert map_severity(None) == "Moderate"
    assert map_severity("contraindicated") == "Contraindicated"
    assert map_severity("HIGH") == "Major"
    assert map_severity("low") == "Minor"
    assert map_severity("N/A") == "Moderate"


def test_text_extraction():
    assert extract_dosage_from_text("Take 500 mg by mouth twice daily") == "500 mg"
    assert extract_dosage_from_text("no amount") == "See prescribing information"
    assert extract_frequency_from_text("Take 500 mg by mouth twice daily") == "twice daily"
    assert extract_frequency_from_text("whenever") == "As directed"


def test_get_drug_label_maps_fields():
    payload = {"results": [{
        "openfda": {"brand_name": ["Advil"], "generic_name": ["ibuprofen"]},
        "indications_and_usage": ["Pain"],
        "dosage_and_administration": ["200 mg every 4-6 hours"],
        "warnings": ["Stomach bleeding"],
        "boxed_warning": ["Cardiovascular risk"],
        "contraindications": ["CABG surgery"],
    }]}
    with patch("core.services.medical_apis.requests.get", return_value=_response(payload)):
        label = OpenFDAService().get_drug_label("advil")
    assert label["brandName"] == "Advil"
    assert label["warnings"] == ["Stomach bleeding", "Cardiovascular risk"]
    assert label["dosageAndAdministration"] == "200 mg every 4-6 hours"
    assert label["useInSpecificPopulations"]["pregnancy"] is None


def test_label_lookup_handles_missing_and_errors():
    service = OpenFDAService()
    with patch("core.services.medical_apis.requests.get", return_value=_response(status=404)):
        assert service.get_drug_label("nothing") is None
    with patch("core.services.medical_apis.requests.get", side_effect=requests.Timeout("slow")):
        assert service.get_drug_label("advil") is None
    with patch("core.services.medical_apis.requests.get", return_value=_response(status=500)):
        assert service.search_drug("advil") is None


def test_rxcui_and_multi_drug_interactions():
    service = RxNormService()
    with patch(
        "core.services.medical_apis.requests.get",
        return_value=_response({"idGroup": {"rxnormId": ["5640"]}}),
    ):
        assert service.get_rxcui("ibuprofen") == "5640"

    assert service.check_multi_drug_interactions(["1"]) == []

    payload = {"fullInteractionTypeGroup": [{"fullInteractionType": [{
        "comment": "Monitor INR",
        "interactionPair": [{
            "interactionConcept": [
                {"minConceptItem": {"name": "warfarin"}},
                {"minConceptItem": {"name": "ibuprofen"}},
            ],
            "severity": "high",
            "description": "Increased bleeding risk",
        }],
    }]}]}
    with patch("core.services.medical_apis.requests.get", return_value=_response(payload)) as get:
        interactions = service.check_multi_drug_interactions(["11289", "5640"])
    assert get.call_args.args[0].endswith("/interaction/list.json?rxcuis=11289+5640")
    assert interactions == [{
        "drug1": "warfarin",
        "drug2": "ibuprofen",
        "severity": "Major",
        "description": "Increased bleeding risk",
        "clinicalEffects": "Monitor INR",
        "recommendation": "Review and adjust as needed",
        "source": "RxNorm",
    }]


def test_validate_drug_aggregates_sources():
    openfda = MagicMock()
    openfda.search_drug.return_value = {"brandName": "Advil", "route": "ORAL", "rxcui": None}
    openfda.get_drug_label.return_value = {
        "warnings": ["w1", "w2", "w3", "w4"],
        "contraindications": ["c1", "c2", "c3"],
        "dosageAndAdministration": "Take 200 mg every 4 hours",
        "indications": ["Minor pain"],
        "useInSpecificPopulations": {"geriatric": "Use lowest dose", "pediatric": None},
    }
    openfda.get_adverse_events.return_value = ["nausea", "dyspepsia"]
    rxnorm = MagicMock()
    rxnorm.get_rxcui.side_effect = lambda name: {"advil": "5640", "warfarin": "11289"}.get(name)
    rxnorm.get_drug_interactions.return_value = []
    rxnorm.check_multi_drug_interactions.return_value = [{"severity": "Major"}]

    result = MedicalApisService(openfda=openfda, rxnorm=rxnorm, dailymed=MagicMock()).validate_drug(
        "advil", ["warfarin", "unknown"]
    )
    assert result["isValid"] is True
    assert result["drugInfo"]["rxcui"] == "5640"
    assert result["warnings"] == ["w1", "w2", "w3", "c1", "c2", "Common adverse reactions: nausea, dyspepsia"]
    dosing = result["dosageRecommendations"][0]
    assert dosing["adultDose"] == "200 mg"
    assert dosing["frequency"] == "every 4 hours"
    assert dosing["route"] == "ORAL"
    assert dosing["geriatricDose"] == "Use lowest dose"
    assert result["interactions"] == [{"severity": "Major"}]
    rxnorm.check_multi_drug_interactions.assert_called_once_with(["5640", "11289"])


def test_check_drug_interactions_needs_two_known_drugs():
    rxnorm = MagicMock()
    rxnorm.get_rxcui.side_effect = lambda name: "1" if name == "known" else None
    service = MedicalApisService(openfda=MagicMock(), rxnorm=rxnorm, dailymed=MagicMock())
    assert service.check_drug_interactions(["known", "mystery"]) == []
    rxnorm.check_multi_drug_interactions.assert_not_called()
