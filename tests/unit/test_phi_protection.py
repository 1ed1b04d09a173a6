import re

from core.services.safety.phi_protection import PHIProtectionService

TOKEN = re.compile(r"^\[PHI-[a-f0-9]{8}\]$")


def test_deidentify_and_restore_text():
    service = PHIProtectionService()
    text = "Mr. Smith (SSN 123-45-6789) can be reached at jane@example.com"
    result = service.deidentify(text, "s1")

    assert "123-45-6789" not in result.deidentified_text
    assert "jane@example.com" not in result.deidentified_text
    assert "Smith" not in result.deidentified_text
    assert result.phi_detected
    assert set(result.categories) == {"social_security", "email", "patient_name"}

    restored = service.reidentify(result.deidentified_text, "s1")
    assert restored.original_text == text
    assert restored.tokens_restored == 3


def test_tokens_are_scoped_to_session():
    service = PHIProtectionService()
    result = service.deidentify("MRN: AB123456", "s1")
    assert result.categories == ["medical_record_number"]

    other = service.reidentify(result.deidentified_text, "s2")
    assert other.original_text == result.deidentified_text
    assert other.tokens_restored == 0

    service.clear_session("s1")
    assert service.reidentify(result.deidentified_text, "s1").tokens_restored == 0


def test_full_names_need_a_common_first_name():
    service = PHIProtectionService()
    result = service.deidentify("John Miller reports Chest Pain")
    assert [t.original_value for t in result.tokens] == ["John Miller"]
    assert result.deidentified_text.endswith("reports Chest Pain")


def test_existing_tokens_are_not_retokenized():
    service = PHIProtectionService()
    first = service.deidentify("call 555-123-4567", "s1")
    second = service.deidentify(first.deidentified_text, "s1")
    assert second.deidentified_text == first.deidentified_text
    assert second.tokens == []


def test_detect_phi_risk_levels():
    service = PHIProtectionService()
    assert service.detect_phi("no identifiers here") == {"hasPHI": False, "categories": [], "riskLevel": "none"}
    assert service.detect_phi("SSN 123-45-6789")["riskLevel"] == "high"
    assert service.detect_phi("Seen by Dr. Adams today")["riskLevel"] == "medium"
    assert service.detect_phi("server at 10.0.0.1")["riskLevel"] == "low"


def test_deidentify_object_only_touches_sensitive_keys():
    service = PHIProtectionService()
    obj = {
        "patientName": "Mary Jones",
        "notes": "Mary Jones",
        "contact": {"email": "mary@example.com"},
        "age": 44,
    }
    safe, tokens = service.deidentify_object(obj, "s1")
    assert TOKEN.match(safe["patientName"])
    assert safe["notes"] == "Mary Jones"
    assert TOKEN.match(safe["contact"]["email"])
    assert safe["age"] == 44
    assert len(tokens) == 2
    assert obj["patientName"] == "Mary Jones"

    assert service.reidentify_object(safe, "s1") == obj


def test_safe_patient_context():
    service = PHIProtectionService()
    context = {
        "name": "Mary Roe",
        "dateOfBirth": "05/17/1980",
        "age": 44,
        "gender": "FEMALE",
        "allergies": ["penicillin"],
        "chiefComplaint": "Headache since Monday",
        "currentSymptoms": ["headache"],
    }
    safe, count = service.create_safe_patient_context(context, "s1")
    assert TOKEN.match(safe["name"])
    assert TOKEN.match(safe["dateOfBirth"])
    assert safe["allergies"] == ["penicillin"]
    assert safe["currentSymptoms"] == ["headache"]
    assert count == 2
    assert service.get_session_stats("s1") == {
        "tokenCount": 2,
        "categoryCounts": {"patient_name": 1, "date_of_birth": 1},
    }
