from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from core.db import schemas


def _message(model, data):
    with pytest.raises(ValidationError) as exc:
        model.model_validate(data)
    return schemas.validation_error_message(exc.value)


VALID_REGISTRATION = {
    "fullName": "Dr. Ada Lovelace",
    "email": "ada@clinic.org",
    "password": "Str0ng!Pass",
    "confirmPassword": "Str0ng!Pass",
    "medicalLicenseNumber": "MD12345",
    "specialty": "Cardiology",
    "phoneNumber": "5551234567",
    "acceptTerms": True,
}


@pytest.mark.parametrize(
    "override,message",
    [
        ({"fullName": "A"}, "Full name must be at least 2 characters"),
        ({"email": "nope"}, "Invalid email address"),
        ({"password": "Sh0r!", "confirmPassword": "Sh0r!"}, "Password must be at least 8 characters"),
        ({"password": "lower0!case", "confirmPassword": "lower0!case"}, "Password must contain at least one uppercase letter"),
        ({"password": "UPPER0!CASE", "confirmPassword": "UPPER0!CASE"}, "Password must contain at least one lowercase letter"),
        ({"password": "NoNumber!", "confirmPassword": "NoNumber!"}, "Password must contain at least one number"),
        ({"password": "NoSpecial1", "confirmPassword": "NoSpecial1"}, "Password must contain at least one special character"),
        ({"confirmPassword": "Different1!"}, "Passwords do not match"),
        ({"medicalLicenseNumber": "123"}, "Medical license number is required"),
        ({"specialty": "X"}, "Specialty is required"),
        ({"phoneNumber": "555"}, "Valid phone number is required"),
        ({"acceptTerms": False}, "You must accept the terms and conditions"),
    ],
)
def test_register_request_messages(override, message):
    assert _message(schemas.RegisterRequest, {**VALID_REGISTRATION, **override}) == message


def test_register_request_accepts_valid_payload():
    req = schemas.RegisterRequest.model_validate(VALID_REGISTRATION)
    assert req.medical_license_number == "MD12345"


def test_patient_demographics_rules():
    base = {"name": "Jane Roe", "dateOfBirth": "1980-05-17", "gender": "FEMALE"}
    assert schemas.PatientDemographics.model_validate(base).name == "Jane Roe"

    assert _message(schemas.PatientDemographics, {**base, "name": "J"}) == "Name must be at least 2 characters"
    assert _message(schemas.PatientDemographics, {**base, "name": "x" * 101}) == "Name must be less than 100 characters"
    assert _message(schemas.PatientDemographics, {**base, "dateOfBirth": ""}) == "Date of birth is required"
    future = (date.today() + timedelta(days=3)).isoformat()
    assert _message(schemas.PatientDemographics, {**base, "dateOfBirth": future}) == "Date of birth cannot be in the future"
    assert _message(schemas.PatientDemographics, {**base, "dateOfBirth": "1800-01-01"}) == "Please enter a valid date of birth"
    assert _message(schemas.PatientDemographics, {**base, "weight": 0.1}) == "Weight must be at least 0.5 kg"
    assert _message(schemas.PatientDemographics, {**base, "height": 301}) == "Height must be less than 300 cm"


def test_patient_vitals_ranges():
    assert _message(schemas.PatientVitals, {"temperature": 43}) == "Temperature must be less than 42°C"
    assert _message(schemas.PatientVitals, {"oxygenSaturation": 101}) == "Oxygen saturation cannot exceed 100%"
    assert _message(schemas.PatientVitals, {"bloodPressureSystolic": 50}) == "Systolic BP must be at least 60 mmHg"
    assert _message(schemas.PatientVitals, {"chiefComplaint": "x" * 501}) == "Chief complaint must be less than 500 characters"
    assert schemas.PatientVitals.model_validate({"heartRate": 72}).heart_rate == 72


def test_patient_create_defaults_lists():
    created = schemas.PatientCreate.model_validate({
        "name": "Jane Roe",
        "dateOfBirth": "1980-05-17",
        "gender": "FEMALE",
        "allergies": None,
    })
    assert created.allergies == []
    assert created.current_medications == []
    assert created.chronic_conditions == []


def test_patient_update_rejects_null_required_fields():
    assert _message(schemas.PatientUpdate, {"name": None}) == "Field cannot be null"
    update = schemas.PatientUpdate.model_validate({"weight": None})
    assert update.model_dump(exclude_unset=True) == {"weight": None}


def test_intake_messages():
    assert _message(schemas.Intake, {"chiefComplaint": "short", "currentSymptoms": ["cough"]}) == (
        "Chief complaint must be at least 10 characters"
    )
    assert _message(schemas.Intake, {"chiefComplaint": "Persistent cough for a week", "currentSymptoms": []}) == (
        "At least one symptom is required"
    )
    intake = schemas.Intake.model_validate({
        "chiefComplaint": "Persistent cough for a week",
        "currentSymptoms": ["cough"],
        "symptomDurationValue": 7,
    })
    assert intake.symptom_duration_value == 7


def test_select_patient_and_medication_messages():
    assert _message(schemas.SelectPatient, {"patientId": ""}) == "Please select a patient"
    med = {"name": "Ibuprofen", "dosage": "400mg", "frequency": "q8h", "duration": "5 days", "route": "oral"}
    assert schemas.Medication.model_validate(med).route == "oral"
    assert _message(schemas.Medication, {**med, "dosage": ""}) == "Dosage is required"
    assert _message(schemas.Medication, {**med, "route": ""}) == "Route is required"


def test_error_map_filters_fields():
    with pytest.raises(ValidationError) as exc:
        schemas.Intake.model_validate({"chiefComplaint": "short", "currentSymptoms": [], "additionalNotes": "x" * 5001})
    errors = schemas.error_map(exc.value, ["chiefComplaint", "currentSymptoms"])
    assert errors == {
        "chiefComplaint": "Chief complaint must be at least 10 characters",
        "currentSymptoms": "At least one symptom is required",
    }


def test_analyze_request_use_rag_alias():
    req = schemas.AnalyzeRequest.model_validate({
        "patient": {
            "id": "p1",
            "name": "Jane Roe",
            "dateOfBirth": "1980-05-17",
            "gender": "FEMALE",
            "allergies": [],
            "chronicConditions": [],
        },
        "chiefComplaint": "Headache",
        "currentSymptoms": ["headache"],
        "currentMedications": [],
        "useRAG": True,
    })
    assert req.use_rag is True
    assert _message(schemas.AnalyzeRequest, {**req.model_dump(by_alias=True), "chiefComplaint": ""}) == (
        "Chief complaint is required"
    )
