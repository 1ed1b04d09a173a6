import pytest

from core.utils.feature_flags import (
    FeatureFlags,
    audit_logging_enabled,
    external_validation_enabled,
    get_feature_flags,
    llm_features_enabled,
    refresh_feature_flag_cache,
    safety_cascade_enabled,
)

FLAG_ENV = {
    "LLM_FEATURES_ENABLED": llm_features_enabled,
    "EXTERNAL_VALIDATION_ENABLED": external_validation_enabled,
    "SAFETY_CASCADE_ENABLED": safety_cascade_enabled,
    "AUDIT_LOGGING_ENABLED": audit_logging_enabled,
}


@pytest.fixture(autouse=True)
def clean_flags(monkeypatch):
    for env_name in FLAG_ENV:
        monkeypatch.delenv(env_name, raising=False)
    refresh_feature_flag_cache()
    yield
    refresh_feature_flag_cache()


def test_defaults():
    assert get_feature_flags() == FeatureFlags()
    assert get_feature_flags().to_api() == {
        "llmFeaturesEnabled": True,
        "externalValidationEnabled": False,
        "safetyCascadeEnabled": False,
        "auditLoggingEnabled": True,
    }


@pytest.mark.parametrize("env_name", list(FLAG_ENV))
def test_each_flag_toggles_from_env(monkeypatch, env_name):
    accessor = FLAG_ENV[env_name]
    default = accessor()
    monkeypatch.setenv(env_name, "off" if default else "on")
    refresh_feature_flag_cache()
    assert accessor() is (not default)


@pytest.mark.parametrize("raw,expected", [("maybe", False), ("2", False), ("YES", True), (" 1 ", True), ("", False)])
def test_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("EXTERNAL_VALIDATION_ENABLED", raw)
    refresh_feature_flag_cache()
    assert external_validation_enabled() is expected


def test_values_are_cached_until_refresh(monkeypatch):
    monkeypatch.setenv("AUDIT_LOGGING_ENABLED", "false")
    refresh_feature_flag_cache()
    assert audit_logging_enabled() is False

    monkeypatch.setenv("AUDIT_LOGGING_ENABLED", "true")
    assert audit_logging_enabled() is False

    refresh_feature_flag_cache()
    assert audit_logging_enabled() is True
