"""Environment toggles for the AI, external-validation and audit features."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Dict

from pydantic.alias_generators import to_camel

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"", "0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    """Parse ``name`` as a boolean; unrecognised values keep ``default``."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return default


@dataclass(frozen=True)
class FeatureFlags:
    # Real chat-completions analysis; off forces the mock
    llm_features_enabled: bool = True
    # Live OpenFDA / RxNorm / PubMed lookups
    external_validation_enabled: bool = False
    # Cascade validation on every analysis, including the mock
    safety_cascade_enabled: bool = False
    audit_logging_enabled: bool = True

    @classmethod
    def from_env(cls) -> "FeatureFlags":
        return cls(
            llm_features_enabled=_env_flag("LLM_FEATURES_ENABLED", True),
            external_validation_enabled=_env_flag("EXTERNAL_VALIDATION_ENABLED", False),
            safety_cascade_enabled=_env_flag("SAFETY_CASCADE_ENABLED", False),
            audit_logging_enabled=_env_flag("AUDIT_LOGGING_ENABLED", True),
        )

    def to_api(self) -> Dict[str, bool]:
        return {to_camel(name): value for name, value in asdict(self).items()}


@lru_cache(maxsize=None)
def get_feature_flags() -> FeatureFlags:
    return FeatureFlags.from_env()


def refresh_feature_flag_cache() -> None:
    """Re-read the environment on the next lookup."""
    get_feature_flags.cache_clear()


def llm_features_enabled() -> bool:
    return get_feature_flags().llm_features_enabled


def external_validation_enabled() -> bool:
    return get_feature_flags().external_validation_enabled


def safety_cascade_enabled() -> bool:
    return get_feature_flags().safety_cascade_enabled


def audit_logging_enabled() -> bool:
    return get_feature_flags().audit_logging_enabled
