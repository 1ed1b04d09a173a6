"""Runtime environment helpers: dev-mode guard and service-level settings."""

import os
from datetime import timedelta
from typing import Optional, Set
from urllib.parse import urlparse

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}

DEFAULT_APP_BASE_URL = "http://localhost:3000"
DEFAULT_SESSION_TTL_DAYS = 30
DEFAULT_MOCK_ANALYSIS_DELAY_SECONDS = 1.5


def _extract_hostname(url_value: str) -> Optional[str]:
    """Return hostname from a URL or bare host string."""
    url_value = (url_value or "").strip()
    if not url_value:
        return None
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def _allowed_dev_hosts() -> Set[str]:
    extra = os.getenv("DEV_MODE_ALLOWED_HOSTS", "")
    allowed = set(_LOCAL_HOSTS)
    allowed.update({host.strip().lower() for host in extra.split(",") if host.strip()})
    return allowed


def dev_mode_requested() -> bool:
    return os.getenv("DEV_MODE", "false").lower() == "true"


def dev_mode_active() -> bool:
    """Return True if dev mode is enabled and allowed; raise if misconfigured.

    DEV_MODE authenticates every request as a local development doctor, so it
    is only honoured when APP_BASE_URL points at a local (or explicitly
    whitelisted) host, or ALLOW_DEV_MODE=true is set.
    """
    if not dev_mode_requested():
        return False

    hostname = _extract_hostname(os.getenv("APP_BASE_URL", ""))
    allowed_hosts = _allowed_dev_hosts()

    if hostname:
        if hostname.lower() not in allowed_hosts:
            raise RuntimeError(
                "DEV_MODE=true is not permitted when APP_BASE_URL points to "
                f"'{hostname}'. Allowed hosts: {sorted(allowed_hosts)}"
            )
    elif os.getenv("ALLOW_DEV_MODE", "false").lower() != "true" and not os.getenv("PYTEST_CURRENT_TEST"):
        raise RuntimeError(
            "DEV_MODE=true requires APP_BASE_URL to be set to a localhost URL "
            "or ALLOW_DEV_MODE=true for non-local execution."
        )

    return True


def app_base_url() -> str:
    return (os.getenv("APP_BASE_URL") or DEFAULT_APP_BASE_URL).rstrip("/")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def session_ttl() -> timedelta:
    return timedelta(days=_float_env("SESSION_TTL_DAYS", DEFAULT_SESSION_TTL_DAYS))


def mock_analysis_delay_seconds() -> float:
    return max(0.0, _float_env("MOCK_ANALYSIS_DELAY_SECONDS", DEFAULT_MOCK_ANALYSIS_DELAY_SECONDS))
