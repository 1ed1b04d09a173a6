from datetime import timedelta

import pytest

from core.utils.runtime import app_base_url, dev_mode_active, mock_analysis_delay_seconds, session_ttl


def test_dev_mode_active_false_when_disabled(monkeypatch):
    monkeypatch.delenv("DEV_MODE", raising=False)
    assert dev_mode_active() is False


def test_dev_mode_active_true_for_localhost(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    assert dev_mode_active() is True


def test_dev_mode_active_raises_for_remote_host(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "https://clinic.example.org")
    with pytest.raises(RuntimeError):
        dev_mode_active()


def test_dev_mode_allowed_for_whitelisted_host(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "https://clinic.example.org")
    monkeypatch.setenv("DEV_MODE_ALLOWED_HOSTS", "clinic.example.org")
    assert dev_mode_active() is True


def test_dev_mode_active_without_app_base_requires_allow(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.delenv("APP_BASE_URL", raising=False)
    monkeypatch.delenv("ALLOW_DEV_MODE", raising=False)
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    with pytest.raises(RuntimeError):
        dev_mode_active()

    monkeypatch.setenv("ALLOW_DEV_MODE", "true")
    assert dev_mode_active() is True


def test_app_base_url_strips_trailing_slash(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://healy.example.com/")
    assert app_base_url() == "https://healy.example.com"
    monkeypatch.delenv("APP_BASE_URL")
    assert app_base_url() == "http://localhost:3000"


def test_session_ttl_and_mock_delay(monkeypatch):
    monkeypatch.delenv("SESSION_TTL_DAYS", raising=False)
    assert session_ttl() == timedelta(days=30)
    monkeypatch.setenv("SESSION_TTL_DAYS", "7")
    assert session_ttl() == timedelta(days=7)
    monkeypatch.setenv("SESSION_TTL_DAYS", "garbage")
    assert session_ttl() == timedelta(days=30)

    monkeypatch.setenv("MOCK_ANALYSIS_DELAY_SECONDS", "-3")
    assert mock_analysis_delay_seconds() == 0.0
    monkeypatch.delenv("MOCK_ANALYSIS_DELAY_SECONDS")
    assert mock_analysis_delay_seconds() == 1.5
