"""Unit tests for settings and per-role defaults."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from credstore.core.config import ServiceRole, Settings, get_settings, resolve_worker_id


def test_default_ports_follow_role() -> None:
    assert Settings(service_role=ServiceRole.ISSUANCE).resolved_port() == 3004
    assert Settings(service_role=ServiceRole.VERIFICATION).resolved_port() == 3002


def test_role_argument_overrides_configured_role() -> None:
    settings = Settings(service_role=ServiceRole.ISSUANCE)
    assert settings.resolved_port(ServiceRole.VERIFICATION) == 3002


def test_explicit_port_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("SERVICE_ROLE", "verification")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.service_role is ServiceRole.VERIFICATION
    assert settings.resolved_port() == 8080
    assert settings.resolved_port(ServiceRole.ISSUANCE) == 8080


def test_generated_worker_ids_carry_role_prefix() -> None:
    settings = Settings()

    issuer = resolve_worker_id(settings, ServiceRole.ISSUANCE)
    verifier = resolve_worker_id(settings, ServiceRole.VERIFICATION)

    assert issuer.startswith("worker-")
    assert verifier.startswith("verifier-")
    assert issuer != resolve_worker_id(settings, ServiceRole.ISSUANCE)


def test_configured_worker_id_is_used() -> None:
    settings = Settings(worker_id="worker-fixed")
    assert resolve_worker_id(settings, ServiceRole.ISSUANCE) == "worker-fixed"


def test_production_rejects_debug() -> None:
    with pytest.raises(ValidationError, match="debug must be False"):
        Settings(
            environment="production",
            debug=True,
            cors_origins=["https://credentials.example.org"],
            worker_id="worker-prod",
        )


def test_production_requires_explicit_cors_origins() -> None:
    with pytest.raises(ValidationError, match="cors_origins"):
        Settings(environment="production", worker_id="worker-prod")


def test_production_warns_without_worker_id() -> None:
    with pytest.warns(UserWarning, match="worker_id is not set"):
        Settings(environment="staging", cors_origins=["https://credentials.example.org"])


def test_development_accepts_defaults() -> None:
    settings = Settings()
    assert settings.environment == "development"
    assert settings.debug_endpoints_enabled is True
    assert settings.csp_enabled is False
