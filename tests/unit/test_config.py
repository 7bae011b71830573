"""Tests for sdgateway.core.config - configuration management.

Tests cover:
- Default values for configuration fields.
- Environment variable overrides via the SDGATEWAY_ prefix.
- Startup checks for required secrets.
- Pydantic validation constraints.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sdgateway.core.config import ConfigurationError, GatewayConfig


def _config(**overrides) -> GatewayConfig:
    return GatewayConfig(_env_file=None, **overrides)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SDGATEWAY_HUGGINGFACE_TOKEN",
        "SDGATEWAY_ADMIN_KEY",
        "SDGATEWAY_ENVIRONMENT",
        "SDGATEWAY_RATE_LIMIT_MAX_REQUESTS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigDefaults:
    """Verify that GatewayConfig provides sensible defaults."""

    def test_default_upstream(self):
        cfg = _config()
        assert cfg.default_model == "stabilityai/stable-diffusion-xl-base-1.0"
        assert cfg.upstream_timeout_seconds == 120.0
        assert cfg.status_timeout_seconds == 5.0

    def test_default_plan_is_basic(self):
        assert _config().default_plan == "basic"

    def test_default_server_port(self):
        assert _config().server_port == 3000

    def test_default_body_limit_is_ten_megabytes(self):
        assert _config().max_body_bytes == 10 * 1024 * 1024

    def test_rate_limit_depends_on_environment(self):
        assert _config().effective_rate_limit == 30
        assert _config(environment="production").effective_rate_limit == 15

    def test_explicit_rate_limit_wins(self):
        assert _config(environment="production", rate_limit_max_requests=99).effective_rate_limit == 99


class TestConfigEnvironment:
    """Values are read from SDGATEWAY_* variables."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SDGATEWAY_HUGGINGFACE_TOKEN", "hf_from_env")
        monkeypatch.setenv("SDGATEWAY_ENVIRONMENT", "production")
        cfg = _config()
        assert cfg.huggingface_token == "hf_from_env"
        assert cfg.is_production


class TestStartupReady:
    """Missing secrets are fatal, never silently permissive."""

    def test_ready_with_all_secrets(self):
        _config(huggingface_token="hf_x", admin_key="k").ensure_startup_ready()

    def test_missing_token_is_fatal(self):
        with pytest.raises(ConfigurationError, match="HUGGINGFACE_TOKEN"):
            _config(admin_key="k").ensure_startup_ready()

    def test_missing_admin_key_is_fatal_by_default(self):
        with pytest.raises(ConfigurationError, match="ADMIN_KEY"):
            _config(huggingface_token="hf_x").ensure_startup_ready()

    def test_admin_key_optional_when_not_required(self):
        cfg = _config(huggingface_token="hf_x", require_admin_key=False)
        cfg.ensure_startup_ready()
        assert cfg.admin_enabled is False


class TestConfigValidation:
    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            _config(environment="staging")

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            _config(server_port=70000)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            _config(upstream_timeout_seconds=0)

    def test_body_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            _config(max_body_bytes=0)
