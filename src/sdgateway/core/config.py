"""Configuration management for SD Gateway.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SDGATEWAY_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SDGATEWAY_* prefix)
2. .env file in the working directory
3. Default values defined in GatewayConfig

Example .env file:
    SDGATEWAY_HUGGINGFACE_TOKEN=hf_xxx
    SDGATEWAY_ADMIN_KEY=change-me
    SDGATEWAY_ENVIRONMENT=production
    SDGATEWAY_SERVER_PORT=3000

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Creating it never fails on missing secrets: required values are checked by
:meth:`GatewayConfig.ensure_startup_ready`, which the application lifespan
calls before serving any request.

Usage Example
-------------
    from sdgateway.core.config import config

    print(config.default_model)
    print(config.effective_rate_limit)

Required Secrets
----------------
- huggingface_token: bearer token for the inference API. Startup aborts
  without it.
- admin_key: shared secret for the ``/admin`` endpoints. Startup aborts
  without it unless ``require_admin_key`` is turned off, in which case the
  admin endpoints are disabled rather than left open.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when the process configuration cannot support serving traffic."""


class GatewayConfig(BaseSettings):
    """Main configuration for SD Gateway.

    Attributes
    ----------
    Upstream Settings:
        huggingface_token : str
            Bearer token sent to the inference API (required at startup)
        upstream_base_url : str
            Base URL; the model id is appended as a path
        default_model : str
            Model used when a request does not name one
        upstream_timeout_seconds : float
            Deadline for one generation call (image generation is slow)
        status_timeout_seconds : float
            Deadline for the reachability probe behind ``GET /api/status``

    Access Settings:
        admin_key : str
            Shared secret for the admin endpoints
        require_admin_key : bool
            Treat a missing admin key as a fatal misconfiguration
        default_plan : str
            Plan assigned when the plan header is absent or unknown

    Limits:
        rate_limit_window_seconds : int
            Length of the rolling window of the per-address rate limiter
        rate_limit_max_requests : int | None
            Requests allowed per window; ``None`` picks 15 in production
            and 30 otherwise
        usage_retention_days : int
            Days of daily usage kept in memory before eviction
        max_body_bytes : int
            Largest accepted JSON request body (10 MB)

    Server Settings:
        environment : Literal["development", "production"]
        server_host : str
        server_port : int
        log_level : str

    Examples
    --------
        >>> cfg = GatewayConfig(huggingface_token="hf_test", admin_key="secret")
        >>> cfg.ensure_startup_ready()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SDGATEWAY_",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream inference API
    huggingface_token: str = Field(
        default="",
        description="Hugging Face API token used as the upstream bearer credential",
    )
    upstream_base_url: str = Field(
        default="https://api-inference.huggingface.co/models",
        description="Inference API base URL (model id is appended)",
    )
    default_model: str = Field(
        default="stabilityai/stable-diffusion-xl-base-1.0",
        description="Model used when the request does not specify one",
    )
    upstream_timeout_seconds: float = Field(
        default=120.0,
        description="Timeout for one generation call",
        gt=0,
    )
    status_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for the upstream reachability probe",
        gt=0,
    )

    # Access control
    admin_key: str = Field(
        default="",
        description="Shared secret required by the /admin endpoints",
    )
    require_admin_key: bool = Field(
        default=True,
        description="Refuse to start when admin_key is empty",
    )
    default_plan: str = Field(
        default="basic",
        description="Plan used when the caller's plan header is absent or unknown",
    )

    # Limits
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_max_requests: int | None = Field(
        default=None,
        description="Requests per window per client address (None = environment default)",
        ge=1,
    )
    usage_retention_days: int = Field(
        default=2,
        description="Days of usage counts kept in memory",
        ge=1,
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest JSON request body accepted, in bytes",
        ge=1,
    )

    # Server
    environment: Literal["development", "production"] = Field(default="development")
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def effective_rate_limit(self) -> int:
        """Requests allowed per window, falling back to the environment default."""
        if self.rate_limit_max_requests is not None:
            return self.rate_limit_max_requests
        return 15 if self.is_production else 30

    @property
    def admin_enabled(self) -> bool:
        return bool(self.admin_key)

    def ensure_startup_ready(self) -> None:
        """Check that every secret needed to serve traffic is present.

        Raises:
            ConfigurationError: If the upstream token is missing, or the admin
                key is missing while ``require_admin_key`` is set.
        """
        missing: list[str] = []
        if not self.huggingface_token.strip():
            missing.append("SDGATEWAY_HUGGINGFACE_TOKEN")
        if self.require_admin_key and not self.admin_key.strip():
            missing.append("SDGATEWAY_ADMIN_KEY")
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


# Global configuration instance
config = GatewayConfig()
