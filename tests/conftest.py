"""Shared pytest fixtures for SD Gateway tests."""

from __future__ import annotations

from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from sdgateway.api.main import create_app
from sdgateway.core.config import GatewayConfig
from tests.stubs import ADMIN_KEY, DEFAULT_MODEL, UPSTREAM_BASE, UpstreamStub


@pytest.fixture
def test_config() -> GatewayConfig:
    """Create a fully configured GatewayConfig that ignores the real environment.

    Returns:
        GatewayConfig with a fake token, admin key and a generous rate limit
    """
    return GatewayConfig(
        _env_file=None,
        huggingface_token="hf_test_token",
        admin_key=ADMIN_KEY,
        upstream_base_url=UPSTREAM_BASE,
        default_model=DEFAULT_MODEL,
        rate_limit_max_requests=1000,
        environment="development",
    )


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def test_client(test_config: GatewayConfig, upstream: UpstreamStub) -> Generator[TestClient, None, None]:
    """TestClient for an app whose upstream is the :class:`UpstreamStub`.

    The client is used as a context manager so the lifespan runs.
    """
    app = create_app(test_config, transport=httpx.MockTransport(upstream))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def plan_headers():
    """Build reseller headers for a plan and caller id."""

    def _build(plan: str = "basic", user: str = "user-1") -> dict[str, str]:
        return {"X-RapidAPI-Subscription": plan, "X-RapidAPI-User": user}

    return _build
