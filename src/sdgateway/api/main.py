"""SD Gateway FastAPI application.

This module defines the application factory, every HTTP route, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy in front of one hosted inference API:

- **Configuration** comes from :class:`~sdgateway.core.config.GatewayConfig`
  (``SDGATEWAY_*`` environment variables).  The lifespan refuses to start
  when a required secret is missing.
- **Entitlements** are resolved from reseller headers by
  :class:`~sdgateway.core.entitlements.HeaderEntitlementProvider`; routes only
  see the resulting ``CallerContext``.
- **Generation** is delegated to :class:`~sdgateway.core.gateway.ImageGateway`,
  which validates, counts usage and makes exactly one upstream call.
- **Errors** are :class:`~sdgateway.core.errors.GatewayError` instances
  rendered by the handlers in :mod:`sdgateway.api.errors`.
- **Rate limiting** is a sliding window per client address applied by
  middleware to every ``/api/`` path.

Endpoints
---------
========  ========================  ======================================
Method    Path                      Purpose
========  ========================  ======================================
GET       ``/``                     Liveness, version, plan table
GET       ``/api/models``           Supported model catalog
GET       ``/api/status``           Upstream reachability probe
POST      ``/api/generate``         Generate one image (data URL)
POST      ``/api/generate/batch``   Acknowledge up to 5 prompts (stub)
GET       ``/admin/health``         Operator service snapshot
GET       ``/admin/usage``          Operator usage table
========  ========================  ======================================

Usage
-----
CLI (installed entry point)::

    sdgateway

Direct invocation::

    python -m sdgateway.api.main
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sdgateway import __version__
from sdgateway.api.errors import error_response, register_exception_handlers
from sdgateway.api.models import MODEL_CATALOG, supported_model_ids
from sdgateway.api.responses import build_batch_envelope, build_generation_envelope, isoformat_z
from sdgateway.core.config import GatewayConfig, config
from sdgateway.core.entitlements import CallerContext, EntitlementProvider, HeaderEntitlementProvider
from sdgateway.core.errors import ErrorKind, GatewayError
from sdgateway.core.gateway import ImageGateway
from sdgateway.core.plans import PLANS
from sdgateway.core.rate_limit import SlidingWindowRateLimiter
from sdgateway.core.upstream import InferenceClient
from sdgateway.core.usage import InMemoryUsageCounter, UsageCounter

logger = logging.getLogger(__name__)

SERVICE_NAME = "AI Text-to-Image API (Stable Diffusion XL)"

ADMIN_KEY_HEADERS = ("x-admin-key", "admin-key")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; script-src 'self'; "
        "img-src 'self' data: blob: https://*.huggingface.co"
    ),
}


def _mask_secret(value: str, visible: int = 4) -> str:
    if not value:
        return "(missing)"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def _client_host(request: Request) -> str | None:
    return request.client.host if request.client else None


async def _read_json(request: Request) -> Any:
    """Decode the request body; an empty body reads as ``{}``.

    Bodies larger than ``max_body_bytes`` are rejected, first by the declared
    ``Content-Length`` and then by the bytes actually received.
    """
    limit = request.app.state.config.max_body_bytes
    too_large = GatewayError(
        ErrorKind.VALIDATION_ERROR,
        f"Request body exceeds {limit} bytes",
        detail={"max_body_bytes": limit},
    )
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise too_large

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise too_large
        chunks.append(chunk)
    body = b"".join(chunks)
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except ValueError as e:
        raise GatewayError(ErrorKind.VALIDATION_ERROR, "Request body must be valid JSON") from e


def _caller(request: Request) -> CallerContext:
    provider: EntitlementProvider = request.app.state.entitlements
    return provider.resolve(request.headers, _client_host(request))


def _require_admin(request: Request) -> None:
    cfg: GatewayConfig = request.app.state.config
    if not cfg.admin_enabled:
        raise GatewayError(ErrorKind.UNAUTHORIZED, "Admin endpoints are disabled")
    supplied = next(
        (request.headers[h] for h in ADMIN_KEY_HEADERS if request.headers.get(h)),
        "",
    )
    if not secrets.compare_digest(supplied.encode("utf-8"), cfg.admin_key.encode("utf-8")):
        logger.warning(f"Rejected admin request from {_client_host(request)}")
        raise GatewayError(ErrorKind.UNAUTHORIZED)


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/")
async def index(request: Request) -> dict:
    """Liveness check with service metadata and the plan table."""
    cfg: GatewayConfig = request.app.state.config
    return {
        "status": "online",
        "service": SERVICE_NAME,
        "version": __version__,
        "model": cfg.default_model,
        "uptime": _uptime(request),
        "endpoints": {
            "generate": "POST /api/generate",
            "batch": "POST /api/generate/batch",
            "models": "GET /api/models",
            "status": "GET /api/status",
        },
        "plans": [plan.to_dict() for plan in PLANS],
    }


@router.get("/api/models")
async def list_models() -> dict:
    return {"success": True, "models": [m.model_dump(exclude_none=True) for m in MODEL_CATALOG]}


@router.get("/api/status")
async def upstream_status(request: Request) -> JSONResponse:
    """Probe the inference API.

    Returns:
        200 with ``status: operational`` when the probe succeeds, otherwise
        503 with ``status: degraded``.
    """
    gateway: ImageGateway = request.app.state.gateway
    reachable = await gateway.client.probe()
    body = {
        "success": reachable,
        "huggingface": "connected" if reachable else "connection_failed",
        "model": gateway.client.default_model,
        "status": "operational" if reachable else "degraded",
        "timestamp": isoformat_z(_utcnow()),
    }
    return JSONResponse(status_code=200 if reachable else 503, content=body)


@router.post("/api/generate")
async def generate_image(request: Request) -> dict:
    """Generate one image and return it inline as a data URL.

    The body is read as raw JSON rather than a Pydantic model so that the
    gateway's ordered validation decides which error a bad request gets.

    Raises:
        GatewayError: Validation, daily-limit or upstream failures.
    """
    caller = _caller(request)
    payload = await _read_json(request)
    gateway: ImageGateway = request.app.state.gateway
    result = await gateway.generate(payload, caller)
    return build_generation_envelope(result)


@router.post("/api/generate/batch")
async def generate_batch(request: Request) -> dict:
    """Acknowledge a batch of prompts without generating anything."""
    caller = _caller(request)
    payload = await _read_json(request)
    gateway: ImageGateway = request.app.state.gateway
    ack = gateway.acknowledge_batch(payload, caller)
    return build_batch_envelope(ack)


@router.get("/admin/health")
async def admin_health(request: Request) -> dict:
    _require_admin(request)
    cfg: GatewayConfig = request.app.state.config
    gateway: ImageGateway = request.app.state.gateway
    snapshot = gateway.usage.snapshot()
    return {
        "success": True,
        "service": SERVICE_NAME,
        "version": __version__,
        "environment": cfg.environment,
        "uptime": _uptime(request),
        "upstream": {
            "base_url": cfg.upstream_base_url,
            "model": cfg.default_model,
            "timeout_seconds": cfg.upstream_timeout_seconds,
        },
        "rate_limit": {
            "max_requests": cfg.effective_rate_limit,
            "window_seconds": cfg.rate_limit_window_seconds,
        },
        "usage_totals": snapshot["totals"],
        "timestamp": isoformat_z(_utcnow()),
    }


@router.get("/admin/usage")
async def admin_usage(request: Request) -> dict:
    _require_admin(request)
    gateway: ImageGateway = request.app.state.gateway
    snapshot = gateway.usage.snapshot()
    return {
        "success": True,
        "usage": snapshot["usage"],
        "totals": snapshot["totals"],
        "timestamp": isoformat_z(_utcnow()),
    }


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    app_config: GatewayConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    usage: UsageCounter | None = None,
    entitlements: EntitlementProvider | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        app_config: Configuration; defaults to the global ``config``.
        transport: Optional ``httpx`` transport for the upstream client
            (tests pass an ``httpx.MockTransport``).
        usage: Usage counter; defaults to an in-memory counter.
        entitlements: Caller resolver; defaults to reading reseller headers
            with :class:`HeaderEntitlementProvider`.

    Returns:
        The configured application.  Required secrets are checked when the
        lifespan starts, not here.
    """
    cfg = app_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # --- Startup -------------------------------------------------------
        cfg.ensure_startup_ready()
        if not cfg.admin_enabled:
            logger.warning("SDGATEWAY_ADMIN_KEY is not set; admin endpoints are disabled.")

        logger.info(
            f"Starting {SERVICE_NAME} v{__version__} "
            f"(environment={cfg.environment}, model={cfg.default_model}, "
            f"token={_mask_secret(cfg.huggingface_token)}, "
            f"rate_limit={cfg.effective_rate_limit}/{cfg.rate_limit_window_seconds}s)"
        )

        async with httpx.AsyncClient(transport=transport) as http:
            client = InferenceClient(
                http,
                token=cfg.huggingface_token,
                base_url=cfg.upstream_base_url,
                default_model=cfg.default_model,
                timeout=cfg.upstream_timeout_seconds,
                probe_timeout=cfg.status_timeout_seconds,
            )
            app.state.gateway = ImageGateway(
                client,
                usage or InMemoryUsageCounter(retention_days=cfg.usage_retention_days),
                supported_model_ids(),
            )
            app.state.started_at = time.monotonic()

            yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        logger.info("Upstream HTTP client closed on shutdown.")

    app = FastAPI(
        title="SD Gateway",
        description="Plan-gated proxy for hosted Stable Diffusion image generation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.entitlements = entitlements or HeaderEntitlementProvider(default_plan=cfg.default_plan)
    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=cfg.effective_rate_limit,
        window_seconds=cfg.rate_limit_window_seconds,
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)
        limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
        decision = limiter.hit(_client_host(request) or "unknown")
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {_client_host(request)} on {request.url.path}")
            return error_response(
                GatewayError(ErrorKind.RATE_LIMIT_EXCEEDED, headers=decision.headers())
            )
        response = await call_next(request)
        response.headers.update(decision.headers())
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host and port come from :data:`~sdgateway.core.config.config`
    (``SDGATEWAY_SERVER_HOST`` / ``SDGATEWAY_SERVER_PORT``).  This function is
    registered as the ``sdgateway`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "sdgateway.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
