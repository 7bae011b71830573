"""Client-facing error taxonomy for SD Gateway.

Every failure the gateway reports to a caller is a :class:`GatewayError`
tagged with one :class:`ErrorKind`.  The kind fixes the machine-readable
code, the HTTP status and a default message; :meth:`GatewayError.to_dict`
is the only place the wire shape is built::

    {"success": false, "error": "<code>", "message": "<text>", ...detail}

Upstream HTTP failures are translated by :func:`map_upstream_error`, which
extracts at most a short message from the upstream body.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

# Upper bound on how much upstream text is relayed to a caller.
_MAX_UPSTREAM_MESSAGE = 200


class ErrorKind(Enum):
    """Error kinds as ``(code, http_status, default_message)``."""

    PROMPT_REQUIRED = ("prompt_required", 400, "Text prompt is required and must be a string")
    PROMPT_TOO_LONG = ("prompt_too_long", 400, "Prompt exceeds maximum length of 1500 characters")
    INVALID_DIMENSIONS = (
        "invalid_dimensions",
        400,
        "Width and height must be between 64 and 1024 pixels",
    )
    PLAN_LIMIT_EXCEEDED = (
        "plan_limit_exceeded",
        403,
        "Requested resolution exceeds your plan limit",
    )
    DAILY_LIMIT_EXCEEDED = ("daily_limit_exceeded", 429, "Daily request limit reached")
    INVALID_PROMPTS = ("invalid_prompts", 400, "Prompts must be an array with 1-5 items")
    RATE_LIMIT_EXCEEDED = (
        "rate_limit_exceeded",
        429,
        "Rate limit exceeded. Try again in a minute.",
    )
    INVALID_API_TOKEN = ("invalid_api_token", 401, "Invalid Hugging Face API token")
    PAYMENT_REQUIRED = (
        "payment_required",
        402,
        "Upstream account requires payment or has exhausted its credits",
    )
    RATE_LIMITED = ("rate_limited", 429, "Hugging Face rate limit reached")
    MODEL_LOADING = (
        "model_loading",
        503,
        "Model is loading. Please try again in 30-60 seconds.",
    )
    MODEL_NOT_FOUND = ("model_not_found", 404, "Requested model was not found")
    UPSTREAM_ERROR = ("upstream_error", 502, "Hugging Face API error")
    NETWORK_ERROR = ("network_error", 504, "Cannot connect to Hugging Face API")
    SERVER_ERROR = ("server_error", 500, "Internal server error")
    ENDPOINT_NOT_FOUND = ("endpoint_not_found", 404, "Endpoint not found")
    UNAUTHORIZED = ("unauthorized", 403, "Invalid or missing admin key")
    VALIDATION_ERROR = ("validation_error", 422, "Request body could not be parsed")

    def __init__(self, code: str, http_status: int, default_message: str) -> None:
        self.code = code
        self.http_status = http_status
        self.default_message = default_message


class GatewayError(Exception):
    """A failure reported to the caller as one :class:`ErrorKind`.

    Args:
        kind: The error kind.
        message: Human-readable text; defaults to the kind's message.
        detail: Extra top-level fields merged into the serialized body.
        headers: Extra response headers (e.g. ``Retry-After``).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        detail: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or kind.default_message
        self.detail = detail or {}
        self.headers = headers or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.kind.code,
            "message": self.message,
        }
        for key, value in self.detail.items():
            payload.setdefault(key, value)
        return payload

    def __repr__(self) -> str:
        return f"GatewayError({self.kind.code!r}, {self.message!r})"


def extract_upstream_message(body: bytes | str | None) -> str | None:
    """Pull a short error message out of an upstream response body.

    The inference API reports failures as ``{"error": "..."}`` (sometimes a
    list of strings).  Anything else yields ``None``: raw bodies are never
    relayed.
    """
    if not body:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    error = parsed.get("error")
    if isinstance(error, list):
        error = "; ".join(str(item) for item in error)
    if not isinstance(error, str) or not error.strip():
        return None
    return error.strip()[:_MAX_UPSTREAM_MESSAGE]


def map_upstream_error(status_code: int, body: bytes | str | None = None) -> GatewayError:
    """Translate an upstream HTTP failure into a :class:`GatewayError`.

    Args:
        status_code: HTTP status returned by the inference API.
        body: Raw upstream response body.

    Returns:
        The gateway error to raise.  Upstream messages mentioning that the
        model is loading map to ``model_loading`` regardless of status.
    """
    upstream_message = extract_upstream_message(body)
    detail = {"upstream_status": status_code}

    if upstream_message and "loading" in upstream_message.lower():
        return GatewayError(ErrorKind.MODEL_LOADING, detail=detail)
    if status_code in (401, 403):
        return GatewayError(ErrorKind.INVALID_API_TOKEN, detail=detail)
    if status_code == 402:
        return GatewayError(ErrorKind.PAYMENT_REQUIRED, detail=detail)
    if status_code == 429:
        return GatewayError(ErrorKind.RATE_LIMITED, detail=detail)
    if status_code == 503:
        return GatewayError(ErrorKind.MODEL_LOADING, detail=detail)
    if status_code == 404:
        return GatewayError(ErrorKind.MODEL_NOT_FOUND, upstream_message, detail=detail)
    return GatewayError(ErrorKind.UPSTREAM_ERROR, upstream_message, detail=detail)
