"""FastAPI exception handlers.

All error responses are produced here from :class:`GatewayError`, so every
failure shares the ``{"success": false, "error": ..., "message": ...}`` shape.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sdgateway.core.errors import ErrorKind, GatewayError

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = {
    "/": "Health check (GET)",
    "/api/generate": "Generate image (POST)",
    "/api/generate/batch": "Acknowledge a batch of up to 5 prompts (POST)",
    "/api/models": "List models (GET)",
    "/api/status": "API status (GET)",
}


def error_response(error: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content=error.to_dict(),
        headers=error.headers or None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def handle_gateway_error(_request: Request, exc: GatewayError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError):
        return error_response(GatewayError(ErrorKind.VALIDATION_ERROR))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return error_response(
                GatewayError(
                    ErrorKind.ENDPOINT_NOT_FOUND,
                    f"Cannot {request.method} {request.url.path}",
                    detail={"available_endpoints": AVAILABLE_ENDPOINTS},
                )
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": "http_error", "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(GatewayError(ErrorKind.SERVER_ERROR))
