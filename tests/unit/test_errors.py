"""Tests for sdgateway.core.errors - error kinds and upstream mapping."""

from __future__ import annotations

import json

import pytest

from sdgateway.core.errors import ErrorKind, GatewayError, extract_upstream_message, map_upstream_error


class TestGatewayError:
    """Serialisation of the tagged error type."""

    def test_default_message(self):
        err = GatewayError(ErrorKind.PROMPT_REQUIRED)
        assert err.to_dict() == {
            "success": False,
            "error": "prompt_required",
            "message": ErrorKind.PROMPT_REQUIRED.default_message,
        }
        assert err.http_status == 400

    def test_detail_is_merged_without_overriding_core_fields(self):
        err = GatewayError(ErrorKind.DAILY_LIMIT_EXCEEDED, "stop", detail={"daily_limit": 5, "error": "x"})
        body = err.to_dict()
        assert body["error"] == "daily_limit_exceeded"
        assert body["message"] == "stop"
        assert body["daily_limit"] == 5

    def test_codes_are_unique(self):
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))


class TestExtractUpstreamMessage:
    def test_string_error(self):
        assert extract_upstream_message(b'{"error": "Model is busy"}') == "Model is busy"

    def test_list_error(self):
        assert extract_upstream_message('{"error": ["a", "b"]}') == "a; b"

    @pytest.mark.parametrize("body", [None, b"", b"<html>oops</html>", b"[1, 2]", b'{"detail": "x"}'])
    def test_unusable_bodies(self, body):
        assert extract_upstream_message(body) is None

    def test_message_is_truncated(self):
        body = json.dumps({"error": "e" * 1000})
        assert len(extract_upstream_message(body)) == 200


class TestMapUpstreamError:
    """Upstream status codes map onto the fixed taxonomy."""

    @pytest.mark.parametrize(
        "status, code, http_status",
        [
            (401, "invalid_api_token", 401),
            (403, "invalid_api_token", 401),
            (402, "payment_required", 402),
            (429, "rate_limited", 429),
            (503, "model_loading", 503),
            (404, "model_not_found", 404),
            (500, "upstream_error", 502),
            (400, "upstream_error", 502),
        ],
    )
    def test_status_mapping(self, status, code, http_status):
        err = map_upstream_error(status, b"")
        assert err.code == code
        assert err.http_status == http_status

    def test_loading_message_wins_over_status(self):
        body = b'{"error": "Model stabilityai/sdxl is currently loading", "estimated_time": 20}'
        assert map_upstream_error(500, body).code == "model_loading"

    def test_raw_payload_not_leaked(self):
        err = map_upstream_error(500, b"Traceback (most recent call last): secret internals")
        assert "Traceback" not in json.dumps(err.to_dict())

    def test_upstream_message_relayed_for_generic_errors(self):
        err = map_upstream_error(400, b'{"error": "Input is too long"}')
        assert err.message == "Input is too long"
        assert err.to_dict()["upstream_status"] == 400
