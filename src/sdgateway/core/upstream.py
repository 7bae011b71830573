"""Client for the hosted inference API.

:class:`InferenceClient` wraps one shared :class:`httpx.AsyncClient` and
issues exactly one POST per generation.  There are no retries: a failed call
is translated into a :class:`~sdgateway.core.errors.GatewayError` and
surfaces immediately.  Generated images stay in memory; they are returned
inline as ``data:`` URLs and never written to disk.

Usage
-----
::

    async with httpx.AsyncClient() as http:
        client = InferenceClient(http, token="hf_...", base_url=config.upstream_base_url,
                                 default_model=config.default_model)
        image = await client.generate(request)
        url = to_data_url(image.content, image.media_type)
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

import httpx

from sdgateway.core.models import GenerationRequest
from sdgateway.core.errors import ErrorKind, GatewayError, map_upstream_error

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class UpstreamImage:
    """Raw image returned by the inference API."""

    content: bytes
    media_type: str = DEFAULT_MEDIA_TYPE


def to_data_url(content: bytes, media_type: str = DEFAULT_MEDIA_TYPE) -> str:
    """Encode image bytes as an inline ``data:`` URL."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def _image_media_type(content_type: str | None) -> str:
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type.startswith("image/"):
        return media_type
    return DEFAULT_MEDIA_TYPE


class InferenceClient:
    """Thin async proxy to the image-generation endpoint.

    Args:
        http: Shared HTTP client; its lifetime is owned by the caller.
        token: Bearer token for the inference API.
        base_url: API base URL; the model id is appended as a path.
        default_model: Model probed by :meth:`probe`.
        timeout: Deadline in seconds for one generation call.
        probe_timeout: Deadline in seconds for :meth:`probe`.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        token: str,
        base_url: str,
        default_model: str,
        timeout: float = 120.0,
        probe_timeout: float = 5.0,
    ) -> None:
        self._http = http
        self._token = token
        self._base_url = base_url.rstrip("/")
        self.default_model = default_model
        self._timeout = timeout
        self._probe_timeout = probe_timeout

    def model_url(self, model: str) -> str:
        return f"{self._base_url}/{model}"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def generate(self, request: GenerationRequest) -> UpstreamImage:
        """Run one generation upstream.

        Args:
            request: A validated generation request.

        Returns:
            The raw image and its media type.

        Raises:
            GatewayError: ``network_error`` when no response arrived (connect
                failure or timeout), otherwise the kind mapped from the
                upstream status.
        """
        url = self.model_url(request.model)
        headers = {**self._auth_headers(), "Accept": "image/png"}
        try:
            response = await self._http.post(
                url,
                json=request.to_upstream_payload(),
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Upstream timed out after {self._timeout}s for model {request.model}")
            raise GatewayError(
                ErrorKind.NETWORK_ERROR,
                "Hugging Face API did not respond in time",
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Upstream request failed for model {request.model}: {e!r}")
            raise GatewayError(ErrorKind.NETWORK_ERROR) from e

        if response.status_code >= 400:
            error = map_upstream_error(response.status_code, response.content)
            logger.error(
                f"Upstream returned {response.status_code} for model {request.model}: {error.code}"
            )
            raise error

        return UpstreamImage(
            content=response.content,
            media_type=_image_media_type(response.headers.get("content-type")),
        )

    async def probe(self) -> bool:
        """Return ``True`` when the default model endpoint answers a HEAD request."""
        try:
            response = await self._http.head(
                self.model_url(self.default_model),
                headers=self._auth_headers(),
                timeout=self._probe_timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Upstream probe failed: {e!r}")
            return False
        if response.status_code >= 400:
            logger.warning(f"Upstream probe returned {response.status_code}")
            return False
        return True
