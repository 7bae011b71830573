"""Request gatekeeper: validate, count, proxy.

:class:`ImageGateway` ties the collaborators together for one generation:

1. Validate the body against the caller's plan (no I/O).
2. Count the call against the caller's advisory daily ceiling.
3. Forward exactly one request to the inference API.
4. Return a :class:`GenerationResult` for the response layer to shape.

Any step may raise :class:`~sdgateway.core.errors.GatewayError`; nothing is
retried.
"""

from __future__ import annotations

import logging
import random
import string
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sdgateway.core.models import GenerationRequest
from sdgateway.core.entitlements import CallerContext
from sdgateway.core.errors import ErrorKind, GatewayError
from sdgateway.core.upstream import InferenceClient, UpstreamImage
from sdgateway.core.usage import UsageCounter, UsageKey, utc_today
from sdgateway.core.validation import validate_batch_prompts, validate_generation_request

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase

# Rough per-image estimate quoted by the batch acknowledgement.
SECONDS_PER_BATCH_PROMPT = 15


def generate_id(prefix: str) -> str:
    """Return ``<prefix>_<ms timestamp>_<9 base36 chars>``.

    Uniqueness is best-effort; a collision is harmless.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _truncate(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


@dataclass(frozen=True)
class GenerationResult:
    """Everything the response layer needs after a successful generation."""

    id: str
    request: GenerationRequest
    image: UpstreamImage
    caller: CallerContext
    generation_time_ms: int
    daily_used: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class BatchAcknowledgement:
    batch_id: str
    prompts: list[str]
    caller: CallerContext
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def estimated_seconds(self) -> int:
        return len(self.prompts) * SECONDS_PER_BATCH_PROMPT


class ImageGateway:
    """Gatekeeper and proxy for text-to-image requests.

    Args:
        client: Upstream inference client.
        usage: Daily usage counter.
        supported_models: Model ids that may be requested.  The client's
            default model is always supported.
        today: Clock used to key usage counts.
    """

    def __init__(
        self,
        client: InferenceClient,
        usage: UsageCounter,
        supported_models: Iterable[str],
        today: Callable[[], Any] = utc_today,
    ) -> None:
        self.client = client
        self.usage = usage
        self.supported_models = frozenset([*supported_models, client.default_model])
        self._today = today

    def validate(self, payload: Any, caller: CallerContext) -> GenerationRequest:
        return validate_generation_request(
            payload,
            caller.plan,
            default_model=self.client.default_model,
            supported_models=self.supported_models,
        )

    async def generate(self, payload: Any, caller: CallerContext) -> GenerationResult:
        """Validate, count and run one generation.

        Args:
            payload: Decoded JSON request body.
            caller: The caller's resolved entitlement.

        Returns:
            The successful generation.

        Raises:
            GatewayError: Validation failure, ``daily_limit_exceeded``, or an
                upstream failure.
        """
        request = self.validate(payload, caller)

        plan = caller.plan
        decision = self.usage.increment_and_check(
            UsageKey(day=self._today(), caller_id=caller.caller_id),
            plan.daily_limit,
        )
        if not decision.allowed:
            raise GatewayError(
                ErrorKind.DAILY_LIMIT_EXCEEDED,
                f"Daily limit of {plan.daily_limit} requests reached for the {plan.name} plan. "
                "Upgrade your plan for a higher limit.",
                detail={"daily_limit": plan.daily_limit, "plan": plan.id},
            )

        logger.info(
            f'Generating image for "{_truncate(request.prompt)}" '
            f"({request.width}x{request.height}, model={request.model}, "
            f"plan={plan.id}, caller={caller.caller_id}, "
            f"api_key={'yes' if caller.api_key_present else 'no'})"
        )

        started = time.perf_counter()
        image = await self.client.generate(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.info(f"Generated {len(image.content)} bytes in {elapsed_ms}ms")
        return GenerationResult(
            id=generate_id("img"),
            request=request,
            image=image,
            caller=caller,
            generation_time_ms=elapsed_ms,
            daily_used=decision.count,
        )

    def acknowledge_batch(self, payload: Any, caller: CallerContext) -> BatchAcknowledgement:
        """Validate a batch request and acknowledge it.

        Batches are accepted but not executed: nothing is sent upstream.
        """
        prompts = validate_batch_prompts(payload)
        ack = BatchAcknowledgement(batch_id=generate_id("batch"), prompts=prompts, caller=caller)
        logger.info(f"Batch {ack.batch_id} acknowledged with {len(prompts)} prompts")
        return ack
