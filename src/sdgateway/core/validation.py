"""Generation request validation.

:func:`validate_generation_request` turns an untrusted JSON body into a
:class:`~sdgateway.core.models.GenerationRequest`.  Checks run in a fixed
order and stop at the first failure:

1. ``prompt`` present, a string, not blank          -> ``prompt_required``
2. ``prompt`` at most 1500 characters                -> ``prompt_too_long``
3. numeric fields coerce; width/height in [64, 1024] -> ``invalid_dimensions``
4. width/height within the caller's plan maximum     -> ``plan_limit_exceeded``
5. ``model`` in the supported catalog                -> ``model_not_found``

Nothing here performs I/O, so a rejected request never reaches the upstream.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from sdgateway.core.models import GenerationRequest
from sdgateway.core.errors import ErrorKind, GatewayError
from sdgateway.core.plans import Plan, next_plan, next_plan_with_resolution

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 1500
MIN_DIMENSION = 64
MAX_DIMENSION = 1024

DEFAULT_DIMENSION = 512
DEFAULT_STEPS = 30
DEFAULT_GUIDANCE_SCALE = 7.5

MAX_BATCH_PROMPTS = 5


class CoercionError(ValueError):
    """A wire value could not be read as a number."""


def coerce_int(value: Any) -> int:
    """Read an integer the way lenient JSON clients send it.

    Accepts ints, finite floats (truncated) and numeric strings such as
    ``"512"`` or ``" 512.0 "``.  Booleans, blanks and anything else fail.
    """
    if isinstance(value, bool):
        raise CoercionError(f"expected a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CoercionError(f"expected a finite number, got {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return coerce_int(float(text))
        except ValueError as e:
            raise CoercionError(f"expected a number, got {value!r}") from e
    raise CoercionError(f"expected a number, got {value!r}")


def coerce_float(value: Any) -> float:
    """Read a float from an int, float or numeric string."""
    if isinstance(value, bool):
        raise CoercionError(f"expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError as e:
            raise CoercionError(f"number out of range: {value!r:.40}") from e
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError as e:
            raise CoercionError(f"expected a number, got {value!r}") from e
    else:
        raise CoercionError(f"expected a number, got {value!r}")
    if not math.isfinite(result):
        raise CoercionError(f"expected a finite number, got {value!r}")
    return result


def _field(payload: dict, name: str, default: Any, *aliases: str) -> Any:
    """Return ``payload[name]`` (or an alias), treating ``None`` as absent."""
    for key in (name, *aliases):
        value = payload.get(key)
        if value is not None:
            return value
    return default


def _upgrade_hint(plan: Plan, requested: int) -> str:
    target = next_plan_with_resolution(plan, requested) or next_plan(plan)
    if target is None:
        return f"{plan.name} is the highest plan; reduce the requested resolution."
    return (
        f"Upgrade to the {target.name} plan for resolutions up to "
        f"{target.max_resolution}x{target.max_resolution}."
    )


def validate_generation_request(
    payload: Any,
    plan: Plan,
    *,
    default_model: str,
    supported_models: Iterable[str],
) -> GenerationRequest:
    """Validate and normalise one generation request.

    Args:
        payload: Decoded JSON body.  Anything other than an object is
            treated as an empty body.
        plan: The caller's resolved plan.
        default_model: Model used when the body does not name one.
        supported_models: Model ids the gateway is willing to proxy.

    Returns:
        A normalised :class:`GenerationRequest` with defaults applied.

    Raises:
        GatewayError: On the first failed check, in the documented order.
    """
    if not isinstance(payload, dict):
        payload = {}

    # --- 1 & 2: prompt ------------------------------------------------------
    prompt = payload.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise GatewayError(ErrorKind.PROMPT_REQUIRED)
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise GatewayError(
            ErrorKind.PROMPT_TOO_LONG,
            detail={"max_length": MAX_PROMPT_LENGTH, "length": len(prompt)},
        )

    # --- 3: numeric coercion and global bounds ------------------------------
    try:
        width = coerce_int(_field(payload, "width", DEFAULT_DIMENSION))
        height = coerce_int(_field(payload, "height", DEFAULT_DIMENSION))
        steps = coerce_int(_field(payload, "steps", DEFAULT_STEPS, "num_inference_steps"))
        guidance_scale = coerce_float(_field(payload, "guidance_scale", DEFAULT_GUIDANCE_SCALE))
    except CoercionError as e:
        raise GatewayError(
            ErrorKind.INVALID_DIMENSIONS,
            f"Numeric parameters could not be parsed: {e}",
        ) from e

    if not (MIN_DIMENSION <= width <= MAX_DIMENSION and MIN_DIMENSION <= height <= MAX_DIMENSION):
        raise GatewayError(
            ErrorKind.INVALID_DIMENSIONS,
            detail={
                "requested": {"width": width, "height": height},
                "min": MIN_DIMENSION,
                "max": MAX_DIMENSION,
            },
        )

    # --- 4: plan bound ------------------------------------------------------
    if width > plan.max_resolution or height > plan.max_resolution:
        logger.info(
            f"Plan limit hit: plan={plan.id} limit={plan.max_resolution} requested={width}x{height}"
        )
        raise GatewayError(
            ErrorKind.PLAN_LIMIT_EXCEEDED,
            f"Maximum resolution for the {plan.name} plan is "
            f"{plan.max_resolution}x{plan.max_resolution}.",
            detail={
                "current_plan": plan.id,
                "limit": {"width": plan.max_resolution, "height": plan.max_resolution},
                "requested": {"width": width, "height": height},
                "upgrade_hint": _upgrade_hint(plan, max(width, height)),
            },
        )

    # --- 5: model catalog ---------------------------------------------------
    model = _field(payload, "model", default_model)
    if not isinstance(model, str) or not model.strip():
        model = default_model
    model = model.strip()
    if model not in set(supported_models):
        raise GatewayError(
            ErrorKind.MODEL_NOT_FOUND,
            f"Model '{model}' is not supported. See GET /api/models.",
        )

    negative_prompt = payload.get("negative_prompt")
    if negative_prompt is None:
        negative_prompt = ""
    elif not isinstance(negative_prompt, str):
        negative_prompt = str(negative_prompt)

    return GenerationRequest(
        prompt=prompt,
        negative_prompt=negative_prompt,
        width=width,
        height=height,
        steps=steps,
        guidance_scale=guidance_scale,
        model=model,
    )


def validate_batch_prompts(payload: Any) -> list[str]:
    """Validate the ``prompts`` array of a batch request.

    Raises:
        GatewayError: ``invalid_prompts`` unless there are 1-5 non-blank
            string prompts, each within the prompt length limit.
    """
    prompts = payload.get("prompts") if isinstance(payload, dict) else None
    if not isinstance(prompts, list) or not 1 <= len(prompts) <= MAX_BATCH_PROMPTS:
        raise GatewayError(ErrorKind.INVALID_PROMPTS)
    for index, prompt in enumerate(prompts):
        if not isinstance(prompt, str) or not prompt.strip():
            raise GatewayError(
                ErrorKind.INVALID_PROMPTS,
                f"Prompt at index {index} must be a non-empty string",
            )
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise GatewayError(
                ErrorKind.INVALID_PROMPTS,
                f"Prompt at index {index} exceeds {MAX_PROMPT_LENGTH} characters",
            )
    return prompts
