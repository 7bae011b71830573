"""Success envelopes returned by the generation endpoints."""

from __future__ import annotations

from sdgateway.core.gateway import BatchAcknowledgement, GenerationResult
from sdgateway.core.plans import Plan, next_plan
from sdgateway.core.upstream import to_data_url


def isoformat_z(value) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def upgrade_suggestion(plan: Plan) -> dict | None:
    """Describe the tier above ``plan``, or ``None`` for the top tier."""
    target = next_plan(plan)
    if target is None:
        return None
    return {
        "plan": target.id,
        "name": target.name,
        "max_resolution": target.max_resolution,
        "price": target.price,
        "message": (
            f"Upgrade to {target.name} for up to {target.max_resolution}x"
            f"{target.max_resolution} images and {target.daily_limit} generations per day."
        ),
    }


def build_generation_envelope(result: GenerationResult) -> dict:
    """Shape a :class:`GenerationResult` into the ``POST /api/generate`` body."""
    request = result.request
    plan = result.caller.plan
    envelope: dict = {
        "success": True,
        "data": {
            "id": result.id,
            "prompt": request.prompt,
            "negative_prompt": request.negative_prompt,
            "image": to_data_url(result.image.content, result.image.media_type),
            "model": request.model,
            "dimensions": {"width": request.width, "height": request.height},
            "parameters": {
                "steps": request.steps,
                "guidance_scale": request.guidance_scale,
            },
            "generation_time": f"{result.generation_time_ms}ms",
            "generation_time_ms": result.generation_time_ms,
            "timestamp": isoformat_z(result.timestamp),
            "plan": {
                "id": plan.id,
                "name": plan.name,
                "max_resolution": plan.max_resolution,
                "price": plan.price,
            },
            "usage": {
                "daily_used": result.daily_used,
                "daily_limit": plan.daily_limit,
                "plan": plan.id,
            },
        },
    }
    upgrade = upgrade_suggestion(plan)
    if upgrade is not None:
        envelope["upgrade"] = upgrade
    return envelope


def build_batch_envelope(ack: BatchAcknowledgement) -> dict:
    return {
        "success": True,
        "batch_id": ack.batch_id,
        "message": "Batch accepted. Batches are acknowledged only; submit prompts individually to generate.",
        "total_prompts": len(ack.prompts),
        "estimated_time": f"{ack.estimated_seconds} seconds",
        "plan": ack.caller.plan.id,
        "timestamp": isoformat_z(ack.timestamp),
    }
