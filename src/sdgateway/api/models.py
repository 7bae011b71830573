"""Pydantic models for the SD Gateway API.

Models
------
ModelDescriptor
    One entry of the ``GET /api/models`` catalog.

The validated generation job itself lives in :mod:`sdgateway.core.models`.
"""

from __future__ import annotations

from pydantic import BaseModel


class ModelDescriptor(BaseModel):
    """A model the gateway is willing to proxy."""

    id: str
    name: str
    provider: str
    max_resolution: str
    description: str | None = None
    style: str | None = None
    free_tier: bool = True
    recommended: bool = False


MODEL_CATALOG: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id="stabilityai/stable-diffusion-xl-base-1.0",
        name="Stable Diffusion XL 1.0",
        provider="stabilityai",
        max_resolution="1024x1024",
        description="Latest Stable Diffusion model for high-quality image generation",
        recommended=True,
    ),
    ModelDescriptor(
        id="runwayml/stable-diffusion-v1-5",
        name="Stable Diffusion 1.5",
        provider="runwayml",
        max_resolution="512x512",
    ),
    ModelDescriptor(
        id="prompthero/openjourney",
        name="OpenJourney",
        provider="prompthero",
        max_resolution="512x512",
        style="midjourney-style",
    ),
)


def supported_model_ids() -> list[str]:
    return [m.id for m in MODEL_CATALOG]
