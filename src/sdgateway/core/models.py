"""Domain models shared by the core layers.

GenerationRequest
    Normalised form of a ``POST /api/generate`` body.  Built by
    :func:`sdgateway.core.validation.validate_generation_request` after the
    ordered checks have passed, never directly from untrusted JSON, so that
    the gateway's own error codes win over generic schema errors.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    """A validated text-to-image job.

    Attributes:
        prompt: Text prompt (1-1500 characters).
        negative_prompt: Text describing what to avoid; empty for none.
        width: Image width in pixels (64-1024, within the plan maximum).
        height: Image height in pixels (64-1024, within the plan maximum).
        steps: Number of diffusion inference steps.
        guidance_scale: Classifier-free guidance scale.
        model: Upstream model identifier.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    prompt: str = Field(..., min_length=1, max_length=1500)
    negative_prompt: str = Field(default="")
    width: int = Field(default=512, ge=64, le=1024)
    height: int = Field(default=512, ge=64, le=1024)
    steps: int = Field(default=30)
    guidance_scale: float = Field(default=7.5)
    model: str = Field(default="stabilityai/stable-diffusion-xl-base-1.0")

    def to_upstream_payload(self) -> dict:
        """Build the JSON body expected by the inference API."""
        return {
            "inputs": self.prompt,
            "parameters": {
                "negative_prompt": self.negative_prompt,
                "width": self.width,
                "height": self.height,
                "num_inference_steps": self.steps,
                "guidance_scale": self.guidance_scale,
            },
            "options": {
                "use_cache": True,
                "wait_for_model": True,
            },
        }
