"""Tests for sdgateway.core.models - the validated generation job.

Tests cover:
- Field defaults and immutability of GenerationRequest.
- The JSON body sent to the inference API.
- The core package standing alone, without the API layer.
"""

from __future__ import annotations

import ast
from pathlib import Path

import pytest
from pydantic import ValidationError

import sdgateway.core
from sdgateway.core.models import GenerationRequest

CORE_DIR = Path(sdgateway.core.__file__).parent


class TestGenerationRequest:
    def test_defaults(self):
        req = GenerationRequest(prompt="a red cat")
        assert (req.width, req.height) == (512, 512)
        assert req.steps == 30
        assert req.guidance_scale == 7.5
        assert req.model == "stabilityai/stable-diffusion-xl-base-1.0"

    def test_frozen(self):
        req = GenerationRequest(prompt="a red cat")
        with pytest.raises(ValidationError):
            req.width = 768

    def test_upstream_payload(self):
        req = GenerationRequest(prompt="a red cat", negative_prompt="blurry", width=768, steps=20)
        payload = req.to_upstream_payload()
        assert payload["inputs"] == "a red cat"
        assert payload["parameters"] == {
            "negative_prompt": "blurry",
            "width": 768,
            "height": 512,
            "num_inference_steps": 20,
            "guidance_scale": 7.5,
        }
        assert payload["options"]["wait_for_model"] is True


class TestCoreLayering:
    """The core package never reaches up into the API layer."""

    @pytest.mark.parametrize("path", sorted(CORE_DIR.glob("*.py")), ids=lambda p: p.name)
    def test_no_api_imports(self, path):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        imported = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and node.module:
                imported.add(node.module)
            elif isinstance(node, ast.Import):
                imported.update(alias.name for alias in node.names)
        assert not any(name.startswith("sdgateway.api") for name in imported)
