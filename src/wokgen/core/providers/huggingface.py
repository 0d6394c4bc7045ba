"""Hugging Face inference router provider.

Token-gated, free-tier provider.  A read-scope access token is enough:
https://huggingface.co/settings/tokens

The router answers with the raw image bytes, which are wrapped into a
``data:`` URI so the raster decoder never needs a second network call.
"""

from __future__ import annotations

import logging
import time

import httpx

from .base import GenerateResult, GenerationParams, ProviderBase, provider_registry, to_data_uri

logger = logging.getLogger(__name__)


def snap_size(value: int) -> int:
    """Snap a dimension to the nearest multiple of 64 within ``[64, 1024]``."""
    return max(64, min(1024, round(value / 64) * 64))


class HuggingFaceProvider(ProviderBase):
    """Generate images through the Hugging Face inference router."""

    name = "huggingface"
    description = "Hugging Face inference router (FLUX.1-schnell by default), token required"
    requires_auth = True

    async def generate(self, params: GenerationParams) -> GenerateResult:
        started = time.monotonic()

        if not self.config.hf_token:
            raise self._error(
                "HuggingFace requires a free access token. "
                "Set HF_TOKEN (or WOKGEN_HF_TOKEN) in the environment.",
                http_status=401,
            )

        model = self.config.hf_model_id
        # Schnell is distilled for very few steps; other models use the
        # caller's step count.
        steps = 4 if "schnell" in model.lower() else params.steps
        parameters: dict = {
            "num_inference_steps": steps,
            "width": snap_size(params.width),
            "height": snap_size(params.height),
            "seed": params.seed,
        }
        if params.negative_prompt:
            parameters["negative_prompt"] = params.negative_prompt

        try:
            response = await self.client.post(
                f"{self.config.hf_router_url}/{model}",
                json={
                    "inputs": params.prompt,
                    "parameters": parameters,
                    "options": {"wait_for_model": True},
                },
                headers={
                    "Authorization": f"Bearer {self.config.hf_token}",
                    "Accept": "image/png,image/jpeg,*/*",
                },
                timeout=self.config.hf_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise self._error(
                f"HuggingFace request timed out after {self.config.hf_timeout_seconds:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error(f"HuggingFace request failed: {exc}") from exc

        if response.is_error:
            raise self._error(
                f"HuggingFace API error: {self._error_detail(response)}",
                http_status=response.status_code,
            )

        logger.debug("HuggingFace image received (seed=%d, %d bytes).", params.seed, len(response.content))
        return GenerateResult(
            provider=self.name,
            result_url=to_data_uri(response.content, response.headers.get("content-type")),
            duration_ms=self._elapsed_ms(started),
            resolved_seed=params.seed,
        )


provider_registry.register(HuggingFaceProvider)
