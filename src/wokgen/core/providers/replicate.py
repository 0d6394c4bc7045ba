"""Replicate provider: paid, highest-fidelity tier.

A prediction is created with ``Prefer: wait`` so short generations complete
within the first response.  Longer ones are polled through the prediction's
``urls.get`` endpoint until they succeed or fail.  Replicate hosts the
output, so the result is an ``https`` URL rather than a ``data:`` URI.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from .base import GenerateResult, GenerationParams, ProviderBase, provider_registry

logger = logging.getLogger(__name__)


class ReplicateProvider(ProviderBase):
    """Generate images through the Replicate predictions API."""

    name = "replicate"
    description = "Replicate SDXL predictions, paid HD tier"
    requires_auth = True

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.replicate_api_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        try:
            response = await self.client.request(
                method,
                url,
                headers={**self._headers(), **kwargs.pop("headers", {})},
                timeout=self.config.replicate_timeout_seconds,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise self._error(
                f"Replicate request timed out after {self.config.replicate_timeout_seconds:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error(f"Replicate request failed: {exc}") from exc

        if response.is_error:
            raise self._error(
                f"Replicate error: {response.status_code} {self._error_detail(response)}",
                http_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise self._error("Replicate returned an invalid JSON response") from exc

    @staticmethod
    def _first_output(prediction: dict) -> str | None:
        output = prediction.get("output")
        outputs = output if isinstance(output, list) else [output]
        return next((url for url in outputs if url), None)

    async def generate(self, params: GenerationParams) -> GenerateResult:
        started = time.monotonic()

        if not self.config.replicate_api_token:
            raise self._error("Replicate requires REPLICATE_API_TOKEN", http_status=401)

        model_input: dict[str, Any] = {
            "prompt": params.prompt,
            "width": params.width,
            "height": params.height,
            "num_inference_steps": params.steps,
            "guidance_scale": params.guidance,
            "seed": params.seed,
        }
        if params.negative_prompt:
            model_input["negative_prompt"] = params.negative_prompt

        prediction = await self._request(
            "POST",
            self.config.replicate_api_url,
            json={"version": self.config.replicate_model_version, "input": model_input},
            headers={"Prefer": "wait"},
        )

        polls = 0
        while prediction.get("status") not in ("succeeded", "failed", "canceled"):
            if polls >= self.config.replicate_max_polls:
                raise self._error("Replicate generation timed out")
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                raise self._error("Replicate prediction has no polling URL")
            await asyncio.sleep(self.config.replicate_poll_interval_seconds)
            prediction = await self._request("GET", poll_url)
            polls += 1

        if prediction.get("status") != "succeeded":
            raise self._error(prediction.get("error") or "Replicate generation failed")

        result_url = self._first_output(prediction)
        if not result_url:
            raise self._error("Replicate prediction returned no output")

        logger.debug("Replicate prediction %s succeeded after %d polls.", prediction.get("id"), polls)
        return GenerateResult(
            provider=self.name,
            result_url=result_url,
            duration_ms=self._elapsed_ms(started),
            resolved_seed=params.seed,
        )


provider_registry.register(ReplicateProvider)
