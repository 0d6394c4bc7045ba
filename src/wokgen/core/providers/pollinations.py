"""Pollinations.ai provider: unauthenticated fallback.

API: ``GET https://image.pollinations.ai/prompt/{encoded_prompt}`` returns the
image bytes (JPEG or PNG) after a redirect chain.  The image is fetched
server-side and returned as a ``data:`` URI.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import quote

import httpx

from .base import GenerateResult, GenerationParams, ProviderBase, provider_registry, to_data_uri

logger = logging.getLogger(__name__)


class PollinationsProvider(ProviderBase):
    """Generate images through the public Pollinations endpoint."""

    name = "pollinations"
    description = "Pollinations.ai FLUX endpoint, no credentials required"
    requires_auth = False

    async def generate(self, params: GenerationParams) -> GenerateResult:
        started = time.monotonic()

        query: dict[str, str] = {
            "width": str(params.width),
            "height": str(params.height),
            "seed": str(params.seed),
            "model": "flux",
            "nologo": "true",
            "enhance": "false",
        }
        if params.negative_prompt:
            query["negative_prompt"] = params.negative_prompt

        url = f"{self.config.pollinations_url}/{quote(params.prompt, safe='')}"
        timeout = self.config.pollinations_timeout_seconds

        try:
            response = await self.client.get(
                url,
                params=query,
                follow_redirects=True,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise self._error(f"Request timed out after {timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise self._error(f"Pollinations request failed: {exc}") from exc

        if response.is_error:
            raise self._error(
                f"Pollinations returned HTTP {response.status_code}",
                http_status=response.status_code,
            )

        return GenerateResult(
            provider=self.name,
            result_url=to_data_uri(
                response.content, response.headers.get("content-type"), default="image/jpeg"
            ),
            duration_ms=self._elapsed_ms(started),
            resolved_seed=params.seed,
        )


provider_registry.register(PollinationsProvider)
