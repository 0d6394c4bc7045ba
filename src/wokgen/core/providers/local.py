"""Self-hosted diffusers provider.

Runs the configured ``local_model_id`` on this host through the shared
:class:`~wokgen.core.model_manager.ModelManager`.  Inference is blocking and
GPU bound, so each call is moved to a worker thread; the manager's lock
keeps concurrent frames from sharing the pipeline at the same time.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time

from ..model_manager import get_shared_manager
from .base import GenerateResult, GenerationParams, ProviderBase, provider_registry, to_data_uri

logger = logging.getLogger(__name__)


class LocalDiffusersProvider(ProviderBase):
    """Generate images with a diffusers pipeline loaded on this host."""

    name = "local"
    description = "Self-hosted diffusers pipeline (WOKGEN_LOCAL_MODEL_ID)"
    requires_auth = False

    async def generate(self, params: GenerationParams) -> GenerateResult:
        started = time.monotonic()
        if not self.config.local_model_id:
            raise self._error("No local model configured (WOKGEN_LOCAL_MODEL_ID)")

        manager = get_shared_manager(self.config)
        try:
            image = await asyncio.to_thread(
                manager.generate,
                prompt=params.prompt,
                width=params.width,
                height=params.height,
                steps=params.steps,
                guidance_scale=params.guidance,
                seed=params.seed,
                negative_prompt=params.negative_prompt,
            )
        except Exception as exc:
            raise self._error(f"Local generation failed: {exc}") from exc

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return GenerateResult(
            provider=self.name,
            result_url=to_data_uri(buffer.getvalue(), "image/png"),
            duration_ms=self._elapsed_ms(started),
            resolved_seed=params.seed,
        )


provider_registry.register(LocalDiffusersProvider)
