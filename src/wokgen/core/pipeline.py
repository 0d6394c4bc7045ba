"""Animation pipeline controller.

:class:`AnimationPipeline` turns one animation request into one animated GIF:

1. validate the request (non-empty prompt, positive fps);
2. resolve the animation spec, clamp frame count and size;
3. fix the base seed (caller's, or one draw from the randomness source);
4. select one provider for the whole request;
5. generate every frame concurrently (all-or-nothing);
6. expand the sequence for the loop mode;
7. decode, quantize and encode the expanded frames.

The whole run happens under ``config.request_budget_seconds``.  Nothing is
persisted and nothing is retried: a failure at any step aborts the request.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import math
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

import httpx

from .animation_specs import DEFAULT_ANIMATION_TYPE, resolve
from .config import WokgenConfig
from .exceptions import (
    AnimationTimeoutError,
    AnimationValidationError,
    AssemblyError,
    FrameGenerationError,
)
from .frames import (
    LoopMode,
    build_frame_jobs,
    clamp_frame_count,
    dispatch_frames,
    expand_sequence,
    repeat_count,
)
from .gif_encoder import encode_gif, frame_delay_cs
from .prompt_builder import PromptOptions, build_negative_prompt
from .providers.base import ProviderRegistry, provider_registry
from .providers.selection import PROVIDER_CHAIN, ProviderPredicate, select_provider
from .quantize import quantize_frames
from .raster import decode_frames

logger = logging.getLogger(__name__)

Quality = Literal["standard", "hd"]

MIN_SIZE = 32
MAX_SIZE = 256
DEFAULT_SIZE = 128
MAX_SEED = 2_147_483_647

HD_STEPS, HD_GUIDANCE = 20, 7.5
STANDARD_STEPS, STANDARD_GUIDANCE = 4, 3.5


def clamp_size(size: int) -> int:
    """Clamp a requested frame edge length to ``[32, 256]``."""
    return max(MIN_SIZE, min(MAX_SIZE, size))


def animation_duration_ms(frame_count: int, fps: float) -> int:
    """Playback duration in milliseconds, halves rounded up."""
    return int(math.floor(1000 * frame_count / fps + 0.5))


@dataclass
class AnimationRequest:
    """Validated-shape input of one animation run.

    Only ``prompt`` is required; every other field falls back to the
    animation spec or a fixed default.
    """

    prompt: str
    animation_type: str = DEFAULT_ANIMATION_TYPE
    frame_count: int | None = None
    fps: float | None = None
    loop: LoopMode = "infinite"
    size: int = DEFAULT_SIZE
    seed: int | None = None
    quality: Quality = "standard"
    style_preset: str | None = None
    asset_category: str | None = None
    pixel_era: str | None = None
    background_mode: str | None = "transparent"
    outline_style: str | None = "bold"
    palette_size: int | None = 32
    negative_prompt: str | None = None


@dataclass(frozen=True)
class AnimationResult:
    """Outcome of a successful run.

    Attributes:
        result_url: ``data:image/gif;base64,...`` document.
        frame_count: Frames generated (before loop expansion).
        encoded_frames: Frames written to the GIF.
        fps: Playback rate used.
        duration_ms: ``round(1000 * frame_count / fps)``.
        delay_cs: Per-frame delay written to the GIF.
        provider: Provider that generated the frames.
        seed: Base seed of the run.
        timings_ms: Wall-clock time per phase.
    """

    result_url: str
    frame_count: int
    encoded_frames: int
    fps: float
    duration_ms: int
    delay_cs: int
    provider: str
    seed: int
    timings_ms: dict[str, int] = field(default_factory=dict)


class AnimationPipeline:
    """Runs animation requests against the configured providers.

    Args:
        config: Service configuration.
        client: Shared HTTP client used by providers and frame downloads.
        registry: Provider registry to instantiate the selected provider from.
        chain: Provider priority chain.
        random_source: Source of base seeds when the caller supplies none.
    """

    def __init__(
        self,
        config: WokgenConfig,
        client: httpx.AsyncClient,
        *,
        registry: ProviderRegistry = provider_registry,
        chain: Sequence[tuple[ProviderPredicate, str]] = PROVIDER_CHAIN,
        random_source: random.Random | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.registry = registry
        self.chain = chain
        self.random_source = random_source or random.Random()

    async def run(self, request: AnimationRequest) -> AnimationResult:
        """Generate the animation for *request*.

        Raises:
            AnimationValidationError: Empty prompt or non-positive fps.
            FrameGenerationError: A frame could not be generated.
            AssemblyError: Decoding, quantizing or encoding failed.
            AnimationTimeoutError: The request budget ran out.
        """
        budget = self.config.request_budget_seconds
        try:
            async with asyncio.timeout(budget):
                return await self._run(request)
        except TimeoutError as exc:
            logger.error("Animation exceeded its %gs budget.", budget)
            raise AnimationTimeoutError(budget) from exc

    async def _run(self, request: AnimationRequest) -> AnimationResult:
        prompt = (request.prompt or "").strip()
        if not prompt:
            raise AnimationValidationError("prompt is required")

        spec = resolve(request.animation_type)
        frame_count = clamp_frame_count(
            request.frame_count if request.frame_count is not None else spec.total_frames
        )
        fps = request.fps if request.fps is not None else spec.fps
        if not math.isfinite(fps) or fps <= 0:
            raise AnimationValidationError("fps must be a positive finite number")
        size = clamp_size(request.size)
        base_seed = request.seed
        if base_seed is None:
            base_seed = self.random_source.randrange(0, MAX_SEED)

        hd = request.quality == "hd"
        provider_name = select_provider(request.quality, self.config, self.chain)
        provider = self.registry.instantiate(provider_name, self.config, self.client)

        options = PromptOptions(
            user_prompt=prompt,
            style_preset=request.style_preset,
            asset_category=request.asset_category,
            pixel_era=request.pixel_era,
            background_mode=request.background_mode,
            outline_style=request.outline_style,
            palette_size=request.palette_size,
            user_negative=(request.negative_prompt or "").strip() or None,
            width=size,
            height=size,
            lightweight=not hd,
        )
        jobs = build_frame_jobs(frame_count, base_seed, options, request.animation_type)

        logger.info(
            "Animating '%s' via %s: %d frames @ %g fps, %dpx, loop=%s, seed=%d.",
            request.animation_type,
            provider_name,
            frame_count,
            fps,
            size,
            request.loop,
            base_seed,
        )

        timings: dict[str, int] = {}
        started = time.monotonic()
        try:
            results = await dispatch_frames(
                jobs,
                provider,
                negative_prompt=build_negative_prompt(options),
                size=size,
                steps=HD_STEPS if hd else STANDARD_STEPS,
                guidance=HD_GUIDANCE if hd else STANDARD_GUIDANCE,
            )
        except FrameGenerationError:
            logger.exception("Frame generation failed.")
            raise
        timings["generate"] = int((time.monotonic() - started) * 1000)

        references = [result.result_url for result in results if result.result_url]
        if not references:
            raise FrameGenerationError("No frames generated")

        expanded = expand_sequence(references, request.loop)
        delay = frame_delay_cs(fps)

        started = time.monotonic()
        try:
            gif_bytes = await self._assemble(expanded, size, delay, repeat_count(request.loop))
        except AssemblyError:
            logger.exception("GIF assembly failed.")
            raise
        timings["assemble"] = int((time.monotonic() - started) * 1000)

        logger.info(
            "Animation ready: %d frames encoded (%d bytes) in %d ms.",
            len(expanded),
            len(gif_bytes),
            timings["generate"] + timings["assemble"],
        )
        return AnimationResult(
            result_url="data:image/gif;base64," + base64.b64encode(gif_bytes).decode("ascii"),
            frame_count=len(references),
            encoded_frames=len(expanded),
            fps=fps,
            duration_ms=animation_duration_ms(len(references), fps),
            delay_cs=delay,
            provider=provider_name,
            seed=base_seed,
            timings_ms=timings,
        )

    async def _assemble(
        self,
        references: Sequence[str],
        size: int,
        delay_cs: int,
        repeat: int,
    ) -> bytes:
        """Decode, quantize and encode *references* in playback order."""
        try:
            buffers = await decode_frames(
                references, size, self.client, self.config.download_timeout_seconds
            )
            return await asyncio.to_thread(self._encode, buffers, size, delay_cs, repeat)
        except Exception as exc:
            raise AssemblyError(str(exc)) from exc

    def _encode(self, buffers: list[bytes], size: int, delay_cs: int, repeat: int) -> bytes:
        frames = quantize_frames(
            buffers, size, self.config.palette_strategy, self.config.max_colors
        )
        return encode_gif(frames, delay_cs, repeat)
