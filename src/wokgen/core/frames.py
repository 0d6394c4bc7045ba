"""Per-frame job construction, concurrent dispatch and sequence expansion.

Frame Jobs
----------
An animation of ``n`` frames is ``n`` independent frame jobs.  Job ``i``
uses ``seed = base_seed + i * 137``: the fixed stride keeps frames
reproducible from a single base seed while still varying them.  Its prompt
is synthesized for index ``i`` of ``n`` so the motion phase advances.

Dispatch
--------
All jobs are submitted to the request's provider at once and joined with an
:class:`asyncio.TaskGroup`.  The join is all-or-nothing: the first failing
job cancels the others still in flight and the whole dispatch fails with
:class:`~wokgen.core.exceptions.FrameGenerationError`; outputs of frames
that already succeeded are discarded.  Each job writes only its own result
slot, so results come back in frame order whatever order the provider
calls complete in.

Sequence Expansion
------------------
``pingpong`` playback appends the frames in reverse without repeating the
first and last frames (``[A, B, C, D] → [A, B, C, D, C, B]``).  ``infinite``
and ``once`` play the frames as generated.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, TypeVar

from .exceptions import FrameGenerationError
from .prompt_builder import PromptOptions, build_frame_prompt
from .providers.base import GenerateResult, GenerationParams, ProviderBase

logger = logging.getLogger(__name__)

LoopMode = Literal["infinite", "pingpong", "once"]

FRAME_SEED_STRIDE = 137
MIN_FRAMES = 2
MAX_FRAMES = 12

T = TypeVar("T")


@dataclass(frozen=True)
class FrameJob:
    """One independent unit of work producing a single frame.

    Attributes:
        index: Zero-based position of the frame in the animation.
        seed: Seed derived from the request's base seed.
        prompt: Prompt synthesized for this frame.
    """

    index: int
    seed: int
    prompt: str


def clamp_frame_count(frame_count: int) -> int:
    """Clamp a requested frame count to ``[2, 12]``."""
    return max(MIN_FRAMES, min(MAX_FRAMES, frame_count))


def frame_seed(base_seed: int, index: int) -> int:
    """Return the seed of frame *index* for a request's *base_seed*."""
    return base_seed + index * FRAME_SEED_STRIDE


def build_frame_jobs(
    frame_count: int,
    base_seed: int,
    prompt_options: PromptOptions,
    animation_type: str,
) -> list[FrameJob]:
    """Build one job per frame index ``0 .. frame_count - 1``.

    Args:
        frame_count: Number of frames to generate (already clamped).
        base_seed: Seed shared by the request.
        prompt_options: Base prompt options of the request.
        animation_type: Animation category driving the motion phases.

    Returns:
        Jobs in frame order.
    """
    return [
        FrameJob(
            index=index,
            seed=frame_seed(base_seed, index),
            prompt=build_frame_prompt(prompt_options, animation_type, index, frame_count),
        )
        for index in range(frame_count)
    ]


async def dispatch_frames(
    jobs: Sequence[FrameJob],
    provider: ProviderBase,
    *,
    negative_prompt: str | None,
    size: int,
    steps: int,
    guidance: float,
) -> list[GenerateResult]:
    """Run every frame job concurrently against *provider*.

    Args:
        jobs: Frame jobs in frame order.
        provider: Provider selected for the whole request.
        negative_prompt: Negative prompt shared by all frames.
        size: Square frame size in pixels.
        steps: Denoising steps per frame.
        guidance: Guidance scale per frame.

    Returns:
        One result per job, in job order.

    Raises:
        FrameGenerationError: If any job fails.  Remaining jobs are
            cancelled and no partial results are returned.
    """
    results: list[GenerateResult | None] = [None] * len(jobs)

    async def run(slot: int, job: FrameJob) -> None:
        params = GenerationParams(
            prompt=job.prompt,
            negative_prompt=negative_prompt,
            width=size,
            height=size,
            seed=job.seed,
            steps=steps,
            guidance=guidance,
        )
        try:
            results[slot] = await provider.generate(params)
        except Exception as exc:
            raise FrameGenerationError(str(exc), frame_index=job.index) from exc
        logger.debug("Frame %d generated by %s (seed=%d).", job.index, provider.name, job.seed)

    try:
        async with asyncio.TaskGroup() as group:
            for slot, job in enumerate(jobs):
                group.create_task(run(slot, job))
    except ExceptionGroup as group_error:
        failures = [e for e in group_error.exceptions if isinstance(e, FrameGenerationError)]
        if not failures:
            raise
        first = min(failures, key=lambda e: e.frame_index if e.frame_index is not None else -1)
        logger.warning(
            "Frame %s failed (%d failure(s)); discarding the animation.",
            first.frame_index,
            len(failures),
        )
        raise first

    return [result for result in results if result is not None]


def expand_sequence(frames: Sequence[T], loop: LoopMode) -> list[T]:
    """Return the frames to encode for *loop* playback.

    Args:
        frames: Frames in generation order.
        loop: Loop mode of the request.

    Returns:
        The frames unchanged, or for ``pingpong`` with more than two frames
        the frames followed by their reverse without the end points
        (length ``2n - 2``).
    """
    frames = list(frames)
    if loop == "pingpong" and len(frames) > 2:
        return frames + frames[-2:0:-1]
    return frames


def repeat_count(loop: LoopMode) -> int:
    """Map a loop mode to the GIF repeat count (``0`` loops forever)."""
    return 1 if loop == "once" else 0
