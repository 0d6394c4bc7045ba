"""Pydantic request and response models for the WokGen API.

These models define the JSON schema of the animation endpoint.  Field names
on the wire are camelCase (``animationType``, ``frameCount``...); snake_case
names are accepted too.

Models
------
AnimateRequest
    Payload for ``POST /api/animate``.
AnimateResponse
    Successful result of ``POST /api/animate``.
ErrorResponse
    Body of every error answer: ``{"error": "..."}``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from wokgen.core.pipeline import DEFAULT_SIZE, AnimationRequest, AnimationResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AnimateRequest(_CamelModel):
    """Request body for the ``POST /api/animate`` endpoint.

    Attributes:
        prompt: Concept to animate.  Must be non-empty after trimming; the
            check happens in the pipeline so that a missing prompt gets the
            same message as a blank one.
        animation_type: Animation category (``idle``, ``walk``...).  Unknown
            categories fall back to ``idle``.
        frame_count: Frames to generate, clamped to ``[2, 12]``.
        fps: Playback rate; defaults to the category's rate.
        loop: ``infinite``, ``pingpong`` or ``once``.
        size: Square frame size in pixels, clamped to ``[32, 256]``.
        seed: Base seed.  ``None`` means the server picks one.
        quality: ``standard`` or ``hd``.
        style_preset, asset_category, pixel_era, background_mode,
        outline_style, palette_size: Style metadata passed to the prompt
            synthesizer.
        negative_prompt: Caller terms appended to the shared negative
            prompt.
    """

    prompt: str | None = Field(default=None, description="What to animate.")
    animation_type: str = Field(
        default="idle",
        alias="animationType",
        description="Animation category (e.g. 'walk', 'attack').",
    )
    frame_count: int | None = Field(
        default=None,
        alias="frameCount",
        description="Frames to generate; clamped to 2-12.",
    )
    fps: int | float | None = Field(default=None, description="Playback frames per second.")
    loop: Literal["infinite", "pingpong", "once"] = Field(
        default="infinite",
        description="Playback loop mode.",
    )
    size: int = Field(default=DEFAULT_SIZE, description="Frame size in pixels; clamped to 32-256.")
    seed: int | None = Field(default=None, description="Base seed. None = random.")
    quality: Literal["standard", "hd"] = Field(default="standard", description="Quality tier.")
    style_preset: str | None = Field(default=None, alias="stylePreset")
    asset_category: str | None = Field(default=None, alias="assetCategory")
    pixel_era: str | None = Field(default=None, alias="pixelEra")
    background_mode: str | None = Field(default="transparent", alias="backgroundMode")
    outline_style: str | None = Field(default="bold", alias="outlineStyle")
    palette_size: int | None = Field(default=32, alias="paletteSize")
    negative_prompt: str | None = Field(
        default=None,
        alias="negativePrompt",
        description="Extra terms to steer every frame away from.",
    )

    def to_pipeline_request(self) -> AnimationRequest:
        """Convert the payload into the pipeline's request type."""
        return AnimationRequest(
            prompt=self.prompt or "",
            animation_type=self.animation_type,
            frame_count=self.frame_count,
            fps=self.fps,
            loop=self.loop,
            size=self.size,
            seed=self.seed,
            quality=self.quality,
            style_preset=self.style_preset,
            asset_category=self.asset_category,
            pixel_era=self.pixel_era,
            background_mode=self.background_mode,
            outline_style=self.outline_style,
            palette_size=self.palette_size,
            negative_prompt=self.negative_prompt,
        )


class AnimateResponse(_CamelModel):
    """Successful animation answer."""

    ok: bool = True
    result_url: str = Field(..., alias="resultUrl", description="data:image/gif;base64 URI.")
    frame_count: int = Field(..., alias="frameCount", description="Frames generated.")
    fps: int | float
    duration_ms: int = Field(..., alias="durationMs")

    @classmethod
    def from_result(cls, result: AnimationResult) -> AnimateResponse:
        return cls(
            result_url=result.result_url,
            frame_count=result.frame_count,
            fps=result.fps,
            duration_ms=result.duration_ms,
        )


class ErrorResponse(BaseModel):
    """Error answer."""

    error: str
