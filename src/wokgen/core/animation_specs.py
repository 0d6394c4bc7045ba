"""Animation category defaults.

Every animation category maps to a default frame count and playback rate.
The table is read-only; requests may override both values, but the table
itself is never mutated.  Unknown categories resolve to
:data:`DEFAULT_ANIMATION_TYPE`.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class AnimationSpec:
    """Default timing for one animation category.

    Attributes:
        total_frames: Number of frames generated when the request does not
            ask for a specific count.
        fps: Playback rate in frames per second.
    """

    total_frames: int
    fps: float


DEFAULT_ANIMATION_TYPE = "idle"

ANIMATION_SPECS: MappingProxyType[str, AnimationSpec] = MappingProxyType(
    {
        "idle": AnimationSpec(total_frames=4, fps=6),
        "walk": AnimationSpec(total_frames=8, fps=10),
        "run": AnimationSpec(total_frames=8, fps=12),
        "attack": AnimationSpec(total_frames=6, fps=12),
        "jump": AnimationSpec(total_frames=6, fps=10),
        "cast": AnimationSpec(total_frames=8, fps=10),
        "hurt": AnimationSpec(total_frames=3, fps=8),
        "death": AnimationSpec(total_frames=8, fps=8),
        "effect": AnimationSpec(total_frames=8, fps=12),
        "float": AnimationSpec(total_frames=6, fps=6),
    }
)


def resolve(animation_type: str | None) -> AnimationSpec:
    """Return the default spec for *animation_type*.

    Args:
        animation_type: Category name, e.g. ``"walk"``.  ``None`` and
            unknown names fall back to the ``idle`` category.

    Returns:
        The matching :class:`AnimationSpec`.
    """
    if animation_type is None:
        return ANIMATION_SPECS[DEFAULT_ANIMATION_TYPE]
    return ANIMATION_SPECS.get(animation_type, ANIMATION_SPECS[DEFAULT_ANIMATION_TYPE])


def list_animation_types() -> list[str]:
    """List every known animation category in table order."""
    return list(ANIMATION_SPECS)
