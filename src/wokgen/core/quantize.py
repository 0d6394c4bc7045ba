"""Palette quantization of decoded frames.

A GIF frame holds at most 256 colors.  Each decoded RGBA frame is reduced to
an indexed color table plus one table index per pixel:

- colors are chosen with Pillow's median-cut quantizer, without dithering,
  so flat pixel-art regions stay flat;
- pixels whose alpha is below :data:`ALPHA_THRESHOLD` are mapped to one
  extra table entry that the encoder marks as transparent.

Two strategies exist.  ``per_frame`` (the default) computes an independent
table for every frame, which keeps frames independent of each other at the
cost of occasional color flicker between frames.  ``global`` computes one
table over all frames first and maps every frame onto it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from PIL import Image

logger = logging.getLogger(__name__)

PaletteStrategy = Literal["per_frame", "global"]

ALPHA_THRESHOLD = 128
MAX_COLORS = 256


@dataclass(frozen=True)
class QuantizedFrame:
    """An indexed-color frame ready for GIF encoding.

    Attributes:
        size: Edge length of the square frame.
        palette: Color table as RGB triples (1–256 entries).
        indices: One palette index per pixel, row-major, ``size * size`` bytes.
        transparent_index: Palette index rendered transparent, or ``None``.
    """

    size: int
    palette: tuple[tuple[int, int, int], ...]
    indices: bytes
    transparent_index: int | None = None


def _transparency_mask(image: Image.Image) -> Image.Image | None:
    """Return an ``L`` mask of the transparent pixels, or ``None`` if opaque."""
    mask = image.getchannel("A").point(lambda a: 255 if a < ALPHA_THRESHOLD else 0)
    return mask if mask.getbbox() is not None else None


def _palette_entries(indexed: Image.Image, count: int) -> list[tuple[int, int, int]]:
    flat = indexed.getpalette() or []
    flat = flat[: count * 3] + [0] * max(0, count * 3 - len(flat))
    return [(flat[i], flat[i + 1], flat[i + 2]) for i in range(0, count * 3, 3)]


def _finish(
    indexed: Image.Image,
    size: int,
    mask: Image.Image | None,
    reserved_index: int | None = None,
) -> QuantizedFrame:
    """Build a :class:`QuantizedFrame` from a ``P`` image and its alpha mask."""
    count = indexed.getextrema()[1] + 1
    palette = _palette_entries(indexed, count)
    transparent_index = None

    if mask is not None:
        transparent_index = reserved_index if reserved_index is not None else count
        palette = _palette_entries(indexed, max(count, transparent_index))
        palette.append((0, 0, 0))
        indexed = indexed.copy()
        indexed.paste(transparent_index, mask=mask)

    return QuantizedFrame(
        size=size,
        palette=tuple(palette),
        indices=indexed.tobytes(),
        transparent_index=transparent_index,
    )


def quantize_frame(rgba: bytes, size: int, max_colors: int = MAX_COLORS) -> QuantizedFrame:
    """Quantize one RGBA frame to its own color table.

    Args:
        rgba: Flat RGBA buffer of ``size * size * 4`` bytes.
        size: Edge length of the square frame.
        max_colors: Upper bound on the table size, transparency included.

    Returns:
        The indexed frame.
    """
    image = Image.frombytes("RGBA", (size, size), rgba)
    mask = _transparency_mask(image)
    # One slot is kept back for the transparent entry.
    colors = max_colors - 1 if mask is not None else max_colors

    indexed = image.convert("RGB").quantize(
        colors=colors,
        method=Image.Quantize.MEDIANCUT,
        dither=Image.Dither.NONE,
    )
    return _finish(indexed, size, mask)


def build_global_palette(
    frames: Sequence[bytes],
    size: int,
    max_colors: int = MAX_COLORS,
) -> Image.Image:
    """Compute one color table over all frames.

    The frames are stacked into a single montage and quantized together,
    keeping one slot free for transparency.

    Args:
        frames: RGBA buffers of every frame.
        size: Edge length of each square frame.
        max_colors: Upper bound on the table size, transparency included.

    Returns:
        A ``P`` image whose palette is the shared table.
    """
    montage = Image.new("RGB", (size, size * len(frames)))
    for position, rgba in enumerate(frames):
        frame = Image.frombytes("RGBA", (size, size), rgba).convert("RGB")
        montage.paste(frame, (0, position * size))

    quantized = montage.quantize(
        colors=max_colors - 1,
        method=Image.Quantize.MEDIANCUT,
        dither=Image.Dither.NONE,
    )
    count = quantized.getextrema()[1] + 1
    flat = (quantized.getpalette() or [])[: count * 3]

    palette_image = Image.new("P", (1, 1))
    palette_image.putpalette(flat)
    return palette_image


def quantize_with_palette(rgba: bytes, size: int, palette_image: Image.Image) -> QuantizedFrame:
    """Map one RGBA frame onto a precomputed shared color table.

    Args:
        rgba: Flat RGBA buffer of ``size * size * 4`` bytes.
        size: Edge length of the square frame.
        palette_image: Result of :func:`build_global_palette`.

    Returns:
        The indexed frame; the transparent entry, when needed, is the first
        slot after the shared colors.
    """
    image = Image.frombytes("RGBA", (size, size), rgba)
    mask = _transparency_mask(image)
    indexed = image.convert("RGB").quantize(palette=palette_image, dither=Image.Dither.NONE)
    shared = min(len(palette_image.getpalette() or []) // 3, MAX_COLORS - 1)
    return _finish(indexed, size, mask, reserved_index=shared if mask is not None else None)


def quantize_frames(
    frames: Sequence[bytes],
    size: int,
    strategy: PaletteStrategy = "per_frame",
    max_colors: int = MAX_COLORS,
) -> list[QuantizedFrame]:
    """Quantize every frame, sequentially, with the chosen strategy.

    Args:
        frames: RGBA buffers in playback order.
        size: Edge length of each square frame.
        strategy: ``"per_frame"`` or ``"global"``.
        max_colors: Upper bound on each table size.

    Returns:
        Indexed frames in the same order.
    """
    if strategy == "global":
        palette_image = build_global_palette(frames, size, max_colors)
        return [quantize_with_palette(rgba, size, palette_image) for rgba in frames]
    return [quantize_frame(rgba, size, max_colors) for rgba in frames]
