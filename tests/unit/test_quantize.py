"""Tests for wokgen.core.quantize: palette reduction of RGBA frames.

Tests cover:
- Exact colour tables for flat pixel-art frames.
- Colour count limits with and without transparency.
- Transparent pixel mapping to a dedicated table entry.
- The shared (global) palette strategy.
"""

from __future__ import annotations

import random

from PIL import Image

from wokgen.core.quantize import quantize_frame, quantize_frames


def _rgba(size: int, painter) -> bytes:
    image = Image.new("RGBA", (size, size))
    for y in range(size):
        for x in range(size):
            image.putpixel((x, y), painter(x, y))
    return image.tobytes()


def _solid(color, size=8) -> bytes:
    return Image.new("RGBA", (size, size), color).tobytes()


def _pixel_colors(frame):
    return [frame.palette[i] for i in frame.indices]


class TestQuantizeFrame:
    """Test quantize_frame()."""

    def test_solid_frame(self):
        """A single-colour frame gets a single-entry table."""
        frame = quantize_frame(_solid((200, 40, 10, 255)), 8)
        assert frame.palette == ((200, 40, 10),)
        assert frame.indices == bytes(64)
        assert frame.transparent_index is None
        assert frame.size == 8

    def test_two_colours_exact(self):
        """Flat regions keep their exact colours."""
        rgba = _rgba(8, lambda x, y: (255, 0, 0, 255) if x < 4 else (0, 0, 255, 255))
        frame = quantize_frame(rgba, 8)
        assert set(frame.palette) == {(255, 0, 0), (0, 0, 255)}
        colors = _pixel_colors(frame)
        assert colors[0] == (255, 0, 0)
        assert colors[7] == (0, 0, 255)

    def test_colour_limit(self):
        """Noisy frames are reduced to at most max_colors entries."""
        rng = random.Random(7)
        rgba = _rgba(32, lambda x, y: (rng.randrange(256), rng.randrange(256), rng.randrange(256), 255))
        frame = quantize_frame(rgba, 32, max_colors=16)
        assert len(frame.palette) <= 16
        assert max(frame.indices) < len(frame.palette)

    def test_transparent_pixels(self):
        """Pixels below the alpha threshold map to the transparent entry."""
        rgba = _rgba(8, lambda x, y: (0, 0, 0, 0) if y < 4 else (0, 255, 0, 255))
        frame = quantize_frame(rgba, 8)

        assert frame.transparent_index == len(frame.palette) - 1
        assert set(frame.indices[: 8 * 4]) == {frame.transparent_index}
        assert _pixel_colors(frame)[-1] == (0, 255, 0)
        assert frame.transparent_index not in frame.indices[8 * 4 :]

    def test_transparency_respects_colour_limit(self):
        """The transparent entry counts towards max_colors."""
        rng = random.Random(3)

        def painter(x, y):
            if x == 0:
                return (0, 0, 0, 0)
            return (rng.randrange(256), rng.randrange(256), rng.randrange(256), 255)

        frame = quantize_frame(_rgba(32, painter), 32, max_colors=8)
        assert len(frame.palette) <= 8
        assert frame.transparent_index is not None

    def test_semi_transparent_threshold(self):
        """Alpha at or above 128 is treated as opaque."""
        frame = quantize_frame(_solid((10, 10, 10, 128)), 4)
        assert frame.transparent_index is None


class TestQuantizeFrames:
    """Test quantize_frames() strategies."""

    def test_per_frame_tables_are_independent(self):
        """Each frame gets its own table."""
        frames = quantize_frames([_solid((255, 0, 0, 255)), _solid((0, 0, 255, 255))], 8)
        assert frames[0].palette == ((255, 0, 0),)
        assert frames[1].palette == ((0, 0, 255),)

    def test_global_table_is_shared(self):
        """With the global strategy tables agree on every shared index."""
        frames = quantize_frames(
            [_solid((255, 0, 0, 255)), _solid((0, 0, 255, 255))], 8, strategy="global"
        )
        shorter, longer = sorted((f.palette for f in frames), key=len)
        assert longer[: len(shorter)] == shorter
        assert _pixel_colors(frames[0])[0] == (255, 0, 0)
        assert _pixel_colors(frames[1])[0] == (0, 0, 255)

    def test_global_table_with_transparency(self):
        """Transparent pixels get an entry after the shared colours."""
        half = _rgba(8, lambda x, y: (0, 0, 0, 0) if x < 4 else (255, 255, 0, 255))
        frames = quantize_frames([half, _solid((255, 255, 0, 255))], 8, strategy="global")
        assert frames[0].transparent_index is not None
        assert frames[0].indices[0] == frames[0].transparent_index
        assert _pixel_colors(frames[0])[7] == (255, 255, 0)
        assert frames[1].transparent_index is None
