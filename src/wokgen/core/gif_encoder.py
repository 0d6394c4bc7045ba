"""Animated GIF (GIF89a) bitstream assembly.

Frames arrive already quantized (see :mod:`wokgen.core.quantize`), each with
its own color table.  The encoder writes:

- the ``GIF89a`` header and a logical screen descriptor without a global
  color table;
- the NETSCAPE2.0 application extension carrying the repeat count, once,
  ahead of the first frame (``0`` loops forever);
- per frame: a graphic control extension (delay in centiseconds, disposal
  method, transparent index), an image descriptor with a local color table,
  and the LZW-compressed indices split into sub-blocks of at most 255 bytes;
- the trailer byte.

The whole document is built in memory and returned by :meth:`GifEncoder.finish`.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

from .exceptions import EncodingError
from .quantize import QuantizedFrame

DISPOSE_RESTORE_BACKGROUND = 2
MAX_LZW_BITS = 12
_MAX_CODE = 1 << MAX_LZW_BITS


def frame_delay_cs(fps: float) -> int:
    """Return the per-frame delay in centiseconds for *fps*.

    Halves round up, so 8 fps (12.5 cs) gives 13.

    Raises:
        ValueError: If *fps* is not a positive finite number.
    """
    if not math.isfinite(fps) or fps <= 0:
        raise ValueError("fps must be a positive finite number")
    return min(0xFFFF, int(math.floor(100 / fps + 0.5)))


class _BitWriter:
    """Packs variable-width codes least-significant bit first."""

    def __init__(self) -> None:
        self._out = bytearray()
        self._acc = 0
        self._bits = 0

    def write(self, code: int, width: int) -> None:
        self._acc |= code << self._bits
        self._bits += width
        while self._bits >= 8:
            self._out.append(self._acc & 0xFF)
            self._acc >>= 8
            self._bits -= 8

    def getvalue(self) -> bytes:
        if self._bits:
            return bytes(self._out) + bytes((self._acc & 0xFF,))
        return bytes(self._out)


def lzw_encode(indices: bytes, min_code_size: int) -> bytes:
    """Compress color indices with GIF's variable-width LZW.

    Args:
        indices: One color index per pixel.
        min_code_size: LZW minimum code size (2–8).

    Returns:
        The packed code stream, not yet split into sub-blocks.
    """
    clear_code = 1 << min_code_size
    end_code = clear_code + 1
    code_size = min_code_size + 1
    next_code = end_code + 1
    table: dict[int, int] = {}

    writer = _BitWriter()
    writer.write(clear_code, code_size)

    pixels = iter(indices)
    prefix = next(pixels, None)
    if prefix is None:
        writer.write(end_code, code_size)
        return writer.getvalue()

    for pixel in pixels:
        key = (prefix << 8) | pixel
        code = table.get(key)
        if code is not None:
            prefix = code
            continue

        writer.write(prefix, code_size)
        if next_code < _MAX_CODE:
            table[key] = next_code
            next_code += 1
            # Decoders lag one entry behind, hence ">" rather than ">=".
            if next_code > (1 << code_size) and code_size < MAX_LZW_BITS:
                code_size += 1
        else:
            writer.write(clear_code, code_size)
            table.clear()
            code_size = min_code_size + 1
            next_code = end_code + 1
        prefix = pixel

    writer.write(prefix, code_size)
    # The decoder adds one more entry after the final code before reading EOI.
    if next_code >= (1 << code_size) and code_size < MAX_LZW_BITS:
        code_size += 1
    writer.write(end_code, code_size)
    return writer.getvalue()


def _sub_blocks(data: bytes) -> bytes:
    out = bytearray()
    for start in range(0, len(data), 255):
        chunk = data[start : start + 255]
        out.append(len(chunk))
        out.extend(chunk)
    out.append(0)
    return bytes(out)


def _table_bits(palette_len: int) -> int:
    """Exponent of the smallest power-of-two table holding *palette_len* colors."""
    return max(1, (palette_len - 1).bit_length())


class GifEncoder:
    """Incremental GIF89a writer.

    Usage::

        encoder = GifEncoder()
        for i, frame in enumerate(frames):
            encoder.write_frame(frame, delay_cs=13, repeat=0 if i == 0 else None)
        data = encoder.finish()
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._size: int | None = None
        self._frames = 0
        self._finished = False

    @property
    def frame_count(self) -> int:
        """Number of frames written so far."""
        return self._frames

    def _write_header(self, size: int) -> None:
        self._buffer += b"GIF89a"
        # Logical screen descriptor: no global color table, 8-bit color
        # resolution, background index 0, square pixels.
        self._buffer += struct.pack("<HHBBB", size, size, 0x70, 0, 0)

    def _write_loop_extension(self, repeat: int) -> None:
        self._buffer += b"\x21\xff\x0bNETSCAPE2.0"
        self._buffer += struct.pack("<BBHB", 3, 1, repeat, 0)

    def write_frame(
        self,
        frame: QuantizedFrame,
        delay_cs: int,
        *,
        disposal: int = DISPOSE_RESTORE_BACKGROUND,
        repeat: int | None = None,
    ) -> None:
        """Append one frame.

        Args:
            frame: Quantized frame with its own color table.
            delay_cs: Display time in centiseconds.
            disposal: GIF disposal method (2 = restore to background).
            repeat: Loop count to record; only honoured on the first frame.

        Raises:
            EncodingError: If the frame is inconsistent with its table or
                with the frames already written.
        """
        if self._finished:
            raise EncodingError("Cannot add frames after finish()")
        if not 1 <= len(frame.palette) <= 256:
            raise EncodingError(f"Color table must hold 1-256 entries, got {len(frame.palette)}")
        if len(frame.indices) != frame.size * frame.size:
            raise EncodingError("Index buffer does not match the frame size")
        if frame.indices and max(frame.indices) >= len(frame.palette):
            raise EncodingError("Pixel index outside the color table")
        if not 0 <= delay_cs <= 0xFFFF:
            raise EncodingError(f"Delay out of range: {delay_cs}")

        if self._size is None:
            self._size = frame.size
            self._write_header(frame.size)
            if repeat is not None:
                self._write_loop_extension(repeat)
        elif frame.size != self._size:
            raise EncodingError(f"Frame size {frame.size} differs from {self._size}")

        # Graphic control extension.
        has_transparency = frame.transparent_index is not None
        packed = ((disposal & 0x07) << 2) | int(has_transparency)
        self._buffer += struct.pack(
            "<BBBBHBB",
            0x21,
            0xF9,
            4,
            packed,
            delay_cs,
            frame.transparent_index if has_transparency else 0,
            0,
        )

        # Image descriptor with a local color table.
        bits = _table_bits(len(frame.palette))
        self._buffer += struct.pack("<BHHHHB", 0x2C, 0, 0, frame.size, frame.size, 0x80 | (bits - 1))
        table = bytearray()
        for red, green, blue in frame.palette:
            table += bytes((red, green, blue))
        table += b"\x00" * (3 * (1 << bits) - len(table))
        self._buffer += table

        min_code_size = max(2, bits)
        self._buffer.append(min_code_size)
        self._buffer += _sub_blocks(lzw_encode(frame.indices, min_code_size))
        self._frames += 1

    def finish(self) -> bytes:
        """Write the trailer and return the complete document.

        Raises:
            EncodingError: If no frame was written.
        """
        if not self._frames:
            raise EncodingError("A GIF needs at least one frame")
        if not self._finished:
            self._buffer.append(0x3B)
            self._finished = True
        return bytes(self._buffer)


def encode_gif(frames: Sequence[QuantizedFrame], delay_cs: int, repeat: int) -> bytes:
    """Encode quantized frames into one animated GIF.

    Every frame gets the same delay and the "restore to background"
    disposal; the repeat count is attached to the first frame only.

    Args:
        frames: Frames in playback order.
        delay_cs: Per-frame delay in centiseconds.
        repeat: NETSCAPE loop count (``0`` = forever).

    Returns:
        The GIF document bytes.
    """
    encoder = GifEncoder()
    for position, frame in enumerate(frames):
        encoder.write_frame(frame, delay_cs, repeat=repeat if position == 0 else None)
    return encoder.finish()
