"""Frame image decoding.

Turns the image reference a provider returned (a ``data:`` URI or an
``http(s)`` URL) into a flat RGBA byte buffer of exactly
``size * size * 4`` bytes:

- the image is resized to ``size × size`` with nearest-neighbour resampling,
  which keeps the hard pixel edges of pixel-art output intact;
- an alpha channel is always present; sources without one get opaque
  alpha.

Fetching is asynchronous; the Pillow decode runs in a worker thread so the
event loop keeps serving other requests.  Any unreadable source raises
:class:`~wokgen.core.exceptions.RasterDecodeError`.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from collections.abc import Sequence
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image, UnidentifiedImageError

from .exceptions import RasterDecodeError

logger = logging.getLogger(__name__)

CHANNELS = 4


def parse_data_uri(uri: str) -> bytes:
    """Return the payload bytes of a ``data:`` URI.

    Args:
        uri: ``data:[<mime>][;base64],<payload>``.

    Returns:
        Decoded payload.

    Raises:
        RasterDecodeError: If the URI is malformed.
    """
    header, separator, payload = uri.partition(",")
    if not header.startswith("data:") or not separator:
        raise RasterDecodeError("Malformed data URI")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise RasterDecodeError(f"Invalid base64 payload: {exc}") from exc
    return unquote_to_bytes(payload)


def decode_image_bytes(data: bytes, size: int) -> bytes:
    """Decode an encoded image into a ``size × size`` RGBA buffer.

    Args:
        data: Encoded image (PNG, JPEG, WebP, GIF, ...).
        size: Edge length of the square output.

    Returns:
        Flat RGBA bytes, ``size * size * 4`` long.

    Raises:
        RasterDecodeError: If Pillow cannot read the image.
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            rgba = source.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise RasterDecodeError(f"Unreadable frame image: {exc}") from exc

    if rgba.size != (size, size):
        rgba = rgba.resize((size, size), Image.Resampling.NEAREST)
    return rgba.tobytes()


async def fetch_image_bytes(
    reference: str,
    client: httpx.AsyncClient,
    timeout: float,
) -> bytes:
    """Resolve an image reference to encoded image bytes.

    Args:
        reference: ``data:`` URI or ``http(s)`` URL.
        client: Shared HTTP client for hosted images.
        timeout: Download timeout in seconds.

    Returns:
        The encoded image bytes.

    Raises:
        RasterDecodeError: On an unsupported scheme or a failed download.
    """
    if reference.startswith("data:"):
        return parse_data_uri(reference)

    if reference.startswith(("http://", "https://")):
        try:
            response = await client.get(reference, follow_redirects=True, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RasterDecodeError(f"Could not download frame image: {exc}") from exc
        return response.content

    raise RasterDecodeError("Unsupported frame image reference")


async def decode_frame(
    reference: str,
    size: int,
    client: httpx.AsyncClient,
    timeout: float,
) -> bytes:
    """Fetch and decode one frame into a ``size × size`` RGBA buffer."""
    data = await fetch_image_bytes(reference, client, timeout)
    return await asyncio.to_thread(decode_image_bytes, data, size)


async def decode_frames(
    references: Sequence[str],
    size: int,
    client: httpx.AsyncClient,
    timeout: float,
) -> list[bytes]:
    """Decode every frame concurrently, preserving order.

    Repeated references (ping-pong playback repeats frames) are decoded
    once and shared.

    Args:
        references: Image references in playback order.
        size: Edge length of the square output.
        client: Shared HTTP client.
        timeout: Download timeout per image.

    Returns:
        One RGBA buffer per reference, in the same order.

    Raises:
        RasterDecodeError: If any frame cannot be decoded.
    """
    distinct = list(dict.fromkeys(references))
    decoded: dict[str, bytes] = {}

    async def run(reference: str) -> None:
        decoded[reference] = await decode_frame(reference, size, client, timeout)

    try:
        async with asyncio.TaskGroup() as group:
            for reference in distinct:
                group.create_task(run(reference))
    except ExceptionGroup as group_error:
        failure = next(
            (e for e in group_error.exceptions if isinstance(e, RasterDecodeError)), None
        )
        if failure is None:
            raise
        raise failure

    logger.debug("Decoded %d distinct frame(s) at %dx%d.", len(distinct), size, size)
    return [decoded[reference] for reference in references]
