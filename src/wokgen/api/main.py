"""WokGen: FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, the REST routes, the error handlers and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The service is stateless:

- **Configuration** comes from ``WOKGEN_*`` environment variables (see
  :mod:`wokgen.core.config`) and is served to clients via ``GET /api/config``.
- **Animation** is performed by :class:`~wokgen.core.pipeline.AnimationPipeline`;
  the finished GIF is returned inline as a ``data:`` URI and nothing is
  stored server-side.
- **Outbound HTTP** for every provider goes through one
  :class:`httpx.AsyncClient` opened in the lifespan.
- **Access control** (session lookup and rate limiting) applies only when
  ``SELF_HOSTED`` is false.

Endpoints
---------
========  ==========================  ======================================
Method    Path                        Purpose
========  ==========================  ======================================
POST      ``/api/animate``            Generate an animated GIF
GET       ``/api/animate/specs``      Animation category defaults
GET       ``/api/config``             Limits, options and active providers
GET       ``/api/health``             Liveness probe
========  ==========================  ======================================

Errors are always answered as ``{"error": "<message>"}``.

Usage
-----
CLI (installed entry point)::

    wokgen

Direct invocation::

    python -m wokgen.api.main
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from wokgen import __version__
from wokgen.api.access import Session, enforce_rate_limit
from wokgen.api.dependencies import get_pipeline, get_provider_registry, get_settings
from wokgen.api.models import AnimateRequest, AnimateResponse, ErrorResponse
from wokgen.core.animation_specs import (
    ANIMATION_SPECS,
    DEFAULT_ANIMATION_TYPE,
    list_animation_types,
)
from wokgen.core.config import WokgenConfig, config
from wokgen.core.exceptions import RateLimitExceeded, WokgenError
from wokgen.core.frames import MAX_FRAMES, MIN_FRAMES
from wokgen.core.model_manager import release_shared_manager
from wokgen.core.pipeline import DEFAULT_SIZE, MAX_SIZE, MIN_SIZE, AnimationPipeline
from wokgen.core.providers import ProviderRegistry
from wokgen.core.providers.selection import select_provider
from wokgen.core.rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status answered when the client went away before the animation finished.
CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.5

# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client and rate limiter.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Opens the shared :class:`httpx.AsyncClient` and creates the
        in-memory rate limiter, both stored on ``app.state``.

    On shutdown:
        Closes the HTTP client and unloads the self-hosted model, if one
        was loaded, so GPU memory is returned when the server stops.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    app.state.http_client = httpx.AsyncClient()
    app.state.rate_limiter = SlidingWindowRateLimiter(config.rate_limit_window_seconds)
    logger.info(
        "WokGen %s started (self_hosted=%s, palette=%s).",
        __version__,
        config.self_hosted,
        config.palette_strategy,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await app.state.http_client.aclose()
    release_shared_manager()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="WokGen",
    description="Animated pixel-art sprite generation as GIF.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so browser front-ends on other origins can
# call the API.  In production, restrict ``allow_origins`` to the actual
# deployment domain.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error handlers: every failure is answered as {"error": message}.
# ---------------------------------------------------------------------------


@app.exception_handler(WokgenError)
async def wokgen_error_handler(request: Request, exc: WokgenError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(exc.retry_after)}
        logger.info("Rate limited %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc)).model_dump(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected request body: %s", exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})


# ---------------------------------------------------------------------------
# Client disconnect handling.
# ---------------------------------------------------------------------------


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def run_until_disconnect(request: Request, work: Awaitable[T]) -> tuple[bool, T | None]:
    """Await *work*, cancelling it if the client disconnects first.

    Returns:
        ``(True, result)`` when the work finished, ``(False, None)`` when it
        was cancelled because the client went away.
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.create_task(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        watcher.cancel()
        raise
    watcher.cancel()

    if task in done:
        return True, task.result()

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    return False, None


# ---------------------------------------------------------------------------
# Animation endpoints.
# ---------------------------------------------------------------------------


@app.post(
    "/api/animate",
    response_model=AnimateResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def animate(
    req: AnimateRequest,
    request: Request,
    session: Session | None = Depends(enforce_rate_limit),
    pipeline: AnimationPipeline = Depends(get_pipeline),
) -> AnimateResponse | Response:
    """Generate an animated GIF from a prompt.

    The request is attributed and rate limited first (multi-tenant mode),
    then handed to the pipeline.  If the client disconnects while frames
    are still generating, the pipeline is cancelled.

    Args:
        req: Animation parameters.
        request: Raw request, used for disconnect detection.
        session: Caller session from the access dependency.
        pipeline: Pipeline bound to this request's configuration.

    Returns:
        The GIF as a ``data:`` URI with frame count, fps and duration.
    """
    if session is not None:
        logger.debug("Animation requested by user %s.", session.user_id)

    finished, result = await run_until_disconnect(request, pipeline.run(req.to_pipeline_request()))
    if not finished or result is None:
        logger.info("Client disconnected; animation cancelled.")
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return AnimateResponse.from_result(result)


@app.get("/api/animate/specs")
async def animation_specs() -> dict:
    """Return the default frame count and fps of every animation category."""
    return {
        "default": DEFAULT_ANIMATION_TYPE,
        "specs": {
            name: {"totalFrames": spec.total_frames, "fps": spec.fps}
            for name, spec in ANIMATION_SPECS.items()
        },
    }


@app.get("/api/config")
async def get_config(
    settings: WokgenConfig = Depends(get_settings),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> dict:
    """Return the options and limits a client needs to build requests.

    Includes the provider each quality tier currently resolves to, so the
    client can tell whether ``hd`` is actually available.
    """
    return {
        "version": __version__,
        "animationTypes": list_animation_types(),
        "loopModes": ["infinite", "pingpong", "once"],
        "qualities": ["standard", "hd"],
        "limits": {
            "frameCount": {"min": MIN_FRAMES, "max": MAX_FRAMES},
            "size": {"min": MIN_SIZE, "max": MAX_SIZE, "default": DEFAULT_SIZE},
        },
        "providers": {
            "standard": select_provider("standard", settings),
            "hd": select_provider("hd", settings),
        },
        "availableProviders": registry.describe(),
        "paletteStrategy": settings.palette_strategy,
        "selfHosted": settings.self_hosted,
    }


@app.get("/api/health")
async def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~wokgen.core.config.config`
    (``WOKGEN_SERVER_HOST``, ``WOKGEN_SERVER_PORT``, ``WOKGEN_LOG_LEVEL``).
    Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``wokgen`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "wokgen.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
