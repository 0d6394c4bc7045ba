"""Request-scoped accessors used with ``fastapi.Depends``.

Route handlers never read globals directly; they receive configuration,
the shared HTTP client and the rate limiter through these functions so
tests can swap any of them via ``app.dependency_overrides``.
"""

from __future__ import annotations

import random

import httpx
from fastapi import Depends, Request

from wokgen.core.config import WokgenConfig, config
from wokgen.core.pipeline import AnimationPipeline
from wokgen.core.providers import ProviderRegistry, provider_registry
from wokgen.core.rate_limit import SlidingWindowRateLimiter


def get_settings() -> WokgenConfig:
    """Return the active configuration."""
    return config


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the HTTP client opened by the application lifespan."""
    return request.app.state.http_client


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Return the process-wide rate limiter."""
    return request.app.state.rate_limiter


def get_provider_registry() -> ProviderRegistry:
    """Return the registry providers are instantiated from."""
    return provider_registry


def get_random_source() -> random.Random | None:
    """Return the base-seed source; ``None`` lets the pipeline create one."""
    return None


def get_pipeline(
    settings: WokgenConfig = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    registry: ProviderRegistry = Depends(get_provider_registry),
    random_source: random.Random | None = Depends(get_random_source),
) -> AnimationPipeline:
    """Build the pipeline for one request."""
    return AnimationPipeline(settings, client, registry=registry, random_source=random_source)
