"""Session lookup and rate limiting for multi-tenant deployments.

When the service is not self-hosted every animation request is attributed to
a caller before any work starts:

- a known API key (``Authorization: Bearer <key>`` or ``X-API-Key``) maps to
  a user id through ``config.api_keys``;
- anonymous callers are keyed by the first ``X-Forwarded-For`` hop, then
  ``X-Real-IP``, then the socket peer, then ``"unknown"``.

Known users get ``user_rate_limit`` requests per window, guests
``guest_rate_limit``.  Self-hosted deployments skip both steps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from wokgen.api.dependencies import get_rate_limiter, get_settings
from wokgen.core.config import WokgenConfig
from wokgen.core.rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class Session:
    """Authenticated caller."""

    user_id: str


def _api_key(request: Request) -> str | None:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    header_key = request.headers.get("x-api-key", "").strip()
    return header_key or None


def lookup_session(request: Request, settings: WokgenConfig) -> Session | None:
    """Resolve the caller's session from its API key, if any."""
    key = _api_key(request)
    if key is None:
        return None
    user_id = settings.api_keys.get(key)
    if user_id is None:
        logger.debug("Unknown API key presented; treating caller as guest.")
        return None
    return Session(user_id=user_id)


def rate_limit_key(request: Request, session: Session | None) -> str:
    """Return the identity requests are counted against."""
    if session is not None:
        return session.user_id

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def enforce_rate_limit(
    request: Request,
    settings: WokgenConfig = Depends(get_settings),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> Session | None:
    """Route dependency: attribute the request and apply its quota.

    Returns:
        The caller's session, or ``None`` for guests and self-hosted mode.

    Raises:
        RateLimitExceeded: When the caller is over its quota.
    """
    if settings.self_hosted:
        return None

    session = lookup_session(request, settings)
    key = rate_limit_key(request, session)
    limit = settings.user_rate_limit if session else settings.guest_rate_limit
    limiter.hit(key, limit)
    return session
