"""Per-request provider selection.

The provider for an animation is chosen once per request, never per frame.
The policy is an ordered chain of ``(predicate, provider name)`` pairs; the
first predicate that accepts ``(quality, config)`` wins.  The last link
always matches, so selection cannot fail.

Default order: paid HD tier → token-gated tier → self-hosted tier (only when
configured) → unauthenticated fallback.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from ..config import WokgenConfig

ProviderPredicate = Callable[[str, WokgenConfig], bool]


def wants_hd(quality: str, config: WokgenConfig) -> bool:
    """HD quality was requested and the paid provider is configured."""
    return quality == "hd" and bool(config.replicate_api_token)


def has_hf_token(quality: str, config: WokgenConfig) -> bool:
    """A Hugging Face token is configured."""
    return bool(config.hf_token)


def has_local_model(quality: str, config: WokgenConfig) -> bool:
    """A self-hosted diffusers model is configured."""
    return bool(config.local_model_id)


def always(quality: str, config: WokgenConfig) -> bool:
    """Terminal link of the chain."""
    return True


PROVIDER_CHAIN: tuple[tuple[ProviderPredicate, str], ...] = (
    (wants_hd, "replicate"),
    (has_hf_token, "huggingface"),
    (has_local_model, "local"),
    (always, "pollinations"),
)


def select_provider(
    quality: str,
    config: WokgenConfig,
    chain: Sequence[tuple[ProviderPredicate, str]] = PROVIDER_CHAIN,
) -> str:
    """Return the name of the first provider whose predicate accepts the request.

    Args:
        quality: Requested quality tier (``"standard"`` or ``"hd"``).
        config: Configuration holding the provider credentials.
        chain: Ordered ``(predicate, provider name)`` pairs.

    Returns:
        Registry name of the selected provider.

    Raises:
        LookupError: If no link matches (only possible with a custom chain
            lacking a terminal link).
    """
    for predicate, name in chain:
        if predicate(quality, config):
            return name
    raise LookupError(f"No provider accepts quality '{quality}'")
