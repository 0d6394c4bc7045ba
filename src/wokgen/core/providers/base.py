"""Base classes and registry for image providers.

Each external image generator (Replicate, Hugging Face, Pollinations, or a
locally hosted diffusers model) has its own provider class that implements a
common asynchronous interface.  The animation pipeline only ever talks to
:class:`ProviderBase`, so the choice of provider is a one-line lookup.

Provider Pattern
----------------
A provider encapsulates:
- Request construction for one remote API
- Authentication (when the API requires it)
- Conversion of the response into an image reference the raster decoder
  understands: either a ``data:`` URI or an ``http(s)`` URL

All HTTP traffic goes through one shared :class:`httpx.AsyncClient` owned by
the application lifespan.  Providers never retry; a failed call raises
:class:`~wokgen.core.exceptions.ProviderError`.

Usage Example
-------------
    >>> from wokgen.core.providers import provider_registry
    >>> provider = provider_registry.instantiate("pollinations", config, client)
    >>> result = await provider.generate(params)
    >>> result.result_url[:22]
    'data:image/jpeg;base64'

See Also
--------
- wokgen.core.providers.selection: per-request provider priority chain
- wokgen.core.frames: concurrent per-frame dispatch
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import WokgenConfig
from ..exceptions import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Provider-independent input for generating one image.

    Attributes:
        prompt: Full prompt text for the image.
        negative_prompt: Terms to steer away from (ignored by providers
            that do not support it).
        width: Output width in pixels; providers may snap it.
        height: Output height in pixels.
        seed: Deterministic seed.
        steps: Number of denoising steps.
        guidance: Classifier-free guidance scale.
    """

    prompt: str
    negative_prompt: str | None
    width: int
    height: int
    seed: int
    steps: int
    guidance: float


@dataclass(frozen=True)
class GenerateResult:
    """Outcome of one successful provider call.

    Attributes:
        provider: Name of the provider that produced the image.
        result_url: ``data:`` URI or hosted ``http(s)`` URL of the image.
        duration_ms: Wall time of the provider call.
        resolved_seed: Seed the provider actually used.
    """

    provider: str
    result_url: str
    duration_ms: int
    resolved_seed: int


def to_data_uri(content: bytes, content_type: str | None, default: str = "image/png") -> str:
    """Wrap raw image bytes in a base64 ``data:`` URI.

    Args:
        content: Encoded image bytes.
        content_type: ``Content-Type`` header value, possibly with
            parameters (``image/png; charset=...``).
        default: MIME type used when *content_type* is missing.

    Returns:
        ``data:<mime>;base64,<payload>``.
    """
    mime_type = (content_type or default).split(";")[0].strip() or default
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


class ProviderBase(ABC):
    """Abstract base class for all image providers.

    Attributes
    ----------
    name : str
        Registry key of the provider (e.g. ``"huggingface"``)
    description : str
        Brief description shown by ``GET /api/config``
    requires_auth : bool
        Whether the provider needs a credential from the configuration
    config : WokgenConfig
        Configuration object holding credentials and timeouts
    client : httpx.AsyncClient
        Shared HTTP client
    """

    name: str = "base"
    description: str = "Base class for image providers"
    requires_auth: bool = False

    def __init__(self, config: WokgenConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client

    @abstractmethod
    async def generate(self, params: GenerationParams) -> GenerateResult:
        """Generate one image.

        Args:
            params: Provider-independent generation parameters.

        Returns:
            The image reference and call metadata.

        Raises:
            ProviderError: If the remote call fails for any reason.
        """

    def _error(self, message: str, http_status: int | None = None) -> ProviderError:
        return ProviderError(message, provider=self.name, http_status=http_status)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Extract a short error message from a failed response."""
        detail = f"HTTP {response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text[:200] if text else detail
        if isinstance(payload, dict):
            return str(payload.get("error") or payload.get("detail") or detail)
        return detail


class ProviderRegistry:
    """Registry of available provider classes.

    Providers register themselves at import time; the pipeline instantiates
    the one chosen for a request with the shared HTTP client.

    Usage
    -----
        >>> from wokgen.core.providers import provider_registry
        >>> provider_registry.list_available()
        ['huggingface', 'local', 'pollinations', 'replicate']
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._providers: dict[str, type[ProviderBase]] = {}

    def register(self, provider_class: type[ProviderBase]) -> None:
        """Register a provider class under its ``name``.

        Args:
            provider_class: Provider class to register.
        """
        name = provider_class.name
        if name in self._providers:
            logger.warning("Provider '%s' is already registered, overwriting", name)
        self._providers[name] = provider_class
        logger.debug("Registered provider: %s", name)

    def instantiate(
        self,
        name: str,
        config: WokgenConfig,
        client: httpx.AsyncClient,
    ) -> ProviderBase:
        """Create an instance of a registered provider.

        Args:
            name: Registry key of the provider.
            config: Configuration object.
            client: Shared HTTP client.

        Returns:
            New provider instance.

        Raises:
            ProviderNotConfiguredError: If *name* is not registered.
        """
        if name not in self._providers:
            available = ", ".join(self.list_available())
            raise ProviderNotConfiguredError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        return self._providers[name](config=config, client=client)

    def list_available(self) -> list[str]:
        """List all registered provider names."""
        return list(self._providers.keys())

    def describe(self) -> list[dict[str, Any]]:
        """Return name, description and auth requirement of every provider."""
        return [
            {
                "name": provider_class.name,
                "description": provider_class.description,
                "requiresAuth": provider_class.requires_auth,
            }
            for provider_class in self._providers.values()
        ]


# Global provider registry instance
provider_registry = ProviderRegistry()
