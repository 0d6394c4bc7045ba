"""Image providers used to generate animation frames.

Importing this package registers every built-in provider with
:data:`provider_registry`.
"""

from wokgen.core.providers.base import (
    GenerateResult,
    GenerationParams,
    ProviderBase,
    ProviderRegistry,
    provider_registry,
)
from wokgen.core.providers.huggingface import HuggingFaceProvider
from wokgen.core.providers.local import LocalDiffusersProvider
from wokgen.core.providers.pollinations import PollinationsProvider
from wokgen.core.providers.replicate import ReplicateProvider
from wokgen.core.providers.selection import PROVIDER_CHAIN, select_provider

__all__ = [
    "GenerateResult",
    "GenerationParams",
    "HuggingFaceProvider",
    "LocalDiffusersProvider",
    "PollinationsProvider",
    "ProviderBase",
    "ProviderRegistry",
    "PROVIDER_CHAIN",
    "ReplicateProvider",
    "provider_registry",
    "select_provider",
]
