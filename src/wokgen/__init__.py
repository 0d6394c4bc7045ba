"""WokGen - animated pixel-art sprite synthesis as GIF."""

__version__ = "0.1.0"

from wokgen.core.config import WokgenConfig, config

# Import providers to ensure they're registered
from wokgen.core.providers import provider_registry  # noqa: F401

__all__ = [
    "WokgenConfig",
    "config",
    "provider_registry",
]
