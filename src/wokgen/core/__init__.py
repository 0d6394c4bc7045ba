"""Core functionality for animation synthesis.

Architecture Overview
---------------------
Data flows strictly downward through these layers:

1. **Configuration** (config.py): Pydantic Settings, ``WOKGEN_`` prefix.
2. **Providers** (providers/): one client per external image generator,
   a registry, and the per-request selection chain.
3. **Frames** (frames.py, prompt_builder.py, animation_specs.py): frame
   jobs, motion-aware prompts and the concurrent all-or-nothing dispatch.
4. **Assembly** (raster.py, quantize.py, gif_encoder.py): decode to RGBA,
   reduce to indexed color, write the GIF89a stream.
5. **Controller** (pipeline.py): validation, defaults and the request
   budget around all of the above.

``rate_limit.py`` and ``model_manager.py`` serve the API layer and the
self-hosted provider respectively.
"""

from wokgen.core.config import WokgenConfig, config
from wokgen.core.exceptions import WokgenError
from wokgen.core.pipeline import AnimationPipeline, AnimationRequest, AnimationResult

__all__ = [
    "AnimationPipeline",
    "AnimationRequest",
    "AnimationResult",
    "WokgenConfig",
    "WokgenError",
    "config",
]
