"""Diffusion pipeline lifecycle management for the self-hosted provider tier.

This module provides :class:`ModelManager`, the single point of control for
loading and invoking a HuggingFace diffusers pipeline on this host.  It backs
the optional ``local`` provider, which is only part of the provider chain
when ``WOKGEN_LOCAL_MODEL_ID`` is configured.

Key Responsibilities
--------------------
- **Lazy model loading**: ``torch`` and ``diffusers`` are imported and the
  pipeline is loaded on the first ``generate()`` call, so deployments that
  only use remote providers never need either package.
- **Serialized inference**: one pipeline lives on one device; concurrent
  frame jobs coming from worker threads take turns through a lock.
- **Turbo-model enforcement**: models whose HuggingFace ID contains
  ``"turbo"`` (case-insensitive) have their ``guidance_scale`` forced to 0.0.
- **Deterministic generation**: a seeded ``torch.Generator`` is created for
  every call, so the same seed always produces the same frame.
- **CUDA memory management**: on unload the pipeline reference is deleted,
  garbage-collected, and ``torch.cuda.empty_cache()`` is called.

Usage
-----
::

    from wokgen.core.config import config
    from wokgen.core.model_manager import ModelManager

    mgr = ModelManager(config)
    image = mgr.generate(
        prompt="a goblin knight, walk animation",
        width=128,
        height=128,
        steps=4,
        guidance_scale=3.5,
        seed=42,
    )
    mgr.unload()
"""

from __future__ import annotations

import gc
import logging
import threading

from PIL import Image

from wokgen.core.config import WokgenConfig

logger = logging.getLogger(__name__)

_DTYPE_MAP: dict | None = None


def _get_dtype_map() -> dict:
    """Return the dtype string → ``torch.dtype`` mapping.

    The mapping is built on first call so that ``torch`` is not imported at
    module level.

    Returns:
        Dictionary mapping ``"bfloat16"``, ``"float16"``, and ``"float32"``
        to their corresponding ``torch.dtype`` values.
    """
    global _DTYPE_MAP
    if _DTYPE_MAP is None:
        import torch

        _DTYPE_MAP = {
            "bfloat16": torch.bfloat16,
            "float16": torch.float16,
            "float32": torch.float32,
        }
    return _DTYPE_MAP


class ModelManager:
    """Manages the lifecycle of a single diffusers pipeline.

    Attributes:
        _config (WokgenConfig):
            Application configuration: model ID, device, dtype and cache
            directory.
        _pipeline:
            The currently loaded diffusers pipeline, or ``None``.
        _current_model_id (str | None):
            HuggingFace identifier of the loaded model, or ``None``.
        _lock (threading.Lock):
            Serializes loading and inference.
    """

    def __init__(self, config: WokgenConfig) -> None:
        self._config = config
        self._pipeline = None
        self._current_model_id: str | None = None
        self._lock = threading.Lock()

    # -- Public interface ---------------------------------------------------

    def load_model(self, hf_id: str) -> None:
        """Load a diffusers pipeline by HuggingFace model identifier.

        A no-op when *hf_id* is already loaded; a different model is
        unloaded first.

        Args:
            hf_id: HuggingFace model identifier.

        Raises:
            RuntimeError: If the model cannot be loaded.
        """
        with self._lock:
            self._load_locked(hf_id)

    def _load_locked(self, hf_id: str) -> None:
        if self._current_model_id == hf_id and self._pipeline is not None:
            return

        if self._pipeline is not None:
            logger.info(
                "Switching from '%s' to '%s': unloading current model.",
                self._current_model_id,
                hf_id,
            )
            self._unload_locked()

        import torch
        from diffusers import AutoPipelineForText2Image

        torch_dtype = _get_dtype_map().get(self._config.torch_dtype, torch.bfloat16)
        logger.info(
            "Loading model '%s' (dtype=%s, device=%s, cache=%s).",
            hf_id,
            self._config.torch_dtype,
            self._config.device,
            self._config.models_dir,
        )

        try:
            pipeline = AutoPipelineForText2Image.from_pretrained(
                hf_id,
                torch_dtype=torch_dtype,
                cache_dir=str(self._config.models_dir),
            )
            self._pipeline = pipeline.to(self._config.device)
            self._current_model_id = hf_id
            logger.info("Model '%s' loaded successfully.", hf_id)
        except Exception:
            self._pipeline = None
            self._current_model_id = None
            logger.exception("Failed to load model '%s'.", hf_id)
            raise

    def generate(
        self,
        prompt: str,
        width: int,
        height: int,
        steps: int,
        guidance_scale: float,
        seed: int,
        negative_prompt: str | None = None,
    ) -> Image.Image:
        """Generate a single image, loading the configured model if needed.

        Args:
            prompt: Text prompt describing the frame.
            width: Image width in pixels.
            height: Image height in pixels.
            steps: Number of diffusion inference steps.
            guidance_scale: Classifier-free guidance scale.  Forced to 0.0
                for turbo models.
            seed: Random seed for reproducible generation.
            negative_prompt: Optional text describing what to avoid.

        Returns:
            The generated PIL image.

        Raises:
            RuntimeError: If no local model is configured.
        """
        with self._lock:
            if self._pipeline is None:
                if not self._config.local_model_id:
                    raise RuntimeError("No local model configured (WOKGEN_LOCAL_MODEL_ID).")
                self._load_locked(self._config.local_model_id)

            import torch

            if self._current_model_id and "turbo" in self._current_model_id.lower():
                guidance_scale = 0.0

            generator = torch.Generator(device=self._config.device).manual_seed(seed)
            pipeline_kwargs: dict = {
                "prompt": prompt,
                "width": width,
                "height": height,
                "num_inference_steps": steps,
                "guidance_scale": guidance_scale,
                "generator": generator,
            }
            # Turbo variants reject negative prompts.
            if negative_prompt and guidance_scale > 0.0:
                pipeline_kwargs["negative_prompt"] = negative_prompt

            output = self._pipeline(**pipeline_kwargs)
            image: Image.Image = output.images[0]

        logger.debug("Local image generated (seed=%d).", seed)
        return image

    def unload(self) -> None:
        """Unload the current model and free GPU memory (no-op when empty)."""
        with self._lock:
            self._unload_locked()

    def _unload_locked(self) -> None:
        if self._pipeline is None:
            return

        model_id = self._current_model_id
        logger.info("Unloading model '%s'.", model_id)
        self._pipeline = None
        self._current_model_id = None
        gc.collect()

        try:
            import torch

            if torch.cuda.is_available():
                torch.cuda.empty_cache()
                logger.info("CUDA cache cleared after unloading '%s'.", model_id)
        except ImportError:
            pass

    # -- Properties ---------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        """Whether a model pipeline is currently loaded in memory."""
        return self._pipeline is not None

    @property
    def current_model_id(self) -> str | None:
        """HuggingFace ID of the currently loaded model, or ``None``."""
        return self._current_model_id


_shared_manager: ModelManager | None = None


def get_shared_manager(config: WokgenConfig) -> ModelManager:
    """Return the process-wide manager, creating it on first use."""
    global _shared_manager
    if _shared_manager is None:
        _shared_manager = ModelManager(config)
    return _shared_manager


def release_shared_manager() -> None:
    """Unload and drop the process-wide manager, if any."""
    global _shared_manager
    if _shared_manager is not None:
        _shared_manager.unload()
        _shared_manager = None
