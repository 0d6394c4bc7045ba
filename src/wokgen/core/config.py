"""Configuration management for the WokGen animation service.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the WOKGEN_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (WOKGEN_* prefix)
2. .env file in the project root
3. Default values defined in WokgenConfig

Provider credentials are also accepted under the names the provider SDKs use
(``REPLICATE_API_TOKEN``, ``HF_TOKEN``) and the deployment switch under
``SELF_HOSTED``, so an existing provider environment works unchanged.

Example .env file:
    WOKGEN_HF_TOKEN=hf_xxx
    WOKGEN_REPLICATE_API_TOKEN=r8_xxx
    WOKGEN_SELF_HOSTED=true
    WOKGEN_PALETTE_STRATEGY=global

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The FastAPI application reads it through the ``get_config`` dependency so
tests can substitute their own instance.

Usage Example
-------------
    from wokgen.core.config import config

    print(config.hf_token is not None)
    print(config.request_budget_seconds)

Provider Timeouts
-----------------
Each provider client carries its own timeout (Replicate 60s per request with
polling, Hugging Face 120s, Pollinations 15s).  The pipeline itself adds no
per-frame timeout; it runs under ``request_budget_seconds`` as a whole.

See Also
--------
- .env.example: Template with all available configuration options
- WokgenConfig: Full configuration class documentation
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WokgenConfig(BaseSettings):
    """Main configuration for the WokGen animation service.

    Attributes
    ----------
    Provider Credentials:
        replicate_api_token : str | None
            Token for the paid, highest-fidelity provider (HD tier only)
        hf_token : str | None
            Token for the Hugging Face inference router

    Provider Clients:
        replicate_api_url, replicate_model_version : str
            Prediction endpoint and model version used per frame
        hf_router_url, hf_model_id : str
            Inference router base URL and model
        pollinations_url : str
            Base URL of the unauthenticated fallback provider
        *_timeout_seconds : float
            Per-provider HTTP timeouts

    Pipeline:
        request_budget_seconds : float
            Wall-clock budget for one animation request
        palette_strategy : Literal["per_frame", "global"]
            Per-frame color tables (default) or one shared table
        max_colors : int
            Maximum color table size (at most 256)

    Deployment:
        self_hosted : bool
            When False the service is multi-tenant: session lookup and
            rate limiting are applied before the pipeline runs
        api_keys : dict[str, str]
            API key -> user id mapping used for session lookup
        guest_rate_limit, user_rate_limit : int
            Requests allowed per window for anonymous / known callers
        rate_limit_window_seconds : float
            Sliding window length

    Local Inference (optional):
        local_model_id : str | None
            HuggingFace model ID for the self-hosted diffusers tier.
            ``None`` disables the tier.
        torch_dtype, device, models_dir
            Settings for the diffusers pipeline

    Server:
        server_host, server_port, log_level

    Examples
    --------
        >>> custom_config = WokgenConfig(hf_token="hf_test", self_hosted=True)
        >>> custom_config.guest_rate_limit
        3
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WOKGEN_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Provider credentials
    replicate_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WOKGEN_REPLICATE_API_TOKEN", "REPLICATE_API_TOKEN"),
        description="Replicate API token (enables the HD tier)",
    )
    hf_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WOKGEN_HF_TOKEN", "HF_TOKEN"),
        description="Hugging Face access token (read scope is enough)",
    )

    # Provider clients
    replicate_api_url: str = Field(default="https://api.replicate.com/v1/predictions")
    replicate_model_version: str = Field(
        default="39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
        description="Replicate model version hash used for single-frame generation (SDXL)",
    )
    replicate_timeout_seconds: float = Field(default=60.0, gt=0)
    replicate_poll_interval_seconds: float = Field(default=2.0, ge=0)
    replicate_max_polls: int = Field(default=60, ge=1)

    hf_router_url: str = Field(default="https://router.huggingface.co/hf-inference/models")
    hf_model_id: str = Field(default="black-forest-labs/FLUX.1-schnell")
    hf_timeout_seconds: float = Field(default=120.0, gt=0)

    pollinations_url: str = Field(default="https://image.pollinations.ai/prompt")
    pollinations_timeout_seconds: float = Field(default=15.0, gt=0)

    download_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for fetching provider-hosted frame images",
    )

    # Pipeline
    request_budget_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Wall-clock budget for a whole animation request",
    )
    palette_strategy: Literal["per_frame", "global"] = Field(
        default="per_frame",
        description="Color table strategy for GIF frames",
    )
    max_colors: int = Field(default=256, ge=2, le=256)

    # Deployment / multi-tenant access
    self_hosted: bool = Field(
        default=False,
        validation_alias=AliasChoices("WOKGEN_SELF_HOSTED", "SELF_HOSTED"),
        description="Single-tenant deployment (no session lookup, no rate limiting)",
    )
    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="API key to user id mapping, as JSON in the environment",
    )
    guest_rate_limit: int = Field(default=3, ge=1)
    user_rate_limit: int = Field(default=10, ge=1)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)

    # Optional local diffusers tier
    local_model_id: str | None = Field(
        default=None,
        description="HuggingFace model ID served from this host (None disables)",
    )
    torch_dtype: Literal["bfloat16", "float16", "float32"] = Field(default="bfloat16")
    device: str = Field(default="cuda")
    models_dir: Path = Field(
        default=Path("models"),
        description="Directory to cache models for the local tier",
    )

    # Server
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=7860, ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


# Global configuration instance, loaded from WOKGEN_* variables and .env.
config = WokgenConfig()
