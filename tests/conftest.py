"""Shared pytest fixtures for WokGen tests."""

import base64
import io
import random
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from wokgen.api.dependencies import get_provider_registry, get_random_source, get_settings
from wokgen.api.main import app
from wokgen.core.config import WokgenConfig
from wokgen.core.providers.base import (
    GenerateResult,
    GenerationParams,
    ProviderBase,
    ProviderRegistry,
)


def png_bytes(color=(255, 0, 0, 255), size: int = 16, mode: str = "RGBA") -> bytes:
    """Encode a solid-colour PNG.

    Args:
        color: Fill colour (RGBA, or RGB for ``mode="RGB"``).
        size: Edge length in pixels.
        mode: Pillow image mode.

    Returns:
        PNG file bytes.
    """
    image = Image.new(mode, (size, size), color)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def png_data_uri(color=(255, 0, 0, 255), size: int = 16, mode: str = "RGBA") -> str:
    """Solid-colour PNG as a ``data:image/png;base64`` URI."""
    return "data:image/png;base64," + base64.b64encode(png_bytes(color, size, mode)).decode()


class FakeProvider(ProviderBase):
    """In-memory provider returning one solid-colour PNG per call.

    The colour is derived from the seed so frames differ.  Behaviour is
    configured through class attributes on a per-test subclass:

    - ``fail_seed``: raise for the call with this seed.
    - ``calls``: every :class:`GenerationParams` received.
    """

    name = "pollinations"
    description = "Test double"
    requires_auth = False

    fail_seed: int | None = None
    calls: list[GenerationParams] = []

    async def generate(self, params: GenerationParams) -> GenerateResult:
        self.calls.append(params)
        if self.fail_seed is not None and params.seed == self.fail_seed:
            raise self._error("upstream exploded", http_status=503)
        color = ((params.seed * 37) % 256, (params.seed * 91) % 256, (params.seed * 53) % 256, 255)
        return GenerateResult(
            provider=self.name,
            result_url=png_data_uri(color, size=params.width),
            duration_ms=1,
            resolved_seed=params.seed,
        )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> WokgenConfig:
    """Create a self-hosted test configuration with no provider credentials.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        WokgenConfig instance for testing
    """
    return WokgenConfig(
        _env_file=None,
        replicate_api_token=None,
        hf_token=None,
        local_model_id=None,
        self_hosted=True,
        device="cpu",
        torch_dtype="float32",
        models_dir=temp_dir / "models",
        request_budget_seconds=30,
    )


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    """A fresh :class:`FakeProvider` subclass with its own call log."""
    return type("TestProvider", (FakeProvider,), {"calls": [], "fail_seed": None})


@pytest.fixture
def fake_registry(fake_provider: type[FakeProvider]) -> ProviderRegistry:
    """Registry whose only provider is the fake, under the fallback name."""
    registry = ProviderRegistry()
    registry.register(fake_provider)
    return registry


@pytest.fixture
def test_client(
    test_config: WokgenConfig,
    fake_registry: ProviderRegistry,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test config and the fake provider.

    The base-seed source is a seeded :class:`random.Random` so requests
    without a seed are reproducible.
    """
    app.dependency_overrides[get_settings] = lambda: test_config
    app.dependency_overrides[get_provider_registry] = lambda: fake_registry
    app.dependency_overrides[get_random_source] = lambda: random.Random(1234)
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_png():
    """Factory fixture: ``make_png(color, size, mode)`` -> PNG bytes."""
    return png_bytes


@pytest.fixture
def make_png_uri():
    """Factory fixture: ``make_png_uri(color, size, mode)`` -> PNG data URI."""
    return png_data_uri
