"""Integration tests for wokgen.api.main: FastAPI REST API endpoints.

All tests use the FastAPI TestClient wired to the in-memory fake provider,
so no network access or model loading occurs.  Tests cover every endpoint:

- ``POST /api/animate``: GIF generation, validation and failures.
- Rate limiting of ``POST /api/animate`` in multi-tenant mode.
- ``GET /api/animate/specs``: Category defaults.
- ``GET /api/config``: Options, limits and providers.
- ``GET /api/health``: Liveness probe.
- Client disconnect cancellation.
"""

from __future__ import annotations

import asyncio
import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import wokgen.api.main as api_main
from wokgen.api.dependencies import get_settings
from wokgen.api.main import app, run_until_disconnect

GIF_PREFIX = "data:image/gif;base64,"


def _decode_gif(result_url: str) -> Image.Image:
    assert result_url.startswith(GIF_PREFIX)
    return Image.open(io.BytesIO(base64.b64decode(result_url[len(GIF_PREFIX) :])))


# ---------------------------------------------------------------------------
# Animation endpoint tests.
# ---------------------------------------------------------------------------


class TestAnimate:
    """Test POST /api/animate: successful generation."""

    def test_pingpong_animation(self, test_client):
        """4 frames at 8 fps ping-pong produce a 6 frame 64px GIF."""
        resp = test_client.post(
            "/api/animate",
            json={"prompt": "slime", "frameCount": 4, "fps": 8, "loop": "pingpong", "size": 64},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["frameCount"] == 4
        assert data["fps"] == 8
        assert data["durationMs"] == 500

        with _decode_gif(data["resultUrl"]) as gif:
            assert gif.n_frames == 6
            assert gif.size == (64, 64)
            assert gif.info["loop"] == 0
            assert gif.info["duration"] == 130

    def test_defaults_from_category(self, test_client, fake_provider):
        """Omitted frame count and fps come from the animation category."""
        resp = test_client.post("/api/animate", json={"prompt": "knight", "animationType": "attack"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["frameCount"] == 6
        assert data["fps"] == 12
        assert len(fake_provider.calls) == 6
        assert {p.width for p in fake_provider.calls} == {128}

    def test_snake_case_fields_accepted(self, test_client):
        """snake_case field names work like their camelCase aliases."""
        resp = test_client.post(
            "/api/animate", json={"prompt": "slime", "frame_count": 3, "fps": 6, "seed": 1}
        )
        assert resp.status_code == 200
        assert resp.json()["frameCount"] == 3

    def test_negative_prompt_forwarded(self, test_client, fake_provider):
        """The caller's negative prompt reaches every frame."""
        resp = test_client.post(
            "/api/animate",
            json={"prompt": "slime", "frameCount": 2, "size": 32, "negativePrompt": "swords"},
        )
        assert resp.status_code == 200
        assert all(p.negative_prompt.endswith(", swords") for p in fake_provider.calls)

    def test_seed_makes_request_repeatable(self, test_client):
        """The same seed yields the same document."""
        body = {"prompt": "slime", "frameCount": 2, "seed": 77, "size": 32}
        first = test_client.post("/api/animate", json=body).json()
        second = test_client.post("/api/animate", json=body).json()
        assert first["resultUrl"] == second["resultUrl"]


class TestAnimateErrors:
    """Test POST /api/animate: rejected and failed requests."""

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}, {"prompt": None}])
    def test_missing_prompt(self, test_client, fake_provider, body):
        """A missing or blank prompt is a 400 and reaches no provider."""
        resp = test_client.post("/api/animate", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "prompt is required"}
        assert fake_provider.calls == []

    def test_malformed_json(self, test_client):
        """A body that is not JSON is a 400."""
        resp = test_client.post(
            "/api/animate",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid JSON body"}

    @pytest.mark.parametrize(
        "body",
        [
            {"prompt": "slime", "loop": "sideways"},
            {"prompt": "slime", "quality": "ultra"},
            {"prompt": "slime", "frameCount": "many"},
        ],
    )
    def test_invalid_fields(self, test_client, body):
        """Values of the wrong type or outside an enumeration are a 400."""
        resp = test_client.post("/api/animate", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid JSON body"}

    def test_zero_fps(self, test_client):
        """A non-positive frame rate is a 400."""
        resp = test_client.post("/api/animate", json={"prompt": "slime", "fps": 0})
        assert resp.status_code == 400
        assert "fps" in resp.json()["error"]

    @pytest.mark.parametrize("literal", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_finite_fps(self, test_client, fake_provider, literal):
        """Non-finite frame rates are a 400 and reach no provider."""
        resp = test_client.post(
            "/api/animate",
            content=b'{"prompt": "x", "fps": ' + literal + b', "frameCount": 2, "size": 32}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "fps must be a positive finite number"}
        assert fake_provider.calls == []

    def test_frame_failure_fails_request(self, test_client, fake_provider):
        """One failing frame yields a 500 with no result."""
        fake_provider.fail_seed = 1000 + 2 * 137
        resp = test_client.post("/api/animate", json={"prompt": "slime", "frameCount": 4, "seed": 1000})
        assert resp.status_code == 500
        data = resp.json()
        assert data == {"error": "Frame generation failed: upstream exploded"}
        assert "resultUrl" not in data


# ---------------------------------------------------------------------------
# Rate limiting tests.
# ---------------------------------------------------------------------------


@pytest.fixture
def tenant_client(test_client, test_config):
    """TestClient for a multi-tenant deployment with tight quotas."""
    tenant_config = test_config.model_copy(
        update={
            "self_hosted": False,
            "guest_rate_limit": 1,
            "user_rate_limit": 2,
            "api_keys": {"key-alice": "alice"},
        }
    )
    app.dependency_overrides[get_settings] = lambda: tenant_config
    return test_client


class TestRateLimiting:
    """Test per-caller quotas on POST /api/animate."""

    BODY = {"prompt": "slime", "frameCount": 2, "size": 32, "seed": 5}

    def test_guest_over_quota(self, tenant_client):
        """A guest's second request in the window is a 429 with Retry-After."""
        assert tenant_client.post("/api/animate", json=self.BODY).status_code == 200

        resp = tenant_client.post("/api/animate", json=self.BODY)
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) >= 1
        assert "Rate limit exceeded" in resp.json()["error"]

    def test_rejected_before_generation(self, tenant_client, fake_provider):
        """A rate-limited request never reaches the provider."""
        tenant_client.post("/api/animate", json=self.BODY)
        calls = len(fake_provider.calls)
        tenant_client.post("/api/animate", json=self.BODY)
        assert len(fake_provider.calls) == calls

    def test_guests_keyed_by_forwarded_address(self, tenant_client):
        """Guests behind a proxy are counted by their first forwarded hop."""
        first = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        second = {"X-Forwarded-For": "198.51.100.2"}
        assert tenant_client.post("/api/animate", json=self.BODY, headers=first).status_code == 200
        assert tenant_client.post("/api/animate", json=self.BODY, headers=second).status_code == 200
        assert tenant_client.post("/api/animate", json=self.BODY, headers=first).status_code == 429

    def test_known_user_quota(self, tenant_client):
        """A known API key gets the user quota."""
        headers = {"Authorization": "Bearer key-alice"}
        for _ in range(2):
            assert tenant_client.post("/api/animate", json=self.BODY, headers=headers).status_code == 200
        assert tenant_client.post("/api/animate", json=self.BODY, headers=headers).status_code == 429

    def test_unknown_key_is_guest(self, tenant_client):
        """An unknown API key is counted as a guest."""
        headers = {"X-API-Key": "nope"}
        assert tenant_client.post("/api/animate", json=self.BODY, headers=headers).status_code == 200
        assert tenant_client.post("/api/animate", json=self.BODY, headers=headers).status_code == 429

    def test_self_hosted_is_unlimited(self, test_client):
        """Self-hosted deployments are never rate limited."""
        for _ in range(5):
            assert test_client.post("/api/animate", json=self.BODY).status_code == 200


# ---------------------------------------------------------------------------
# Read-only endpoint tests.
# ---------------------------------------------------------------------------


class TestAnimationSpecs:
    """Test GET /api/animate/specs."""

    def test_lists_categories(self, test_client):
        """Every category is listed with its frame count and fps."""
        resp = test_client.get("/api/animate/specs")
        assert resp.status_code == 200
        data = resp.json()
        assert data["default"] == "idle"
        assert data["specs"]["idle"] == {"totalFrames": 4, "fps": 6}
        assert data["specs"]["walk"] == {"totalFrames": 8, "fps": 10}


class TestGetConfig:
    """Test GET /api/config."""

    def test_limits_and_options(self, test_client):
        """Limits and enumerations are reported."""
        data = test_client.get("/api/config").json()
        assert data["limits"]["frameCount"] == {"min": 2, "max": 12}
        assert data["limits"]["size"] == {"min": 32, "max": 256, "default": 128}
        assert data["loopModes"] == ["infinite", "pingpong", "once"]
        assert "walk" in data["animationTypes"]
        assert data["selfHosted"] is True

    def test_active_providers(self, test_client):
        """Without credentials both tiers resolve to the fallback provider."""
        data = test_client.get("/api/config").json()
        assert data["providers"] == {"standard": "pollinations", "hd": "pollinations"}
        assert data["availableProviders"] == [
            {"name": "pollinations", "description": "Test double", "requiresAuth": False}
        ]


class TestHealth:
    """Test GET /api/health."""

    def test_health(self, test_client):
        """The probe answers ok with the version."""
        resp = test_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestLifespan:
    """Test startup state."""

    def test_state_created(self, test_client):
        """The HTTP client and rate limiter exist while the app runs."""
        assert app.state.http_client is not None
        assert app.state.rate_limiter is not None

    def test_runs_without_overrides(self):
        """The app starts with its real dependencies."""
        with TestClient(app) as client:
            assert client.get("/api/health").status_code == 200


# ---------------------------------------------------------------------------
# Client disconnect tests.
# ---------------------------------------------------------------------------


class _FakeRequest:
    def __init__(self, disconnect_after: int | None) -> None:
        self.polls = 0
        self.disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.disconnect_after is not None and self.polls > self.disconnect_after


class TestDisconnect:
    """Test cancellation when the client goes away."""

    @pytest.mark.asyncio
    async def test_work_finishes(self, monkeypatch):
        """Finished work is returned."""
        monkeypatch.setattr(api_main, "DISCONNECT_POLL_SECONDS", 0.01)

        async def work():
            return "gif"

        assert await run_until_disconnect(_FakeRequest(None), work()) == (True, "gif")

    @pytest.mark.asyncio
    async def test_disconnect_cancels_work(self, monkeypatch):
        """Work still running when the client disconnects is cancelled."""
        monkeypatch.setattr(api_main, "DISCONNECT_POLL_SECONDS", 0.01)
        cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        assert await run_until_disconnect(_FakeRequest(1), work()) == (False, None)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_work_errors_propagate(self, monkeypatch):
        """Exceptions raised by the work reach the caller."""
        monkeypatch.setattr(api_main, "DISCONNECT_POLL_SECONDS", 0.01)

        async def work():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await run_until_disconnect(_FakeRequest(None), work())
