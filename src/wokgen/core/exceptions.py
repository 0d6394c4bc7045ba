"""Exception hierarchy for the WokGen animation service.

All WokGen exceptions inherit from :class:`WokgenError` so callers can catch
the entire family with a single ``except`` clause.  Each class carries the
HTTP status code the API layer should answer with; the message is intended
to be shown to the caller verbatim.
"""

from __future__ import annotations


class WokgenError(Exception):
    """Base exception for all WokGen errors."""

    status_code: int = 500


class AnimationValidationError(WokgenError):
    """Raised when an animation request fails validation."""

    status_code = 400


class RateLimitExceeded(WokgenError):
    """Raised when a caller exceeded its request quota."""

    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Rate limit exceeded. Try again in {retry_after}s.")
        self.retry_after = retry_after


class FrameGenerationError(WokgenError):
    """Raised when any frame of an animation could not be generated.

    The whole animation fails with it; the outputs of frames that did
    succeed are discarded.
    """

    def __init__(self, message: str, frame_index: int | None = None) -> None:
        super().__init__(f"Frame generation failed: {message}")
        self.frame_index = frame_index


class AssemblyError(WokgenError):
    """Raised when decoding, quantizing or encoding the GIF fails."""

    def __init__(self, message: str) -> None:
        super().__init__(f"GIF assembly failed: {message}")


class ProviderError(WokgenError):
    """Raised by an image provider client when a generation call fails."""

    def __init__(self, message: str, provider: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.http_status = http_status


class ProviderNotConfiguredError(WokgenError):
    """Raised when a provider is requested that is not registered."""


class RasterDecodeError(WokgenError):
    """Raised when a frame image cannot be fetched or decoded."""


class EncodingError(WokgenError):
    """Raised when frames handed to the GIF encoder are inconsistent."""


class AnimationTimeoutError(WokgenError):
    """Raised when an animation exceeds its wall-clock budget."""

    status_code = 504

    def __init__(self, budget_seconds: float) -> None:
        super().__init__(f"Animation timed out after {budget_seconds:g}s")
        self.budget_seconds = budget_seconds
