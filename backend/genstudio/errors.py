"""Error taxonomy shared by the image and video paths.

Every failure a generation request can hit is one of these. The request
boundary (``genstudio.services.image_gen`` / ``video_gen``) converts them
into a ``Failed`` outcome; nothing escapes to the caller as a raw fault.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for all generation failures."""

    error_kind: str = "internal_error"
    default_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.details = details

    @property
    def status_code(self) -> int:
        """HTTP status to report to the caller."""
        return self.http_status or self.default_status


class ValidationError(GenerationError):
    """Bad caller input, raised before any network call. Never retried."""

    error_kind = "validation_error"
    default_status = 400

    @property
    def status_code(self) -> int:
        # Upstream status is informational only for caller mistakes.
        return self.default_status


class ConfigurationError(GenerationError):
    """Missing server-side configuration (e.g. the API key)."""

    error_kind = "configuration_error"
    default_status = 500


class AuthenticationFailed(GenerationError):
    """Credential rejected, or the auth handshake errored or timed out."""

    error_kind = "authentication_failed"
    default_status = 401


class TransportError(GenerationError):
    """Connection refused/dropped, or a reply that could not be parsed."""

    error_kind = "transport_error"
    default_status = 502


class RemoteTaskFailed(GenerationError):
    """The provider reported an error for this specific task."""

    error_kind = "remote_task_failed"
    default_status = 502


class ProviderError(GenerationError):
    """Structured provider error not attributable to a single task."""

    error_kind = "provider_error"
    default_status = 502


class GenerationTimeout(GenerationError):
    """A local deadline expired while waiting for a synchronous result."""

    error_kind = "timeout"
    default_status = 504
