"""Errors surfaced at the pipeline boundary.

Every failure of a generation request ends up as one of these. The gateway
renders them as ``{"success": false, "error": ..., "provider": ...}`` with the
class' ``status_code``.
"""


class ImagePipelineError(Exception):
    """Base class for failures reported to the caller."""

    status_code: int = 500

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"success": False, "error": self.message}
        if self.provider:
            payload["provider"] = self.provider
        return payload


class InvalidImageRequest(ImagePipelineError):
    """Rejected before any provider was called."""

    status_code = 400


class ContentPolicyError(ImagePipelineError):
    """The prompt was refused by provider moderation."""

    status_code = 422


class ProviderRejectedError(ImagePipelineError):
    """A provider refused the request for a non-policy reason."""

    status_code = 502


class ProviderUnavailableError(ImagePipelineError):
    """No provider in the chain produced an image."""

    status_code = 503


class NormalizationError(ImagePipelineError):
    """Provider bytes could not be decoded or fitted to the canvas."""

    status_code = 502


class PersistenceError(ImagePipelineError):
    """Upload or metadata write failed after a successful generation."""

    status_code = 500
