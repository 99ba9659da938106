from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


class ProviderName(StrEnum):
    GEMINI = "gemini"
    OPENAI = "openai"


@dataclass(frozen=True)
class ProviderResult:
    """Raw image bytes returned by a provider plus what was actually asked for."""

    data: bytes
    mime_type: str
    provider: ProviderName
    latency_ms: int
    requested_aspect_ratio: str
    effective_aspect_ratio: str
    request_size: str | None = None
    finish_reason: str | None = None


class ProviderError(Exception):
    """A provider failed to produce an image.

    ``retryable`` tells the orchestrator whether another provider may
    succeed where this one failed.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: ProviderName,
        *,
        http_status: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.http_status = http_status
        if retryable is not None:
            self.retryable = retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider={self.provider.value!r}, "
            f"http_status={self.http_status!r}, retryable={self.retryable!r}, message={self.message!r})"
        )


class SafetyRejected(ProviderError):
    retryable = False


class RequestRejected(ProviderError):
    retryable = False


class MalformedResponse(ProviderError):
    """The call succeeded but carried no usable image."""


class RateLimited(ProviderError):
    retryable = True


class ProviderTimeout(ProviderError):
    retryable = True


class ServerError(ProviderError):
    retryable = True


class ProviderNotConfigured(ProviderError):
    retryable = True


@runtime_checkable
class ImageProvider(Protocol):
    """Anything that turns a prompt into image bytes."""

    name: ProviderName

    def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        timeout_ms: int,
        style_id: str | None = None,
    ) -> ProviderResult: ...
