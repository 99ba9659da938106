from typing import Any

from .base import (
    ImageProvider,
    MalformedResponse,
    ProviderError,
    ProviderName,
    ProviderNotConfigured,
    ProviderResult,
    ProviderTimeout,
    RateLimited,
    RequestRejected,
    SafetyRejected,
    ServerError,
)
from .gemini import DEFAULT_GEMINI_IMAGE_MODEL, GeminiImageProvider
from .openai import DEFAULT_OPENAI_IMAGE_MODEL, OpenAIImageProvider


def create_provider(name: ProviderName | str, api_key: str | None, model: str | None = None, **kwargs: Any) -> ImageProvider:
    """Instantiate the adapter for ``name``."""
    provider_name = ProviderName(name)
    if provider_name is ProviderName.GEMINI:
        return GeminiImageProvider(api_key, model=model or DEFAULT_GEMINI_IMAGE_MODEL, **kwargs)
    return OpenAIImageProvider(api_key, model=model or DEFAULT_OPENAI_IMAGE_MODEL, **kwargs)


__all__ = [
    "DEFAULT_GEMINI_IMAGE_MODEL",
    "DEFAULT_OPENAI_IMAGE_MODEL",
    "GeminiImageProvider",
    "ImageProvider",
    "MalformedResponse",
    "OpenAIImageProvider",
    "ProviderError",
    "ProviderName",
    "ProviderNotConfigured",
    "ProviderResult",
    "ProviderTimeout",
    "RateLimited",
    "RequestRejected",
    "SafetyRejected",
    "ServerError",
    "create_provider",
]
