import time
from collections.abc import Callable
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from storybook_images.layout import map_aspect_ratio
from storybook_images.logging import logger
from storybook_images.providers.base import (
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
from storybook_images.providers.gemini.utils import (
    _describe_ratio,
    _extract_inline_image,
    _get_block_reason,
    _get_finish_reason,
    _get_response_parts,
    _is_safety_block,
)

DEFAULT_GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"

ClientFactory = Callable[[str, int], Any]


def _default_client_factory(api_key: str, timeout_ms: int) -> genai.Client:
    return genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=timeout_ms))


def _classify_api_error(exc: Any) -> ProviderError:
    """Map a google-genai ``APIError`` to a provider error variant by its HTTP code."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if code == 429:
        return RateLimited(f"Gemini rate limited: {message}", ProviderName.GEMINI, http_status=429)
    if isinstance(code, int) and code >= 500:
        return ServerError(f"Gemini server error: {message}", ProviderName.GEMINI, http_status=code)
    if isinstance(code, int) and 400 <= code < 500:
        return RequestRejected(f"Gemini rejected the request: {message}", ProviderName.GEMINI, http_status=code)
    return ServerError(f"Gemini call failed: {message}", ProviderName.GEMINI, http_status=code)


class GeminiImageProvider:
    """Primary provider. Sends one of the discrete ratios Gemini understands."""

    name = ProviderName.GEMINI

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_GEMINI_IMAGE_MODEL,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._client_factory = client_factory or _default_client_factory

    def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        timeout_ms: int,
        style_id: str | None = None,
    ) -> ProviderResult:
        if not self.api_key:
            raise ProviderNotConfigured(
                "Gemini provider api_key is not configured", ProviderName.GEMINI, http_status=503
            )

        ratio = map_aspect_ratio(aspect_ratio)
        logger.info(
            "Gemini image request model=%s aspect_ratio=%s fallback=%s timeout_ms=%d prompt_len=%d",
            self.model,
            _describe_ratio(ratio.resolved, ratio.requested),
            ratio.is_fallback,
            timeout_ms,
            len(prompt),
        )

        client = self._client_factory(self.api_key, timeout_ms)
        content_config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=ratio.resolved),
            candidate_count=1,
        )

        started = time.perf_counter()
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=content_config,
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(
                f"Gemini request timed out after {timeout_ms}ms", ProviderName.GEMINI, http_status=504
            ) from exc
        except genai_errors.APIError as exc:
            raise _classify_api_error(exc) from exc
        latency_ms = int((time.perf_counter() - started) * 1000)

        finish_reason = _get_finish_reason(response)
        image_bytes, mime_type = _extract_inline_image(_get_response_parts(response))
        if not image_bytes:
            block_reason = _get_block_reason(response)
            logger.warning(
                "Gemini returned no image finish_reason=%s block_reason=%s latency_ms=%d",
                finish_reason,
                block_reason,
                latency_ms,
            )
            if _is_safety_block(finish_reason, block_reason):
                raise SafetyRejected(
                    f"Gemini blocked the prompt ({block_reason or finish_reason})",
                    ProviderName.GEMINI,
                    http_status=400,
                )
            raise MalformedResponse(
                f"Gemini response did not include inline image data (finish_reason={finish_reason})",
                ProviderName.GEMINI,
                retryable=True,
            )

        logger.info(
            "Gemini image generated mime_type=%s bytes=%d latency_ms=%d",
            mime_type,
            len(image_bytes),
            latency_ms,
        )
        return ProviderResult(
            data=image_bytes,
            mime_type=mime_type,
            provider=ProviderName.GEMINI,
            latency_ms=latency_ms,
            requested_aspect_ratio=ratio.requested,
            effective_aspect_ratio=ratio.resolved,
            finish_reason=finish_reason,
        )
