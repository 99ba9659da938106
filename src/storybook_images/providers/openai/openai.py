import base64
import binascii
import time
from collections.abc import Callable
from typing import Any

import openai
from openai import OpenAI

from storybook_images.layout import OPENAI_SIZE_ASPECT_RATIOS, map_aspect_ratio
from storybook_images.logging import logger
from storybook_images.providers.base import (
    MalformedResponse,
    ProviderName,
    ProviderNotConfigured,
    ProviderResult,
    ProviderTimeout,
    RateLimited,
    RequestRejected,
    SafetyRejected,
    ServerError,
)
from storybook_images.styles import get_openai_style

DEFAULT_OPENAI_IMAGE_MODEL = "dall-e-3"
CONTENT_POLICY_CODE = "content_policy_violation"

ClientFactory = Callable[[str, int], Any]


def _default_client_factory(api_key: str, timeout_ms: int) -> OpenAI:
    return OpenAI(api_key=api_key, timeout=timeout_ms / 1000, max_retries=0)


def _accepts_style(model: str) -> bool:
    # gpt-image models reject ``style`` and ``response_format``.
    return model.startswith("dall-e")


class OpenAIImageProvider:
    """Secondary provider. Only the legacy literal sizes are accepted."""

    name = ProviderName.OPENAI

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_IMAGE_MODEL,
        quality: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.quality = quality
        self._client_factory = client_factory or _default_client_factory

    def _build_payload(self, prompt: str, size: str, style_id: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt.strip(),
            "size": size,
            "n": 1,
        }
        if self.quality:
            payload["quality"] = self.quality
        if _accepts_style(self.model):
            payload["style"] = get_openai_style(style_id)
            payload["response_format"] = "b64_json"
        return payload

    def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        timeout_ms: int,
        style_id: str | None = None,
    ) -> ProviderResult:
        if not self.api_key:
            raise ProviderNotConfigured(
                "OpenAI provider api_key is not configured", ProviderName.OPENAI, http_status=503
            )

        ratio = map_aspect_ratio(aspect_ratio)
        size = ratio.openai_size
        payload = self._build_payload(prompt, size, style_id)
        logger.info(
            "OpenAI image request model=%s size=%s requested=%s style=%s timeout_ms=%d",
            self.model,
            size,
            ratio.requested,
            payload.get("style"),
            timeout_ms,
        )

        client = self._client_factory(self.api_key, timeout_ms)
        started = time.perf_counter()
        try:
            response = client.images.generate(**payload)
        except openai.APITimeoutError as exc:
            raise ProviderTimeout(
                f"OpenAI request timed out after {timeout_ms}ms", ProviderName.OPENAI, http_status=504
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimited(f"OpenAI rate limited: {exc.message}", ProviderName.OPENAI, http_status=429) from exc
        except openai.InternalServerError as exc:
            raise ServerError(
                f"OpenAI server error: {exc.message}", ProviderName.OPENAI, http_status=exc.status_code
            ) from exc
        except openai.BadRequestError as exc:
            if exc.code == CONTENT_POLICY_CODE:
                raise SafetyRejected(
                    f"OpenAI blocked the prompt: {exc.message}", ProviderName.OPENAI, http_status=400
                ) from exc
            raise RequestRejected(
                f"OpenAI rejected the request: {exc.message}", ProviderName.OPENAI, http_status=400
            ) from exc
        except openai.APIStatusError as exc:
            raise RequestRejected(
                f"OpenAI rejected the request: {exc.message}", ProviderName.OPENAI, http_status=exc.status_code
            ) from exc
        latency_ms = int((time.perf_counter() - started) * 1000)

        data = getattr(response, "data", None) or []
        encoded = getattr(data[0], "b64_json", None) if data else None
        if not encoded:
            logger.warning("OpenAI returned no image data latency_ms=%d", latency_ms)
            raise MalformedResponse(
                "OpenAI response did not include image data", ProviderName.OPENAI, retryable=False
            )
        try:
            image_bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedResponse(
                "OpenAI response carried invalid base64 image data", ProviderName.OPENAI, retryable=False
            ) from exc

        output_format = getattr(response, "output_format", None)
        mime_type = f"image/{output_format}" if isinstance(output_format, str) and output_format else "image/png"
        logger.info(
            "OpenAI image generated size=%s bytes=%d latency_ms=%d",
            size,
            len(image_bytes),
            latency_ms,
        )
        return ProviderResult(
            data=image_bytes,
            mime_type=mime_type,
            provider=ProviderName.OPENAI,
            latency_ms=latency_ms,
            requested_aspect_ratio=ratio.requested,
            effective_aspect_ratio=OPENAI_SIZE_ASPECT_RATIOS.get(size, ratio.resolved),
            request_size=size,
        )
