"""Ordered provider fallback chain.

Providers are tried one at a time in the configured order. Each is called at
most once per invocation. A failure advances the chain only when the next
provider could plausibly succeed: the error was transient, unclassified, or a
moderation refusal (moderation differs between providers).
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from storybook_images.errors import (
    ContentPolicyError,
    ImagePipelineError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from storybook_images.logging import logger
from storybook_images.providers.base import (
    ImageProvider,
    ProviderError,
    ProviderName,
    ProviderResult,
    SafetyRejected,
)

DEFAULT_PROVIDER_TIMEOUT_MS = 45_000


@dataclass(frozen=True)
class ProviderAttempt:
    provider: ProviderName
    succeeded: bool
    error: str | None = None
    retryable: bool | None = None


@dataclass(frozen=True)
class OrchestratedResult:
    result: ProviderResult
    provider_used: ProviderName
    fallback_used: bool
    attempts: list[ProviderAttempt] = field(default_factory=list)


def provider_order(default: ProviderName | str, fallback: ProviderName | str | None = None) -> list[ProviderName]:
    """Build ``[default, fallback]``; a fallback equal to the default becomes the other provider."""
    primary = ProviderName(default)
    if fallback is None:
        secondary = next(name for name in ProviderName if name is not primary)
    else:
        secondary = ProviderName(fallback)
        if secondary is primary:
            secondary = next(name for name in ProviderName if name is not primary)
    return [primary, secondary]


class ProviderOrchestrator:
    def __init__(
        self,
        providers: Sequence[ImageProvider],
        *,
        timeout_ms: int = DEFAULT_PROVIDER_TIMEOUT_MS,
        fallback_on_safety: bool = True,
    ) -> None:
        self.providers = list(providers)
        self.timeout_ms = timeout_ms
        self.fallback_on_safety = fallback_on_safety

    def _can_advance(self, error: Exception) -> bool:
        if isinstance(error, SafetyRejected):
            return self.fallback_on_safety
        if isinstance(error, ProviderError):
            return error.retryable
        return True

    def generate(self, prompt: str, aspect_ratio: str, style_id: str | None = None) -> OrchestratedResult:
        if not self.providers:
            raise ProviderUnavailableError("No image providers are configured")

        attempts: list[ProviderAttempt] = []
        last_error: Exception | None = None
        last_provider: ProviderName | None = None

        for index, provider in enumerate(self.providers):
            is_last = index == len(self.providers) - 1
            try:
                result = provider.generate(prompt, aspect_ratio, self.timeout_ms, style_id=style_id)
            except ProviderError as exc:
                attempts.append(ProviderAttempt(provider.name, False, exc.message, exc.retryable))
                last_error, last_provider = exc, provider.name
                logger.warning(
                    "Provider %s failed (%s, http_status=%s, retryable=%s): %s",
                    provider.name.value,
                    type(exc).__name__,
                    exc.http_status,
                    exc.retryable,
                    exc.message,
                )
            except Exception as exc:  # noqa: BLE001
                attempts.append(ProviderAttempt(provider.name, False, str(exc), None))
                last_error, last_provider = exc, provider.name
                logger.exception("Provider %s raised an unexpected error", provider.name.value)
            else:
                attempts.append(ProviderAttempt(provider.name, True))
                if index > 0:
                    logger.info("Fallback provider %s succeeded after %d failed attempt(s)", provider.name.value, index)
                return OrchestratedResult(
                    result=result,
                    provider_used=provider.name,
                    fallback_used=index > 0,
                    attempts=attempts,
                )

            if is_last or not self._can_advance(last_error):
                break
            logger.info("Falling back from %s to %s", provider.name.value, self.providers[index + 1].name.value)

        raise self._terminal_error(last_error, last_provider)

    @staticmethod
    def _terminal_error(error: Exception | None, provider: ProviderName | None) -> ImagePipelineError:
        provider_label = provider.value if provider else None
        if isinstance(error, SafetyRejected):
            exc: ImagePipelineError = ContentPolicyError(error.message, provider=provider_label)
        elif isinstance(error, ProviderError) and not error.retryable:
            exc = ProviderRejectedError(error.message, provider=provider_label)
        elif isinstance(error, ProviderError):
            exc = ProviderUnavailableError(error.message, provider=provider_label)
        else:
            exc = ProviderUnavailableError(f"Image provider failed: {error}", provider=provider_label)
        exc.__cause__ = error
        return exc
