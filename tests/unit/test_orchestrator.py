import pytest

from storybook_images.errors import ContentPolicyError, ProviderRejectedError, ProviderUnavailableError
from storybook_images.orchestrator import ProviderOrchestrator, provider_order
from storybook_images.providers import (
    MalformedResponse,
    ProviderName,
    ProviderTimeout,
    RequestRejected,
    SafetyRejected,
    ServerError,
)

IMAGE = b"image-bytes"


def _safety(provider: ProviderName) -> SafetyRejected:
    return SafetyRejected("blocked", provider, http_status=400)


def test_first_provider_success_skips_fallback(fake_provider) -> None:
    gemini = fake_provider("gemini", [IMAGE])
    openai = fake_provider("openai", [IMAGE])

    outcome = ProviderOrchestrator([gemini, openai], timeout_ms=1000).generate("a fox", "4:5")

    assert outcome.provider_used is ProviderName.GEMINI
    assert outcome.fallback_used is False
    assert len(gemini.calls) == 1
    assert openai.calls == []
    assert gemini.calls[0]["timeout_ms"] == 1000


def test_transient_failure_falls_back(fake_provider) -> None:
    gemini = fake_provider("gemini", [ServerError("upstream 503", ProviderName.GEMINI, http_status=503)])
    openai = fake_provider("openai", [IMAGE])

    outcome = ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5", style_id="anime_bright")

    assert outcome.provider_used is ProviderName.OPENAI
    assert outcome.fallback_used is True
    assert [attempt.succeeded for attempt in outcome.attempts] == [False, True]
    assert len(gemini.calls) == 1
    assert openai.calls[0]["style_id"] == "anime_bright"


def test_unclassified_exception_falls_back(fake_provider) -> None:
    gemini = fake_provider("gemini", [ConnectionResetError("socket closed")])
    openai = fake_provider("openai", [IMAGE])

    outcome = ProviderOrchestrator([gemini, openai]).generate("a fox", "1:1")

    assert outcome.provider_used is ProviderName.OPENAI
    assert outcome.fallback_used is True


def test_safety_rejection_tries_other_provider_once(fake_provider) -> None:
    gemini = fake_provider("gemini", [_safety(ProviderName.GEMINI)])
    openai = fake_provider("openai", [IMAGE])

    outcome = ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5")

    assert outcome.provider_used is ProviderName.OPENAI
    assert len(gemini.calls) == 1
    assert len(openai.calls) == 1


def test_safety_rejection_is_terminal_when_fallback_on_safety_disabled(fake_provider) -> None:
    gemini = fake_provider("gemini", [_safety(ProviderName.GEMINI)])
    openai = fake_provider("openai", [IMAGE])

    with pytest.raises(ContentPolicyError) as exc_info:
        ProviderOrchestrator([gemini, openai], fallback_on_safety=False).generate("a fox", "4:5")

    assert exc_info.value.provider == "gemini"
    assert exc_info.value.status_code == 422
    assert openai.calls == []


def test_safety_rejection_with_single_provider_makes_one_call(fake_provider) -> None:
    gemini = fake_provider("gemini", [_safety(ProviderName.GEMINI), IMAGE])

    with pytest.raises(ContentPolicyError):
        ProviderOrchestrator([gemini]).generate("a fox", "4:5")

    assert len(gemini.calls) == 1


def test_both_safety_rejections_surface_as_policy_error(fake_provider) -> None:
    gemini = fake_provider("gemini", [_safety(ProviderName.GEMINI)])
    openai = fake_provider("openai", [_safety(ProviderName.OPENAI)])

    with pytest.raises(ContentPolicyError) as exc_info:
        ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5")

    assert exc_info.value.provider == "openai"
    assert isinstance(exc_info.value.__cause__, SafetyRejected)


def test_all_transient_failures_surface_as_unavailable(fake_provider) -> None:
    gemini = fake_provider("gemini", [ProviderTimeout("timed out", ProviderName.GEMINI)])
    openai = fake_provider("openai", [ServerError("502", ProviderName.OPENAI, http_status=502)])

    with pytest.raises(ProviderUnavailableError) as exc_info:
        ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5")

    assert exc_info.value.status_code == 503
    assert exc_info.value.provider == "openai"


def test_non_retryable_rejection_stops_the_chain(fake_provider) -> None:
    gemini = fake_provider("gemini", [RequestRejected("bad request", ProviderName.GEMINI, http_status=400)])
    openai = fake_provider("openai", [IMAGE])

    with pytest.raises(ProviderRejectedError) as exc_info:
        ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5")

    assert exc_info.value.status_code == 502
    assert openai.calls == []


def test_malformed_response_on_last_provider_is_rejected(fake_provider) -> None:
    gemini = fake_provider("gemini", [MalformedResponse("no inline data", ProviderName.GEMINI, retryable=True)])
    openai = fake_provider("openai", [MalformedResponse("empty data", ProviderName.OPENAI, retryable=False)])

    with pytest.raises(ProviderRejectedError):
        ProviderOrchestrator([gemini, openai]).generate("a fox", "4:5")

    assert len(gemini.calls) == 1
    assert len(openai.calls) == 1


def test_empty_chain_is_unavailable() -> None:
    with pytest.raises(ProviderUnavailableError):
        ProviderOrchestrator([]).generate("a fox", "4:5")


def test_provider_order() -> None:
    assert provider_order("gemini", "openai") == [ProviderName.GEMINI, ProviderName.OPENAI]
    assert provider_order("openai", "gemini") == [ProviderName.OPENAI, ProviderName.GEMINI]
    assert provider_order("openai", "openai") == [ProviderName.OPENAI, ProviderName.GEMINI]
    assert provider_order(ProviderName.GEMINI) == [ProviderName.GEMINI, ProviderName.OPENAI]
