import base64
from typing import Any

from storybook_images.layout import GeminiAspectRatio

SAFETY_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "IMAGE_SAFETY",
        "PROHIBITED_CONTENT",
        "IMAGE_PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
    }
)


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    text = str(value)
    return text.rsplit(".", 1)[-1] if text else None


def _get_response_parts(response: Any) -> list[Any]:
    """Get response parts from a Gemini response."""
    parts = getattr(response, "parts", None) or []
    if parts:
        return parts
    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = getattr(candidates[0], "content", None)
        return getattr(content, "parts", None) or []
    return []


def _extract_inline_image(parts: list[Any]) -> tuple[bytes | None, str]:
    """Return the first inline image payload and its mime type."""
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is None:
            continue
        data = getattr(inline_data, "data", None)
        if not data:
            continue
        if isinstance(data, bytearray):
            payload = bytes(data)
        elif isinstance(data, bytes):
            payload = data
        elif isinstance(data, str):
            payload = base64.b64decode(data)
        else:
            continue
        mime_type = getattr(inline_data, "mime_type", None)
        if not isinstance(mime_type, str) or not mime_type.startswith("image/"):
            mime_type = "image/png"
        return payload, mime_type
    return None, "image/png"


def _get_finish_reason(response: Any) -> str | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    return _enum_name(getattr(candidates[0], "finish_reason", None))


def _get_block_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is None:
        return None
    return _enum_name(getattr(feedback, "block_reason", None))


def _is_safety_block(finish_reason: str | None, block_reason: str | None) -> bool:
    if finish_reason and finish_reason.upper() in SAFETY_FINISH_REASONS:
        return True
    return bool(block_reason) and block_reason.upper() != "BLOCK_REASON_UNSPECIFIED"


def _describe_ratio(resolved: GeminiAspectRatio, requested: str) -> str:
    if resolved == requested:
        return resolved
    return f"{resolved} (requested {requested})"
