from .gemini import DEFAULT_GEMINI_IMAGE_MODEL, GeminiImageProvider

__all__ = ["DEFAULT_GEMINI_IMAGE_MODEL", "GeminiImageProvider"]
