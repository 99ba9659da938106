from .openai import DEFAULT_OPENAI_IMAGE_MODEL, OpenAIImageProvider

__all__ = ["DEFAULT_OPENAI_IMAGE_MODEL", "OpenAIImageProvider"]
