"""Image acquisition and print normalization for illustrated storybooks."""

from storybook_images.errors import (
    ContentPolicyError,
    ImagePipelineError,
    InvalidImageRequest,
    NormalizationError,
    PersistenceError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from storybook_images.layout import get_image_layout, map_aspect_ratio
from storybook_images.normalize import NormalizedImage, normalize_for_layout
from storybook_images.orchestrator import OrchestratedResult, ProviderOrchestrator

__all__ = [
    "ContentPolicyError",
    "ImagePipelineError",
    "InvalidImageRequest",
    "NormalizationError",
    "NormalizedImage",
    "OrchestratedResult",
    "PersistenceError",
    "ProviderOrchestrator",
    "ProviderRejectedError",
    "ProviderUnavailableError",
    "get_image_layout",
    "map_aspect_ratio",
    "normalize_for_layout",
]
