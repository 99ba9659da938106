"""Generation pipeline: resolve ratio, call providers, normalize, upload, record."""

import base64
from collections.abc import Callable, Sequence

from sqlalchemy.orm import Session

from storybook_images.artifacts import ArtifactKey, ImageType
from storybook_images.errors import InvalidImageRequest
from storybook_images.gateway.config import GatewayConfig
from storybook_images.gateway.log_config import logger
from storybook_images.gateway.storage import StoredObject, StoryImageRepository, StoryImageStorage
from storybook_images.layout import (
    A4_CANVAS_PIXELS,
    DEFAULT_LAYOUT_LABEL,
    GEMINI_PREFERRED_ASPECT_RATIO,
    format_canvas_layout,
    format_resolution,
)
from storybook_images.normalize import NormalizedImage, normalize_for_layout
from storybook_images.orchestrator import OrchestratedResult, ProviderOrchestrator, provider_order
from storybook_images.providers import ImageProvider, ProviderName, create_provider
from storybook_images.styles import get_openai_style, is_valid_style_id, normalize_style_id, valid_style_ids

from .schema import (
    GeneratedImageMetadata,
    GenerateImageRequest,
    GenerateImageResponse,
    ResolvedStoryImage,
    StoryImageRecord,
)

ProviderFactory = Callable[[ProviderName, GatewayConfig], ImageProvider]
OrchestratorFactory = Callable[[Sequence[ProviderName], int], ProviderOrchestrator]
RepositoryFactory = Callable[[Session], StoryImageRepository]


def build_provider(name: ProviderName, config: GatewayConfig) -> ImageProvider:
    """Adapter for ``name`` configured from the gateway's provider credentials."""
    if name is ProviderName.GEMINI:
        return create_provider(name, config.provider_api_key(name), model=config.gemini_image_model)
    return create_provider(
        name,
        config.provider_api_key(name),
        model=config.openai_image_model,
        quality=config.openai_quality,
    )


def make_orchestrator_factory(
    config: GatewayConfig,
    provider_factory: ProviderFactory = build_provider,
) -> OrchestratorFactory:
    def factory(order: Sequence[ProviderName], timeout_ms: int) -> ProviderOrchestrator:
        return ProviderOrchestrator(
            [provider_factory(name, config) for name in order],
            timeout_ms=timeout_ms,
            fallback_on_safety=config.fallback_on_safety,
        )

    return factory


def _data_url(image: NormalizedImage) -> str:
    return f"data:{image.mime_type};base64,{base64.b64encode(image.data).decode('ascii')}"


def _check_request(request: GenerateImageRequest) -> None:
    """Reject what the HTTP schema rejects, for callers that build requests directly."""
    if not (request.prompt or "").strip():
        raise InvalidImageRequest("prompt must not be empty")
    if request.styleId is not None and not is_valid_style_id(request.styleId):
        raise InvalidImageRequest(f"styleId must be one of: {', '.join(valid_style_ids())}")
    if request.storyId and request.imageType is None:
        raise InvalidImageRequest("imageType is required when storyId is set")


class ImageGenerationService:
    def __init__(
        self,
        orchestrator_factory: OrchestratorFactory,
        storage: StoryImageStorage,
        repository_factory: RepositoryFactory,
        config: GatewayConfig,
    ) -> None:
        self.orchestrator_factory = orchestrator_factory
        self.storage = storage
        self.repository_factory = repository_factory
        self.config = config

    def generate(self, db: Session, request: GenerateImageRequest, user_id: str) -> GenerateImageResponse:
        _check_request(request)
        style_id = normalize_style_id(request.styleId)
        desired_ratio = request.desiredAspectRatio or GEMINI_PREFERRED_ASPECT_RATIO
        order = provider_order(
            request.providerDefault or self.config.image_provider_default,
            request.providerFallback or self.config.image_provider_fallback,
        )
        timeout_ms = request.providerTimeoutMs or self.config.provider_timeout_ms

        logger.info(
            "Image generation user=%s story=%s type=%s ratio=%s style=%s providers=%s",
            user_id,
            request.storyId,
            request.imageType.value if request.imageType else None,
            desired_ratio,
            style_id,
            ",".join(name.value for name in order),
        )

        outcome = self.orchestrator_factory(order, timeout_ms).generate(request.prompt, desired_ratio, style_id)
        normalized = normalize_for_layout(
            outcome.result.data,
            outcome.result.mime_type,
            quality=self.config.jpeg_quality,
        )

        if not request.storyId:
            return self._build_response(outcome, normalized, style_id, None, None, _data_url(normalized))

        key = ArtifactKey.build(request.storyId, request.chapterId, request.imageType)  # type: ignore[arg-type]
        path = self.storage.path_for(key, normalized.mime_type)
        stored = self.storage.upload(path, normalized.data, normalized.mime_type)

        values = {
            "storage_path": stored.path,
            "storage_bucket": stored.bucket,
            "provider": outcome.provider_used.value,
            "fallback_used": outcome.fallback_used,
            "mime_type": normalized.mime_type,
            "latency_ms": outcome.result.latency_ms,
            "status": "uploaded",
            "style_id": style_id,
            "openai_style": get_openai_style(style_id),
            "user_id": user_id,
            **normalized.resolution_strings(),
        }
        row = self.repository_factory(db).upsert_by_key(key, values)
        chapter_id = row.chapter_id
        return self._build_response(outcome, normalized, style_id, key, stored, stored.public_url, chapter_id)

    def _build_response(
        self,
        outcome: OrchestratedResult,
        normalized: NormalizedImage,
        style_id: str,
        key: ArtifactKey | None,
        stored: StoredObject | None,
        public_url: str,
        chapter_id: str | None = None,
    ) -> GenerateImageResponse:
        result = outcome.result
        resolutions = normalized.resolution_strings()
        metadata = GeneratedImageMetadata(
            providerUsed=outcome.provider_used,
            fallbackUsed=outcome.fallback_used,
            latencyMs=result.latency_ms,
            requestedAspectRatio=result.requested_aspect_ratio,
            effectiveAspectRatio=result.effective_aspect_ratio,
            requestSize=result.request_size,
            originalResolution=resolutions["original_resolution"],
            resizedFrom=resolutions["resized_from"],
            resizedTo=resolutions["resized_to"],
            finalResolution=resolutions["final_resolution"],
            mimeType=normalized.mime_type,
            storagePath=stored.path if stored else None,
            storageBucket=stored.bucket if stored else None,
            imageType=key.image_type if key else None,
            chapterId=chapter_id,
            styleId=style_id,
            layoutLabel=DEFAULT_LAYOUT_LABEL,
            status="uploaded" if stored else "inline_base64",
        )
        return GenerateImageResponse(
            publicUrl=public_url,
            storagePath=stored.path if stored else None,
            metadata=metadata,
        )

    def list_story_images(self, db: Session, story_id: str, image_types: list[ImageType] | None = None) -> list[StoryImageRecord]:
        rows = self.repository_factory(db).list_for_story(story_id, image_types)
        return [StoryImageRecord.from_row(row.to_dict()) for row in rows]

    def resolve_story_image(
        self,
        db: Session,
        story_id: str,
        image_type: ImageType,
        chapter_id: str | None = None,
    ) -> ResolvedStoryImage | None:
        """Locate the stored image for an artifact, falling back to legacy storage."""
        key = ArtifactKey.build(story_id, chapter_id, image_type)
        row = self.repository_factory(db).find_for_artifact(key.story_id, chapter_id, image_type)
        canvas_label = format_canvas_layout()

        if row is not None and row.storage_path:
            record = row.to_dict()
            stored = self.storage.resolve_public_url(record["storage_path"], record["storage_bucket"])
            if stored is not None:
                return ResolvedStoryImage(
                    storyId=key.story_id,
                    chapterId=record["chapter_id"],
                    imageType=key.image_type,
                    publicUrl=stored.public_url,
                    storagePath=stored.path,
                    bucket=stored.bucket,
                    source="metadata",
                    provider=record["provider"],
                    fallbackUsed=record["fallback_used"],
                    mimeType=record["mime_type"],
                    finalResolution=record["final_resolution"] or format_resolution(A4_CANVAS_PIXELS),
                    layoutLabel=DEFAULT_LAYOUT_LABEL,
                    canvasLabel=canvas_label,
                )
            logger.warning(
                "Metadata for %s points at %s but the object was not found in any bucket",
                key,
                record["storage_path"],
            )

        legacy = self.storage.find_legacy_object(key.story_id, chapter_id, key.image_type)
        if legacy is None:
            return None
        return ResolvedStoryImage(
            storyId=key.story_id,
            chapterId=key.chapter_id,
            imageType=key.image_type,
            publicUrl=legacy.public_url,
            storagePath=legacy.path,
            bucket=legacy.bucket,
            source="legacy_storage",
            provider="legacy_storage",
            finalResolution=None,
            layoutLabel=DEFAULT_LAYOUT_LABEL,
            canvasLabel=canvas_label,
        )
