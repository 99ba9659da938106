from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from storybook_images.artifacts import ImageType
from storybook_images.providers import ProviderName
from storybook_images.styles import is_valid_style_id, valid_style_ids


class GenerateImageRequest(BaseModel):
    prompt: str
    desiredAspectRatio: str | None = None
    styleId: str | None = None
    storyId: str | None = None
    chapterId: str | None = None
    imageType: ImageType | None = None
    providerTimeoutMs: int | None = Field(default=None, gt=0, le=300_000)
    providerDefault: ProviderName | None = None
    providerFallback: ProviderName | None = None
    userId: str | None = None

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            msg = "prompt must not be empty"
            raise ValueError(msg)
        return stripped

    @field_validator("styleId")
    @classmethod
    def _known_style(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not is_valid_style_id(value):
            msg = f"styleId must be one of: {', '.join(valid_style_ids())}"
            raise ValueError(msg)
        return value

    @field_validator("storyId", "desiredAspectRatio")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def _story_needs_image_type(self) -> GenerateImageRequest:
        if self.storyId and self.imageType is None:
            msg = f"imageType is required when storyId is set (one of: {', '.join(t.value for t in ImageType)})"
            raise ValueError(msg)
        return self


class GeneratedImageMetadata(BaseModel):
    providerUsed: ProviderName
    fallbackUsed: bool
    latencyMs: int
    requestedAspectRatio: str
    effectiveAspectRatio: str
    requestSize: str | None = None
    originalResolution: str
    resizedFrom: str
    resizedTo: str
    finalResolution: str
    mimeType: str
    storagePath: str | None
    storageBucket: str | None = None
    imageType: ImageType | None
    chapterId: str | None = None
    styleId: str
    layoutLabel: str
    status: Literal["uploaded", "inline_base64"]


class GenerateImageResponse(BaseModel):
    success: Literal[True] = True
    publicUrl: str
    storagePath: str | None
    metadata: GeneratedImageMetadata


class StoryImageRecord(BaseModel):
    id: str
    storyId: str
    chapterId: str | None
    imageType: str
    storagePath: str | None
    storageBucket: str | None
    provider: str
    fallbackUsed: bool
    mimeType: str
    originalResolution: str | None
    finalResolution: str | None
    resizedFrom: str | None
    resizedTo: str | None
    latencyMs: int | None
    status: str
    styleId: str | None
    createdAt: str | None
    updatedAt: str | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> StoryImageRecord:
        return cls(
            id=row["id"],
            storyId=row["story_id"],
            chapterId=row["chapter_id"],
            imageType=row["image_type"],
            storagePath=row["storage_path"],
            storageBucket=row["storage_bucket"],
            provider=row["provider"],
            fallbackUsed=bool(row["fallback_used"]),
            mimeType=row["mime_type"],
            originalResolution=row["original_resolution"],
            finalResolution=row["final_resolution"],
            resizedFrom=row["resized_from"],
            resizedTo=row["resized_to"],
            latencyMs=row["latency_ms"],
            status=row["status"],
            styleId=row["style_id"],
            createdAt=row["created_at"],
            updatedAt=row["updated_at"],
        )


class StoryImageListResponse(BaseModel):
    success: Literal[True] = True
    storyId: str
    images: list[StoryImageRecord]


class ResolvedStoryImage(BaseModel):
    success: Literal[True] = True
    storyId: str
    chapterId: str | None
    imageType: ImageType
    publicUrl: str
    storagePath: str
    bucket: str
    source: Literal["metadata", "legacy_storage"]
    provider: str | None = None
    fallbackUsed: bool | None = None
    mimeType: str | None = None
    finalResolution: str | None
    layoutLabel: str
    canvasLabel: str
