import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from storybook_images.artifacts import ImageType
from storybook_images.gateway.auth import verify_jwt_or_master
from storybook_images.gateway.db import get_db
from storybook_images.gateway.log_config import logger
from storybook_images.gateway.routes.utils import resolve_target_user
from storybook_images.layout import get_image_layout

from .schema import (
    GenerateImageRequest,
    GenerateImageResponse,
    ResolvedStoryImage,
    StoryImageListResponse,
)
from .service import ImageGenerationService

router = APIRouter(prefix="/v1", tags=["images"])


def get_image_service(request: Request) -> ImageGenerationService:
    return request.app.state.image_service


@router.post("/images/generate", response_model=GenerateImageResponse)
async def generate_image(
    body: GenerateImageRequest,
    auth_result: Annotated[tuple[bool, str | None], Depends(verify_jwt_or_master)],
    db: Annotated[Session, Depends(get_db)],
    service: Annotated[ImageGenerationService, Depends(get_image_service)],
) -> GenerateImageResponse:
    """Generate one illustration, normalize it to the print canvas and record it."""
    user_id = resolve_target_user(auth_result, body.userId)
    logger.info(
        "Generate image request user=%s story=%s chapter=%s type=%s prompt_len=%d",
        user_id,
        body.storyId,
        body.chapterId,
        body.imageType.value if body.imageType else None,
        len(body.prompt),
    )
    # Provider SDKs, Pillow and the session are all blocking.
    return await asyncio.to_thread(service.generate, db, body, user_id)


@router.get("/stories/{story_id}/images", response_model=StoryImageListResponse)
async def list_story_images(
    story_id: str,
    auth_result: Annotated[tuple[bool, str | None], Depends(verify_jwt_or_master)],
    db: Annotated[Session, Depends(get_db)],
    service: Annotated[ImageGenerationService, Depends(get_image_service)],
    image_type: Annotated[list[ImageType] | None, Query(alias="imageType")] = None,
) -> StoryImageListResponse:
    """Metadata rows recorded for a story."""
    images = await asyncio.to_thread(service.list_story_images, db, story_id, image_type)
    return StoryImageListResponse(storyId=story_id, images=images)


@router.get("/stories/{story_id}/images/{image_type}", response_model=ResolvedStoryImage)
async def resolve_story_image(
    story_id: str,
    image_type: ImageType,
    auth_result: Annotated[tuple[bool, str | None], Depends(verify_jwt_or_master)],
    db: Annotated[Session, Depends(get_db)],
    service: Annotated[ImageGenerationService, Depends(get_image_service)],
    chapter_id: Annotated[str | None, Query(alias="chapterId")] = None,
) -> ResolvedStoryImage:
    """Public URL and placement data for one story image."""
    resolved = await asyncio.to_thread(service.resolve_story_image, db, story_id, image_type, chapter_id)
    if resolved is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {image_type.value} image found for story {story_id}",
        )
    return resolved


@router.get("/layout")
async def get_layout(
    aspect_ratio: Annotated[str | None, Query(alias="aspectRatio")] = None,
) -> dict[str, object]:
    """Canvas, safe margin and resolved provider ratio for ``aspectRatio``."""
    return get_image_layout(aspect_ratio).to_dict()
