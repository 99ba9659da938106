"""Identity of a stored story image and where its bytes live."""

from dataclasses import dataclass, replace
from enum import StrEnum


class ImageType(StrEnum):
    COVER = "cover"
    SCENE_1 = "scene_1"
    SCENE_2 = "scene_2"
    SCENE_3 = "scene_3"
    SCENE_4 = "scene_4"
    CLOSING = "closing"
    CHARACTER = "character"


MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/tiff": "tiff",
}

LEGACY_EXTENSIONS: tuple[str, ...] = ("jpeg", "jpg", "png", "webp")


def normalize_chapter_id(chapter_id: str | None, story_id: str) -> str | None:
    """Blank chapter ids, and ids equal to the story id, mean "story level"."""
    if chapter_id is None:
        return None
    trimmed = chapter_id.strip()
    if not trimmed or trimmed == story_id:
        return None
    return trimmed


@dataclass(frozen=True)
class ArtifactKey:
    """``(story_id, chapter_id or None, image_type)``; at most one metadata row per key."""

    story_id: str
    chapter_id: str | None
    image_type: ImageType

    @classmethod
    def build(cls, story_id: str, chapter_id: str | None, image_type: ImageType | str) -> "ArtifactKey":
        story = story_id.strip()
        return cls(story, normalize_chapter_id(chapter_id, story), ImageType(image_type))

    @property
    def is_story_level(self) -> bool:
        return self.chapter_id is None

    def story_level(self) -> "ArtifactKey":
        return replace(self, chapter_id=None)


def extension_for_mime(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type.lower(), "jpeg")


def build_storage_path(key: ArtifactKey, extension: str) -> str:
    if key.chapter_id:
        return f"{key.story_id}/{key.chapter_id}/{key.image_type.value}.{extension}"
    return f"{key.story_id}/{key.image_type.value}.{extension}"


def legacy_path_candidates(story_id: str, chapter_id: str | None, image_type: ImageType | str) -> list[str]:
    """Object names older uploads may have used, in probe order."""
    image_type = ImageType(image_type)
    prefixes: list[str] = [story_id]
    normalized = normalize_chapter_id(chapter_id, story_id)
    if normalized:
        prefixes.append(f"{story_id}/{normalized}")
    raw_chapter = chapter_id or ""
    if raw_chapter and raw_chapter != normalized and f"{story_id}/{raw_chapter}" not in prefixes:
        prefixes.append(f"{story_id}/{raw_chapter}")

    return [f"{prefix}/{image_type.value}.{ext}" for prefix in prefixes for ext in LEGACY_EXTENSIONS]
