from collections.abc import Sequence
from dataclasses import dataclass

from storybook_images.artifacts import ArtifactKey, build_storage_path, extension_for_mime, legacy_path_candidates
from storybook_images.errors import PersistenceError
from storybook_images.gateway.log_config import logger
from storybook_images.gateway.storage.blob_store import BlobStore


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    path: str
    public_url: str


class StoryImageStorage:
    """Writes normalized images to the current bucket and finds them again.

    ``buckets`` is ordered: the first entry receives new uploads, the rest are
    older buckets that reads still fall back to.
    """

    def __init__(self, blob_store: BlobStore, buckets: Sequence[str]) -> None:
        if not buckets:
            msg = "At least one image bucket is required"
            raise ValueError(msg)
        self.blob_store = blob_store
        self.buckets = list(buckets)

    @property
    def current_bucket(self) -> str:
        return self.buckets[0]

    @property
    def legacy_buckets(self) -> list[str]:
        return self.buckets[1:]

    def path_for(self, key: ArtifactKey, mime_type: str) -> str:
        return build_storage_path(key, extension_for_mime(mime_type))

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        bucket = self.current_bucket
        try:
            self.blob_store.upload(bucket, path, data, content_type)
        except Exception as exc:
            logger.exception("Upload to %s/%s failed", bucket, path)
            raise PersistenceError(f"Failed to upload image to {bucket}/{path}: {exc}") from exc
        logger.info("Uploaded %d bytes to %s/%s", len(data), bucket, path)
        return StoredObject(bucket=bucket, path=path, public_url=self.blob_store.public_url(bucket, path))

    def resolve_public_url(self, path: str, bucket: str | None = None) -> StoredObject | None:
        """Find ``path`` in the row's bucket first, then in every configured bucket in order."""
        candidates = [bucket] if bucket else []
        candidates.extend(name for name in self.buckets if name not in candidates)
        for candidate in candidates:
            if self.blob_store.exists(candidate, path):
                return StoredObject(candidate, path, self.blob_store.public_url(candidate, path))
        return None

    def find_legacy_object(self, story_id: str, chapter_id: str | None, image_type: str) -> StoredObject | None:
        """Probe the legacy buckets for images uploaded before metadata rows existed."""
        for bucket in self.legacy_buckets:
            for path in legacy_path_candidates(story_id, chapter_id, image_type):
                if self.blob_store.exists(bucket, path):
                    logger.info("Found legacy image %s/%s", bucket, path)
                    return StoredObject(bucket, path, self.blob_store.public_url(bucket, path))
        return None
