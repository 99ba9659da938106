from storybook_images.gateway.storage.blob_store import AzureBlobStore, BlobStore, LocalBlobStore
from storybook_images.gateway.storage.repository import StoryImageRepository, classify_integrity_error
from storybook_images.gateway.storage.story_images import StoredObject, StoryImageStorage

__all__ = [
    "AzureBlobStore",
    "BlobStore",
    "LocalBlobStore",
    "StoredObject",
    "StoryImageRepository",
    "StoryImageStorage",
    "classify_integrity_error",
]
