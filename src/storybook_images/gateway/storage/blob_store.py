import os
import tempfile
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from storybook_images.gateway.log_config import logger


class BlobStore(Protocol):
    """Bucketed object storage; buckets map to Azure containers or local directories."""

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None: ...

    def exists(self, bucket: str, path: str) -> bool: ...

    def public_url(self, bucket: str, path: str) -> str: ...


class AzureBlobStore:
    def __init__(self, connection_string: str, public_base_url: str | None = None) -> None:
        if not connection_string:
            msg = "storage_connection_string is required for the azure storage backend"
            raise RuntimeError(msg)
        self._service = BlobServiceClient.from_connection_string(connection_string)
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._ready_containers: set[str] = set()

    def _ensure_container(self, bucket: str) -> None:
        if bucket in self._ready_containers:
            return
        container_client = self._service.get_container_client(bucket)
        try:
            container_client.create_container(public_access="blob")
            logger.info("Created blob container %s", bucket)
        except ResourceExistsError:
            pass
        self._ready_containers.add(bucket)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self._ensure_container(bucket)
        blob = self._service.get_blob_client(container=bucket, blob=path)
        blob.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type, cache_control="public, max-age=3600"),
        )

    def exists(self, bucket: str, path: str) -> bool:
        try:
            return self._service.get_blob_client(container=bucket, blob=path).exists()
        except ResourceNotFoundError:
            return False

    def public_url(self, bucket: str, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{quote(path)}"
        return self._service.get_blob_client(container=bucket, blob=path).url


class LocalBlobStore:
    """Stores objects under ``root/<bucket>/<path>``; for development and tests."""

    def __init__(self, root: str | Path, public_base_url: str = "/blobs") -> None:
        self.root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    def _object_path(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        bucket_root = (self.root / bucket).resolve()
        if bucket_root not in target.parents:
            msg = f"Object path escapes bucket: {path}"
            raise ValueError(msg)
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        target = self._object_path(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def exists(self, bucket: str, path: str) -> bool:
        return self._object_path(bucket, path).is_file()

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._public_base_url}/{bucket}/{quote(path)}"
