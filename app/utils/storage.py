"""
Image storage backends.
Listing images live outside the database; rows only keep their public URLs.
Supports the local filesystem (development) and S3-compatible object storage (production).
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import get_settings
from app.utils.exceptions import StorageError
from app.utils.file_utils import ImageUpload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    """Result of an upload: the storage key and the URL clients load the image from."""

    public_id: str
    secure_url: str


def build_public_id(folder: str, upload: ImageUpload) -> str:
    """Unique object key under the given folder, keeping the original extension."""
    return f"{folder.strip('/')}/{uuid.uuid4().hex}{upload.extension}"


class ImageStorage(ABC):
    """Opaque upload / delete / URL-parse capability used by the image reconciler."""

    def __init__(self, public_base_url: str):
        self.public_base_url = public_base_url.rstrip("/")

    @abstractmethod
    async def upload(self, upload: ImageUpload, folder: str) -> StoredImage:
        """
        Store an image under ``folder``.

        Raises:
            StorageError: If the backend rejects the upload
        """

    @abstractmethod
    async def delete(self, public_id: str) -> bool:
        """
        Delete an object by key. A missing object counts as deleted.

        Raises:
            StorageError: If the backend fails
        """

    def url_for(self, public_id: str) -> str:
        return f"{self.public_base_url}/{public_id}"

    def public_id_from_url(self, url: str) -> Optional[str]:
        """
        Recover the object key from a public URL.

        Returns:
            The key, or None if the URL was not issued by this storage
        """
        if not url:
            return None
        prefix = self.public_base_url + "/"
        if url.startswith(prefix):
            return url[len(prefix):] or None

        base_path = urlparse(self.public_base_url).path.rstrip("/")
        parsed = urlparse(url)
        if base_path and parsed.path.startswith(base_path + "/"):
            return parsed.path[len(base_path) + 1:] or None
        return None


class LocalImageStorage(ImageStorage):
    """Stores images on the local filesystem, served under ``public_base_url``."""

    def __init__(self, base_dir: str, public_base_url: str):
        super().__init__(public_base_url)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalImageStorage initialized: base_dir={self.base_dir}, base_url={self.public_base_url}")

    def _path_for(self, public_id: str) -> Path:
        path = (self.base_dir / public_id).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise StorageError("Invalid image path")
        return path

    async def upload(self, upload: ImageUpload, folder: str) -> StoredImage:
        public_id = build_public_id(folder, upload)
        file_path = self._path_for(public_id)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(upload.content)
        except OSError as e:
            logger.error(f"Failed to save image {public_id}: {e}")
            if file_path.exists():
                file_path.unlink()
            raise StorageError(f"Failed to store image '{upload.filename}'")

        logger.debug(f"Stored image locally: {public_id}")
        return StoredImage(public_id=public_id, secure_url=self.url_for(public_id))

    async def delete(self, public_id: str) -> bool:
        file_path = self._path_for(public_id)
        try:
            if file_path.exists():
                file_path.unlink()
                logger.debug(f"Deleted local image: {public_id}")
            else:
                logger.debug(f"Local image already absent: {public_id}")
            return True
        except OSError as e:
            logger.error(f"Failed to delete local image {public_id}: {e}")
            raise StorageError(f"Failed to delete image '{public_id}'")


class S3ImageStorage(ImageStorage):
    """AWS S3 / MinIO storage. boto3 is blocking, so calls run in a worker thread."""

    def __init__(
        self,
        bucket_name: str,
        public_base_url: Optional[str] = None,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        aws_access_key: Optional[str] = None,
        aws_secret_key: Optional[str] = None,
    ):
        if not public_base_url:
            if endpoint_url:
                public_base_url = f"{endpoint_url.rstrip('/')}/{bucket_name}"
            else:
                public_base_url = f"https://{bucket_name}.s3.{region}.amazonaws.com"
        super().__init__(public_base_url)

        self.bucket_name = bucket_name
        session = boto3.session.Session()
        self.s3_client = session.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key,
            aws_secret_access_key=aws_secret_key,
        )
        logger.info(f"S3ImageStorage initialized: bucket={bucket_name}, endpoint={endpoint_url}")

    async def upload(self, upload: ImageUpload, folder: str) -> StoredImage:
        public_id = build_public_id(folder, upload)
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=public_id,
                Body=upload.content,
                ContentType=upload.content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {public_id} to S3: {e}")
            raise StorageError(f"Failed to store image '{upload.filename}'")

        logger.debug(f"Uploaded to S3: {public_id}")
        return StoredImage(public_id=public_id, secure_url=self.url_for(public_id))

    async def delete(self, public_id: str) -> bool:
        try:
            await asyncio.to_thread(self.s3_client.delete_object, Bucket=self.bucket_name, Key=public_id)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return True
            logger.error(f"Error deleting {public_id} from S3: {e}")
            raise StorageError(f"Failed to delete image '{public_id}'")
        except BotoCoreError as e:
            logger.error(f"Error deleting {public_id} from S3: {e}")
            raise StorageError(f"Failed to delete image '{public_id}'")

        logger.debug(f"Deleted from S3: {public_id}")
        return True


@lru_cache()
def get_image_storage() -> ImageStorage:
    """
    Storage backend selected by ``settings.storage_backend``.
    Used as a FastAPI dependency so tests can override it.
    """
    settings = get_settings()
    if settings.storage_backend == "s3":
        if not settings.s3_bucket_name:
            raise RuntimeError("S3_BUCKET_NAME is required when STORAGE_BACKEND=s3")
        return S3ImageStorage(
            bucket_name=settings.s3_bucket_name,
            public_base_url=settings.s3_public_base_url,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key=settings.aws_access_key_id,
            aws_secret_key=settings.aws_secret_access_key,
        )
    return LocalImageStorage(base_dir=settings.upload_dir, public_base_url=settings.public_base_url)
