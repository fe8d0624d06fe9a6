"""
Image lifecycle for listings: uploads, removals, reordering and cleanup of storage objects.
The database only keeps the ordered URL list; this module keeps storage in step with it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from app.config import get_settings
from app.utils.exceptions import APIException, NotFoundError, StorageError, ValidationError
from app.utils.file_utils import ImageUpload
from app.utils.storage import ImageStorage, StoredImage

logger = logging.getLogger(__name__)
settings = get_settings()


class ImageCleanupQueue:
    """
    Storage objects whose deletion failed and should be retried.

    Keyed by public id, so enqueueing the same object twice is a no-op. Each
    object is retried until it is deleted or ``max_attempts`` is reached.
    """

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts
        self._attempts: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._attempts)

    @property
    def pending(self) -> List[str]:
        return list(self._attempts)

    def enqueue(self, public_id: str) -> None:
        if public_id not in self._attempts:
            self._attempts[public_id] = 1
            logger.info(f"Queued image {public_id} for cleanup retry")

    async def drain(self, storage: ImageStorage) -> int:
        """
        Retry every queued deletion once.

        Returns:
            Number of objects deleted in this pass
        """
        deleted = 0
        for public_id in list(self._attempts):
            try:
                await storage.delete(public_id)
            except Exception as e:
                attempts = self._attempts.get(public_id, 0) + 1
                if attempts >= self.max_attempts:
                    self._attempts.pop(public_id, None)
                    logger.error(f"Giving up on deleting image {public_id} after {attempts} attempts: {e}")
                else:
                    self._attempts[public_id] = attempts
                    logger.warning(f"Retry {attempts} failed for image {public_id}: {e}")
                continue

            self._attempts.pop(public_id, None)
            deleted += 1
            logger.info(f"Deleted queued image {public_id}")
        return deleted


@lru_cache()
def get_cleanup_queue() -> ImageCleanupQueue:
    """Process-wide retry queue, drained on later cleanups and at shutdown."""
    return ImageCleanupQueue(max_attempts=settings.cleanup_max_attempts)


@dataclass
class ReconcileResult:
    """Outcome of reconciling a listing's images."""

    final: List[str]
    to_delete: List[str] = field(default_factory=list)
    uploaded: List[StoredImage] = field(default_factory=list)


def _ordered_difference(items: List[str], remove: List[str]) -> List[str]:
    removed = set(remove)
    return [item for item in items if item not in removed]


def _find_duplicates(items: List[str]) -> List[str]:
    seen = set()
    duplicates = []
    for item in items:
        if item in seen and item not in duplicates:
            duplicates.append(item)
        seen.add(item)
    return duplicates


class ImageReconciler:
    """
    Computes a listing's next image list and applies the matching storage changes.

    Uploads happen before the database write. Deletions of replaced images happen
    after the commit and are best effort: failures go to the cleanup queue.
    """

    def __init__(self, storage: ImageStorage, cleanup_queue: Optional[ImageCleanupQueue] = None):
        self.storage = storage
        self.cleanup_queue = cleanup_queue if cleanup_queue is not None else get_cleanup_queue()

    async def upload_all(self, uploads: List[ImageUpload], folder: str) -> List[StoredImage]:
        """
        Upload images concurrently, keeping input order.

        If any upload fails, the uploads that succeeded in this call are deleted
        and the first failure is raised.

        Args:
            uploads: Validated images
            folder: Storage folder (one per listing)

        Returns:
            Stored images in the same order as ``uploads``

        Raises:
            StorageError: If the storage backend rejects an upload
        """
        if not uploads:
            return []

        results = await asyncio.gather(
            *(self.storage.upload(upload, folder) for upload in uploads),
            return_exceptions=True
        )

        stored = [result for result in results if isinstance(result, StoredImage)]
        failures = [result for result in results if isinstance(result, BaseException)]

        if failures:
            logger.error(f"{len(failures)} of {len(uploads)} uploads to {folder} failed, rolling back {len(stored)}")
            await self.rollback(stored)
            error = failures[0]
            if isinstance(error, APIException):
                raise error
            raise StorageError("Failed to upload images")

        logger.info(f"Uploaded {len(stored)} images to {folder}")
        return stored

    async def reconcile(
        self,
        current: List[str],
        retained: Optional[List[str]],
        new_uploads: List[ImageUpload],
        folder: str
    ) -> ReconcileResult:
        """
        Work out the image list after an edit and upload the additions.

        Args:
            current: URLs stored on the listing now
            retained: URLs the client keeps, in the order it wants them; None keeps all
            new_uploads: Images to add after the retained ones
            folder: Storage folder for additions

        Returns:
            ReconcileResult with the final list, URLs to delete after commit, and the uploads

        Raises:
            ValidationError: If a retained URL is not one of the current images
        """
        current = list(current or [])
        retained = list(current) if retained is None else list(retained)

        unknown = [url for url in retained if url not in current]
        if unknown:
            raise ValidationError(
                "Retained images must be existing images of this listing",
                field_errors=[{"field": "existing_image_urls", "message": f"Unknown image: {url}"} for url in unknown]
            )

        duplicates = _find_duplicates(retained)
        if duplicates:
            raise ValidationError(f"Duplicate retained images: {', '.join(duplicates)}")

        uploaded = await self.upload_all(new_uploads, folder)

        return ReconcileResult(
            final=retained + [image.secure_url for image in uploaded],
            to_delete=_ordered_difference(current, retained),
            uploaded=uploaded,
        )

    async def append(
        self,
        current: List[str],
        new_uploads: List[ImageUpload],
        folder: str,
        cap: Optional[int] = None
    ) -> ReconcileResult:
        """
        Add images after the existing ones.

        Raises:
            ValidationError: If the listing would exceed ``cap`` images (checked before uploading)
        """
        cap = cap or settings.max_images_per_listing
        current = list(current or [])

        if not new_uploads:
            raise ValidationError("At least one image file is required")

        if len(current) + len(new_uploads) > cap:
            raise ValidationError(
                f"A listing can have at most {cap} images; it has {len(current)} and {len(new_uploads)} were added"
            )

        uploaded = await self.upload_all(new_uploads, folder)
        return ReconcileResult(final=current + [image.secure_url for image in uploaded], uploaded=uploaded)

    def reorder(self, current: List[str], requested: List[str]) -> List[str]:
        """
        Validate a new order for the same set of images.

        Raises:
            ValidationError: If ``requested`` adds, drops or repeats an image
        """
        current = list(current or [])
        requested = list(requested or [])

        duplicates = _find_duplicates(requested)
        if duplicates:
            raise ValidationError(f"Duplicate images in new order: {', '.join(duplicates)}")

        if len(requested) != len(current) or set(requested) != set(current):
            raise ValidationError("New order must contain exactly the listing's current images")

        return requested

    def remove(self, current: List[str], url: str) -> ReconcileResult:
        """
        Drop one image from the list.

        Raises:
            NotFoundError: If the URL is not one of the listing's images
        """
        current = list(current or [])
        if url not in current:
            raise NotFoundError("Image", detail="Image not found on this listing.")
        return ReconcileResult(final=[item for item in current if item != url], to_delete=[url])

    async def rollback(self, uploaded: List[StoredImage]) -> None:
        """Delete objects uploaded by a failed operation. Failures are logged and queued."""
        for image in uploaded:
            try:
                await self.storage.delete(image.public_id)
                logger.info(f"Rolled back upload {image.public_id}")
            except Exception as e:
                logger.warning(f"Failed to roll back upload {image.public_id}: {e}")
                self.cleanup_queue.enqueue(image.public_id)

    async def cleanup(self, urls: List[str]) -> None:
        """
        Best-effort deletion of images that are no longer referenced.

        Called after the database commit. Earlier failures are retried first; new
        failures are queued instead of being raised.
        """
        if len(self.cleanup_queue):
            await self.cleanup_queue.drain(self.storage)

        for url in urls or []:
            public_id = self.storage.public_id_from_url(url)
            if not public_id:
                logger.warning(f"Cannot resolve storage id for image URL, skipping cleanup: {url}")
                continue
            try:
                await self.storage.delete(public_id)
                logger.debug(f"Cleaned up image {public_id}")
            except Exception as e:
                logger.warning(f"Failed to delete image {public_id}, queued for retry: {e}")
                self.cleanup_queue.enqueue(public_id)
