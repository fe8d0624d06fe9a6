"""
File upload utilities for validating listing images before they reach storage.
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from PIL import Image, UnidentifiedImageError
from fastapi import UploadFile

from app.config import get_settings
from app.utils.exceptions import (
    FileUploadError,
    FileSizeExceededError,
    TooManyFilesError,
    UnsupportedFileTypeError,
)

settings = get_settings()


@dataclass
class ImageUpload:
    """An uploaded image read fully into memory and validated."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


class FileValidator:
    """Checks applied to every image upload: count, content type, size and decodability."""

    @classmethod
    def validate_count(cls, count: int, max_files: Optional[int] = None) -> None:
        max_files = max_files or settings.max_files_per_request
        if count > max_files:
            raise TooManyFilesError(count, max_files)

    @classmethod
    def validate_content_type(cls, content_type: Optional[str]) -> str:
        """
        Only image/* content types are accepted.

        Raises:
            UnsupportedFileTypeError: For any other content type
        """
        if not content_type or not content_type.lower().startswith("image/"):
            raise UnsupportedFileTypeError(content_type)
        return content_type.lower()

    @classmethod
    def validate_file_size(cls, filename: str, file_size: int, max_size: Optional[int] = None) -> int:
        max_size = max_size or settings.max_file_size
        if file_size == 0:
            raise FileUploadError(f"'{filename}' is empty")
        if file_size > max_size:
            raise FileSizeExceededError(filename, max_size)
        return file_size

    @classmethod
    def validate_image_content(cls, filename: str, content: bytes) -> None:
        """
        Make sure the bytes decode as an image using PIL.

        Raises:
            FileUploadError: If PIL cannot identify the image
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise FileUploadError(f"'{filename}' is not a valid image: {str(e)}")

    @classmethod
    async def read_upload(cls, file: UploadFile) -> ImageUpload:
        """
        Validate and read one uploaded file.

        Args:
            file: FastAPI UploadFile object

        Returns:
            Validated ImageUpload
        """
        filename = file.filename or "upload"
        content_type = cls.validate_content_type(file.content_type)

        if file.size is not None:
            cls.validate_file_size(filename, file.size)

        await file.seek(0)
        content = await file.read()

        cls.validate_file_size(filename, len(content))
        cls.validate_image_content(filename, content)

        return ImageUpload(filename=filename, content_type=content_type, content=content)

    @classmethod
    async def read_uploads(cls, files: Optional[List[UploadFile]]) -> List[ImageUpload]:
        """
        Validate a multipart batch of images.

        Empty file parts (sent by browsers when no file is chosen) are ignored.
        """
        files = [f for f in (files or []) if f is not None and (f.filename or f.size)]
        cls.validate_count(len(files))
        return [await cls.read_upload(f) for f in files]
