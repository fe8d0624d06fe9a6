"""
Error types raised by services and routers.
Each carries its HTTP status and the machine-readable code that ErrorHandlerService puts in the envelope.
"""

from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status


class APIException(HTTPException):
    """
    Base class for errors that reach the client as ``{"success": false, "error": ...}``.

    Subclasses set ``status_code``, ``error_code`` and ``default_detail`` as class attributes.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "API_ERROR"
    default_detail: str = "Request failed"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class ValidationError(APIException):
    """Malformed input or a broken business rule. ``field_errors`` become the envelope's details."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    default_detail = "Validation failed"

    def __init__(self, detail: Optional[str] = None, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(detail)
        self.field_errors = field_errors or []


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(detail or f"{resource} not found.")
        self.resource = resource


class UnauthorizedError(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    default_detail = "Authentication required"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class InvalidCredentialsError(UnauthorizedError):
    default_detail = "Invalid email or password"


class TokenExpiredError(UnauthorizedError):
    default_detail = "Token has expired"


class InvalidTokenError(UnauthorizedError):
    default_detail = "Invalid token"


class ForbiddenError(APIException):
    """Authenticated, but the entity belongs to someone else."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_detail = "Access forbidden"


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_detail = "Resource already exists"


class BadRequestError(APIException):
    error_code = "BAD_REQUEST"
    default_detail = "Bad request"


class InternalServerError(APIException):
    """An unexpected failure, already logged where it happened. The client only sees a generic message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_SERVER_ERROR"
    default_detail = "An unexpected error occurred. Please try again later."


# Upload checks, raised before anything reaches storage
class FileUploadError(BadRequestError):
    def __init__(self, detail: str):
        super().__init__(f"File upload error: {detail}")


class UnsupportedFileTypeError(FileUploadError):
    def __init__(self, file_type: Optional[str]):
        super().__init__(f"Unsupported file type '{file_type}'. Only image files are allowed")


class FileSizeExceededError(FileUploadError):
    def __init__(self, filename: str, max_size: int):
        super().__init__(f"'{filename}' exceeds the maximum allowed size of {max_size / (1024 * 1024):.0f}MB")


class TooManyFilesError(FileUploadError):
    def __init__(self, count: int, max_files: int):
        super().__init__(f"{count} files uploaded, at most {max_files} are allowed per request")


# Upstream failures
class StorageError(APIException):
    """Image storage upload or delete failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "STORAGE_ERROR"
    default_detail = "Image storage is unavailable, please try again later"


class ServiceUnavailableError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "SERVICE_UNAVAILABLE"
    default_detail = "Service temporarily unavailable"
