"""
Error responses for every exception that escapes a route.
Every error leaves the API as ``{"success": false, "error": {"code", "message", "request_id", "details"?}}``.
"""

from typing import Dict, Any, Optional, List
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from app.utils.exceptions import APIException, ValidationError
import logging
import uuid

logger = logging.getLogger(__name__)

# Locations FastAPI prefixes to field paths; clients only need the field name
_LOCATION_PREFIXES = ("body", "query", "path", "form", "header", "cookie")

_CONSTRAINT_MESSAGES = (
    ("unique", "Duplicate value for unique field"),
    ("foreign key", "Referenced record does not exist"),
    ("not null", "Required field cannot be empty"),
    ("check constraint", "Value does not meet validation requirements"),
)


class ErrorHandlerService:
    """
    Turns exceptions into error envelopes and logs them under a short request id.

    Database and storage messages are logged but never sent to the client.
    """

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": error_code, "message": message, "request_id": request_id}
        if details:
            error["details"] = details
        return {"success": False, "error": error}

    @classmethod
    def _respond(
        cls,
        request_id: str,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=cls.format_error_response(error_code, message, details, request_id),
            headers=headers,
        )

    @classmethod
    def handle_api_exception(cls, exception: APIException, request: Optional[Request] = None) -> JSONResponse:
        """Typed errors raised on purpose by services and routers."""
        request_id = cls._get_request_id(request)
        logger.warning(
            f"[{request_id}] {exception.status_code} {exception.error_code}: "
            f"{exception.detail} ({cls._path(request)})"
        )
        details = exception.field_errors if isinstance(exception, ValidationError) else None
        return cls._respond(
            request_id,
            exception.status_code,
            exception.error_code,
            exception.detail,
            details=details,
            headers=exception.headers,
        )

    @classmethod
    def handle_validation_error(
        cls,
        exception: RequestValidationError,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Request bodies, forms and query parameters that failed FastAPI's own validation.

        Each pydantic error becomes ``{"field", "message", "type"}`` with the location prefix dropped.
        """
        request_id = cls._get_request_id(request)
        details = []
        for error in exception.errors():
            loc = [str(part) for part in error["loc"] if part not in _LOCATION_PREFIXES]
            details.append({
                "field": ".".join(loc) or str(error["loc"][-1]),
                "message": error["msg"],
                "type": error["type"],
            })

        logger.warning(
            f"[{request_id}] request validation failed with "
            f"{len(details)} field errors ({cls._path(request)})"
        )
        return cls._respond(request_id, 422, "VALIDATION_ERROR", "Request validation failed", details=details)

    @classmethod
    def handle_database_error(cls, exception: SQLAlchemyError, request: Optional[Request] = None) -> JSONResponse:
        """Database errors that escaped the service layer. Integrity violations are a 409, anything else a 500."""
        request_id = cls._get_request_id(request)
        if isinstance(exception, IntegrityError):
            error_code, status_code = "INTEGRITY_ERROR", 409
            message = cls._describe_constraint(exception)
        else:
            error_code, status_code = "DATABASE_ERROR", 500
            message = "Database operation failed"

        logger.error(
            f"[{request_id}] {error_code} {type(exception).__name__}: {exception} "
            f"({cls._path(request)})",
            exc_info=True
        )
        return cls._respond(request_id, status_code, error_code, message)

    @classmethod
    def handle_http_exception(cls, exception: HTTPException, request: Optional[Request] = None) -> JSONResponse:
        """Framework errors such as unknown routes and wrong methods."""
        request_id = cls._get_request_id(request)
        logger.info(f"[{request_id}] HTTP {exception.status_code} ({cls._path(request)})")
        return cls._respond(
            request_id,
            exception.status_code,
            f"HTTP_{exception.status_code}",
            str(exception.detail),
            headers=getattr(exception, "headers", None),
        )

    @classmethod
    def handle_unexpected_error(cls, exception: Exception, request: Optional[Request] = None) -> JSONResponse:
        request_id = cls._get_request_id(request)
        logger.error(
            f"[{request_id}] unhandled {type(exception).__name__}: {exception} "
            f"({cls._path(request)})",
            exc_info=exception
        )
        return cls._respond(
            request_id, 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again later."
        )

    @staticmethod
    def _get_request_id(request: Optional[Request]) -> str:
        """Reuse the id assigned by the request logging middleware, or make a new one."""
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return uuid.uuid4().hex[:8]

    @staticmethod
    def _path(request: Optional[Request]) -> str:
        return request.url.path if request is not None else "-"

    @staticmethod
    def _describe_constraint(exception: IntegrityError) -> str:
        error_msg = str(exception.orig).lower()
        for marker, description in _CONSTRAINT_MESSAGES:
            if marker in error_msg:
                return f"Constraint violation: {description}"
        return "Data integrity constraint violation"
