import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base error raised by the service layer; carries the HTTP status it maps to."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """Unknown or inactive student, task or correction."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(ServiceError):
    """No access key supplied."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ServiceError):
    """Access key supplied but not accepted for the requested action."""

    status_code = status.HTTP_403_FORBIDDEN


def handle_validation_error(
    message: str,
    field: Optional[str] = None
) -> ValidationError:
    """
    Builds a validation error and logs it.

    Args:
        message: error message
        field: name of the offending field (optional)

    Returns:
        ValidationError: 400 error ready to be raised
    """
    detail = message
    if field:
        detail = f"{field}: {message}"

    logger.warning(f"Validation error: {detail}")

    return ValidationError(detail)


def handle_not_found_error(entity_type: str, entity_id) -> NotFoundError:
    """
    Builds a not-found error and logs it.

    Args:
        entity_type: entity label (e.g. 'Student', 'Task')
        entity_id: identifier that was looked up

    Returns:
        NotFoundError: 404 error ready to be raised
    """
    logger.warning(f"Lookup failed: {entity_type} (id: {entity_id})")

    return NotFoundError(f"{entity_type} not found")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Map every failure to a single `{"error": ...}` body."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid {location}: {first.get('msg')}" if location else first.get("msg")
        else:
            message = "Invalid request"
        logger.warning(f"Request validation failed on {request.url.path}: {message}")
        return error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")
