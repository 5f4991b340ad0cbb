import functools
import logging
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.db.backend_client import BackendError, NO_ROWS_CODE, UNIQUE_VIOLATION_CODE

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TITLE = "Error"
DEFAULT_ERROR_DESCRIPTION = "An error occurred"
UNEXPECTED_ERROR_DESCRIPTION = "An unexpected error occurred."
VALIDATION_TOAST_TITLE = "Validation failed"


class ErrorCode(str, Enum):
    """Machine readable error codes of the error envelope"""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    HTTP_ERROR = "http_error"
    VALIDATION_ERROR = "validation_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    BACKEND_ERROR = "backend_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INTERNAL_SERVER_ERROR = "internal_server_error"


class APIException(HTTPException):
    """
    Error surfaced to the web app as an error envelope with a destructive toast.
    The message becomes the toast description; ``toast_title`` is usually set
    by the ``toast_on_error`` decorator of the route that failed.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        toast_title: Optional[str] = None,
    ):
        self.message = message or DEFAULT_ERROR_DESCRIPTION
        self.code = code
        self.details = details or {}
        self.toast_title = toast_title
        super().__init__(status_code=status_code, detail=self.message)


class NotFoundException(APIException):
    """
    A record is missing, or the caller is not a member of it.
    """

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"{resource} not found"
            if identifier:
                message += f" (ID: {identifier})"

        super().__init__(
            message,
            status.HTTP_404_NOT_FOUND,
            ErrorCode.NOT_FOUND,
            {"resource": resource, "identifier": identifier},
        )


class ValidationException(APIException):
    """A request that passed schema validation but breaks a business rule"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            ErrorCode.BAD_REQUEST,
            {"field": field} if field else None,
        )


class AuthenticationException(APIException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED)


class ForbiddenException(APIException):
    """The caller's role does not allow the action"""

    def __init__(self, message: str = "Forbidden access"):
        super().__init__(message, status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN)


class InternalServerErrorException(APIException):
    def __init__(
        self,
        message: str = "Internal server error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_SERVER_ERROR,
            details,
        )


class ConflictError(APIException):
    """Duplicate membership or another unique key clash"""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(
            message,
            status.HTTP_409_CONFLICT,
            ErrorCode.CONFLICT,
            {"resource": resource} if resource else None,
        )


class RateLimitException(APIException):
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(
            message, status.HTTP_429_TOO_MANY_REQUESTS, ErrorCode.RATE_LIMIT_EXCEEDED
        )


def from_backend_error(error: BackendError) -> APIException:
    """
    Translate a rejected backend call into the matching API exception.
    The backend's own message is kept so the user sees it verbatim.
    :param error: Error raised by the backend client.
    :return: APIException to raise.
    """
    message = error.message or DEFAULT_ERROR_DESCRIPTION
    details = {"backend_code": error.code} if error.code else None
    code = error.status_code

    if code is None:
        return APIException(
            message, status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.SERVICE_UNAVAILABLE, details
        )
    if code == 401:
        return AuthenticationException(message)
    if code == 403:
        return ForbiddenException(message)
    if code == 404 or error.code == NO_ROWS_CODE:
        return APIException(message, status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, details)
    if code == 409 or error.code == UNIQUE_VIOLATION_CODE:
        return ConflictError(message)
    if code == 429:
        return RateLimitException(message)
    if code in (400, 422):
        return APIException(message, status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, details)
    return APIException(message, status.HTTP_502_BAD_GATEWAY, ErrorCode.BACKEND_ERROR, details)


def toast_on_error(title: str) -> Callable:
    """
    Decorator for route handlers: failures are logged and surfaced as a
    destructive toast with the given title.
    :param title: Toast title shown when the wrapped call fails.
    :return: Decorator.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except BackendError as e:
                logger.error(f"{title}: {e}")
                exc = from_backend_error(e)
                exc.toast_title = title
                raise exc from e
            except APIException as e:
                logger.warning(f"{title}: {e.message}")
                if e.toast_title is None:
                    e.toast_title = title
                raise

        return wrapper

    return decorator


def format_error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    toast_title: Optional[str] = None,
) -> Dict[str, Any]:
    """Error envelope shared by every handler, with a destructive toast"""
    return {
        "error": True,
        "message": message,
        "code": code.value,
        "status_code": status_code,
        "timestamp": datetime.now(UTC).isoformat(),
        "details": details or {},
        "toast": {
            "title": toast_title or DEFAULT_ERROR_TITLE,
            "description": message or DEFAULT_ERROR_DESCRIPTION,
            "variant": "destructive",
        },
    }


def _error_json(
    status_code: int,
    message: str,
    code: ErrorCode,
    details: Optional[Dict[str, Any]] = None,
    toast_title: Optional[str] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=format_error_response(message, code, details, status_code, toast_title),
    )


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    return _error_json(exc.status_code, exc.message, exc.code, exc.details, exc.toast_title)


async def backend_exception_handler(
    request: Request, exc: BackendError
) -> JSONResponse:
    """
    Handle backend errors that escaped a route without a toast title.
    """
    logger.error(f"Backend request failed on {request.url.path}: {exc}")
    return await api_exception_handler(request, from_backend_error(exc))


def _field_message(error: Dict[str, Any]) -> str:
    """Form-friendly message for one pydantic error"""
    ctx = error.get("ctx") or {}
    error_type = error["type"]

    if error_type == "missing":
        return "This field is required"
    if error_type == "string_too_short":
        return f"Text is too short (minimum {ctx.get('min_length', 'unknown')} characters)"
    if error_type == "string_too_long":
        return f"Text is too long (maximum {ctx.get('max_length', 'unknown')} characters)"
    if error_type == "value_error":
        return str(ctx.get("reason") or error["msg"].removeprefix("Value error, "))
    return error["msg"]


def _field_errors(errors: Iterable[Dict[str, Any]], skip_body: bool) -> List[Dict[str, str]]:
    result = []
    for error in errors:
        path = [str(loc) for loc in error["loc"] if not (skip_body and loc == "body")]
        result.append(
            {
                "field": ".".join(path) or "unknown",
                "message": _field_message(error),
                "type": error["type"],
            }
        )
    return result


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Invalid form input. The first field message becomes the toast description.
    """
    errors = _field_errors(exc.errors(), skip_body=True)
    return _error_json(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        errors[0]["message"] if errors else VALIDATION_TOAST_TITLE,
        ErrorCode.VALIDATION_ERROR,
        {"errors": errors},
        VALIDATION_TOAST_TITLE,
    )


async def pydantic_validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """
    Backend rows that no longer match our records end up here.
    """
    errors = _field_errors(exc.errors(), skip_body=False)
    logger.error(f"Data validation failed on {request.url.path}: {errors}")
    return _error_json(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Data validation failed",
        ErrorCode.VALIDATION_ERROR,
        {"errors": errors},
        VALIDATION_TOAST_TITLE,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_json(exc.status_code, str(exc.detail), ErrorCode.HTTP_ERROR)


async def not_found_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Unknown routes; APIExceptions raised with a 404 keep their own envelope.
    """
    if isinstance(exc, APIException):
        return await api_exception_handler(request, exc)
    return _error_json(
        status.HTTP_404_NOT_FOUND,
        "The requested resource was not found",
        ErrorCode.NOT_FOUND,
    )


async def method_not_allowed_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    return _error_json(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        "The requested HTTP method is not allowed for this endpoint",
        ErrorCode.HTTP_ERROR,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Anything unexpected: logged with its traceback, shown as a generic toast.
    """
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return _error_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        UNEXPECTED_ERROR_DESCRIPTION,
        ErrorCode.INTERNAL_SERVER_ERROR,
        {"type": type(exc).__name__},
    )
