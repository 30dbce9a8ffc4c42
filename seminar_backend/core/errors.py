"""Application error taxonomy and the handlers that render it as JSON.

Every error reaching a client is an object with a ``message`` field.
OTP failures also carry ``remainingAttempts`` where it applies.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Server error'

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {'message': self.message, **self.extra}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Validation error'


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Please authenticate'


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Access denied'


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Conflict'


class UpstreamUnavailableError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Service unavailable'


class OtpVerificationError(ValidationError):
    """Wrong, expired or exhausted OTP."""

    def __init__(self, message: str, remaining_attempts: int | None = None):
        if remaining_attempts is None:
            super().__init__(message)
        else:
            super().__init__(message, remainingAttempts=remaining_attempts)


def _json(status_code: int, payload: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return _json(exc.status_code, exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    payload = detail if isinstance(detail, dict) and 'message' in detail else {'message': str(detail)}
    return _json(exc.status_code, payload, headers=getattr(exc, 'headers', None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path'))
        errors.append(f"{location}: {error.get('msg')}" if location else str(error.get('msg')))
    message = errors[0] if len(errors) == 1 else 'Validation error'
    return _json(status.HTTP_400_BAD_REQUEST, {'message': message, 'errors': errors})


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning('Integrity error on %s %s: %s', request.method, request.url.path, exc.orig)
    return _json(status.HTTP_400_BAD_REQUEST, {'message': 'Record conflicts with existing data'})


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception('Database error on %s %s', request.method, request.url.path)
    return _json(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        {'message': 'Database unavailable. Verify DATABASE_URL and database credentials.'},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, {'message': 'Server error'})


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
