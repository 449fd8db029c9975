"""
Error taxonomy shared by the services, the HTTP routers and the realtime gateway.

Services raise these; the HTTP layer turns them into JSON responses with the
category status code, the gateway turns them into ``error`` events.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationFailure(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication error"


class AuthorizationFailure(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ValidationFailure(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class UpstreamFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service failure"

    def __init__(self, message: str = None, disabled: bool = False):
        super().__init__(message)
        if disabled:
            self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailure) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
