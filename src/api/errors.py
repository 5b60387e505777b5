"""
Error mapper: engine exception kinds --> HTTP status codes.

Mapping is done on the exception class (walking its MRO), so rewording a message
can never change the status a client sees.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.exceptions import (
    ConflictError,
    ForbiddenError,
    GameError,
    InvalidParticipantsError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR = (500, "INTERNAL_ERROR")

ERROR_MAP: dict[type[Exception], tuple[int, str]] = {
    NotFoundError: (404, "NOT_FOUND"),
    ForbiddenError: (403, "FORBIDDEN"),
    InvalidStateError: (400, "INVALID_STATE"),
    InvalidParticipantsError: (400, "INVALID_PARTICIPANTS"),
    InvalidRequestError: (400, "INVALID_REQUEST"),
    ConflictError: (409, "CONFLICT"),
}


def map_error(exc: BaseException) -> tuple[int, str]:
    """(status code, error code) for an exception. Unknown kinds are internal errors."""
    for cls in type(exc).__mro__:
        if cls in ERROR_MAP:
            return ERROR_MAP[cls]
    return INTERNAL_ERROR


def error_body(exc: BaseException) -> tuple[int, dict[str, str]]:
    status, code = map_error(exc)
    # never leak internals
    message = str(exc) if status != 500 else "Something went wrong. Please try again."
    return status, {"error": code, "message": message}


async def game_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status, body = error_body(exc)
    logger.info(
        "%s %s rejected: %s %s", request.method, request.url.path, status, body["error"]
    )
    return JSONResponse(status_code=status, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path, exc_info=exc)
    status, body = error_body(exc)
    return JSONResponse(status_code=status, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
