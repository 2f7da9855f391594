"""
Error taxonomy for the attempt engine.

Services raise these; the app translates them into JSON responses:

    {"status": "fail" | "error", "message": "...", "code": "..."}

4xx responses use status "fail", 5xx use "error". InternalError never exposes
the underlying exception text.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ExamHallError(Exception):
    """Base class for domain errors raised by the services."""
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class ValidationError(ExamHallError):
    """Missing or malformed input, session window violated, wrong answer shape."""
    status_code = 400


class AuthorizationError(ExamHallError):
    status_code = 403


class NotFoundError(ExamHallError):
    status_code = 404


class ConflictError(ExamHallError):
    """Duplicate open attempt, double submission, already completed attempt."""
    status_code = 409


class CapacityError(ExamHallError):
    """The question bank holds fewer eligible questions than the exam requires."""
    status_code = 400


class InternalError(ExamHallError):
    status_code = 500

    def __init__(self, message: str = "Something went wrong while processing the request."):
        super().__init__(message)


TIME_EXPIRED = "TIME_EXPIRED"


async def examhall_error_handler(request: Request, exc: ExamHallError) -> JSONResponse:
    body = {
        "status": "fail" if exc.status_code < 500 else "error",
        "message": exc.message,
    }
    if exc.code:
        body["code"] = exc.code
    if exc.status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # malformed input is a plain 400, same as a ValidationError raised by a service
    return JSONResponse(
        status_code=400,
        content={"status": "fail", "message": "Invalid request payload.", "details": jsonable_encoder(exc.errors())},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExamHallError, examhall_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
