"""API error types and the handlers that turn them into JSON responses.

Every failure a route can produce is raised as an ``ApiError`` subclass and
rendered at the application boundary as ``{"error": <message>}``, or as
``{"errors": [...]}`` for field validation failures.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class AuthenticationMissing(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Access denied. No token provided."


class AuthenticationInvalid(ApiError):
    # 400, unlike AuthenticationMissing
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid token."


class InvalidCredentials(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Login failed! Check authentication credentials."


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You are not allowed to modify this resource."


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found."

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found.")


class RangeInvalid(ApiError):
    message = "departureTime must be after arrivalTime."


class BookingConflict(ApiError):
    message = "The property is already booked for the requested dates."


class DuplicateEmail(ApiError):
    message = "Email already registered."


class InvalidReference(ApiError):
    message = "Referenced entity does not exist."


class StoreFailure(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "An internal error occurred."


class ValidationFailed(ApiError):
    message = "Validation failed."

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__()
        self.errors = errors

    def to_body(self) -> Dict[str, Any]:
        return {"errors": self.errors}


def error_response(exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render FastAPI's own parameter errors in the same shape as ``ValidationFailed``."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "msg": err.get("msg", "Invalid value")})
    return error_response(ValidationFailed(errors))


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return error_response(StoreFailure())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
