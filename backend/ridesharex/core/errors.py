# ridesharex/core/errors.py
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ridesharex.core.config import get_settings

logger = logging.getLogger(__name__)


class RideShareError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RideShareError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AuthorizationError(RideShareError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class InvalidTransitionError(RideShareError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"


class BookingConflictError(RideShareError):
    status_code = status.HTTP_409_CONFLICT
    code = "date_conflict"


class ListingUnavailableError(RideShareError):
    code = "listing_unavailable"


class DomainValidationError(RideShareError):
    code = "validation_error"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RideShareError)
    async def domain_exception_handler(request: Request, exc: RideShareError):
        logger.warning(
            "%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.message
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "code": "validation_error",
                "message": "Invalid request",
                "errors": jsonable_errors(exc),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        level = logging.WARNING if 400 <= exc.status_code < 500 else logging.ERROR
        logger.log(level, "HTTPException %s on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": "http_error", "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if get_settings().is_production else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"code": "internal_error", "message": message},
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances which JSONResponse cannot encode
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
