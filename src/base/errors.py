import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.base.schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True)
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %d", request.method, request.url.path, exc.status_code)
    return _error(exc.status_code, ErrorResponse(error=str(exc.detail)))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    logger.info("Invalid request on %s: %s", request.url.path, details)
    return _error(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(error="Invalid request", details=details),
    )


async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return _error(status.HTTP_409_CONFLICT, ErrorResponse(error="Conflicting record"))


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(error="Internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Rewrite every error response into the `{"error": message}` shape."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
