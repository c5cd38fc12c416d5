"""Exception handlers rendering every error as a failure envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException

from schemas import ResponseEnvelope, failure

logger = logging.getLogger(__name__)


def envelope_response(
    status_code: int, envelope: ResponseEnvelope, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True),
        headers=headers,
    )


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return envelope_response(
        exc.status_code,
        failure(str(exc.detail), {"status": exc.status_code}),
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return envelope_response(
        422,
        failure("validation error", {"errors": jsonable_encoder(exc.errors())}),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return envelope_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        failure("internal server error", {"status": status.HTTP_500_INTERNAL_SERVER_ERROR}),
    )


async def _unhandled_error_middleware(request: Request, call_next) -> Response:
    try:
        return await call_next(request)
    except Exception as exc:
        return await _unhandled_exception_handler(request, exc)


def register_error_middleware(app: FastAPI) -> None:
    """Render unexpected errors as envelopes from inside the user middleware stack.

    Middleware added after this call (CORS) wraps the 500 envelope as it does
    any other response. Call it before ``add_middleware``.
    """
    app.middleware("http")(_unhandled_error_middleware)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
