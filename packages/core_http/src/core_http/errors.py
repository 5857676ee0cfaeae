from __future__ import annotations
from fastapi import FastAPI, HTTPException as FastAPIHTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core_logging import get_logger, log_stage, record_error
from core_logging.error_codes import ErrorCode
from core_storage.errors import StoreError, StoreErrorKind
from core_utils import jsonx
from core_utils.ids import generate_request_id

from .headers import X_REQUEST_ID

_STORE_STATUS = {
    StoreErrorKind.not_found: 404,
    StoreErrorKind.invalid: 400,
    StoreErrorKind.conflict: 409,
    StoreErrorKind.unavailable: 503,
}

def _request_id(request: Request) -> str:
    return request.headers.get(X_REQUEST_ID) or generate_request_id()

def error_envelope(code: str, message: str, request_id: str, *, details: object | None = None) -> dict:
    payload = {"error": {"code": code, "message": message, "request_id": request_id}, "request_id": request_id}
    if details is not None:
        payload["error"]["details"] = jsonx.sanitize(details)
    return payload

def raise_http_error(
    status_code: int,
    code: ErrorCode | str,
    message: str,
    request_id: str,
    *,
    details: object | None = None,
) -> FastAPIHTTPException:
    """
    Construct a FastAPI HTTPException with the canonical error envelope.
    attach_standard_error_handlers() passes this JSON through unchanged.
    """
    return FastAPIHTTPException(
        status_code=status_code,
        detail=error_envelope(str(getattr(code, "value", code)), message, request_id, details=details),
    )

def attach_standard_error_handlers(app: FastAPI, *, service: str) -> None:
    """
    Uniform error shaping for the read API:
      - 422: request validation
      - Starlette HTTP errors (JSON passthrough)
      - StoreError: embedded-store kind → HTTP status (404/400/409/503)
      - 500: catch-all with {code, message, details, request_id}
    """
    logger = get_logger(service)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        req_id = _request_id(request)
        log_stage(logger, "validation", "request_invalid",
                  request_id=req_id, errors=jsonx.sanitize(exc.errors()), path=request.url.path)
        return JSONResponse(
            status_code=422,
            content=error_envelope(ErrorCode.invalid_parameter.value, "Request validation failed", req_id,
                                   details={"errors": exc.errors()}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(_: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(StoreError)
    async def _store_exc_handler(request: Request, exc: StoreError):
        req_id = _request_id(request)
        status = _STORE_STATUS.get(exc.kind, 500)
        if status >= 500:
            record_error(ErrorCode.storage_unavailable, where=exc.operation, message=exc.message,
                         logger=logger, request_id=req_id, path=request.url.path)
        return JSONResponse(
            status_code=status,
            content=error_envelope(f"storage_{exc.kind.value}", exc.message, req_id, details=exc.to_dict()),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        req_id = _request_id(request)
        record_error(ErrorCode.internal, where=request.url.path, message=str(exc),
                     logger=logger, request_id=req_id, error_type=exc.__class__.__name__)
        return JSONResponse(
            status_code=500,
            content=error_envelope(ErrorCode.internal.value, "Unexpected error", req_id,
                                   details={"type": exc.__class__.__name__, "message": str(exc)}),
        )

__all__ = ["error_envelope", "raise_http_error", "attach_standard_error_handlers"]
