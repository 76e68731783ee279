"""
truleado.api.errors

Maps domain errors onto HTTP responses.

Body shape: {"error": {"code": ..., "message": ..., "details": {...}}}
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_402_PAYMENT_REQUIRED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from truleado.errors import DomainError, ErrorCode
from truleado.observability.logging import get_logger

log = get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.unauthenticated: HTTP_401_UNAUTHORIZED,
    ErrorCode.forbidden: HTTP_403_FORBIDDEN,
    ErrorCode.not_found: HTTP_404_NOT_FOUND,
    ErrorCode.validation_error: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.invalid_state: HTTP_409_CONFLICT,
    ErrorCode.insufficient_tokens: HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.internal_error: HTTP_500_INTERNAL_SERVER_ERROR,
}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, DomainError)
    status = STATUS_BY_CODE.get(exc.code, HTTP_500_INTERNAL_SERVER_ERROR)
    if status >= 500:
        log.error("domain_error", code=exc.code.value, message=exc.message, path=request.url.path)
    else:
        log.info("request_rejected", code=exc.code.value, message=exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if status == HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status, content={"error": exc.to_dict()}, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
