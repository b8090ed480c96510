"""
Error Handlers

Every failure leaves the API in the same envelope:
{"error": {"code", "kind", "message_class", "message", "details"}}
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...domain.enums import ErrorKind, MessageClass
from ...domain.errors import DomainError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def _headers() -> dict:
    return {"X-Correlation-Id": get_correlation_id() or ""}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Expected business errors raised outside a route's own try/except"""
    logger.warning(
        f"Domain error: {exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code}
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=jsonable_encoder(exc.to_dict()),
        headers=_headers()
    )


HTTP_STATUS_KINDS = {
    status.HTTP_401_UNAUTHORIZED: (ErrorKind.AUTHENTICATION, MessageClass.NOT_PERMITTED),
    status.HTTP_403_FORBIDDEN: (ErrorKind.FORBIDDEN, MessageClass.NOT_PERMITTED),
    status.HTTP_404_NOT_FOUND: (ErrorKind.NOT_FOUND, MessageClass.GONE),
    status.HTTP_405_METHOD_NOT_ALLOWED: (ErrorKind.UNSUPPORTED, MessageClass.NOT_PERMITTED),
}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Routes re-raise domain errors as HTTPException(detail=error.to_dict());
    unwrap that detail so clients see the plain error envelope.
    """
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        kind, message_class = HTTP_STATUS_KINDS.get(
            exc.status_code, (ErrorKind.VALIDATION_ERROR, MessageClass.INVALID_INPUT)
        )
        content = {
            "error": {
                "code": "HTTP_ERROR",
                "kind": kind.value,
                "message_class": message_class.value,
                "message": str(exc.detail),
                "details": {}
            }
        }
    headers = dict(exc.headers or {})
    headers.update(_headers())
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=headers
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body/query did not match the schema"""
    logger.warning(
        f"Validation error: {exc.errors()}, "
        f"path={request.url.path}, "
        f"method={request.method}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({
            "error": {
                "code": "VALIDATION_ERROR",
                "kind": ErrorKind.VALIDATION_ERROR.value,
                "message_class": MessageClass.INVALID_INPUT.value,
                "message": "Request validation failed",
                "details": {"errors": exc.errors()}
            }
        }),
        headers=_headers()
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors; full stack trace goes to the error log"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "kind": ErrorKind.PERSISTENCE_ERROR.value,
                "message_class": MessageClass.RETRY.value,
                "message": "An unexpected error occurred",
                "details": {"hint": "Check server logs for details"}
            }
        },
        headers=_headers()
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
