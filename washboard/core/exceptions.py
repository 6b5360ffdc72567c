import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from washboard.core.errors import LinkError, ServiceError
from washboard.core.request_context import request_id_ctx_var

logger = logging.getLogger("washboard.errors")

SERVER_ERROR_MESSAGE = "Something went wrong. Please try again."

HTTP_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: "NOT_AUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMIT_EXCEEDED",
}


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=HTTP_STATUS_CODES.get(exc.status_code, f"http_{exc.status_code}"),
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            detail=exc.errors(),
        ),
    )


async def service_exception_handler(_: Request, exc: ServiceError) -> JSONResponse:
    content = _error_payload(code=exc.code, message=exc.message, detail=exc.message)
    content["success"] = False
    if isinstance(exc, LinkError):
        content["valid"] = False
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def server_error_response() -> JSONResponse:
    content = _error_payload(code="SERVER_ERROR", message=SERVER_ERROR_MESSAGE, detail=SERVER_ERROR_MESSAGE)
    content["success"] = False
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "storage_failure method=%s path=%s error=%s",
        request.method,
        request.url.path,
        exc.__class__.__name__,
        exc_info=exc,
    )
    return server_error_response()


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_failure method=%s path=%s error=%s",
        request.method,
        request.url.path,
        exc.__class__.__name__,
        exc_info=exc,
    )
    return server_error_response()
