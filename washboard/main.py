import logging
import time
from uuid import uuid4

from fastapi import FastAPI
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from washboard.api.v1.auth import router as auth_router
from washboard.api.v1.bookings import router as bookings_router
from washboard.api.v1.magic_links import router as magic_links_router
from washboard.api.v1.shop_status import router as shop_status_router
from washboard.api.v1.users import router as users_router
from washboard.core.errors import ServiceError
from washboard.core.exceptions import (
    http_exception_handler,
    server_error_response,
    service_exception_handler,
    storage_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from washboard.core.logging import setup_logging
from washboard.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from washboard.core.request_context import request_id_ctx_var

app = FastAPI(title="Washboard API", version="0.1.0")
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ServiceError, service_exception_handler)
app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
setup_logging()
logger = logging.getLogger("washboard.request")

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(magic_links_router)
app.include_router(bookings_router)
app.include_router(shop_status_router)


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    start = time.perf_counter()
    path = request.url.path
    method = request.method
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed method=%s path=%s", method, path)
        response = server_error_response()

    elapsed = time.perf_counter() - start
    REQUEST_COUNT.labels(method=method, path=path, status_code=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed method=%s path=%s status=%s duration_ms=%.2f",
        method,
        path,
        response.status_code,
        elapsed * 1000,
    )
    request_id_ctx_var.reset(token)
    return response


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
