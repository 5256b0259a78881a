"""FastAPI entry point."""
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.storefront.config import get_settings
from apps.storefront.database import get_session_factory
from apps.storefront.errors import StorefrontError, StorageError
from apps.storefront.middleware.trace_id import TraceIdMiddleware, HEADER as TRACE_HEADER
from apps.storefront.routers import health, admin_auth, admin_chat, admin_orders, admin_outbox, payments
from apps.storefront.services.credentials import ensure_default_admin
from apps.storefront.utils.api_errors import error_envelope

logger = logging.getLogger(__name__)


def bootstrap_default_admin() -> None:
    """Startup step: make sure the default super admin exists."""
    factory = get_session_factory()
    try:
        with factory() as db:
            ensure_default_admin(db)
    except Exception:
        # Login still bootstraps lazily once the database is reachable.
        logger.exception("startup admin bootstrap failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if get_settings().admin_bootstrap_on_startup:
        bootstrap_default_admin()
    yield


app = FastAPI(
    title="Storefront back office",
    description="Admin sessions, payment reconciliation and support chat",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(TraceIdMiddleware)

app.include_router(health.router, tags=["System"])
app.include_router(admin_auth.router, prefix="/admin/auth", tags=["Admin Auth"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(admin_chat.router, prefix="/admin/chat", tags=["Admin Chat"])
app.include_router(admin_outbox.router, prefix="/admin/outbox", tags=["Admin Outbox"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", None) or str(uuid.uuid4())[:16]


def _error_response(request: Request, status_code: int, code: str, message: str, detail: str | None = None):
    trace_id = _trace_id(request)
    resp = JSONResponse(
        content=error_envelope(code=code, message=message, trace_id=trace_id, detail=detail),
        status_code=status_code,
    )
    resp.headers[TRACE_HEADER] = trace_id
    return resp


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if isinstance(exc, StorageError):
        logger.error("storage error code=%s path=%s detail=%s", exc.code, request.url.path, exc.detail)
        return _error_response(request, exc.status_code, exc.code, exc.default_message)
    detail = exc.detail if exc.detail != exc.code else None
    return _error_response(request, exc.status_code, exc.code, detail or exc.default_message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
    return _error_response(request, 400, "validation_error", "Invalid request", ", ".join(fields))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request error"
    return _error_response(request, exc.status_code, "http_error", detail)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception trace_id=%s path=%s", _trace_id(request), request.url.path)
    return _error_response(request, 500, "internal_error", "Internal server error")
