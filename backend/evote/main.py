# backend/evote/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

# rate limiting
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from evote.core.settings import Settings, get_settings
from evote.db import Database
from evote.errors import ServiceError
from evote.logging_config import configure_logging
from evote.notifications import EventBus
from evote.ratelimit import limiter, set_login_rate_limit
from evote.routers import admin, auth, ballots, events, periods

logger = logging.getLogger(__name__)

# ---- Default security headers ----
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "frame-ancestors 'none'; "
        "object-src 'none'; "
        "base-uri 'self'; "
        "form-action 'self'"
    ),
}
# NOTE: HSTS only takes effect when served over HTTPS (enable at your reverse proxy in prod)
STRICT_TRANSPORT_SECURITY = "max-age=31536000; includeSubDomains"


def create_app(settings: Optional[Settings] = None, notifier: Optional[EventBus] = None) -> FastAPI:
    settings = settings or get_settings()
    notifier = notifier if notifier is not None else EventBus()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url)
        database.create_all()
        app.state.database = database
        logger.info("Election backend ready (%s)", database.engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            notifier.close()
            database.dispose()

    app = FastAPI(title="Electronic Voting Platform", lifespan=lifespan)
    app.state.settings = settings
    app.state.notifier = notifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "content-type", "x-requested-with"],
        max_age=3600,
    )

    set_login_rate_limit(settings.login_rate_limit)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(RateLimitExceeded)
    def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        response = JSONResponse(
            status_code=429,
            content={"error": "too_many_requests", "detail": "Try again later."},
        )
        for header, value in (getattr(exc, "headers", {}) or {}).items():
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(ServiceError)
    def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(SQLAlchemyError)
    def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ---- Security headers middleware ----
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        # HSTS (effective only when behind HTTPS)
        response.headers.setdefault("Strict-Transport-Security", STRICT_TRANSPORT_SECURITY)
        return response

    # ---- Health endpoint (used by tests and curl) ----
    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(auth.router)
    app.include_router(periods.router)
    app.include_router(ballots.router)
    app.include_router(admin.router)
    app.include_router(events.router)
    return app


app = create_app()
