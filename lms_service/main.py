import time
import logging
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from .application.use_cases.users import UserDirectory
from .config import settings
from .domain.errors import LmsError
from .infrastructure.db import engine, SessionLocal
from .infrastructure.locks import KeyedLocks
from .infrastructure.models import Base
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds
)
from .infrastructure.scheduler import start_scheduler, stop_scheduler
from .infrastructure.security import PasswordHasher
from .infrastructure.storage import build_storage
from .interfaces.http.ratelimit import limiter
from .interfaces.http.routers import activities as activities_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import courses as courses_router
from .interfaces.http.routers import dashboard as dashboard_router
from .interfaces.http.routers import notifications as notifications_router
from .interfaces.http.routers import users as users_router

# structured JSON logs
log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="LMS Service", version="0.1.0")
app.state.locks = KeyedLocks()
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def observe_request(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    response = await call_next(request)

    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"

    duration = time.time() - start_time
    status_code = response.status_code
    # label by route template, not the raw path
    route = request.scope.get("route")
    endpoint = getattr(route, "path", path)
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


@app.exception_handler(LmsError)
async def lms_error_handler(request: Request, exc: LmsError):
    logger.info("request_rejected", path=request.url.path, status_code=exc.status_code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def on_startup():
    logger.info("Starting lms service", version="0.1.0", storage=settings.STORAGE_BACKEND)
    Base.metadata.create_all(bind=engine)

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")

    db = SessionLocal()
    try:
        UserDirectory(build_storage(db), app.state.locks, PasswordHasher(), settings).seed_if_empty()
    finally:
        db.close()

    if settings.NOTIFICATION_SCAN_ENABLED:
        start_scheduler(app.state.locks)


@app.on_event("shutdown")
async def on_shutdown():
    stop_scheduler()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(courses_router.router)
app.include_router(dashboard_router.router)
app.include_router(activities_router.router)
app.include_router(notifications_router.router)
