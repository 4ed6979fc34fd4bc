"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 8000

Or from the project root:
    python -m uvicorn backend.app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.database import build_engine, build_session_factory, close_db, init_db
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import RequestLoggingMiddleware
from backend.app.core.health import HealthStatus, run_health_check

# ── Notification engine ──
from backend.app.notifications.channels import build_gateway
from backend.app.notifications.dispatcher import EventDispatcher
from backend.app.notifications.handlers import NotificationHandlers
from backend.app.notifications.storage import SqlNotificationStore

# ── API routers ──
from backend.app.api.v1.triggers import router as trigger_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the store, push gateway and dispatcher; tear down the pool."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    engine = build_engine()
    if settings.is_development:
        await init_db(engine)

    store = SqlNotificationStore(build_session_factory(engine))
    gateway = build_gateway(settings)
    handlers = NotificationHandlers(store, store, gateway, config=settings)

    app.state.engine = engine
    app.state.dispatcher = EventDispatcher(handlers)
    logger.info("Push provider: %s", settings.PUSH_PROVIDER)

    yield

    await close_db(engine)
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Notification fan-out for an emergency-response platform. "
        "Reacts to chat messages, incident reports, status changes, "
        "announcements and registrations by pushing notifications to "
        "mobile residents and web-dashboard responders, clearing dead "
        "device tokens as they are reported."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (order matters — outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(trigger_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "push_provider": settings.PUSH_PROVIDER,
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check(request: Request):
    """Deep health probe — database and push gateway."""
    report = await run_health_check(getattr(request.app.state, "engine", None))
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness(request: Request):
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check(getattr(request.app.state, "engine", None))
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
