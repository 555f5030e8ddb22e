"""
EventTara Check-in API - Main Application Entry Point

Booking, payment verification, check-in and achievements for
capacity-limited outdoor events:
- Concurrency-safe slot reservation with optimistic locking, per event or tier
- Organizer-verified payments with a single explicit booking state
- Idempotent QR check-in and achievement awards
- Background worker pool for post-check-in work and notifications
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import DomainError
from app.core.logging import setup_logging, get_logger
from app.core.metrics import metrics_endpoint
from app.api.router import api_router
from app.api.middleware import RequestLoggingMiddleware
from app.db.session import AsyncSessionLocal
from app.services.achievement_service import seed_system_badges
from app.services.background import BackgroundWorkerPool
from app.services.cache_service import get_redis, close_redis, get_cache_stats
from app.services.jobs import build_handlers
from app.services.notifier_factory import get_notifier

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.SEED_SYSTEM_BADGES:
        async with AsyncSessionLocal() as db:
            await seed_system_badges(db)

    tasks = BackgroundWorkerPool({})
    tasks.handlers.update(build_handlers(AsyncSessionLocal, get_notifier(), tasks.enqueue))
    await tasks.start()
    app.state.tasks = tasks

    yield

    await tasks.stop()
    app.state.tasks = None
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event booking, payment verification, QR check-in and achievements",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info("domain_error", error=exc.code.value, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code.value, "message": exc.message},
    )


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    tasks = getattr(app.state, "tasks", None)
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "background": {
            "running": bool(tasks and tasks.running),
            "queued": tasks.queue.qsize() if tasks else 0,
        },
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
