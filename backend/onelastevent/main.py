"""
OneLastEvent API - Main Application Entry Point

Event registration backend:
- Organizers publish capacity-bounded, optionally paid events
- Capacity is reserved with a single atomic conditional UPDATE
- Payments settle through a mock flow or Stripe webhooks, with refunds
- Redis caching of the public listing, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from onelastevent.core.config import get_settings
from onelastevent.core.logging import setup_logging, get_logger
from onelastevent.core.metrics import metrics_endpoint
from onelastevent.api.router import api_router
from onelastevent.api.middleware import RequestContextMiddleware
from onelastevent.domain.errors import DomainError, InternalError, OPAQUE_ERRORS
from onelastevent.services.cache_service import get_redis, close_redis, get_cache_stats
from onelastevent.services.processor_factory import get_payment_processor, close_payment_processor

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

    processor = get_payment_processor()
    logger.info("payments_ready", provider=processor.name)

    yield

    await close_payment_processor()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event registration API with atomic capacity reservation and payments",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestContextMiddleware)

app.include_router(api_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Render domain errors as {"error": message, "code": CODE}."""
    message = exc.message
    if isinstance(exc, OPAQUE_ERRORS):
        logger.error("request_error", code=exc.code.value, error=exc.message)
        message = type(exc).default_message
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "code": exc.code.value},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", error=str(exc), error_type=type(exc).__name__)
    return await domain_error_handler(request, InternalError())


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "payment_provider": get_payment_processor().name,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
