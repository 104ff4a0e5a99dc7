"""FastAPI application entry point"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mailroom.core.config import settings
from mailroom.core.logging import setup_logging
from mailroom.core.middleware import access_log_middleware, global_exception_handler
from mailroom.core.otel import initialize_otel, instrument_clients, instrument_fastapi
from mailroom.db.redis import get_redis_client
from mailroom.db.session import SessionLocal, engine, init_db
from mailroom.models import Base  # Import all models to register with Base.metadata
from mailroom.services.email_service import EmailClient
from mailroom.tasks.delivery_worker import worker_loop

# Import routers
from mailroom.api import admin, auth, monitoring, newsletters, subscriptions

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel("api"):
        instrument_clients(engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    app.state.email_client = EmailClient.from_settings()

    worker_task = None
    if settings.DELIVERY_WORKER_ENABLED:
        logger.info("Starting delivery worker task...")
        worker_task = asyncio.create_task(worker_loop(app.state.email_client, SessionLocal))

    yield

    # Shutdown
    logger.info("Shutting down...")
    if worker_task is not None:
        worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker_task
    await app.state.email_client.aclose()


# Create FastAPI app
app = FastAPI(
    title="Mailroom",
    description="Newsletter subscriptions and idempotent publishing",
    version="1.0.0",
    lifespan=lifespan
)

instrument_fastapi(app)

# Include routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(newsletters.router)
app.include_router(subscriptions.router)
app.include_router(monitoring.router)

app.middleware("http")(access_log_middleware)
app.add_exception_handler(Exception, global_exception_handler)
