"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.core.config import settings, RENDERS_DIR, IMAGES_DIR
from app.core.container import Container
from app.core.logging import setup_logging
from app.core.middleware import (
    rate_limit_middleware, register_exception_handlers, request_logging_middleware, setup_cors_middleware,
)
from app.core.otel import initialize_otel, instrument_app
from app.db.session import engine, init_db
from app.db.redis import get_redis_client
from app.models import Base  # Import all models to register with Base.metadata

# Import routers
from app.api import auth, media, oauth, platforms, queue, social, topic, videos

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
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

    container = Container.build()
    app.state.container = container

    if settings.ENABLE_SCHEDULERS:
        logger.info("Starting scheduler tasks...")
        container.start_schedulers()
        logger.info("Video status poller and auto-post scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await container.stop_schedulers()


# Create FastAPI app
app = FastAPI(
    title="Shortform Studio Backend",
    description="AI short-form video generation and cross-posting",
    version="1.0.0",
    lifespan=lifespan
)

initialize_otel()
instrument_app(app, engine)

setup_cors_middleware(app)
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(request_logging_middleware)
register_exception_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(oauth.router)
app.include_router(videos.router)
app.include_router(topic.router)
app.include_router(queue.router)
app.include_router(media.images_router)
app.include_router(media.tts_router)
app.include_router(social.router)
app.include_router(platforms.youtube_router)
app.include_router(platforms.instagram_router)

# Generated media is served straight from disk
RENDERS_DIR.mkdir(parents=True, exist_ok=True)
IMAGES_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/renders", StaticFiles(directory=str(RENDERS_DIR)), name="renders")
app.mount("/images", StaticFiles(directory=str(IMAGES_DIR)), name="images")


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    # reload needs the app as an import string
    reload = settings.ENVIRONMENT == "development"
    config = {
        "host": "0.0.0.0",
        "port": settings.PORT,
        "timeout_graceful_shutdown": 30,
    }
    if reload:
        uvicorn.run("app.main:app", reload=True, **config)
    else:
        uvicorn.run(app, **config)
