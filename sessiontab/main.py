"""
sessiontab/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Wires the storage backend and core services
- Registers API routes (webhook, health)
- No business logic should be written here
"""

from contextlib import asynccontextmanager
from typing import Optional
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sessiontab.api import webhook
from sessiontab.core.config import settings, validate_settings
from sessiontab.core.errors import add_exception_handlers
from sessiontab.core.logging import get_logger, setup_logging
from sessiontab.db.indexes import create_indexes
from sessiontab.db.memory import InMemoryRepository
from sessiontab.db.mongo import close_mongo_connection, connect_to_mongo, get_client, get_database
from sessiontab.db.mongo_repository import MongoRepository
from sessiontab.services.container import Services, build_services

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"

SLOW_REQUEST_SECONDS = 2.0


async def _open_storage() -> Services:
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage; data is lost on restart")
        return build_services(InMemoryRepository())

    logger.info("Connecting to MongoDB...")
    await connect_to_mongo()
    await create_indexes(get_database())
    logger.info("MongoDB connected and indexes ensured")
    return build_services(MongoRepository(get_client(), get_database()))


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        services: Pre-wired services (tests); when omitted the storage
            backend from settings is opened during startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting SessionTab application...")
        opened_storage = False

        try:
            validate_settings()
            if services is not None:
                app.state.services = services
            else:
                app.state.services = await _open_storage()
                opened_storage = settings.STORAGE_BACKEND == "mongo"

            logger.info(f"Environment: {settings.ENVIRONMENT}")
            logger.info(f"Debug Mode: {settings.DEBUG}")

        except Exception as e:
            logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
            raise

        yield  # Application runs here

        logger.info("Shutting down SessionTab application...")
        if opened_storage:
            await close_mongo_connection()

    app = FastAPI(
        title="SessionTab - Session Ledger Bot",
        description="Group-chat bot tracking prepaid sessions owed by squad members",
        version=VERSION,
        lifespan=lifespan,
        debug=settings.DEBUG,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Pre-wired services are visible before startup runs
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def time_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"

        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed:.2f}s")

        return response

    add_exception_handlers(app)
    app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint - basic info."""
        return {
            "name": "SessionTab API",
            "version": VERSION,
            "status": "running",
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Checks database connectivity and reports live conversations.
        """
        wired: Services = request.app.state.services
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "environment": settings.ENVIRONMENT,
            "version": VERSION,
            "checks": {},
        }

        db_healthy = await wired.repository.ping()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
        health_status["checks"]["active_conversations"] = wired.conversations.active_count()
        if not db_healthy:
            health_status["status"] = "degraded"

        status_code = 200 if db_healthy else 503
        return JSONResponse(content=health_status, status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sessiontab.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
