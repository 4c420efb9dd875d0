"""
FastAPI application for the translation gateway.
This module sets up the API server with routes, lifecycle and error handling.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from translation_gateway.core.config import get_settings
from translation_gateway.core.error_handlers import (
    base_exception_handler,
    configuration_error_handler,
    unhandled_exception_handler,
)
from translation_gateway.core.exceptions import BaseAppException, ConfigurationError
from translation_gateway.routes import health, translation
from translation_gateway.services.translation.translation_service import (
    TranslationService,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("translation_gateway.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Application startup...")
    settings = get_settings()
    app.state.settings = settings

    logger.info("Initializing TranslationService...")
    translation_service = TranslationService.from_settings(settings)
    await translation_service.start()
    app.state.translation_service = translation_service
    logger.info(
        f"Translation service started (enabled={translation_service.is_enabled()}, "
        f"limits={translation_service.limiter.config.as_dict()})"
    )

    yield

    # Shutdown
    logger.info("Application shutdown...")
    await translation_service.stop()
    app.state.translation_service = None


def create_app() -> FastAPI:
    settings = get_settings()
    if settings.DEBUG:
        logging.getLogger("translation_gateway").setLevel(logging.DEBUG)

    application = FastAPI(
        title=settings.PROJECT_NAME,
        docs_url="/api/docs",
        lifespan=lifespan,
    )

    @application.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Include routers
    application.include_router(health.router, tags=["Health"])
    application.include_router(
        translation.router, prefix="/translate", tags=["Translation"]
    )

    # Register exception handlers
    application.add_exception_handler(BaseAppException, base_exception_handler)
    application.add_exception_handler(ConfigurationError, configuration_error_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # Bind to 0.0.0.0 only in DEBUG mode (container/development)
    host = "0.0.0.0" if settings.DEBUG else "127.0.0.1"

    uvicorn.run(
        "translation_gateway.main:app",
        host=host,
        port=8000,
        reload=settings.DEBUG,
    )
