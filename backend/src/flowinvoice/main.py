"""
FastAPI application entry point.

This is the main application that ties together all components:
- API routes for import, invoices, credit notes and reports
- Database lifecycle management
- CORS configuration for the admin frontend
- Error handling and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowinvoice import __version__
from flowinvoice.api.routes import health, imports, invoices, reports
from flowinvoice.api.schemas import ErrorResponse
from flowinvoice.config import get_settings
from flowinvoice.infrastructure.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database tables
    - Dispose of the connection pool on shutdown
    """
    settings = get_settings()

    logger.info(f"Starting FlowInvoice v{__version__}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Overdue threshold: {settings.overdue_threshold_days} days")

    await init_db()
    logger.info("Database initialized")

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down FlowInvoice")
    await close_db()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = get_settings()

    app = FastAPI(
        title="FlowInvoice API",
        description=(
            "Invoice lifecycle management.\n\n"
            "Bulk JSON import with duplicate and consistency checks, "
            "credit notes and payment reports."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=not settings.debug,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    error_responses = {500: {"model": ErrorResponse, "description": "Internal error"}}
    app.include_router(health.router)
    app.include_router(imports.router, prefix="/api", responses=error_responses)
    app.include_router(reports.router, prefix="/api", responses=error_responses)
    app.include_router(invoices.router, prefix="/api", responses=error_responses)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")

        # Don't expose internal errors in production
        if settings.debug:
            detail = str(exc)
        else:
            detail = "An internal error occurred"

        body = ErrorResponse(error="Internal Server Error", detail=detail, code="internal_error")
        return JSONResponse(status_code=500, content=body.model_dump())

    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flowinvoice.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
