"""
Main FastAPI Application
Multi-vector retrieval API: web page ingestion and compressed parent retrieval
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.endpoints.ingest import router as ingest_router
from api.endpoints.query import router as query_router
from api.models.schemas import HealthCheckResponse
from core.config import RAGConfig
from core.exceptions import ConfigurationError, RetrievalError
from core.factory import Components, create_components, prepare_store
from core.logging_config import configure_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def create_app(components: Optional[Components] = None) -> FastAPI:
    """
    Create the FastAPI application

    Args:
        components: Prebuilt components; built from RAGConfig.from_env() at
            startup when omitted
    """

    # Lifespan context manager for startup/shutdown
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup: build embedder, vector store, compressor and pipelines once
        Shutdown: close client connections
        """
        logger.info("Starting multi-vector RAG API...")

        if components is not None:
            app.state.components = components
        else:
            config = RAGConfig.from_env()
            configure_logging(config.log_level)
            app.state.components = create_components(config)
            await prepare_store(app.state.components)

        yield

        logger.info("Shutting down multi-vector RAG API...")
        await app.state.components.close()

    app = FastAPI(
        title="Multi-Vector RAG API",
        description="""
        Two-tier retrieval over web pages.

        ## Key Endpoints

        - `POST /api/v1/ingest` - Load URLs, build parent/child chunks and index them
        - `POST /api/v1/query` - Child search → parent lookup → relevance compression
        - `GET /health` - Component health
        """,
        version=API_VERSION,
        lifespan=lifespan
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors"""
        logger.warning(f"Validation error: {exc.errors()}")

        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation error",
                "detail": str(exc),
                "error_code": "VALIDATION_ERROR"
            }
        )

    @app.exception_handler(RetrievalError)
    async def retrieval_exception_handler(request: Request, exc: RetrievalError):
        """The vector store or embedder could not answer"""
        logger.error(f"Retrieval failed: {exc}")

        return JSONResponse(
            status_code=502,
            content={
                "error": "Retrieval failed",
                "detail": str(exc),
                "error_code": "RETRIEVAL_ERROR"
            }
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Configuration error: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "error": "Configuration error",
                "detail": str(exc),
                "error_code": "CONFIGURATION_ERROR"
            }
        )

    # Include routers
    app.include_router(ingest_router)
    app.include_router(query_router)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["health"],
        summary="Health check",
        description="Check API health and component status"
    )
    async def health_check(request: Request) -> HealthCheckResponse:
        """Returns status of API and its components"""
        health = await request.app.state.components.retrieval.health_check()

        components_status = {
            name: "healthy" if healthy else "unhealthy"
            for name, healthy in health.items()
            if name != "overall"
        }

        return HealthCheckResponse(
            status="healthy" if health.get("overall") else "degraded",
            version=API_VERSION,
            components=components_status,
            timestamp=datetime.utcnow()
        )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests"""
        logger.info(f"{request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
