"""REST API Setup Module"""

from fastapi import FastAPI
import uvicorn

from monitor_pprof import __version__
from monitor_pprof.api.rest.endpoints import HealthResponse, create_pprof_endpoints
from monitor_pprof.core.config.settings import ApiSettings
from monitor_pprof.core.dependency_injection import Container
from monitor_pprof.observability.logging.config import get_logger


def setup_rest_api(container: Container) -> FastAPI:
    """
    Setup and configure the REST API.

    Args:
        container: Dependency injection container with all components

    Returns:
        FastAPI application instance
    """
    logger = get_logger(__name__)

    app = FastAPI(
        title="monitor-pprof",
        description="pprof CPU profiles captured through dotnet-monitor",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    pprof_endpoints = create_pprof_endpoints(container)
    app.include_router(pprof_endpoints.router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", service="monitor-pprof")

    logger.info("REST API setup completed")
    return app


async def start_api_server(app: FastAPI, settings: ApiSettings):
    """Start the API server."""
    logger = get_logger(__name__)

    logger.info(f"Starting REST API server on {settings.host}:{settings.port}")

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )

    server = uvicorn.Server(config)
    await server.serve()
