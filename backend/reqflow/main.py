"""
Request Approval Workflow - Main FastAPI Application

Configures middleware, routes, and lifecycle handlers.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import DEFAULT_JWT_SECRET, Settings, settings
from .api.deps import get_store_dep
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.store import RequestStore
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates MongoDB indexes when the mongo backend is configured;
    shutdown closes the client.
    """
    logger.info(f"Starting request workflow service (storage={settings.storage_backend})...")
    check_settings(settings)
    uses_mongo = settings.storage_backend == "mongo"

    if uses_mongo:
        from .repositories.mongo_client import create_indexes
        try:
            create_indexes()
            logger.info("MongoDB indexes created")
        except Exception as e:
            logger.error(f"Failed to create indexes: {e}")

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    if uses_mongo:
        from .repositories.mongo_client import close_connection
        close_connection()
    logger.info("Application shutdown complete")


def check_settings(config: Settings) -> None:
    """Refuse to serve production traffic with the built-in signing secret"""
    if config.is_production and config.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set when ENVIRONMENT is production")
    if not config.verify_token_signature:
        logger.warning(
            f"Token signatures are not verified (environment={config.environment})"
        )


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    application = FastAPI(
        title="Request Approval Workflow",
        description="Request lifecycle engine with audit trail and notifications",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    app.include_router(api_router, prefix="/api/v1")

    # Health check endpoint (no auth required)
    @app.get("/health", tags=["Health"])
    async def health(store: RequestStore = Depends(get_store_dep)):
        storage = store.health_check()
        return {
            "status": "healthy" if storage.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "storage": storage
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": "Request Approval Workflow",
            "version": APP_VERSION,
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
