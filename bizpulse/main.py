"""
Main FastAPI Application
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from bizpulse.core.config import settings as default_settings, Settings
from bizpulse.core.database import Database
from bizpulse.core.rate_limit import RateLimitMiddleware
from bizpulse.core.responses import register_exception_handlers
from bizpulse.api.v1 import auth, products, transactions, analytics
from bizpulse.services.logo_storage import LocalLogoStorage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {app.title} ({app.state.settings.ENVIRONMENT})...")
    app.state.db.connect()

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.db.disconnect()


def create_app(settings: Settings = None, database: Database = None,
               logo_storage: LocalLogoStorage = None) -> FastAPI:
    """Build the application; tests pass their own database and storage"""
    settings = settings or default_settings
    database = database or Database(
        settings.database_url,
        pool_size=settings.DB_POOL_SIZE,
        connect_timeout=settings.DB_CONNECT_TIMEOUT,
        echo=settings.DEBUG
    )
    logo_storage = logo_storage or LocalLogoStorage(
        settings.UPLOAD_PATH,
        url_prefix=settings.UPLOAD_URL_PREFIX,
        max_file_size=settings.MAX_FILE_SIZE
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.db = database
    app.state.logo_storage = logo_storage

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting middleware (must be after CORS)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.rate_limit_window_seconds,
        auth_max_requests=settings.RATE_LIMIT_AUTH_MAX_REQUESTS,
        enabled=settings.RATE_LIMIT_ENABLED,
        trusted_proxies=settings.trusted_proxies_list
    )

    register_exception_handlers(app, expose_errors=not settings.is_production)

    # Health check
    @app.get("/health")
    async def health_check(request: Request):
        connected = request.app.state.db.is_connected()
        return {
            "status": "UP",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "database": "CONNECTED" if connected else "DISCONNECTED",
        }

    # Include routers
    app.include_router(auth.router, prefix="/api")
    app.include_router(products.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(analytics.router, prefix="/api")

    # Uploaded logos
    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=os.path.abspath(logo_storage.directory)),
        name="uploads"
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
