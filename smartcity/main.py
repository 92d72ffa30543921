from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.staticfiles import StaticFiles

from .config import Settings, get_settings
from .database import Database
from .errors import register_exception_handlers
from .observability import (
    setup_logging,
    init_sentry,
    setup_metrics_middleware,
    get_health_check,
    metrics_response,
)
from .routes import admin as admin_routes
from .routes import auth as auth_routes
from .routes import cases as case_routes
from .routes import users as user_routes
from .storage import PUBLIC_PREFIX, ensure_upload_dir

logger = logging.getLogger("smartcity")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around one explicit settings object and database."""
    settings = settings or get_settings()

    setup_logging(settings)
    init_sentry(settings)

    app = FastAPI(title="SmartCity Complaint API")
    app.state.settings = settings
    app.state.db = Database(settings.database_url)

    setup_metrics_middleware(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts))

    register_exception_handlers(app)

    app.include_router(auth_routes.router)
    app.include_router(user_routes.router)
    app.include_router(case_routes.router)
    app.include_router(admin_routes.router)

    app.mount(
        PUBLIC_PREFIX,
        StaticFiles(directory=str(ensure_upload_dir(settings))),
        name="uploads",
    )

    @app.on_event("startup")
    async def on_startup():
        logger.info("Starting SmartCity API (env=%s)", settings.environment)
        await app.state.db.init_db()

    @app.on_event("shutdown")
    async def on_shutdown():
        logger.info("Shutting down SmartCity API")
        await app.state.db.dispose()

    @app.get("/health")
    def health():
        return get_health_check()

    @app.get("/metrics")
    def metrics():
        return metrics_response()

    return app
