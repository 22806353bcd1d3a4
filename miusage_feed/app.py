"""FastAPI application entry point for the miusage data feed."""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from miusage_feed.bootstrap import build_coordinator, configure_logging
from miusage_feed.config import Settings, settings
from miusage_feed.errors import register_error_handlers
from miusage_feed.services.coordinator import DataCoordinator

logger = logging.getLogger(__name__)


def create_app(coordinator: DataCoordinator | None = None, config: Settings = settings) -> FastAPI:
    app = FastAPI(title="miusage Feed API", version="1.0.0")
    app.state.coordinator = coordinator if coordinator is not None else build_coordinator(config)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers; the widget is meant to be framed, so no X-Frame-Options
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        if config.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from miusage_feed.routes.data import router as data_router
    from miusage_feed.routes.health import router as health_router
    from miusage_feed.routes.pages import router as pages_router

    app.include_router(health_router)
    app.include_router(data_router)
    app.include_router(pages_router)

    for problem in config.validate():
        logger.warning("Configuration: %s", problem)

    return app


configure_logging()
app = create_app()
