"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers, and
the service lifespan) so tests can build isolated apps from their own
``Settings`` and injected services.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import admin_router, health_router, waitlist_router
from app.core.config import Settings, get_settings
from app.core.container import ServiceContainer, build_services
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import build_request_id_middleware, build_security_headers_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.origin_policy import OriginPolicy


def create_app(settings: Settings | None = None, *, services: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Configuration to use; read from the environment when omitted.
        services: Prebuilt service container; built from ``settings`` at
            startup when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    if settings is None:
        settings = services.settings if services is not None else get_settings()

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = services or build_services(settings)
        app.state.services = container
        await container.startup()
        try:
            yield
        finally:
            await container.shutdown()

    app = FastAPI(
        title="Waitlist Gate",
        description=(
            "Public waitlist signup endpoint with layered abuse controls: origin "
            "checks, sliding-window rate limits, a honeypot, duplicate "
            "suppression, and background confirmation emails."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.settings = settings

    # Middleware (last registered runs first)
    policy = services.origin_policy if services is not None else OriginPolicy.from_settings(settings)
    app.middleware("http")(build_security_headers_middleware(policy))
    app.middleware("http")(build_request_id_middleware(settings.log.request_id_header))

    setup_exception_handlers(app)

    app.include_router(waitlist_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
