"""Cart Commit Service - Main Application."""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from cartcommit.logging_hardening import setup_logging_redaction
from cartcommit.settings import settings

logger = logging.getLogger(__name__)

# Initialize logging redaction filters early
setup_logging_redaction()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: one security context and one checkout client per process
    from cartcommit.adapters.checkout.client import create_checkout_client
    from cartcommit.domain.cart.orchestrator import DesignLocks
    from cartcommit.domain.security.manager import SecurityManager
    from cartcommit.errors import CartServiceError

    try:
        app.state.security = SecurityManager.from_settings(settings)
        app.state.checkout_client = create_checkout_client(settings)
        app.state.design_locks = DesignLocks()

        if settings.is_production and settings.USE_MOCK_API:
            raise RuntimeError("USE_MOCK_API must not be enabled in production")
        if settings.is_production and settings.TRACING_ENABLED and not settings.OTEL_EXPORTER_OTLP_ENDPOINT:
            raise RuntimeError("In PROD, OTEL_EXPORTER_OTLP_ENDPOINT must be present when tracing is enabled")
    except (CartServiceError, RuntimeError) as e:
        print(f"CRITICAL STARTUP ERROR: {e}")
        sys.exit(1)

    if settings.CREATE_TABLES:
        from cartcommit.adapters.postgres.models import Base
        from cartcommit.dependencies import get_engine
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=get_engine())

    logger.info(f"Cart commit service started (mode={settings.MODE}, mock_api={settings.USE_MOCK_API})")
    yield
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Cart Commit Service",
    description="Cart commit and secure checkout handoff for the furniture configurator",
    version="0.1.0",
    lifespan=lifespan
)

if settings.TRACING_ENABLED:
    from cartcommit.observability.tracing import setup_tracing
    setup_tracing(app, settings.OTEL_EXPORTER_OTLP_ENDPOINT, settings.DEV_MODE)


@app.exception_handler(HTTPException)
async def cart_http_exception_handler(request: Request, exc: HTTPException):
    # Errors raised through raise_cart_error keep their top-level 'error' key
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
            headers=exc.headers
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers
    )


# Mount routers
from cartcommit.api.cart import router as cart_router  # noqa: E402
from cartcommit.api.checkout import router as checkout_router  # noqa: E402
from cartcommit.routers import health  # noqa: E402

app.include_router(cart_router.router, prefix="/api/v1", tags=["Cart"])
app.include_router(checkout_router.router, prefix="/api/v1", tags=["Checkout"])
app.include_router(health.router, tags=["Health"])
