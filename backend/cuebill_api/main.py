"""
Venue API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from cuebill_api import __version__
from cuebill_api.core import lifespan, register_exception_handlers
from cuebill_api.routers.health import router as health_router
from cuebill_api.routers.invoices import router as invoices_router
from cuebill_api.routers.sessions import router as sessions_router


# Create FastAPI application
app = FastAPI(
    title="CueBill Venue API",
    description="Session lifecycle and billing engine for table-rental venues",
    version=__version__,
    lifespan=lifespan,
)

# X-Request-ID on every request and log line
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(sessions_router)
app.include_router(invoices_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cuebill_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
