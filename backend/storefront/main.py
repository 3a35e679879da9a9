"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from secure import Secure

from storefront.api import api_router
from storefront.core.config import get_settings
from storefront.core.settings import get_surge_settings
from storefront.integrations import DemandServiceClient, OrderServiceClient
from storefront.security.logging_filters import install_sensitive_filter
from storefront.services import checkout_registry
from storefront.services.surge_pricing_service import (
    StaticDemandSignalSource,
    SurgePricingEngine,
    SurgeRefreshTimer,
)

logger = logging.getLogger(__name__)

settings = get_settings()

_ALLOWED_ORIGINS = [origin for origin in settings.cors_allowlist if origin]
if not _ALLOWED_ORIGINS:
    _ALLOWED_ORIGINS = [origin for origin in settings.cors_allow_origins if origin]
if not _ALLOWED_ORIGINS:
    _ALLOWED_ORIGINS = ["http://localhost:5173"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    demand_client = None
    if settings.demand_service_url:
        demand_client = DemandServiceClient(
            settings.demand_service_url,
            timeout_seconds=settings.demand_timeout_seconds,
        )
        source = demand_client
    else:
        logger.info("No demand service configured; surge pricing uses static signals")
        source = StaticDemandSignalSource()

    engine = SurgePricingEngine(source, get_surge_settings())
    app.state.demand_source = source
    app.state.pricing_engine = engine
    app.state.order_submitter = OrderServiceClient(
        settings.order_service_url,
        timeout_seconds=settings.order_submit_timeout_seconds,
    )
    app.state.refresh_timer = SurgeRefreshTimer(
        engine, settings.surge_refresh_interval_seconds
    )
    app.state.refresh_timer.start()
    try:
        yield
    finally:
        app.state.refresh_timer.stop()
        checkout_registry.clear()
        if demand_client is not None:
            await demand_client.aclose()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")

_secure_headers = Secure.with_default_headers()


@app.middleware("http")
async def _apply_security_headers(request, call_next):
    response = await call_next(request)
    _secure_headers.set_headers(response)
    return response


logging.basicConfig(level=settings.log_level.upper())
install_sensitive_filter("uvicorn", "uvicorn.access", "uvicorn.error", "")

app.include_router(api_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": settings.app_name}
