"""
Pricing Engine - FastAPI Application

Provides:
- Synchronous quote generation for a single opportunity
- Batch quote job submission over the Redis jobs channel
- Health, readiness and Prometheus metrics endpoints
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from redis import asyncio as aioredis

from pricing_engine import __version__
from pricing_engine.api.routes import health, quotes
from pricing_engine.config import get_settings
from pricing_engine.kernel.http.errors import register_exception_handlers
from pricing_engine.kernel.logs import configure_logging
from pricing_engine.quotes.callback import CallbackNotifier
from pricing_engine.quotes.service import QuoteService
from pricing_engine.salesforce.client import build_data_api

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()

    logger.info(
        "Starting Pricing Engine API",
        version=__version__,
        environment=settings.environment,
        jobs_channel=settings.jobs_channel,
    )

    app.state.redis = aioredis.from_url(str(settings.redis_url))

    data_api = build_data_api(settings)
    app.state.quote_service = (
        QuoteService(
            data_api,
            notifier=CallbackNotifier(timeout_seconds=settings.callback_timeout_seconds),
            settings=settings,
        )
        if data_api is not None
        else None
    )

    yield

    logger.info("Shutting down Pricing Engine API")
    if data_api is not None:
        await data_api.aclose()
    await app.state.redis.aclose()


app = FastAPI(
    title="Pricing Engine",
    description="Calculate pricing and generate quotes from opportunities.",
    version=__version__,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

app.include_router(health.router, tags=["Health"])
app.include_router(quotes.router)

logger.info("API routes registered for all quote operations")
