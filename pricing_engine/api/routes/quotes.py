"""
Quote API Routes

- POST /createQuote: synchronous quote for one opportunity
- POST /createQuotes: publish a batch job; results arrive at `callbackUrl`
"""

from __future__ import annotations

from uuid import uuid4

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from pricing_engine.config import get_settings
from pricing_engine.jobs.queue import publish_job
from pricing_engine.kernel.errors import PricingEngineError, UnauthorizedError
from pricing_engine.quotes.models import JobDescriptor, JobType
from pricing_engine.quotes.service import QuoteService

logger = structlog.get_logger()

router = APIRouter(tags=["Pricing Engine"])


class CreateQuoteRequest(BaseModel):
    """Request to generate a quote from an opportunity's line items."""

    model_config = ConfigDict(populate_by_name=True)

    opportunity_id: str = Field(..., alias="opportunityId", description="A record Id for the opportunity")


class CreateQuoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quote_id: str = Field(..., alias="quoteId", description="A record Id for the generated quote")


class CreateQuotesRequest(BaseModel):
    """Request to generate quotes for multiple opportunities."""

    model_config = ConfigDict(populate_by_name=True)

    opportunity_ids: list[str] = Field(..., alias="opportunityIds")
    callback_url: str | None = Field(default=None, alias="callbackUrl")


class CreateQuotesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId", description="Identifier for tracking the background job")


def _get_quote_service(request: Request) -> QuoteService:
    service = getattr(request.app.state, "quote_service", None)
    if service is None:
        raise UnauthorizedError(message="Record store client not initialized")
    return service


@router.post("/createQuote", response_model=CreateQuoteResponse)
async def create_quote(body: CreateQuoteRequest, request: Request) -> CreateQuoteResponse:
    """Calculate pricing and generate a Quote for one Opportunity."""
    service = _get_quote_service(request)
    try:
        quote_id = await service.generate_quote(body.opportunity_id)
    except PricingEngineError:
        raise
    except Exception as exc:
        logger.exception("Unexpected error generating quote", opportunity_id=body.opportunity_id)
        raise PricingEngineError(
            code="internal.unexpected",
            message=f"An unexpected error occurred: {exc}",
        ) from exc
    return CreateQuoteResponse(quote_id=quote_id)


@router.post("/createQuotes", status_code=201, response_model=CreateQuotesResponse)
async def create_quotes(body: CreateQuotesRequest, request: Request):
    """Submit a batch quote job. Returns 201 with the job id once published."""
    job_id = str(uuid4())
    descriptor = JobDescriptor(
        job_id=job_id,
        job_type=JobType.QUOTE.value,
        source_ids=body.opportunity_ids,
        callback_url=body.callback_url,
    )

    redis = getattr(request.app.state, "redis", None)
    channel = get_settings().jobs_channel
    try:
        if redis is None:
            raise RuntimeError("Redis client not initialized")
        await publish_job(redis, channel, descriptor)
    except Exception as exc:
        logger.error("Failed to publish job to Redis channel", job_id=job_id, channel=channel, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Failed to publish job."})

    return CreateQuotesResponse(job_id=job_id)
