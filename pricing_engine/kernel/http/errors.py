from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pricing_engine.kernel.errors import PricingEngineError

logger = structlog.get_logger()


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on a FastAPI app.

    Every error body has the `{error, message}` shape callers already parse.
    """

    @app.exception_handler(PricingEngineError)
    async def _pricing_engine_error_handler(request: Request, exc: PricingEngineError) -> Response:
        return JSONResponse(status_code=exc.status_code, content=exc.to_public_dict())

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> Response:
        headers = dict(exc.headers or {})
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"error": True, "message": exc.detail},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        return JSONResponse(
            status_code=400,
            content={"error": True, "message": "Request validation failed", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": True, "message": "Internal Server Error"})
