"""
HTTP helpers for the record store client.

Reads retry on throttling, transient server errors and network failures.
Writes never go through here: a composite commit is submitted exactly once.
"""

from __future__ import annotations

import asyncio
import random
from typing import Iterable

import httpx
import structlog

from pricing_engine.monitoring import get_metrics

logger = structlog.get_logger()


RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def _backoff_delay(attempt: int, base_backoff: float, max_backoff: float) -> float:
    delay = min(max_backoff, base_backoff * (2 ** (attempt - 1)))
    return delay + random.uniform(0, delay / 2)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_attempts: int = 3,
    retry_statuses: Iterable[int] | None = None,
    base_backoff: float = 0.5,
    max_backoff: float = 8.0,
    **kwargs,
) -> httpx.Response:
    """
    Send a request, retrying with exponential backoff and jitter.

    The last response is returned as-is once attempts run out; the caller
    decides whether its status is an error. Network errors on the last
    attempt are re-raised.
    """
    statuses = frozenset(retry_statuses) if retry_statuses is not None else RETRY_STATUSES

    for attempt in range(1, max_attempts + 1):
        last_attempt = attempt >= max_attempts
        try:
            response = await client.request(method, url, **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            if last_attempt:
                raise
            delay = _backoff_delay(attempt, base_backoff, max_backoff)
            get_metrics().track_query_retry("network")
            logger.warning(
                "Retrying record store request after network error",
                url=url,
                attempt=attempt,
                delay=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
            continue

        if response.status_code not in statuses or last_attempt:
            return response

        delay = _retry_after(response)
        if delay is None:
            delay = _backoff_delay(attempt, base_backoff, max_backoff)
        get_metrics().track_query_retry(str(response.status_code))
        logger.warning(
            "Retrying record store request after status",
            status_code=response.status_code,
            url=url,
            attempt=attempt,
            delay=delay,
        )
        await asyncio.sleep(delay)

    raise ValueError("max_attempts must be at least 1")
