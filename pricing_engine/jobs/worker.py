"""
Jobs Worker

Consumes job descriptors from the Redis jobs channel and dispatches them by
`jobType`. One message is handled to completion before the next is read.

A message that cannot be parsed, has an unknown type, or whose handler fails
is logged and dropped after one attempt; the worker itself keeps running.

Usage:
    python -m pricing_engine.jobs.worker
"""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError
from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from pricing_engine.config import get_settings
from pricing_engine.jobs.queue import JobDeduplicator
from pricing_engine.kernel.logs import configure_logging
from pricing_engine.monitoring import get_metrics
from pricing_engine.quotes.callback import CallbackNotifier
from pricing_engine.quotes.models import JobDescriptor, JobType
from pricing_engine.quotes.service import QuoteService
from pricing_engine.salesforce.client import build_data_api

logger = structlog.get_logger()

JobHandler = Callable[[JobDescriptor], Awaitable[Any]]


class WorkerState(str, Enum):
    IDLE = "idle"
    MESSAGE_RECEIVED = "message_received"
    DESERIALIZING = "deserializing"
    DISPATCHING = "dispatching"
    HANDLER_RUNNING = "handler_running"


class JobsWorker:
    def __init__(
        self,
        redis: aioredis.Redis,
        handlers: dict[str, JobHandler],
        *,
        channel: str,
        deduplicator: JobDeduplicator | None = None,
        connect_timeout_seconds: float = 10.0,
        poll_timeout_seconds: float = 1.0,
    ) -> None:
        self._redis = redis
        self._handlers = dict(handlers)
        self.channel = channel
        self._deduplicator = deduplicator
        self._connect_timeout_seconds = connect_timeout_seconds
        self._poll_timeout_seconds = poll_timeout_seconds
        self._shutdown = asyncio.Event()
        self.state = WorkerState.IDLE

    async def wait_until_ready(self) -> None:
        """Block until Redis answers PING, or fail after the connect timeout."""
        try:
            await asyncio.wait_for(self._redis.ping(), timeout=self._connect_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise RedisConnectionError("Redis connection timeout") from exc
        logger.info("Redis client connected")

    async def run_forever(self) -> None:
        await self.wait_until_ready()

        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("Subscribed to jobs channel, waiting for messages", channel=self.channel)

        try:
            while not self._shutdown.is_set():
                try:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=self._poll_timeout_seconds,
                    )
                except RedisConnectionError as exc:
                    logger.warning("Lost Redis connection (will retry)", channel=self.channel, error=str(exc))
                    await asyncio.sleep(self._poll_timeout_seconds)
                    continue

                if message and message.get("type") == "message":
                    await self.handle_message(message.get("channel"), message.get("data"))
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
            logger.info("Jobs worker stopped", channel=self.channel)

    def shutdown(self) -> None:
        """Stop the listen loop once the current message is done."""
        self._shutdown.set()

    async def handle_message(self, channel: str | bytes | None, data: str | bytes | None) -> None:
        """Run one message through the worker state machine. Never raises."""
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        if channel != self.channel:
            return

        self.state = WorkerState.MESSAGE_RECEIVED
        logger.info("Received message from channel", channel=channel)
        try:
            self.state = WorkerState.DESERIALIZING
            try:
                descriptor = JobDescriptor.model_validate_json(data or b"")
            except ValidationError as exc:
                get_metrics().track_job("unparsed", "dropped")
                logger.error(
                    "Failed to parse job message",
                    message=_preview(data),
                    error=str(exc),
                )
                return

            self.state = WorkerState.DISPATCHING
            handler = self._handlers.get(descriptor.job_type)
            if handler is None:
                get_metrics().track_job(descriptor.job_type, "unknown_type")
                logger.warning(
                    "Received job with unknown jobType",
                    job_id=descriptor.job_id,
                    job_type=descriptor.job_type,
                )
                return

            if self._deduplicator is not None and not await self._deduplicator.claim(descriptor.job_id):
                get_metrics().track_job(descriptor.job_type, "duplicate")
                logger.warning(
                    "Dropping duplicate job delivery",
                    job_id=descriptor.job_id,
                    job_type=descriptor.job_type,
                )
                return

            self.state = WorkerState.HANDLER_RUNNING
            await self._run_handler(handler, descriptor)
        except Exception as exc:
            # Never crash the worker loop because of a single message.
            logger.error("Unhandled exception processing message", channel=channel, error=str(exc))
        finally:
            self.state = WorkerState.IDLE

    async def _run_handler(self, handler: JobHandler, descriptor: JobDescriptor) -> None:
        started = time.perf_counter()
        logger.info("Routing job to handler", job_id=descriptor.job_id, job_type=descriptor.job_type)
        try:
            await handler(descriptor)
        except Exception as exc:
            get_metrics().track_job(descriptor.job_type, "failed", time.perf_counter() - started)
            logger.error(
                "Error executing handler for job",
                job_id=descriptor.job_id,
                job_type=descriptor.job_type,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return

        duration = time.perf_counter() - started
        get_metrics().track_job(descriptor.job_type, "succeeded", duration)
        logger.info(
            "Job processing completed",
            job_id=descriptor.job_id,
            job_type=descriptor.job_type,
            duration_seconds=duration,
        )


def _preview(data: str | bytes | None, limit: int = 200) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    return data[:limit]


async def _run() -> None:
    settings = get_settings()
    logger.info("Jobs worker starting", channel=settings.jobs_channel)

    data_api = build_data_api(settings)
    if data_api is None:
        logger.error("Failed to get a valid record store connection; check SALESFORCE_* settings")
        sys.exit(1)

    redis = aioredis.from_url(str(settings.redis_url))
    quote_service = QuoteService(
        data_api,
        notifier=CallbackNotifier(timeout_seconds=settings.callback_timeout_seconds),
        settings=settings,
    )
    deduplicator = (
        JobDeduplicator(redis, ttl_seconds=settings.job_dedup_ttl_seconds)
        if settings.job_dedup_ttl_seconds > 0
        else None
    )
    worker = JobsWorker(
        redis,
        {JobType.QUOTE.value: quote_service.handle_quote_job},
        channel=settings.jobs_channel,
        deduplicator=deduplicator,
        connect_timeout_seconds=settings.worker_connect_timeout_seconds,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.shutdown)
        except NotImplementedError:
            signal.signal(sig, lambda *_: worker.shutdown())

    try:
        await worker.run_forever()
    except (RedisConnectionError, OSError) as exc:
        logger.error("Critical error during startup", error=str(exc))
        sys.exit(1)
    finally:
        await data_api.aclose()
        await redis.aclose()


def main() -> None:
    configure_logging()
    asyncio.run(_run())


if __name__ == "__main__":
    main()
