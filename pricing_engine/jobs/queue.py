"""Redis pub/sub jobs channel: producer side and the duplicate-delivery guard."""

from __future__ import annotations

import structlog
from redis.asyncio import Redis

from pricing_engine.quotes.models import JobDescriptor

logger = structlog.get_logger()

DEDUP_KEY_PREFIX = "pricing-engine:job:"


async def publish_job(redis: Redis, channel: str, descriptor: JobDescriptor) -> int:
    """
    Publish a job descriptor to the jobs channel.

    Returns the number of subscribers that received it. Zero means no worker
    was listening and the job is lost; pub/sub does not buffer.
    """
    receivers = await redis.publish(channel, descriptor.to_message())
    logger.info(
        "Job published to Redis channel",
        job_id=descriptor.job_id,
        job_type=descriptor.job_type,
        channel=channel,
        receivers=receivers,
    )
    return int(receivers)


class JobDeduplicator:
    """
    Claims job ids in Redis so a redelivered descriptor is dropped.

    Claims expire after `ttl_seconds`; nothing about the job is stored beyond
    the id itself.
    """

    def __init__(self, redis: Redis, *, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl_seconds = max(1, int(ttl_seconds))

    async def claim(self, job_id: str) -> bool:
        """True if this worker is the first to see `job_id` within the TTL."""
        claimed = await self._redis.set(f"{DEDUP_KEY_PREFIX}{job_id}", "1", nx=True, ex=self._ttl_seconds)
        return bool(claimed)
