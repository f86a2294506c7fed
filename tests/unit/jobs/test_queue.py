from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricing_engine.jobs.queue import DEDUP_KEY_PREFIX, JobDeduplicator, publish_job
from pricing_engine.quotes.models import JobDescriptor


@pytest.mark.asyncio
async def test_publish_job_sends_descriptor_json():
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    descriptor = JobDescriptor(jobId="J1", jobType="quote", sourceIds=["OPP1"])

    receivers = await publish_job(redis, "jobsChannel", descriptor)

    assert receivers == 1
    channel, message = redis.publish.await_args.args
    assert channel == "jobsChannel"
    # callbackUrl is optional and left out when unset.
    assert json.loads(message) == {"jobId": "J1", "jobType": "quote", "sourceIds": ["OPP1"]}


@pytest.mark.asyncio
async def test_claim_uses_set_nx_with_ttl():
    redis = MagicMock()
    redis.set = AsyncMock(side_effect=[True, None])
    deduplicator = JobDeduplicator(redis, ttl_seconds=600)

    assert await deduplicator.claim("J1") is True
    assert await deduplicator.claim("J1") is False
    redis.set.assert_awaited_with(f"{DEDUP_KEY_PREFIX}J1", "1", nx=True, ex=600)
