"""
Background Jobs

Redis pub/sub jobs channel: publisher, duplicate-delivery guard and worker.
"""

from pricing_engine.jobs.queue import JobDeduplicator, publish_job

__all__ = [
    "JobDeduplicator",
    "publish_job",
]
