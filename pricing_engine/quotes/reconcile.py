"""Outcome reconciliation: commit results back to source opportunities."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import structlog

from pricing_engine.quotes.models import (
    CommitResult,
    JobStatus,
    NotificationPayload,
)
from pricing_engine.quotes.unit_of_work import ReferenceToken

logger = structlog.get_logger()


def reconcile(
    *,
    job_id: str,
    source_ids: Sequence[str],
    quote_refs: Mapping[str, ReferenceToken],
    results: Mapping[ReferenceToken, CommitResult],
) -> NotificationPayload:
    """
    Build the notification payload for a committed job.

    `quote_refs` maps each opportunity that was staged to its quote token, in
    staging order. A quote counts as created only if its token has an id in
    `results`; an explicit error or a missing entry is a failure.
    """
    created_ids: list[str] = []
    errors: list[str] = []

    for opportunity_id, token in quote_refs.items():
        result = results.get(token)
        if result is not None and result.succeeded:
            created_ids.append(result.identity)
            continue

        detail = "; ".join(result.errors) if result is not None and result.errors else "no result returned"
        errors.append(f"Failed to create Quote for Opportunity {opportunity_id}: {detail}")
        logger.error(
            "Quote creation failed",
            job_id=job_id,
            opportunity_id=opportunity_id,
            ref_id=token.reference_id,
            errors=list(result.errors) if result is not None else None,
        )

    failure_count = len(errors)
    logger.info(
        "Job results reconciled",
        job_id=job_id,
        succeeded=len(created_ids),
        failed=failure_count,
    )

    return NotificationPayload(
        job_id=job_id,
        source_ids=list(source_ids),
        created_ids=created_ids,
        status=JobStatus.COMPLETED if failure_count == 0 else JobStatus.COMPLETED_WITH_ERRORS,
        errors=errors,
    )
