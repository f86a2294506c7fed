"""
Quotes

Discount policy, paginated reads, unit-of-work staging, batch commit,
reconciliation and callback delivery for quote generation.
"""

from pricing_engine.quotes.callback import CallbackNotifier
from pricing_engine.quotes.committer import BatchCommitter, CommitResultSet
from pricing_engine.quotes.discount import apply_discount, get_discount_for_region
from pricing_engine.quotes.models import (
    CommitResult,
    JobDescriptor,
    JobStatus,
    JobType,
    LineItem,
    NotificationPayload,
    SourceRecordGroup,
)
from pricing_engine.quotes.query import BulkQueryClient
from pricing_engine.quotes.reconcile import reconcile
from pricing_engine.quotes.service import QuoteService
from pricing_engine.quotes.unit_of_work import ReferenceToken, UnitOfWork

__all__ = [
    "BatchCommitter",
    "BulkQueryClient",
    "CallbackNotifier",
    "CommitResult",
    "CommitResultSet",
    "JobDescriptor",
    "JobStatus",
    "JobType",
    "LineItem",
    "NotificationPayload",
    "QuoteService",
    "ReferenceToken",
    "SourceRecordGroup",
    "UnitOfWork",
    "apply_discount",
    "get_discount_for_region",
    "reconcile",
]
