"""
Quote Service

Turns opportunities into draft quotes with discounted line items.

Two entry points share the same staging and commit logic:
- `handle_quote_job`: batch path, fed by the jobs worker; one commit for
  every opportunity in the job, results reported through the callback URL.
- `generate_quote`: synchronous path for a single opportunity.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

import structlog

from pricing_engine.config import Settings, get_settings
from pricing_engine.kernel.errors import (
    CommitError,
    NotFoundError,
    PricingEngineError,
    QueryError,
    QuoteCreationError,
)
from pricing_engine.kernel.time import add_days_iso
from pricing_engine.monitoring import get_metrics
from pricing_engine.quotes.callback import CallbackNotifier
from pricing_engine.quotes.committer import BatchCommitter
from pricing_engine.quotes.discount import apply_discount, get_discount_for_region
from pricing_engine.quotes.models import (
    JobDescriptor,
    LineItem,
    NotificationPayload,
    SourceRecordGroup,
)
from pricing_engine.quotes.query import BulkQueryClient, soql_quote
from pricing_engine.quotes.reconcile import reconcile
from pricing_engine.quotes.unit_of_work import ReferenceToken, UnitOfWork
from pricing_engine.salesforce.client import DataApi

logger = structlog.get_logger()

STANDARD_PRICEBOOK_QUERY = "SELECT Id FROM Pricebook2 WHERE IsStandard = true LIMIT 1"
LINE_ITEMS_RELATIONSHIP = "OpportunityLineItems"
QUOTE_NAME_MAX_LENGTH = 80


def build_opportunities_query(opportunity_ids: Sequence[str]) -> str:
    id_list = ",".join(soql_quote(opportunity_id) for opportunity_id in opportunity_ids)
    return (
        "SELECT Id, Name, AccountId, CloseDate, StageName, Amount, "
        "(SELECT Id, Product2Id, Quantity, UnitPrice, PricebookEntryId FROM OpportunityLineItems) "
        f"FROM Opportunity WHERE Id IN ({id_list})"
    )


class QuoteService:
    def __init__(
        self,
        data_api: DataApi,
        *,
        notifier: CallbackNotifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._query = BulkQueryClient(data_api)
        self._committer = BatchCommitter(data_api, all_or_none=self.settings.commit_all_or_none)
        self._notifier = notifier or CallbackNotifier(timeout_seconds=self.settings.callback_timeout_seconds)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_standard_pricebook_id(self) -> str:
        records = await self._query.query_all(STANDARD_PRICEBOOK_QUERY)
        pricebook_id = (records[0].get("Id") or records[0].get("id")) if records else None
        if not pricebook_id:
            raise QueryError(message="Standard Pricebook not found.")
        return str(pricebook_id)

    async def load_source_groups(self, opportunity_ids: Sequence[str]) -> list[SourceRecordGroup]:
        """Fetch opportunities with their line items, ordered as requested."""
        records = await self._query.query_all(build_opportunities_query(opportunity_ids))

        groups: list[SourceRecordGroup] = []
        for record in records:
            line_items = await self._query.related_records(record, LINE_ITEMS_RELATIONSHIP)
            groups.append(
                SourceRecordGroup(
                    opportunity_id=str(record.get("Id") or record.get("id")),
                    name=record.get("Name"),
                    close_date=record.get("CloseDate"),
                    line_items=tuple(LineItem.from_record(item) for item in line_items),
                )
            )

        position = {opportunity_id: index for index, opportunity_id in enumerate(opportunity_ids)}
        groups.sort(key=lambda group: position.get(group.opportunity_id, len(position)))
        return groups

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def stage_quote(
        self,
        unit_of_work: UnitOfWork,
        group: SourceRecordGroup,
        *,
        pricebook_id: str,
        discount: float,
    ) -> ReferenceToken:
        """Register one Quote and its QuoteLineItems."""
        quote_fields: dict[str, object] = {
            "Name": self.settings.quote_name[:QUOTE_NAME_MAX_LENGTH],
            "OpportunityId": group.opportunity_id,
            "Pricebook2Id": pricebook_id,
            "Status": "Draft",
        }
        expiration_date = add_days_iso(group.close_date, self.settings.quote_expiration_days)
        if expiration_date:
            quote_fields["ExpirationDate"] = expiration_date

        quote_ref = unit_of_work.register_parent("Quote", quote_fields)
        for item in group.line_items:
            unit_of_work.register_child(
                quote_ref,
                "QuoteLineItem",
                {
                    "PricebookEntryId": item.pricebook_entry_id,
                    "Quantity": item.quantity,
                    "UnitPrice": apply_discount(item.unit_price, discount),
                },
                reference_field="QuoteId",
            )
        return quote_ref

    # ------------------------------------------------------------------
    # Batch path
    # ------------------------------------------------------------------

    async def handle_quote_job(self, descriptor: JobDescriptor) -> NotificationPayload | None:
        """
        Create quotes for every opportunity in a job and report the outcome.

        Read and whole-batch commit failures propagate to the worker. Per-quote
        failures end up in the payload; callback problems are absorbed by the
        notifier. Returns None, without committing or notifying, when no quote
        could be staged.
        """
        job_id = descriptor.job_id
        source_ids = list(descriptor.source_ids)
        if not source_ids:
            logger.warning("No opportunityIds provided", job_id=job_id)
            return None

        logger.info("Worker received quote job", job_id=job_id, opportunity_count=len(source_ids))

        pricebook_id = await self.fetch_standard_pricebook_id()
        groups = await self.load_source_groups(source_ids)
        if not groups:
            logger.warning(
                "No Opportunities found for job",
                job_id=job_id,
                opportunity_ids=source_ids,
            )
            return None

        discount = get_discount_for_region(self.settings.default_region)
        unit_of_work = UnitOfWork()
        quote_refs: dict[str, ReferenceToken] = {}
        total_line_items = 0

        for group in groups:
            if group.is_empty:
                logger.warning(
                    "Opportunity has no line items, skipping quote creation",
                    job_id=job_id,
                    opportunity_id=group.opportunity_id,
                )
                continue
            try:
                quote_refs[group.opportunity_id] = self.stage_quote(
                    unit_of_work,
                    group,
                    pricebook_id=pricebook_id,
                    discount=discount,
                )
            except ValueError as exc:
                logger.error(
                    "Error preparing quote for Opportunity, skipping",
                    job_id=job_id,
                    opportunity_id=group.opportunity_id,
                    error=str(exc),
                )
                continue
            total_line_items += len(group.line_items)

        if not quote_refs:
            logger.warning("No quotes were registered for creation", job_id=job_id)
            return None

        logger.info(
            "Submitting unit of work",
            job_id=job_id,
            quotes=len(quote_refs),
            line_items=total_line_items,
        )

        results = await self._committer.commit(unit_of_work)
        payload = reconcile(
            job_id=job_id,
            source_ids=source_ids,
            quote_refs=quote_refs,
            results=results,
        )
        get_metrics().track_quotes("batch", len(payload.created_ids), len(payload.errors))

        await self._notifier.notify(descriptor.callback_url, payload)
        return payload

    # ------------------------------------------------------------------
    # Synchronous path
    # ------------------------------------------------------------------

    async def generate_quote(self, opportunity_id: str) -> str:
        """Create a quote for a single opportunity and return its id."""
        started = time.perf_counter()
        try:
            pricebook_id = await self.fetch_standard_pricebook_id()
            groups = await self.load_source_groups([opportunity_id])
            if not groups:
                raise NotFoundError(message=f"Opportunity not found for ID: {opportunity_id}")
            group = groups[0]
            if group.is_empty:
                raise NotFoundError(
                    message=f"No OpportunityLineItems found for Opportunity ID: {opportunity_id}"
                )

            unit_of_work = UnitOfWork()
            quote_ref = self.stage_quote(
                unit_of_work,
                group,
                pricebook_id=pricebook_id,
                discount=get_discount_for_region(self.settings.default_region),
            )

            try:
                results = await self._committer.commit(unit_of_work)
            except CommitError as exc:
                raise QuoteCreationError(message=f"Failed to create quote: {exc.message}") from exc

            result = results.get(quote_ref)
            if result is None:
                raise QuoteCreationError(message="Failed to create quote: Quote creation result not found in response")
            if not result.succeeded:
                raise QuoteCreationError(message=f"Failed to create quote: {'; '.join(result.errors)}")
        except PricingEngineError:
            get_metrics().track_quotes("sync", 0, 1)
            raise

        get_metrics().track_quotes("sync", 1, 0)
        logger.info(
            "Quote created",
            opportunity_id=opportunity_id,
            quote_id=result.identity,
            duration_seconds=time.perf_counter() - started,
        )
        return result.identity
