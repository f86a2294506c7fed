"""Bulk query client: follows pagination cursors until the result set is exhausted."""

from __future__ import annotations

from typing import Any

import structlog

from pricing_engine.kernel.errors import QueryError
from pricing_engine.salesforce.client import DataApi, QueryPage

logger = structlog.get_logger()


def soql_quote(value: str) -> str:
    """Render a string as a SOQL literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class BulkQueryClient:
    def __init__(self, data_api: DataApi) -> None:
        self._data_api = data_api

    async def query_all(self, soql: str) -> list[dict[str, Any]]:
        """
        Run a query and return every record across all pages, in order.

        Any failed page aborts the whole read with `QueryError`; callers never
        see a partial result set.
        """
        try:
            page = await self._data_api.query(soql)
            return await self._drain(page)
        except QueryError:
            raise
        except Exception as exc:
            logger.error("Error during query_all execution", soql=soql, error=str(exc))
            raise QueryError(message=f"Query failed: {exc}", meta={"soql": soql}) from exc

    async def related_records(self, record: dict[str, Any], relationship: str) -> list[dict[str, Any]]:
        """
        All child records of a parent-to-child subquery on `record`.

        The record store returns nested subqueries as their own paged result,
        so large child sets need the same cursor walk as top-level queries.
        """
        nested = record.get(relationship)
        if not nested:
            return []
        try:
            return await self._drain(QueryPage.from_response(nested))
        except Exception as exc:
            logger.error(
                "Error reading related records",
                relationship=relationship,
                record_id=record.get("Id"),
                error=str(exc),
            )
            raise QueryError(
                message=f"Query failed for {relationship} of {record.get('Id')}: {exc}",
                meta={"relationship": relationship},
            ) from exc

    async def _drain(self, page: QueryPage) -> list[dict[str, Any]]:
        records = list(page.records)
        while not page.done and page.next_records_url:
            page = await self._data_api.query_more(page)
            records.extend(page.records)
        return records
