"""
Salesforce REST client

Thin async wrapper over the two record-store capabilities the pricing engine
needs: SOQL queries with `nextRecordsUrl` pagination, and composite graph
writes where nodes reference each other by `referenceId`.

The client is constructed once per process and injected where needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from pricing_engine.config import Settings
from pricing_engine.salesforce.http import request_with_retry

logger = structlog.get_logger()

# Composite graph limits per request.
GRAPH_NODE_LIMIT = 500
GRAPH_LIMIT = 75


@dataclass
class QueryPage:
    """One page of a SOQL query result."""

    records: list[dict[str, Any]] = field(default_factory=list)
    done: bool = True
    next_records_url: str | None = None
    total_size: int = 0

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "QueryPage":
        return cls(
            records=list(data.get("records") or []),
            done=bool(data.get("done", True)),
            next_records_url=data.get("nextRecordsUrl"),
            total_size=int(data.get("totalSize") or 0),
        )


class DataApi(Protocol):
    """Record-store operations used by the quote pipeline."""

    async def query(self, soql: str) -> QueryPage: ...

    async def query_more(self, page: QueryPage) -> QueryPage: ...

    async def composite_graph(self, graphs: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    @property
    def api_path(self) -> str: ...


class SalesforceDataApi:
    """httpx-backed implementation of `DataApi`."""

    def __init__(
        self,
        *,
        instance_url: str,
        access_token: str,
        api_version: str = "62.0",
        timeout_seconds: float = 30.0,
        query_max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._instance_url = instance_url.rstrip("/")
        self._api_version = api_version
        self._query_max_attempts = query_max_attempts
        self._client = httpx.AsyncClient(
            base_url=self._instance_url,
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    @property
    def api_path(self) -> str:
        return f"/services/data/v{self._api_version}"

    async def query(self, soql: str) -> QueryPage:
        response = await request_with_retry(
            self._client,
            "GET",
            f"{self.api_path}/query",
            params={"q": soql},
            max_attempts=self._query_max_attempts,
        )
        response.raise_for_status()
        return QueryPage.from_response(response.json())

    async def query_more(self, page: QueryPage) -> QueryPage:
        if not page.next_records_url:
            raise ValueError("query_more called on a page without nextRecordsUrl")
        response = await request_with_retry(
            self._client,
            "GET",
            page.next_records_url,
            max_attempts=self._query_max_attempts,
        )
        response.raise_for_status()
        return QueryPage.from_response(response.json())

    async def composite_graph(self, graphs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Submit `{graphId, compositeRequest}` graphs as one composite graph call.

        Each graph commits or rolls back as a unit. Returns the node results of
        every graph flattened in response order. Raises `httpx.HTTPStatusError`
        when the request as a whole is rejected.
        """
        response = await self._client.post(
            f"{self.api_path}/composite/graph",
            json={"graphs": graphs},
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()

        items: list[dict[str, Any]] = []
        for graph in response.json().get("graphs") or []:
            graph_response = graph.get("graphResponse") or {}
            if not graph.get("isSuccessful", True):
                logger.warning("Composite graph rolled back", graph_id=graph.get("graphId"))
            items.extend(graph_response.get("compositeResponse") or [])
        return items

    async def aclose(self) -> None:
        await self._client.aclose()


def build_data_api(settings: Settings) -> SalesforceDataApi | None:
    """Create the record-store client, or None when credentials are not configured."""
    if not settings.salesforce_instance_url or not settings.salesforce_access_token:
        logger.warning(
            "Record store client not configured",
            has_instance_url=bool(settings.salesforce_instance_url),
            has_access_token=bool(settings.salesforce_access_token),
        )
        return None

    return SalesforceDataApi(
        instance_url=settings.salesforce_instance_url,
        access_token=settings.salesforce_access_token,
        api_version=settings.salesforce_api_version,
        timeout_seconds=settings.salesforce_timeout_seconds,
        query_max_attempts=settings.query_max_attempts,
    )
