from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pricing_engine.salesforce.client import QueryPage


@dataclass
class FakeDataApi:
    """
    In-memory stand-in for the record store.

    Queries are matched by substring; each registered query returns its pages
    through `nextRecordsUrl` cursors. Composite graph calls assign sequential
    ids; a graph holding a reference configured to fail is rolled back as a
    whole, and omitted references are left out of the response.
    """

    api_path: str = "/services/data/v62.0"
    queries: list[str] = field(default_factory=list)
    query_more_calls: list[str] = field(default_factory=list)
    composite_calls: list[dict[str, Any]] = field(default_factory=list)
    fail_refs: dict[str, list[dict[str, str]]] = field(default_factory=dict)
    omit_refs: set[str] = field(default_factory=set)
    reject_with: Exception | None = None
    fail_query_more_at: str | None = None
    _routes: list[tuple[str, str]] = field(default_factory=list)
    _pages: dict[str, QueryPage] = field(default_factory=dict)
    _id_counters: dict[str, int] = field(default_factory=dict)

    def add_query(self, match: str, *pages: list[dict[str, Any]]) -> None:
        first = self.paged_result(f"q{len(self._routes)}", *pages)
        self._routes.append((match, first))

    def paged_result(self, key: str, *pages: list[dict[str, Any]]) -> str:
        """Register a chain of pages and return the url of the first one."""
        pages = pages or ([],)
        urls = [f"/query/{key}-{index}" for index in range(len(pages))]
        for index, records in enumerate(pages):
            last = index == len(pages) - 1
            self._pages[urls[index]] = QueryPage(
                records=list(records),
                done=last,
                next_records_url=None if last else urls[index + 1],
                total_size=sum(len(p) for p in pages),
            )
        return urls[0]

    def nested(self, key: str, *pages: list[dict[str, Any]]) -> dict[str, Any]:
        """Subquery result shaped like the REST API's nested relationship."""
        page = self._pages[self.paged_result(key, *pages)]
        return {
            "totalSize": page.total_size,
            "done": page.done,
            "nextRecordsUrl": page.next_records_url,
            "records": page.records,
        }

    async def query(self, soql: str) -> QueryPage:
        self.queries.append(soql)
        for match, url in self._routes:
            if match in soql:
                return self._pages[url]
        return QueryPage(records=[], done=True)

    async def query_more(self, page: QueryPage) -> QueryPage:
        url = page.next_records_url
        self.query_more_calls.append(url)
        if self.fail_query_more_at is not None and url == self.fail_query_more_at:
            raise RuntimeError(f"page {url} unavailable")
        return self._pages[url]

    async def composite_graph(self, graphs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.composite_calls.append(
            {
                "graphs": graphs,
                "subrequests": [node for graph in graphs for node in graph["compositeRequest"]],
            }
        )
        if self.reject_with is not None:
            raise self.reject_with

        response: list[dict[str, Any]] = []
        for graph in graphs:
            response.extend(self._run_graph(graph["compositeRequest"]))
        return response

    def _run_graph(self, nodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
        # A graph with a failing node rolls back every node in it.
        if any(node["referenceId"] in self.fail_refs for node in nodes):
            results = []
            for node in nodes:
                ref = node["referenceId"]
                if ref in self.omit_refs:
                    continue
                body = self.fail_refs.get(ref) or [
                    {
                        "errorCode": "PROCESSING_HALTED",
                        "message": "The transaction was rolled back since another operation in the same transaction failed.",
                    }
                ]
                results.append({"referenceId": ref, "httpStatusCode": 400, "body": body})
            return results

        results = []
        for node in nodes:
            ref = node["referenceId"]
            if ref in self.omit_refs:
                continue
            sobject = node["url"].rsplit("/", 1)[-1]
            results.append(
                {
                    "referenceId": ref,
                    "httpStatusCode": 201,
                    "body": {"id": self._next_id(sobject), "success": True, "errors": []},
                }
            )
        return results

    def _next_id(self, sobject: str) -> str:
        count = self._id_counters.get(sobject, 0) + 1
        self._id_counters[sobject] = count
        prefix = {"Quote": "0Q0", "QuoteLineItem": "0QL"}.get(sobject, "001")
        return f"{prefix}{count:012d}"
