"""Batch committer: submits a unit of work as one composite graph call."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import structlog

from pricing_engine.kernel.errors import CommitError
from pricing_engine.quotes.models import CommitResult
from pricing_engine.quotes.unit_of_work import ReferenceToken, UnitOfWork
from pricing_engine.salesforce.client import GRAPH_LIMIT, GRAPH_NODE_LIMIT, DataApi

logger = structlog.get_logger()


class CommitResultSet(Mapping[ReferenceToken, CommitResult]):
    """Per-intent outcomes keyed by the token used at registration.

    Intents the backend did not report on are simply missing; callers treat
    a missing entry as a failure.
    """

    def __init__(self, results: dict[ReferenceToken, CommitResult] | None = None) -> None:
        self._results = dict(results or {})

    def __getitem__(self, token: ReferenceToken) -> CommitResult:
        return self._results[token]

    def __iter__(self) -> Iterator[ReferenceToken]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)


def _format_errors(body: Any) -> tuple[str, ...]:
    # Errors come back as [{"errorCode": ..., "message": ...}, ...]
    if isinstance(body, dict):
        body = body.get("errors") or [body]
    if not isinstance(body, list):
        return (str(body),) if body else ()
    errors: list[str] = []
    for item in body:
        if isinstance(item, dict):
            code = item.get("errorCode") or item.get("statusCode")
            message = item.get("message") or ""
            errors.append(f"{code}: {message}" if code else str(message))
        elif item:
            errors.append(str(item))
    return tuple(errors)


def _parse_result(item: dict[str, Any]) -> CommitResult:
    status = int(item.get("httpStatusCode") or 0)
    body = item.get("body")
    if 200 <= status < 300 and isinstance(body, dict) and body.get("id"):
        return CommitResult(identity=str(body["id"]))
    return CommitResult(errors=_format_errors(body) or (f"HTTP {status}",))


def _check_graph_limits(graphs: list[dict[str, Any]], batch_id: str) -> None:
    largest = max((len(graph["compositeRequest"]) for graph in graphs), default=0)
    if len(graphs) > GRAPH_LIMIT or largest > GRAPH_NODE_LIMIT:
        raise CommitError(
            message=(
                f"Batch exceeds composite graph limits: {len(graphs)} graphs "
                f"(max {GRAPH_LIMIT}), {largest} nodes in one graph (max {GRAPH_NODE_LIMIT})"
            ),
            meta={"batch_id": batch_id},
        )


class BatchCommitter:
    def __init__(self, data_api: DataApi, *, all_or_none: bool = True) -> None:
        self._data_api = data_api
        self._all_or_none = all_or_none

    async def commit(self, unit_of_work: UnitOfWork) -> CommitResultSet:
        """
        Commit every staged intent in a single call.

        With `all_or_none` the unit of work is one graph; otherwise each parent
        and its children form a graph that rolls back on its own.

        Raises `CommitError` only when the batch as a whole is rejected.
        Individual intent failures are returned as result entries.
        """
        if not len(unit_of_work):
            return CommitResultSet()

        graphs = unit_of_work.to_graphs(self._data_api.api_path, per_root=not self._all_or_none)
        _check_graph_limits(graphs, unit_of_work.batch_id)
        try:
            items = await self._data_api.composite_graph(graphs)
        except Exception as exc:
            logger.error(
                "Unit of work commit rejected",
                batch_id=unit_of_work.batch_id,
                intents=len(unit_of_work),
                error=str(exc),
            )
            raise CommitError(
                message=f"Batch commit rejected: {exc}",
                meta={"batch_id": unit_of_work.batch_id},
            ) from exc

        tokens = {intent.token.reference_id: intent.token for intent in unit_of_work.intents}
        results: dict[ReferenceToken, CommitResult] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            token = tokens.get(str(item.get("referenceId")))
            if token is None:
                logger.warning(
                    "Commit result with unknown reference",
                    batch_id=unit_of_work.batch_id,
                    reference_id=item.get("referenceId"),
                )
                continue
            results[token] = _parse_result(item)

        logger.info(
            "Unit of work committed",
            batch_id=unit_of_work.batch_id,
            intents=len(unit_of_work),
            graphs=len(graphs),
            results=len(results),
            succeeded=sum(1 for r in results.values() if r.succeeded),
        )
        return CommitResultSet(results)
