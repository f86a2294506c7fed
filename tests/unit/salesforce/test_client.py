from __future__ import annotations

import json

import httpx
import pytest

from pricing_engine.config import Settings
from pricing_engine.salesforce.client import QueryPage, SalesforceDataApi, build_data_api

INSTANCE_URL = "https://example.my.salesforce.com"


def _api(handler) -> SalesforceDataApi:
    return SalesforceDataApi(
        instance_url=INSTANCE_URL,
        access_token="token",
        api_version="62.0",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_query_and_query_more_follow_next_records_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/query"):
            return httpx.Response(
                200,
                json={
                    "totalSize": 2,
                    "done": False,
                    "nextRecordsUrl": "/services/data/v62.0/query/01g-2000",
                    "records": [{"Id": "a"}],
                },
            )
        return httpx.Response(200, json={"totalSize": 2, "done": True, "records": [{"Id": "b"}]})

    api = _api(handler)
    first = await api.query("SELECT Id FROM Account")
    second = await api.query_more(first)
    await api.aclose()

    assert first.next_records_url == "/services/data/v62.0/query/01g-2000"
    assert second.done and second.records == [{"Id": "b"}]
    assert seen[0].url.params["q"] == "SELECT Id FROM Account"
    assert seen[0].headers["authorization"] == "Bearer token"
    assert seen[1].url.path == "/services/data/v62.0/query/01g-2000"


@pytest.mark.asyncio
async def test_query_retries_transient_status():
    statuses = iter([503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        body = {"done": True, "records": []} if status == 200 else {}
        return httpx.Response(status, json=body)

    page = await _api(handler).query("SELECT Id FROM Account")

    assert page.done


@pytest.mark.asyncio
async def test_composite_graph_is_sent_once_and_raises_on_rejection():
    calls: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        return httpx.Response(400, json=[{"errorCode": "INVALID_FIELD", "message": "bad"}])

    graphs = [{"graphId": "g0", "compositeRequest": [{"referenceId": "ref0"}]}]
    with pytest.raises(httpx.HTTPStatusError):
        await _api(handler).composite_graph(graphs)

    assert calls == [{"graphs": graphs}]


@pytest.mark.asyncio
async def test_composite_graph_flattens_node_results():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/services/data/v62.0/composite/graph"
        return httpx.Response(
            200,
            json={
                "graphs": [
                    {
                        "graphId": "g0",
                        "isSuccessful": True,
                        "graphResponse": {
                            "compositeResponse": [
                                {"referenceId": "ref0", "httpStatusCode": 201, "body": {"id": "0Q0"}},
                            ]
                        },
                    },
                    {
                        "graphId": "g1",
                        "isSuccessful": False,
                        "graphResponse": {
                            "compositeResponse": [
                                {
                                    "referenceId": "ref1",
                                    "httpStatusCode": 400,
                                    "body": [{"errorCode": "INVALID_FIELD", "message": "bad"}],
                                },
                            ]
                        },
                    },
                ]
            },
        )

    items = await _api(handler).composite_graph(
        [
            {"graphId": "g0", "compositeRequest": [{"referenceId": "ref0"}]},
            {"graphId": "g1", "compositeRequest": [{"referenceId": "ref1"}]},
        ]
    )

    assert [item["referenceId"] for item in items] == ["ref0", "ref1"]
    assert items[0]["body"]["id"] == "0Q0"
    assert items[1]["httpStatusCode"] == 400


@pytest.mark.asyncio
async def test_query_more_without_cursor_raises():
    with pytest.raises(ValueError):
        await _api(lambda request: httpx.Response(200)).query_more(QueryPage())


def test_build_data_api_without_credentials_is_none():
    assert build_data_api(Settings(salesforce_instance_url=None, salesforce_access_token=None)) is None


def test_build_data_api_with_credentials():
    api = build_data_api(Settings(salesforce_instance_url=INSTANCE_URL + "/", salesforce_access_token="t"))

    assert isinstance(api, SalesforceDataApi)
    assert api.api_path == "/services/data/v62.0"
