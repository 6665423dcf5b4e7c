"""
Tests for the httpx HubSpot client: request shapes and error mapping.
"""
import json
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from app.core.exceptions import AuthError, TransientFetchError
from app.models.schemas.account import Account
from app.models.schemas.crm import SearchRequest
from app.services.sync.hubspot_client import ClientRegistry, HubSpotClient

BASE = "https://api.hubapi.test"


def make_client(handler, account=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    account = account or Account(hub_id="42", access_token="tok", refresh_token="rt")
    return HubSpotClient(http_client, account, base_url=BASE, client_id="cid", client_secret="secret")


@pytest.mark.asyncio
async def test_search_sends_window_filters_and_parses_paging():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={
            "total": 2,
            "results": [
                {
                    "id": "1",
                    "createdAt": "2024-01-01T00:00:00.000Z",
                    "updatedAt": "2024-01-02T00:00:00.000Z",
                    "properties": {"email": "a@example.com"},
                },
            ],
            "paging": {"next": {"after": "100"}},
        })

    client = make_client(handler)
    request = SearchRequest.for_window(
        object_type="contacts",
        properties=["email"],
        modified_property="lastmodifieddate",
        since=datetime(2024, 1, 1, tzinfo=timezone.utc),
        until=datetime(2024, 1, 3, tzinfo=timezone.utc),
        limit=100,
        after=200,
    )

    page = await client.search(request)

    assert requests[0].url == f"{BASE}/crm/v3/objects/contacts/search"
    assert requests[0].headers["Authorization"] == "Bearer tok"
    body = json.loads(requests[0].content)
    assert body["filterGroups"] == [{"filters": [
        {"propertyName": "lastmodifieddate", "operator": "GTE", "value": "1704067200000"},
        {"propertyName": "lastmodifieddate", "operator": "LTE", "value": "1704240000000"},
    ]}]
    assert body["sorts"] == [{"propertyName": "lastmodifieddate", "direction": "ASCENDING"}]
    assert body["limit"] == 100
    assert body["after"] == "200"

    assert page.next_after == 100
    assert page.results[0].id == "1"
    assert page.results[0].properties["email"] == "a@example.com"


@pytest.mark.asyncio
async def test_last_page_has_no_next_after():
    client = make_client(lambda request: httpx.Response(200, json={"results": []}))

    page = await client.search(SearchRequest(object_type="companies"))

    assert page.results == []
    assert page.next_after is None


@pytest.mark.asyncio
async def test_client_reads_the_current_account_token():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        return httpx.Response(200, json={"results": []})

    client = make_client(handler)
    await client.search(SearchRequest(object_type="contacts"))
    client.account.access_token = "refreshed"
    await client.search(SearchRequest(object_type="contacts"))

    assert seen == ["Bearer tok", "Bearer refreshed"]


@pytest.mark.asyncio
async def test_http_errors_become_transient_fetch_errors():
    client = make_client(lambda request: httpx.Response(429, json={"message": "rate limited"}))

    with pytest.raises(TransientFetchError) as exc_info:
        await client.search(SearchRequest(object_type="contacts"))

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_transport_errors_become_transient_fetch_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientFetchError):
        await make_client(handler).batch_read("contacts", ["1"], ["email"])


@pytest.mark.asyncio
async def test_read_associations_keeps_response_order():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"results": [
            {"from": {"id": "1"}, "to": [{"toObjectId": 10}, {"toObjectId": 11}]},
            {"from": {"id": "2"}, "to": [{"id": "20", "type": "contact_to_company"}]},
            {"from": {"id": "3"}, "to": []},
        ]})

    associations = await make_client(handler).read_associations("contacts", "companies", ["1", "2", "3"])

    assert requests[0].url == f"{BASE}/crm/v4/associations/contacts/companies/batch/read"
    assert json.loads(requests[0].content) == {"inputs": [{"id": "1"}, {"id": "2"}, {"id": "3"}]}
    assert associations == [("1", ["10", "11"]), ("2", ["20"]), ("3", [])]


@pytest.mark.asyncio
async def test_batch_read_projects_properties():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"results": [{"id": "7", "properties": {"email": "x@example.com"}}]})

    objects = await make_client(handler).batch_read("contacts", ["7"], ["email"])

    assert json.loads(requests[0].content) == {"properties": ["email"], "inputs": [{"id": "7"}]}
    assert objects[0].properties == {"email": "x@example.com"}


@pytest.mark.asyncio
async def test_token_exchange_posts_refresh_grant():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"access_token": "new", "expires_in": 1800, "refresh_token": "rt"})

    grant = await make_client(handler).exchange_refresh_token("rt")

    form = parse_qs(requests[0].content.decode())
    assert requests[0].url == f"{BASE}/oauth/v1/token"
    assert form == {
        "grant_type": ["refresh_token"],
        "client_id": ["cid"],
        "client_secret": ["secret"],
        "refresh_token": ["rt"],
    }
    assert grant.access_token == "new"
    assert grant.expires_in == 1800


@pytest.mark.asyncio
async def test_token_exchange_accepts_camel_case_response():
    client = make_client(lambda request: httpx.Response(200, json={"accessToken": "new", "expiresIn": 60}))

    grant = await client.exchange_refresh_token("rt")

    assert (grant.access_token, grant.expires_in) == ("new", 60)


@pytest.mark.asyncio
async def test_token_exchange_failure_raises_auth_error():
    client = make_client(lambda request: httpx.Response(400, json={"status": "BAD_REFRESH_TOKEN"}))

    with pytest.raises(AuthError):
        await client.exchange_refresh_token("rt")


def test_registry_keeps_one_client_per_account():
    registry = ClientRegistry(httpx.AsyncClient(), base_url=BASE)
    first = Account(hub_id="1", refresh_token="a")
    second = Account(hub_id="2", refresh_token="b")

    assert registry.for_account(first) is registry.for_account(first)
    assert registry.for_account(first) is not registry.for_account(second)
    assert registry.for_account(second).account is second

    registry.release(first)
    assert registry.for_account(first).account is first
