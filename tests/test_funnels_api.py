from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from funnel_builder.funnel_model import Step, Tier
from funnel_builder.funnels_api import FunnelApiClient, FunnelApiError


def _funnel_body(**overrides):
    body = {
        "id": 5,
        "projectId": 3,
        "name": "Launch",
        "tiers": [{"id": "gold", "name": "Gold", "color": "#f39c12", "steps": []}],
        "createdAt": "2026-01-02T03:04:05Z",
        "updatedAt": "2026-01-02T03:04:05Z",
    }
    body.update(overrides)
    return body


def test_update_funnel_sends_full_tier_structure():
    client = FunnelApiClient(base_url="http://funnels.test")
    calls: list[tuple[str, str, dict]] = []

    async def fake_request_json(method: str, url: str, *, params=None, payload=None):
        calls.append((method, url, payload))
        return _funnel_body(name=payload["name"], tiers=payload["tiers"])

    client._request_json = fake_request_json  # type: ignore[method-assign]

    tier = Tier(id="gold", name="Gold", steps=(Step(id="s1", pageType="checkout", label="Checkout", pageId=42),))
    funnel = asyncio.run(client.update_funnel(5, name="Renamed", description=None, tiers=[tier]))

    method, url, payload = calls[0]
    assert method == "PUT"
    assert url == "http://funnels.test/api/funnels/5"
    assert payload["tiers"] == [
        {
            "id": "gold",
            "name": "Gold",
            "color": "#27ae60",
            "steps": [{"id": "s1", "pageType": "checkout", "label": "Checkout", "pageId": 42, "config": {}}],
        }
    ]
    assert funnel.name == "Renamed"
    assert funnel.tiers[0].steps[0].pageId == 42


def test_clone_funnel_omits_blank_name():
    client = FunnelApiClient(base_url="http://funnels.test")
    payloads: list[dict] = []

    async def fake_request_json(method: str, url: str, *, params=None, payload=None):
        payloads.append(payload)
        return _funnel_body(id=6, projectId=payload["targetProjectId"], name="Launch (Copy)")

    client._request_json = fake_request_json  # type: ignore[method-assign]

    funnel = asyncio.run(client.clone_funnel(5, 8))

    assert payloads == [{"targetProjectId": 8}]
    assert funnel.projectId == 8


def test_list_funnels_over_mock_transport():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[_funnel_body(), _funnel_body(id=6, name="Second")])

    client = FunnelApiClient(base_url="http://funnels.test/", transport=httpx.MockTransport(handler))

    funnels = asyncio.run(client.list_funnels(3))

    assert [funnel.id for funnel in funnels] == [5, 6]
    assert seen[0].url.path == "/api/funnels"
    assert seen[0].url.params["projectId"] == "3"


def test_create_funnel_posts_project_and_name():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.method == "POST"
        assert body == {"projectId": 3, "name": "Launch", "description": "Spring"}
        return httpx.Response(201, json=_funnel_body(description="Spring"))

    client = FunnelApiClient(base_url="http://funnels.test", transport=httpx.MockTransport(handler))

    funnel = asyncio.run(client.create_funnel(3, "Launch", "Spring"))

    assert funnel.description == "Spring"


def test_delete_funnel_accepts_empty_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(204)

    client = FunnelApiClient(base_url="http://funnels.test", transport=httpx.MockTransport(handler))

    assert asyncio.run(client.delete_funnel(5)) is None


def test_list_pages_accepts_envelope_and_skips_invalid_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "pages.test"
        assert request.url.params["app_id"] == "3"
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": [
                    {"id": 42, "title": "Pricing", "page_type": "pricing", "content_json": '{"htmlPreview": "<p>x</p>"}'},
                    {"title": "missing id"},
                ],
            },
        )

    client = FunnelApiClient(
        base_url="http://funnels.test",
        page_catalog_url="http://pages.test",
        transport=httpx.MockTransport(handler),
    )

    pages = asyncio.run(client.list_pages(3))

    assert [page.id for page in pages] == [42]
    assert pages[0].html_preview == "<p>x</p>"


def test_http_error_status_is_preserved():
    client = FunnelApiClient(
        base_url="http://funnels.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"detail": "Funnel 5 not found"})),
    )

    with pytest.raises(FunnelApiError) as exc_info:
        asyncio.run(client.delete_funnel(5))

    assert exc_info.value.status_code == 404
    assert "Funnel 5 not found" in str(exc_info.value)


def test_network_and_shape_errors_raise_funnel_api_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    offline = FunnelApiClient(base_url="http://funnels.test", transport=httpx.MockTransport(refuse))
    with pytest.raises(FunnelApiError, match="Network error"):
        asyncio.run(offline.list_all_funnels())

    bad_json = FunnelApiClient(
        base_url="http://funnels.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>")),
    )
    with pytest.raises(FunnelApiError, match="invalid JSON"):
        asyncio.run(bad_json.list_all_funnels())

    wrong_shape = FunnelApiClient(
        base_url="http://funnels.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"id": 1})),
    )
    with pytest.raises(FunnelApiError, match="JSON array"):
        asyncio.run(wrong_shape.list_all_funnels())

    invalid_funnel = FunnelApiClient(
        base_url="http://funnels.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"name": "no id"})),
    )
    with pytest.raises(FunnelApiError, match="invalid"):
        asyncio.run(invalid_funnel.create_funnel(1, "x"))
