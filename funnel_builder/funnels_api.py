from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from funnel_builder.config import settings
from funnel_builder.funnel_model import Funnel, Tier, tiers_payload
from funnel_builder.schemas import Page

logger = logging.getLogger(__name__)


class FunnelApiError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class FunnelApiClient:
    """Async client for the funnel service and the read-only page catalog."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        page_catalog_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.funnel_api_base_url).rstrip("/")
        self._page_catalog_url = (page_catalog_url or settings.page_catalog_base_url).rstrip("/")
        self._timeout = settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    async def list_funnels(self, project_id: int) -> list[Funnel]:
        body = await self._request_json("GET", f"{self._base_url}/api/funnels", params={"projectId": project_id})
        return self._parse_funnels(body)

    async def list_all_funnels(self) -> list[Funnel]:
        body = await self._request_json("GET", f"{self._base_url}/api/funnels/all")
        return self._parse_funnels(body)

    async def create_funnel(self, project_id: int, name: str, description: Optional[str] = None) -> Funnel:
        payload: dict[str, Any] = {"projectId": project_id, "name": name}
        if description is not None:
            payload["description"] = description
        body = await self._request_json("POST", f"{self._base_url}/api/funnels", payload=payload)
        return self._parse_funnel(body)

    async def update_funnel(
        self,
        funnel_id: int,
        *,
        name: str,
        description: Optional[str],
        tiers: Iterable[Tier],
    ) -> Funnel:
        payload = {"name": name, "description": description, "tiers": tiers_payload(tiers)}
        body = await self._request_json("PUT", f"{self._base_url}/api/funnels/{funnel_id}", payload=payload)
        return self._parse_funnel(body)

    async def delete_funnel(self, funnel_id: int) -> None:
        await self._request_json("DELETE", f"{self._base_url}/api/funnels/{funnel_id}")

    async def clone_funnel(self, source_funnel_id: int, target_project_id: int, name: Optional[str] = None) -> Funnel:
        payload: dict[str, Any] = {"targetProjectId": target_project_id}
        if name:
            payload["name"] = name
        body = await self._request_json(
            "POST", f"{self._base_url}/api/funnels/{source_funnel_id}/clone", payload=payload
        )
        return self._parse_funnel(body)

    async def list_pages(self, project_id: int) -> list[Page]:
        body = await self._request_json("GET", f"{self._page_catalog_url}/api/pages", params={"app_id": project_id})
        rows = body.get("data") if isinstance(body, dict) else body
        if not isinstance(rows, list):
            raise FunnelApiError(message="Page catalog response must be a list of pages")
        pages: list[Page] = []
        for row in rows:
            try:
                pages.append(Page.model_validate(row))
            except ValidationError as exc:
                logger.warning("funnels_api.invalid_page_skipped", extra={"error": str(exc)})
        return pages

    @staticmethod
    def _unwrap(body: Any) -> Any:
        # The page service wraps payloads as {"success": ..., "data": ...}; the funnel service does not.
        if isinstance(body, dict) and "data" in body and "success" in body:
            return body["data"]
        return body

    def _parse_funnel(self, body: Any) -> Funnel:
        data = self._unwrap(body)
        if not isinstance(data, dict):
            raise FunnelApiError(message="Funnel response must be a JSON object")
        try:
            return Funnel.model_validate(data)
        except ValidationError as exc:
            raise FunnelApiError(message=f"Funnel response is invalid: {exc}") from exc

    def _parse_funnels(self, body: Any) -> list[Funnel]:
        data = self._unwrap(body)
        if not isinstance(data, list):
            raise FunnelApiError(message="Funnel list response must be a JSON array")
        return [self._parse_funnel(item) for item in data]

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=payload)
        except httpx.RequestError as exc:
            raise FunnelApiError(message=f"Network error while calling {url}: {exc}") from exc

        if response.status_code >= 400:
            raise FunnelApiError(
                message=f"Funnel API call failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise FunnelApiError(message="Funnel API returned invalid JSON") from exc
