"""Notion REST API v1 page store.

Endpoints used:
    POST  /v1/databases/{database_id}/query — filtered, cursor-paginated query
    POST  /v1/pages                         — create a page in a database
    PATCH /v1/pages/{page_id}               — update page properties
"""

from __future__ import annotations

import logging

import httpx

from src.lifelog.base import PageStore, QueryPage
from src.lifelog.clients import send

logger = logging.getLogger("lifelog.clients.notion")

_NOTION_API_BASE = "https://api.notion.com/v1"
_DEFAULT_VERSION = "2022-06-28"
_PAGE_SIZE = 100


class NotionPageStore(PageStore):
    """Notion databases as the destination page store."""

    def __init__(
        self,
        token: str,
        notion_version: str = _DEFAULT_VERSION,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = _NOTION_API_BASE,
    ) -> None:
        """Initialize the client.

        Args:
            token:          Integration token.
            notion_version: Value for the ``Notion-Version`` header.
            http_client:    Optional pre-configured httpx client (for testing).
            base_url:       API root.
        """
        self._token = token
        self._version = notion_version
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": self._version,
            "Content-Type": "application/json",
        }

    async def query(
        self, database_id: str, filter: dict | None = None, start_cursor: str | None = None
    ) -> QueryPage:
        body: dict = {"page_size": _PAGE_SIZE}
        if filter:
            body["filter"] = filter
        if start_cursor:
            body["start_cursor"] = start_cursor

        response = await send(
            self._http_client, "POST", f"{self._base_url}/databases/{database_id}/query",
            service="notion", headers=self._headers(), json=body,
        )
        data = response.json()
        return QueryPage(
            results=data.get("results", []),
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor"),
        )

    async def create(self, database_id: str, properties: dict) -> dict:
        response = await send(
            self._http_client, "POST", f"{self._base_url}/pages",
            service="notion", headers=self._headers(),
            json={"parent": {"database_id": database_id}, "properties": properties},
        )
        page = response.json()
        logger.debug("Created page %s in %s", page.get("id"), database_id)
        return page

    async def update(self, page_id: str, properties: dict) -> dict:
        response = await send(
            self._http_client, "PATCH", f"{self._base_url}/pages/{page_id}",
            service="notion", headers=self._headers(), json={"properties": properties},
        )
        return response.json()
