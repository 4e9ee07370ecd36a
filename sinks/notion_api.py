"""Thin Notion REST client built on requests."""

from typing import Any, Dict, List, Optional

import requests

from .base import SinkError


NOTION_VERSION = "2022-06-28"
NOTION_API_URL = "https://api.notion.com/v1"

# (connect, read) timeouts in seconds
REQUEST_TIMEOUT = (10, 60)

# Notion accepts at most this many children per create/append request
MAX_BLOCKS_PER_REQUEST = 100


class NotionAPI:
    """The handful of Notion endpoints the sinks need."""

    def __init__(self, token: str, session: Optional[requests.Session] = None,
                 base_url: str = NOTION_API_URL) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Notion-Version": NOTION_VERSION,
        })

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            res = self.session.request(method, url, json=payload, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise SinkError(f"Notion request {method} {path} failed: {e}")

        if res.status_code == 401:
            raise SinkError("Notion returned 401 (Unauthorized): NOTION_API_KEY is invalid or revoked",
                            status_code=401)
        if res.status_code == 404 and path.startswith("/databases/"):
            raise SinkError(
                "Notion returned 404 for the database: the id is wrong or the "
                "integration has not been added to it (database → Connections)",
                status_code=404,
            )
        if res.status_code >= 400:
            try:
                detail = res.json().get("message", res.text)
            except ValueError:
                detail = res.text
            raise SinkError(f"Notion {method} {path} failed ({res.status_code}): {detail}",
                            status_code=res.status_code)

        return res.json() if res.content else {}

    # =========================================================================
    # Databases
    # =========================================================================

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/databases/{database_id}")

    def query_database(self, database_id: str,
                       query_filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return every page matching ``query_filter`` (follows pagination)."""
        pages: List[Dict[str, Any]] = []
        cursor = None

        while True:
            payload: Dict[str, Any] = {"page_size": 100}
            if query_filter:
                payload["filter"] = query_filter
            if cursor:
                payload["start_cursor"] = cursor

            data = self._request("POST", f"/databases/{database_id}/query", payload)
            pages.extend(data.get("results", []))

            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

        return pages

    # =========================================================================
    # Pages and blocks
    # =========================================================================

    def create_page(self, database_id: str, properties: Dict[str, Any],
                    children: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create a page; children beyond the first batch are appended afterwards."""
        initial = children[:MAX_BLOCKS_PER_REQUEST]
        remaining = children[MAX_BLOCKS_PER_REQUEST:]

        page = self._request("POST", "/pages", {
            "parent": {"database_id": database_id},
            "properties": properties,
            "children": initial,
        })
        if remaining:
            self.append_children(page["id"], remaining)
        return page

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", {"properties": properties})

    def list_children(self, block_id: str) -> List[Dict[str, Any]]:
        children: List[Dict[str, Any]] = []
        cursor = None

        while True:
            path = f"/blocks/{block_id}/children?page_size=100"
            if cursor:
                path += f"&start_cursor={cursor}"
            data = self._request("GET", path)
            children.extend(data.get("results", []))

            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

        return children

    def delete_block(self, block_id: str) -> None:
        self._request("DELETE", f"/blocks/{block_id}")

    def delete_blocks(self, page_id: str) -> int:
        """Delete every top-level block of a page. Returns the number deleted."""
        children = self.list_children(page_id)
        for child in children:
            self.delete_block(child["id"])
        return len(children)

    def append_children(self, block_id: str, children: List[Dict[str, Any]]) -> None:
        """Append blocks in batches of 100."""
        for i in range(0, len(children), MAX_BLOCKS_PER_REQUEST):
            batch = children[i:i + MAX_BLOCKS_PER_REQUEST]
            self._request("PATCH", f"/blocks/{block_id}/children", {"children": batch})
