"""
HTTP web backend.

Search goes to a JSON search API (Brave Search by default).  Page fetching
returns the response text passed through an ``extract`` callable; turning
HTML into readable text is left to whoever supplies that callable.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

import httpx

from termchat.backends.base import WebProvider

logger = logging.getLogger(__name__)

# (body, url) -> (text, title or None)
Extractor = Callable[[str, str], tuple[str, str | None]]

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)


def passthrough_extract(body: str, url: str) -> tuple[str, str | None]:
    return body, None


def _clean_text(value: str, max_chars: int = 500) -> str:
    text = re.sub(r"<[^>]+>", "", value or "")
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_chars:
        text = text[: max_chars - 3].rstrip() + "..."
    return text


class HttpWebProvider(WebProvider):
    def __init__(
        self,
        search_url: str = "https://api.search.brave.com/res/v1/web/search",
        api_key: str = "",
        timeout: float = 15.0,
        user_agent: str = "termchat/0.1",
        extract: Extractor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._search_url = search_url
        self._api_key = api_key
        self._timeout = timeout
        self._user_agent = user_agent
        self._extract = extract or passthrough_extract
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"User-Agent": self._user_agent},
        )

    async def search(self, query: str, max_results: int = 5) -> dict[str, Any]:
        if not self._api_key:
            return {
                "success": False,
                "error": "Web search is not configured (missing search API key).",
            }

        params = {"q": query, "count": max_results}
        headers = {"Accept": "application/json", "X-Subscription-Token": self._api_key}
        try:
            async with self._client() as client:
                response = await client.get(self._search_url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Web search failed for %r: %s", query, exc)
            return {
                "success": False,
                "error": f"Network error: {exc}. Check internet connection.",
            }

        if response.status_code != 200:
            return {
                "success": False,
                "error": f"Search failed with HTTP {response.status_code}. Try again later.",
            }

        try:
            payload = response.json()
        except ValueError:
            return {"success": False, "error": "Search returned an unreadable response."}

        web_block = payload.get("web", {}) if isinstance(payload, dict) else {}
        raw_results = web_block.get("results", []) if isinstance(web_block, dict) else []
        if not isinstance(raw_results, list):
            raw_results = []

        results = []
        for item in raw_results:
            if not isinstance(item, dict):
                continue
            results.append(
                {
                    "rank": len(results) + 1,
                    "title": _clean_text(str(item.get("title") or "Untitled"), max_chars=180),
                    "url": str(item.get("url") or "").strip(),
                    "snippet": _clean_text(str(item.get("description") or "")),
                }
            )
            if len(results) >= max_results:
                break

        if not results:
            return {
                "success": False,
                "error": f"No search results found for '{query}'. Try different keywords.",
            }
        return {
            "success": True,
            "query": query,
            "results_count": len(results),
            "results": results,
        }

    async def fetch(self, url: str, max_length: int | None = None) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.ConnectError as exc:
            message = str(exc).lower()
            if any(marker in message for marker in _DNS_FAILURE_MARKERS):
                return {
                    "success": False,
                    "error": "Domain not found. The website does not exist.",
                }
            return {"success": False, "error": f"Network error: {exc}"}
        except httpx.HTTPError as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            return {"success": False, "error": f"Network error: {exc}"}

        if response.status_code == 404:
            return {"success": False, "error": "Page not found (404). The URL may not exist."}
        if response.status_code != 200:
            return {
                "success": False,
                "error": f"HTTP {response.status_code}: Failed to fetch page",
            }

        content, title = self._extract(response.text, str(response.url))
        result: dict[str, Any] = {"success": True, "url": str(response.url), "content": content}
        if max_length is not None and len(content) > max_length:
            result["content"] = content[:max_length]
            result["truncated"] = True
        if title and title.strip():
            result["title"] = title.strip()
        return result
