"""Web tools backed by a ``WebProvider`` collaborator."""

from __future__ import annotations

from urllib.parse import urlparse

from termchat.backends.base import WebProvider
from termchat.tools.base import Tool, ToolContext, ToolName
from termchat.types import ErrorCode, ToolResult

TRUNCATION_MARKER = "\n\n... [Content truncated. Use max_content_length parameter for longer content]"


def normalize_url(url: str) -> str:
    url = url.strip()
    return url if url.startswith("http") else f"https://{url}"


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    host = parsed.hostname or ""
    return parsed.scheme in ("http", "https") and len(host) > 2 and "." in host


def _from_provider(payload: dict) -> ToolResult:
    data = dict(payload)
    success = bool(data.pop("success", False))
    if success:
        return ToolResult(success=True, data=data)
    error = str(data.pop("error", "Web request failed"))
    return ToolResult.fail(error, ErrorCode.COLLABORATOR_ERROR, **data)


class BrowseWebTool(Tool):
    def __init__(self, web: WebProvider) -> None:
        self._web = web

    @property
    def name(self) -> str:
        return ToolName.BROWSE_WEB.value

    @property
    def description(self) -> str:
        return (
            "Fetch a web page and return its readable text. Use search_web first "
            "when you do not know the exact URL."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "URL to browse (with or without http/https prefix)",
                },
                "max_content_length": {
                    "type": "integer",
                    "description": "Maximum length of content to return (default: 8000, max: 20000)",
                },
            },
            "required": ["url"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        max_length = max(1, min(int(kwargs.get("max_content_length", 8000)), 20000))
        url = normalize_url(kwargs["url"])
        if not is_valid_url(url):
            return ToolResult.fail(
                "Invalid URL format. Consider using search_web first to find the correct URL.",
                ErrorCode.VALIDATION_ERROR,
                suggestion="Try using search_web tool instead to find the website you're looking for.",
            )

        payload = await self._web.fetch(url, max_length)
        if not payload.get("success"):
            result = _from_provider(payload)
            result.data.setdefault(
                "suggestion", "Consider using search_web first to find valid URLs."
            )
            return result

        content = str(payload.get("content") or "")
        truncated = bool(payload.get("truncated")) or len(content) > max_length
        if truncated:
            content = content[:max_length] + TRUNCATION_MARKER
        result = ToolResult.ok(
            url=payload.get("url", url),
            content=content,
            content_length=len(content),
            truncated=truncated,
        )
        if payload.get("title"):
            result.data["title"] = payload["title"]
        return result


class SearchWebTool(Tool):
    def __init__(self, web: WebProvider) -> None:
        self._web = web

    @property
    def name(self) -> str:
        return ToolName.SEARCH_WEB.value

    @property
    def description(self) -> str:
        return "Search the web and return ranked results with titles, links and snippets."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query (e.g., 'how to install Node.js on Ubuntu')",
                },
                "max_results": {
                    "type": "integer",
                    "description": "Maximum number of results to return (default: 5, max: 10)",
                },
            },
            "required": ["query"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        query = kwargs["query"].strip()
        if not query:
            return ToolResult.fail("Search query must not be empty", ErrorCode.VALIDATION_ERROR)
        max_results = max(1, min(int(kwargs.get("max_results", 5)), 10))
        return _from_provider(await self._web.search(query, max_results))
