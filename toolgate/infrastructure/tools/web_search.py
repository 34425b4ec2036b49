"""
Web search tool.

Supports DuckDuckGo (instant answer API, no key) and Google Custom Search,
Bing and Brave (API keys from settings).
"""

import logging
import re
from typing import Any, Literal

import httpx
from pydantic import BaseModel

from toolgate.configuration.config import Settings
from toolgate.domain.exceptions import ValidationError
from toolgate.domain.tool import ToolDescriptor

logger = logging.getLogger(__name__)

SearchEngine = Literal["duckduckgo", "google", "bing", "brave"]

SEARCH_ENGINES: tuple[str, ...] = ("duckduckgo", "google", "bing", "brave")
MAX_RESULTS = 10

_TAG_RE = re.compile(r"<[^>]*>")


class SearchResult(BaseModel):
    """A single web search result."""

    title: str
    url: str
    snippet: str
    source: str


class WebSearchResponse(BaseModel):
    """Response from the web search tool."""

    query: str
    engine: str
    results: list[SearchResult]
    count: int


class WebSearchTool:
    """Search the web through one of several engines."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http_client = http_client

    async def execute(self, params: dict[str, Any]) -> str:
        query = params["query"]
        engine = params.get("engine") or "duckduckgo"
        if engine not in SEARCH_ENGINES:
            raise ValidationError(f"Unsupported search engine: {engine}", field="engine")

        if engine == "duckduckgo":
            results = await self._search_duckduckgo(query)
        elif engine == "google":
            results = await self._search_google(query)
        elif engine == "bing":
            results = await self._search_bing(query)
        else:
            results = await self._search_brave(query)

        results = results[:MAX_RESULTS]
        logger.info(f"Web search '{query}' via {engine} returned {len(results)} results")
        response = WebSearchResponse(query=query, engine=engine, results=results, count=len(results))
        return response.model_dump_json(indent=2)

    async def _get_json(
        self,
        url: str,
        params: dict[str, str],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        response = await self._http_client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def _search_duckduckgo(self, query: str) -> list[SearchResult]:
        data = await self._get_json(
            "https://api.duckduckgo.com/",
            {"q": query, "format": "json", "no_html": "1"},
        )
        results = []

        if data.get("AbstractText"):
            results.append(
                SearchResult(
                    title=data.get("Heading") or "Instant Answer",
                    url=data.get("AbstractURL") or "",
                    snippet=data["AbstractText"],
                    source="DuckDuckGo",
                )
            )

        for topic in data.get("RelatedTopics") or []:
            text = topic.get("Text")
            url = topic.get("FirstURL")
            if text and url:
                clean = _TAG_RE.sub("", text)
                results.append(
                    SearchResult(
                        title=" ".join(clean.split(" ")[:10]),
                        url=url,
                        snippet=clean,
                        source="DuckDuckGo",
                    )
                )

        for item in data.get("Results") or []:
            results.append(
                SearchResult(
                    title=item.get("Text") or "No title",
                    url=item.get("FirstURL") or item.get("URL") or "",
                    snippet=item.get("Text") or "",
                    source="DuckDuckGo",
                )
            )

        return results

    async def _search_google(self, query: str) -> list[SearchResult]:
        if not self._settings.google_api_key or not self._settings.google_cx:
            raise ValueError("Google Search requires GOOGLE_API_KEY and GOOGLE_CX")

        data = await self._get_json(
            "https://www.googleapis.com/customsearch/v1",
            {"key": self._settings.google_api_key, "cx": self._settings.google_cx, "q": query},
        )
        return [
            SearchResult(
                title=item.get("title") or "No title",
                url=item.get("link") or "",
                snippet=item.get("snippet") or "",
                source="Google",
            )
            for item in data.get("items") or []
        ]

    async def _search_bing(self, query: str) -> list[SearchResult]:
        if not self._settings.bing_api_key:
            raise ValueError("Bing Search requires BING_API_KEY")

        data = await self._get_json(
            "https://api.bing.microsoft.com/v7.0/search",
            {"q": query},
            headers={"Ocp-Apim-Subscription-Key": self._settings.bing_api_key},
        )
        return [
            SearchResult(
                title=item.get("name") or "No title",
                url=item.get("url") or "",
                snippet=item.get("snippet") or "",
                source="Bing",
            )
            for item in (data.get("webPages") or {}).get("value") or []
        ]

    async def _search_brave(self, query: str) -> list[SearchResult]:
        if not self._settings.brave_api_key:
            raise ValueError("Brave Search requires BRAVE_API_KEY")

        data = await self._get_json(
            "https://api.search.brave.com/res/v1/web/search",
            {"q": query},
            headers={"X-Subscription-Token": self._settings.brave_api_key},
        )
        return [
            SearchResult(
                title=item.get("title") or "No title",
                url=item.get("url") or "",
                snippet=item.get("description") or "",
                source="Brave",
            )
            for item in (data.get("web") or {}).get("results") or []
        ]

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name="search",
            description="Search the web using configurable search engines",
            parameter_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query"},
                    "engine": {
                        "type": "string",
                        "enum": list(SEARCH_ENGINES),
                        "default": "duckduckgo",
                    },
                },
                "required": ["query"],
            },
            executor=self.execute,
        )
