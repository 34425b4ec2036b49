"""HTTP fetch tool."""

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from toolgate.domain.exceptions import ValidationError
from toolgate.domain.tool import ToolDescriptor

logger = logging.getLogger(__name__)


class FetchTool:
    """Fetch raw text from an http(s) URL, truncated to ``max_bytes``."""

    def __init__(self, http_client: httpx.AsyncClient, max_bytes: int = 1024 * 1024) -> None:
        self._http_client = http_client
        self._max_bytes = max_bytes

    async def execute(self, params: dict[str, Any]) -> str:
        url = params["url"]
        if urlparse(url).scheme not in ("http", "https"):
            raise ValidationError("Only http and https URLs can be fetched", field="url")

        body = bytearray()
        truncated = False
        async with self._http_client.stream("GET", url, follow_redirects=True) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > self._max_bytes:
                    truncated = True
                    break
            encoding = response.encoding or "utf-8"

        text = bytes(body[: self._max_bytes]).decode(encoding, errors="replace")
        if truncated:
            logger.info(f"Fetched {url}: truncated at {self._max_bytes} bytes")
            text += f"\n\n[truncated at {self._max_bytes} bytes]"
        return text

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name="fetch",
            description="Fetch raw content from a given URL",
            parameter_schema={
                "type": "object",
                "properties": {"url": {"type": "string", "description": "http(s) URL"}},
                "required": ["url"],
            },
            executor=self.execute,
        )
