"""Composition root.

Builds every long-lived component once per process and hands out the
shared instances: one HTTP client, one circuit breaker per upstream, one
tool registry, one MCP server and one chat connection manager.
"""

import logging
import time

import httpx

from toolgate.configuration.config import Settings
from toolgate.infrastructure.adapters.primary.web.websocket import ConnectionManager
from toolgate.infrastructure.agent import ToolOrchestrator
from toolgate.infrastructure.llm import LLMStreamClient
from toolgate.infrastructure.mcp import MCPServer
from toolgate.infrastructure.resilience import CircuitBreaker, CircuitBreakerConfig, RetryOptions
from toolgate.infrastructure.sandbox import SandboxPathResolver
from toolgate.infrastructure.tools import ToolRegistry, build_default_tools

logger = logging.getLogger(__name__)


class Container:
    """Holds the shared components of one running gateway."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self.started_at = time.monotonic()
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()

        self.resolver = SandboxPathResolver(settings.sandbox_dir)
        self.circuit_breaker = CircuitBreaker(
            "llm",
            CircuitBreakerConfig(
                failure_threshold=settings.circuit_failure_threshold,
                recovery_timeout=settings.circuit_recovery_timeout,
            ),
        )
        self.upstream_retry_options = RetryOptions(
            max_retries=settings.llm_max_retries,
            base_delay=settings.llm_retry_base_delay,
            max_delay=settings.llm_retry_max_delay,
            backoff_multiplier=settings.llm_retry_backoff_multiplier,
        )
        self.tool_retry_options = RetryOptions(
            max_retries=settings.tool_max_retries,
            base_delay=settings.tool_retry_base_delay,
            max_delay=settings.tool_retry_max_delay,
            backoff_multiplier=settings.tool_retry_backoff_multiplier,
        )

        self.llm_client = LLMStreamClient(
            self.http_client,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            circuit_breaker=self.circuit_breaker,
            retry_options=self.upstream_retry_options,
            timeout=settings.llm_request_timeout,
            health_timeout=settings.llm_health_timeout,
            production=settings.is_production,
        )
        self.registry = ToolRegistry()
        self.orchestrator = ToolOrchestrator(
            self.llm_client,
            self.registry,
            tool_retry_options=self.tool_retry_options,
            max_iterations=settings.max_tool_iterations,
            production=settings.is_production,
        )
        self.mcp_server = MCPServer(
            self.registry, self.resolver, production=settings.is_production
        )
        self.connection_manager = ConnectionManager()

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    def register_tools(self) -> None:
        self.registry.register(build_default_tools(self.resolver, self.settings, self.http_client))

    async def startup(self) -> None:
        """Prepare the sandbox, load tools and check the upstream model."""
        self.resolver.ensure_root()
        logger.info(f"Sandbox directory: {self.resolver.root}")

        self.register_tools()
        await self.mcp_server.refresh_resources()

        if self.settings.llm_validate_model_on_startup:
            await self.llm_client.validate_model()

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()
        logger.info("Container shut down")
