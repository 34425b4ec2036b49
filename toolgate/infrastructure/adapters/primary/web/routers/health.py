"""Health, status and catalog endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from toolgate import __version__
from toolgate.configuration.container import Container
from toolgate.domain.exceptions import UpstreamConnectionError, format_user_error
from toolgate.infrastructure.adapters.primary.web.dependencies import get_container

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check(container: Container = Depends(get_container)) -> dict[str, Any]:
    """Upstream reachability, tool catalog and breaker state."""
    try:
        await container.llm_client.list_models()
        upstream_ok = True
    except UpstreamConnectionError as e:
        logger.warning(f"Upstream health check failed: {e}")
        upstream_ok = False

    tools_ok = len(container.registry) > 0
    return {
        "status": "healthy" if upstream_ok and tools_ok else "unhealthy",
        "version": __version__,
        "timestamp": _timestamp(),
        "checks": {
            "upstream": upstream_ok,
            "tools": tools_ok,
            "circuitBreaker": container.circuit_breaker.get_state(),
        },
    }


@router.get("/status")
async def status(container: Container = Depends(get_container)) -> dict[str, Any]:
    return {
        "circuitBreaker": container.circuit_breaker.get_state(),
        "timestamp": _timestamp(),
        "uptime": container.uptime,
    }


@router.get("/test-upstream")
async def test_upstream(container: Container = Depends(get_container)):
    client = container.llm_client
    try:
        models = await client.list_models()
    except UpstreamConnectionError as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "disconnected",
                "upstreamUrl": client.base_url,
                "error": format_user_error(e, container.settings.is_production),
                "timestamp": _timestamp(),
            },
        )

    return {
        "status": "connected",
        "upstreamUrl": client.base_url,
        "modelsCount": len(models),
        "timestamp": _timestamp(),
    }


@router.get("/tools")
async def list_tools(container: Container = Depends(get_container)) -> list[dict[str, Any]]:
    return [tool.to_dict() for tool in container.registry.get_all_tools()]
