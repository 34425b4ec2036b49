import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from toolgate import __version__
from toolgate.configuration.config import Settings, get_settings
from toolgate.configuration.container import Container
from toolgate.configuration.logging import configure_logging
from toolgate.infrastructure.adapters.primary.web.middleware import (
    configure_exception_handlers,
    create_limiter,
    request_logging_middleware,
)
from toolgate.infrastructure.adapters.primary.web.routers import chat, health, mcp, websocket

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    container: Container = app.state.container
    configure_logging(container.settings)
    logger.info(f"Starting Toolgate {__version__} ({container.settings.environment})...")

    await container.startup()
    logger.info(
        f"Toolgate ready: {len(container.registry)} tools, "
        f"upstream {container.llm_client.base_url} ({container.llm_client.model})"
    )

    yield

    # Shutdown
    logger.info("Shutting down...")
    await container.shutdown()


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    settings = settings or (container.settings if container else get_settings())
    container = container or Container(settings)

    app = FastAPI(
        title="Toolgate API",
        description="""
## Toolgate API

Gateway between chat clients and an OpenAI-compatible language model that
lets the model call local tools.

### Streaming

`/chat` streams Server-Sent Events, one JSON object per event:
`chunk`, `action`, `error`, then a final `done`. `/ws` carries the same
events over a WebSocket.

### MCP

`/mcp` speaks JSON-RPC 2.0 (MCP protocol version 2024-11-05) over HTTP,
`/mcp/ws` over a WebSocket.
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure rate limiting
    app.state.limiter = create_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.middleware("http")(request_logging_middleware)
    configure_exception_handlers(app)

    # Register Routers
    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(mcp.router)
    app.include_router(websocket.router)

    return app
