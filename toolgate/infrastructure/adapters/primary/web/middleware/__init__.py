from toolgate.infrastructure.adapters.primary.web.middleware.exception_handlers import (
    configure_exception_handlers,
)
from toolgate.infrastructure.adapters.primary.web.middleware.rate_limit import create_limiter
from toolgate.infrastructure.adapters.primary.web.middleware.request_logging import (
    request_logging_middleware,
)

__all__ = ["configure_exception_handlers", "create_limiter", "request_logging_middleware"]
