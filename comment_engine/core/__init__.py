# Core infrastructure
from comment_engine.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_target,
    set_user_id,
)
from comment_engine.core.logging import configure_structlog, get_logger
from comment_engine.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_target",
    "set_user_id",
]
