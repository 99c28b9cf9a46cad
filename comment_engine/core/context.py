"""Request context management using contextvars.

Each request gets a unique ID plus the acting user and, once known, the
comment target it operates on. Every log line emitted while handling the
request carries these values without passing them around explicitly.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
target_var: ContextVar[str | None] = ContextVar("target", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | int | None) -> None:
    """Set the acting user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_target() -> str | None:
    """Get the comment target key (``"<type>:<id>"``) for the current context."""
    return target_var.get()


def set_target(target_type: int | None, target_id: int | None = None) -> None:
    """Set the comment target for the current context."""
    if target_type is None:
        target_var.set(None)
        return
    target_var.set(f"{int(target_type)}:{target_id}")


def get_context() -> dict[str, Any]:
    """Get all context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    target = get_target()
    if target:
        context["target"] = target

    return context


def clear_context() -> None:
    """Clear all context variables.

    This should be called at the end of each request to prevent
    context leakage between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    target_var.set(None)


class RequestContext:
    """Context manager for request scope.

    Usage:
        with RequestContext(user_id=7):
            log.info("comment_created")  # includes request_id and user_id
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | int | None = None,
    ) -> None:
        self.request_id = request_id
        self.user_id = user_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "RequestContext":
        request_id = self.request_id or generate_request_id()
        self._tokens.append((request_id_var, request_id_var.set(request_id)))
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
