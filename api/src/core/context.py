"""Request and playback-session context using contextvars.

Every HTTP request and every playback WebSocket gets an ID, plus optional
user/lesson/trace information that log processors pick up anywhere in the
call stack. Timer callbacks scheduled with ``loop.call_later`` run in a copy
of the context that scheduled them, so deferred progress writes log with the
session that owns them.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
lesson_id_var: ContextVar[str | None] = ContextVar("lesson_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


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


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_lesson_id() -> str | None:
    """Get the lesson ID of the current playback session."""
    return lesson_id_var.get()


def set_lesson_id(lesson_id: str | UUID | None) -> None:
    """Set the lesson ID for the current context."""
    lesson_id_var.set(str(lesson_id) if lesson_id is not None else None)


def get_trace_id() -> str | None:
    """Get the current trace ID."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the trace ID from distributed tracing headers."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    lesson_id = get_lesson_id()
    if lesson_id:
        context["lesson_id"] = lesson_id

    trace_id = get_trace_id()
    if trace_id:
        context["trace_id"] = trace_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request and playback session to prevent
    context leakage.
    """
    request_id_var.set("")
    user_id_var.set(None)
    lesson_id_var.set(None)
    trace_id_var.set(None)


class SessionContext:
    """Context manager binding a playback session's identifiers.

    Usage:
        with SessionContext(user_id=user_id, lesson_id=lesson_id):
            logger.info("tick")  # includes request_id, user_id, lesson_id
    """

    def __init__(
        self,
        user_id: str | UUID | None = None,
        lesson_id: str | UUID | None = None,
        request_id: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.lesson_id = lesson_id
        self.request_id = request_id
        self._tokens: list[tuple[ContextVar[Any], Any]] = []

    def __enter__(self) -> "SessionContext":
        request_id = self.request_id or generate_request_id()
        self._tokens.append((request_id_var, request_id_var.set(request_id)))
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.lesson_id is not None:
            self._tokens.append((lesson_id_var, lesson_id_var.set(str(self.lesson_id))))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
