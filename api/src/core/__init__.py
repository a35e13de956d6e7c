# Core infrastructure
from src.core.context import (
    SessionContext,
    clear_context,
    get_context,
    get_lesson_id,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_lesson_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from src.core.logging import configure_structlog, get_logger


__all__ = [
    "SessionContext",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_lesson_id",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "set_lesson_id",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
]
