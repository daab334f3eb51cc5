"""Trace context management for following one refresh pass or request through the system."""

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

# Context variable for storing the current trace ID
_trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)


def create_trace() -> str:
    """
    Generate a new unique trace ID and set it in the current context.

    Returns:
        A unique trace ID string (UUID4 format)
    """
    trace_id = str(uuid.uuid4())
    set_trace(trace_id)
    return trace_id


def get_current_trace() -> Optional[str]:
    """Return the current trace ID, or None when no trace is active."""
    return _trace_id_context.get()


def set_trace(trace_id: str) -> None:
    """Set the trace ID in the current context."""
    _trace_id_context.set(trace_id)


def clear_trace() -> None:
    """Clear the trace ID from the current context."""
    _trace_id_context.set(None)


@contextmanager
def traced() -> Iterator[str]:
    """
    Run a block under a fresh trace ID, restoring the previous one afterwards.

    Nested use keeps the outer trace intact once the inner block exits.
    """
    token = _trace_id_context.set(str(uuid.uuid4()))
    try:
        yield _trace_id_context.get()
    finally:
        _trace_id_context.reset(token)
