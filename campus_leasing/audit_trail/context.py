"""Trace id propagated from the triggering request into audit entries and logs."""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

current_trace_id: ContextVar[Optional[str]] = ContextVar(
    "current_trace_id", default=None
)


def new_trace_id() -> str:
    return str(uuid.uuid4())


def get_trace_id() -> Optional[str]:
    """Return the trace id of the current request, if one is set."""
    return current_trace_id.get()


def set_trace_id(trace_id: Optional[str]) -> None:
    current_trace_id.set(trace_id)


def log_extra() -> dict:
    """``extra`` mapping for log calls made on behalf of a request."""
    return {"trace_id": get_trace_id() or "-"}


class TraceIdFilter(logging.Filter):
    """Give every record a ``trace_id`` attribute so formatters can use it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = get_trace_id() or "-"
        return True


@contextmanager
def trace_context(trace_id: Optional[str] = None) -> Iterator[str]:
    """
    Run a block under a trace id, restoring the previous one afterwards.

    Args:
        trace_id: Trace id to use; a new one is generated when omitted

    Yields:
        The active trace id
    """
    value = trace_id or new_trace_id()
    token = current_trace_id.set(value)
    try:
        yield value
    finally:
        current_trace_id.reset(token)
