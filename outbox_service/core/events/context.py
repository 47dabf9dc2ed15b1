"""Trace context handed to the event factory.

The factory never reads ambient state itself; callers capture it (usually
with ``current_trace_context()`` at the edge of a request) and pass it in.
"""

from __future__ import annotations

from dataclasses import dataclass

from opentelemetry import trace

from outbox_service.infra.logging.context import get_log_context


@dataclass(slots=True, frozen=True)
class TraceContext:
    """Trace id and acting user for the current unit of work.

    Attributes:
        trace_id: 32-char hex trace id, used as the fallback correlation id
        user_id: Acting user, copied to metadata.userId
    """

    trace_id: str | None = None
    user_id: str | None = None


def current_trace_context() -> TraceContext:
    """Capture the active OpenTelemetry span's trace id and the logged user id.

    Returns an empty TraceContext when no span is recording and no user is
    bound to the log context.
    """
    trace_id = None
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        trace_id = format(span_context.trace_id, "032x")

    user_id = get_log_context().get("user_id")
    return TraceContext(
        trace_id=trace_id,
        user_id=str(user_id) if user_id is not None else None,
    )


__all__ = ["TraceContext", "current_trace_context"]
