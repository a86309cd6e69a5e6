"""Observability infrastructure for logging and tracing.

setup_logging:
    Console + rotating file logging with session context.

setup_tracing:
    Initialize Logfire with PydanticAI instrumentation.

trace_operation:
    Context manager for custom span creation.

SessionTracer:
    Turn and persistence statistics for a story session.

Requirements (tracing only):
    pip install logfire

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="fable")
    >>> with trace_operation("opening_scene"):
    ...     ...
"""

from observability.logging import setup_logging, set_session_context, set_turn_context, clear_context
from observability.tracing import setup_tracing, trace_operation, TracingContext, SessionTracer

__all__ = [
    "setup_logging",
    "set_session_context",
    "set_turn_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
    "SessionTracer",
]
