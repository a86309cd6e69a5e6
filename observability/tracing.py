"""Optional Logfire tracing for story sessions.

When enabled, PydanticAI agent calls (narrator, summaries, extraction
fallback) are instrumented automatically, and every story turn runs inside
a `story_turn` span. When disabled or when logfire is not installed, spans
are no-ops and only the per-session statistics are kept.

Requirements:
    pip install logfire

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional for cloud dashboard

Usage:
    >>> from observability.tracing import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="fable")
    >>> with trace_operation("build_session", {"backend": "sqlite"}) as attrs:
    ...     attrs["templates"] = 3
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generator

from observability.logging import set_turn_context

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state set by setup_tracing()."""

    enabled: bool = False
    service_name: str = "fable"
    configured: bool = False


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "fable",
    token: str = "",
) -> TracingContext:
    """Configure Logfire and instrument PydanticAI.

    Tracing stays disabled (with a warning) if logfire is missing or fails
    to configure; the story runs either way.
    """
    _context.enabled = enabled
    _context.service_name = service_name
    _context.configured = False

    if not enabled:
        logger.debug("Tracing disabled")
        return _context

    try:
        import logfire

        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
    except ImportError:
        logger.warning("Logfire not installed. Tracing disabled.")
        _context.enabled = False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        _context.enabled = False
    else:
        _context.configured = True
        logger.info("Logfire tracing enabled | service=%s", service_name)

    return _context


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Run a block inside a span named `name`.

    Yields a dict; keys added to it during the block are attached to the
    span when the block finishes.
    """
    result_attrs: dict[str, Any] = {}
    started = time.perf_counter()
    try:
        if _context.enabled and _context.configured:
            import logfire

            with logfire.span(name, **(attributes or {})) as span:
                yield result_attrs
                for key, value in result_attrs.items():
                    span.set_attribute(key, value)
        else:
            yield result_attrs
    finally:
        logger.debug("Operation '%s' completed in %.2fs", name, time.perf_counter() - started)


class SessionTracer:
    """Per-session turn and persistence statistics."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.start_time = datetime.now()
        self.stats: dict[str, Any] = {
            "session_id": session_id,
            "start_time": self.start_time.isoformat(),
            "turns": 0,
            "turn_errors": 0,
            "memories_stored": 0,
            "persistence_errors": 0,
        }

    @contextmanager
    def trace_turn(self, player_action: str) -> Generator[dict[str, Any], None, None]:
        """Trace one story turn; failures are counted and re-raised."""
        turn = self.stats["turns"] + self.stats["turn_errors"] + 1
        set_turn_context(turn)
        with trace_operation(
            "story_turn",
            {"session_id": self.session_id, "turn": turn, "player_action": player_action[:100]},
        ) as attrs:
            try:
                yield attrs
                self.stats["turns"] += 1
            except Exception:
                self.stats["turn_errors"] += 1
                raise

    def record_persistence(self, ok: bool) -> None:
        key = "memories_stored" if ok else "persistence_errors"
        self.stats[key] += 1

    def get_summary(self) -> dict[str, Any]:
        """Session statistics, including the duration so far."""
        summary = self.stats.copy()
        summary["duration_seconds"] = round((datetime.now() - self.start_time).total_seconds(), 2)
        return summary
