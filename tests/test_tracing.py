"""Session statistics and context logging."""

import logging

import pytest

from observability.logging import ContextFilter, clear_context, set_session_context
from observability.tracing import SessionTracer


class TestSessionTracer:
    def test_counts_turns_and_errors(self):
        tracer = SessionTracer("abc123")

        with tracer.trace_turn("Look around") as attrs:
            attrs["characters"] = 2
        with pytest.raises(RuntimeError):
            with tracer.trace_turn("Break things"):
                raise RuntimeError("boom")
        tracer.record_persistence(True)
        tracer.record_persistence(False)

        summary = tracer.get_summary()
        assert summary["session_id"] == "abc123"
        assert summary["turns"] == 1
        assert summary["turn_errors"] == 1
        assert summary["memories_stored"] == 1
        assert summary["persistence_errors"] == 1
        assert summary["duration_seconds"] >= 0


class TestContextFilter:
    def test_injects_session_id(self):
        record = logging.LogRecord("fable", logging.INFO, __file__, 1, "msg", None, None)
        set_session_context("sess01")
        try:
            ContextFilter().filter(record)
            assert record.session_id == "sess01"
        finally:
            clear_context()


class TestSetupLogging:
    def test_writes_log_file(self, tmp_path):
        from config import Config
        from observability.logging import setup_logging

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            assert setup_logging(Config(log_dir=tmp_path / "log", log_format="json")) is True
            logging.getLogger("fable.test").info("Turn started | action=%s", "Look")
            for handler in root.handlers:
                handler.flush()
            assert "Turn started | action=Look" in (tmp_path / "log" / "fable.log").read_text()
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
