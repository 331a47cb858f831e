"""Tests for structured logging setup."""

import structlog
from structlog.testing import capture_logs

from context_kernel.engine.context_engine import ContextEngine
from context_kernel.observability.logging import (
    add_session_context,
    bind_session,
    setup_logging,
)


class TestLogging:
    def teardown_method(self):
        structlog.contextvars.clear_contextvars()
        structlog.reset_defaults()

    def test_setup_binds_service(self):
        setup_logging(log_level="DEBUG", log_format="console")
        context = structlog.contextvars.get_contextvars()
        assert context["service"] == "context-kernel"

    def test_session_id_added_to_events(self):
        bind_session("session-42")
        event = add_session_context(None, "info", {"event": "snapshot_saved"})
        assert event["session_id"] == "session-42"

    def test_explicit_session_id_wins(self):
        bind_session("session-42")
        event = add_session_context(None, "info", {"event": "x", "session_id": "other"})
        assert event["session_id"] == "other"

    def test_engine_keeps_session_off_the_context(self):
        engine = ContextEngine(session_id="chat-7")
        assert engine.session_id == "chat-7"
        assert "session_id" not in structlog.contextvars.get_contextvars()

    def test_engines_log_their_own_session(self):
        with capture_logs() as entries:
            first = ContextEngine(session_id="chat-1")
            second = ContextEngine(session_id="chat-2")
            first.clear_all()
            second.clear_all()
            first.clear_all()

        cleared = [e["session_id"] for e in entries if e["event"] == "context_cleared"]
        assert cleared == ["chat-1", "chat-2", "chat-1"]

    def test_components_share_the_engine_session(self):
        with capture_logs() as entries:
            engine = ContextEngine(session_id="chat-9")
            engine.cleanup_expired_entities = _failing_sweep
            engine.sweeper.sweep()
            engine.resolve_reference("it")
            engine.save_snapshot("../escape.mem")

        events = {e["event"]: e.get("session_id") for e in entries}
        assert events["sweep_failed"] == "chat-9"
        assert events["pronoun_unresolved"] == "chat-9"
        assert events["snapshot_path_rejected"] == "chat-9"

    def test_engine_without_session(self):
        with capture_logs() as entries:
            ContextEngine().clear_all()
        cleared = [e for e in entries if e["event"] == "context_cleared"]
        assert len(cleared) == 1
        assert "session_id" not in cleared[0]


def _failing_sweep(now=None):
    raise RuntimeError("boom")
