"""Tests for structured logging setup."""

import structlog

from pubsuggest.observability.context import clear_correlation_id, set_correlation_id
from pubsuggest.observability.logging import (
    add_component_processor,
    add_correlation_id_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestProcessors:
    def test_adds_correlation_id_when_set(self):
        set_correlation_id("test-corr-id")
        result = add_correlation_id_processor(None, "info", {"event": "test_event"})
        assert result["correlation_id"] == "test-corr-id"
        clear_correlation_id()

    def test_adds_none_marker_when_not_set(self):
        clear_correlation_id()
        result = add_correlation_id_processor(None, "info", {"event": "e", "count": 2})
        assert result == {"event": "e", "count": 2, "correlation_id": "none"}

    def test_component_does_not_override_bound_value(self):
        processor = add_component_processor("cli")
        assert processor(None, "info", {"event": "e"})["component"] == "cli"
        assert processor(None, "info", {"event": "e", "component": "session"})[
            "component"
        ] == "session"


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_output=True, add_timestamp=False)
        get_logger("session").info("queues_applied", selected=2)

        err = capsys.readouterr().err
        assert '"event": "queues_applied"' in err
        assert '"component": "session"' in err
        assert '"selected": 2' in err

    def test_respects_level(self, capsys):
        configure_logging(level="WARNING", json_output=True)
        get_logger().info("hidden_event")
        get_logger().warning("visible_event")

        err = capsys.readouterr().err
        assert "hidden_event" not in err
        assert "visible_event" in err

    def test_console_output(self, capsys):
        configure_logging(level="DEBUG", json_output=False, component="cli")
        get_logger().debug("console_event")
        assert "console_event" in capsys.readouterr().err

    def test_bound_context_is_merged(self, capsys):
        configure_logging(level="INFO", json_output=True)
        bind_context(session_id="abc")
        try:
            get_logger().info("with_context")
        finally:
            clear_context()

        assert '"session_id": "abc"' in capsys.readouterr().err
