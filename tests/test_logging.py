"""Tests for logging helpers."""

import structlog

from podscope.logging import bind_command_context


class TestBindCommandContext:
    def teardown_method(self):
        structlog.contextvars.clear_contextvars()

    def test_binds_non_empty_fields(self):
        bind_command_context(command="queue", config=None)
        assert structlog.contextvars.get_contextvars() == {"command": "queue"}

    def test_replaces_previous_context(self):
        bind_command_context(command="queue", config="a.yaml")
        bind_command_context(command="history")
        assert structlog.contextvars.get_contextvars() == {"command": "history"}
