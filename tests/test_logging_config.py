import logging

import pytest
import structlog

from app.utils.logging_config import NOISY_LOGGERS, configure_logging

@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()

class TestConfigureLogging:

    def test_level_filters_events(self, capsys):
        configure_logging("warning")
        log = structlog.get_logger()
        log.info("hidden_event")
        log.warning("shown_event", mint="TokenA")

        out = capsys.readouterr().out
        assert "shown_event" in out
        assert "TokenA" in out
        assert "hidden_event" not in out

    def test_bound_run_context_is_merged(self, capsys):
        configure_logging("info")
        with structlog.contextvars.bound_contextvars(strategy="ctx_strategy"):
            structlog.get_logger().info("inside_run")

        assert "ctx_strategy" in capsys.readouterr().out

    def test_noisy_loggers_silenced(self):
        configure_logging("debug")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
