"""Tests for logging setup."""

import logging

import pytest
from rich.logging import RichHandler

from trade_analyst.config import COMPONENT_LOGGERS, Config, LoggingConfig, SystemConfig, parse_component_levels
from trade_analyst.exceptions import ConfigurationError
from trade_analyst.utils.logging_config import ComponentHighlighter, setup_logging

JOB_ID = "3f2b8c1e-9d4a-4f6b-a1c2-7e5d9b0a4c11"


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging reconfigures process-wide loggers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    component_levels = {name: logging.getLogger(name).level for name in COMPONENT_LOGGERS.values()}
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, component_level in component_levels.items():
        logging.getLogger(name).setLevel(component_level)


def _config(tmp_path, **logging_settings) -> Config:
    return Config(base_dir=str(tmp_path), logging=LoggingConfig(**logging_settings), system=SystemConfig(DEBUG=False))


class TestSetupLogging:
    def test_console_only_by_default(self, tmp_path):
        """Without debug or LOG_TO_FILE only the rich console handler is installed."""
        log_file = setup_logging(_config(tmp_path, LOG_LEVEL="WARNING"))

        root = logging.getLogger()
        assert log_file is None
        assert root.level == logging.WARNING
        assert [type(h) for h in root.handlers] == [RichHandler]
        assert isinstance(root.handlers[0].highlighter, ComponentHighlighter)

    def test_log_to_file(self, tmp_path):
        """LOG_TO_FILE writes formatted records under base_dir/logs."""
        log_file = setup_logging(_config(tmp_path, LOG_TO_FILE=True))

        logging.getLogger("trade_analyst.jobs").info("[Job abc] Created stock analysis for AAPL")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.parent == tmp_path / "logs"
        assert log_file.name.startswith("trade_analyst_")
        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert "| INFO     | trade_analyst.jobs:" in line
        assert line.endswith("[Job abc] Created stock analysis for AAPL")

    def test_debug_enables_file_and_debug_level(self, tmp_path):
        """Debug mode logs everything to a debug log file."""
        log_file = setup_logging(_config(tmp_path, LOG_LEVEL="ERROR"), debug=True)

        assert logging.getLogger().level == logging.DEBUG
        assert log_file.name.startswith("trade_analyst_debug_")

    def test_component_levels(self, tmp_path):
        """Per-component levels apply to their module loggers only."""
        setup_logging(_config(tmp_path, LOG_LEVEL="INFO", LOG_COMPONENT_LEVELS="agent=DEBUG, providers=error"))

        assert logging.getLogger("trade_analyst.ai.agent").getEffectiveLevel() == logging.DEBUG
        assert logging.getLogger("trade_analyst.providers.polygon").getEffectiveLevel() == logging.ERROR
        assert logging.getLogger("trade_analyst.ai.executor").getEffectiveLevel() == logging.INFO

    def test_repeated_setup_resets_handlers_and_levels(self, tmp_path):
        """A second setup replaces the handlers and clears old component levels."""
        setup_logging(_config(tmp_path, LOG_COMPONENT_LEVELS="executor=DEBUG"))
        setup_logging(_config(tmp_path))

        assert len(logging.getLogger().handlers) == 1
        assert logging.getLogger("trade_analyst.ai.executor").level == logging.NOTSET

    def test_noisy_libraries_are_quieted(self, tmp_path):
        """HTTP and LLM library loggers are held at WARNING."""
        setup_logging(_config(tmp_path, LOG_LEVEL="DEBUG"))

        assert logging.getLogger("aiohttp").level == logging.WARNING
        assert logging.getLogger("LiteLLM").level == logging.WARNING


class TestComponentHighlighter:
    def test_component_tag_and_job_id(self):
        """The leading [Component] tag and job ids are styled."""
        text = ComponentHighlighter()(f"[JobStore] Created job {JOB_ID} for AAPL")

        styled = {text.plain[span.start : span.end]: span.style for span in text.spans}
        assert styled["[JobStore]"] == "log.component"
        assert styled[JOB_ID] == "log.job_id"

    def test_tag_only_at_start(self):
        """Bracketed text later in the message is not a component tag."""
        text = ComponentHighlighter()("Tool result [Executor] quoted")

        assert not any(span.style == "log.component" for span in text.spans)


class TestComponentLevelParsing:
    def test_parse(self):
        """Component names map to module loggers with upper-cased levels."""
        assert parse_component_levels("agent=debug,jobstore=WARNING") == {
            "trade_analyst.ai.agent": "DEBUG",
            "trade_analyst.storage.job_store": "WARNING",
        }
        assert parse_component_levels("") == {}

    @pytest.mark.parametrize(
        "value, message",
        [
            ("agent", "Expected component=LEVEL"),
            ("scheduler=DEBUG", "Unknown log component 'scheduler'"),
            ("agent=LOUD", "Log level for 'agent'"),
        ],
    )
    def test_invalid(self, value, message):
        """Malformed entries, unknown components and bad levels are rejected."""
        with pytest.raises(ConfigurationError, match=message):
            parse_component_levels(value)

    def test_logging_config_validates_component_levels(self):
        """LoggingConfig rejects bad LOG_COMPONENT_LEVELS on construction."""
        with pytest.raises(ConfigurationError):
            LoggingConfig(LOG_COMPONENT_LEVELS="scheduler=DEBUG")
