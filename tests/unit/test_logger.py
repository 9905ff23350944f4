"""Unit tests for core logger module."""
import logging

from simtrader.core.logger import SimulationLogAdapter, setup_logging, simulation_logger


class TestSetupLoggingBasics:
    """Test basic logger setup functionality."""

    def test_setup_logging_returns_logger(self):
        log = setup_logging("SIM_TEST")
        assert isinstance(log, logging.Logger)

    def test_setup_logging_default_level(self):
        log = setup_logging("SIM_DEFAULT")
        assert log.level == logging.INFO

    def test_setup_logging_debug_level(self):
        log = setup_logging("SIM_DEBUG", level="DEBUG")
        assert log.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        log = setup_logging("SIM_UNKNOWN", level="CHATTY")
        assert log.level == logging.INFO

    def test_handlers_not_duplicated(self):
        first = setup_logging("SIM_ONCE")
        count = len(first.handlers)
        second = setup_logging("SIM_ONCE")
        assert len(second.handlers) == count


class TestFileLogging:
    def test_log_dir_adds_file_handler(self, tmp_path):
        log = setup_logging("SIM_FILE", log_dir=str(tmp_path / "logs"))
        assert (tmp_path / "logs").is_dir()
        assert any(isinstance(h, logging.FileHandler) for h in log.handlers)

    def test_format_includes_name_and_level(self, tmp_path):
        log = setup_logging("SIM_FORMAT", log_dir=str(tmp_path))
        log.info("hello")
        for handler in log.handlers:
            handler.flush()
        text = (tmp_path / "SIM_FORMAT.log").read_text(encoding="utf-8")
        assert "| SIM_FORMAT | INFO | hello" in text

    def test_run_name_names_the_log_file(self, tmp_path):
        setup_logging("SIM_RUN", log_dir=str(tmp_path), run_name="breakout-2019")
        assert (tmp_path / "breakout-2019.log").exists()


class TestSimulationLogger:
    def test_returns_adapter_over_logger(self):
        base = logging.getLogger("simtrader.test.adapter")
        log = simulation_logger(base, "Run A")
        assert isinstance(log, SimulationLogAdapter)
        assert log.logger is base

    def test_messages_prefixed_with_simulation_name(self, caplog):
        log = simulation_logger(logging.getLogger("simtrader.test.prefix"), "Run B")
        with caplog.at_level(logging.INFO, logger="simtrader.test.prefix"):
            log.info("Starting run: %s", "today")
        assert caplog.records[-1].getMessage() == "[Run B] Starting run: today"
