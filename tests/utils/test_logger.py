import logging

from cancellation_engine.utils.logger import ColoredFormatter, get_logger, log_separator, request_tag, setup_logger


class TestLogger:

    def test_get_logger_config(self):
        """Verify logger is configured correctly"""
        logger = get_logger("test.module")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test.module"
        assert logger.level == logging.INFO
        assert len(logger.handlers) > 0  # At least console handler

    def test_setup_logger_accepts_level_names(self):
        logger = setup_logger("test.debug_module", level="debug")
        assert logger.level == logging.DEBUG

    def test_handlers_are_not_duplicated(self):
        first = get_logger("test.repeat")
        second = get_logger("test.repeat")
        assert first is second
        assert len(second.handlers) == 1

    def test_colored_formatter(self):
        """Verify formatter adds color codes"""
        formatter = ColoredFormatter("%(levelname)s: %(message)s")
        record = logging.LogRecord("test", logging.ERROR, "path", 1, "test message", (), None)

        output = formatter.format(record)
        # Should contain ANSI red color code
        assert "\033[31m" in output
        assert "test message" in output
        # The original record is left untouched for other handlers
        assert record.levelname == "ERROR"

    def test_request_tag(self):
        assert request_tag("abc-123") == "[REQ=abc-123]"

    def test_log_separator(self):
        """Verify separator line logging"""
        mock_log = logging.getLogger("mock")
        # Just ensure it doesn't crash
        log_separator(mock_log, "*", 10)
