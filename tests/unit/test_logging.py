"""Tests for logging configuration."""

import structlog

from mediator.core.logging import (
    LOG_FILE_PREFIX,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestLoggingConfiguration:
    """Tests for logging setup."""

    def test_configure_logging_sets_up_structlog(self, tmp_path):
        """configure_logging() sets up structlog properly."""
        configure_logging(logs_dir=tmp_path)
        logger = structlog.get_logger("test")
        assert logger is not None

    def test_creates_one_log_file(self, tmp_path):
        configure_logging(logs_dir=tmp_path)
        files = list(tmp_path.glob(f"{LOG_FILE_PREFIX}*.log"))
        assert len(files) == 1

    def test_old_log_files_are_culled(self, tmp_path):
        for i in range(6):
            (tmp_path / f"{LOG_FILE_PREFIX}2020010{i}_000000.log").write_text("")

        configure_logging(log_files_to_keep=3, logs_dir=tmp_path)

        assert len(list(tmp_path.glob(f"{LOG_FILE_PREFIX}*.log"))) == 3

    def test_get_logger_returns_bound_logger(self):
        """get_logger() returns a BoundLogger (or proxy)."""
        logger = get_logger("test_module")
        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "error")
        assert hasattr(logger, "debug")

    def test_context_binding(self, tmp_path):
        """Request context is merged into subsequent logs and can be cleared."""
        configure_logging(logs_dir=tmp_path)
        bind_context(request_id="req-1", session_id="s1")
        try:
            assert structlog.contextvars.get_contextvars() == {
                "request_id": "req-1",
                "session_id": "s1",
            }
            get_logger("test").info("turn_completed", stage="intake")
        finally:
            clear_context()
        assert structlog.contextvars.get_contextvars() == {}
