"""Tests for the logger module."""

import gzip
import logging
import tempfile
from pathlib import Path

import pytest

from dirsnap.config import LoggingConfig
from dirsnap.logger import (
    LOGGER_NAME,
    MAX_LOGGED_FAILURES,
    GzipRotatingFileHandler,
    LoggingError,
    get_logger,
    log_entry_failures,
    log_operation_completion,
    log_operation_error,
    log_operation_start,
    setup_logging,
)


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for log files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_with_config(self, temp_log_dir):
        config = LoggingConfig(
            level="INFO",
            log_file=temp_log_dir / "test.log",
            error_log_file=temp_log_dir / "test.err",
        )

        logger = setup_logging(config=config)

        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 3  # file, error, console

    def test_setup_without_console(self, temp_log_dir):
        logger = setup_logging(
            log_file=temp_log_dir / "test.log",
            error_log_file=temp_log_dir / "test.err",
            console=False,
        )
        assert len(logger.handlers) == 2

    def test_creates_log_directories(self, temp_log_dir):
        log_file = temp_log_dir / "nested" / "dir" / "test.log"
        setup_logging(log_file=log_file, error_log_file=temp_log_dir / "e" / "test.err", console=False)
        assert log_file.parent.is_dir()
        assert (temp_log_dir / "e").is_dir()

    def test_invalid_log_level_raises_error(self, temp_log_dir):
        with pytest.raises(LoggingError):
            setup_logging(
                log_file=temp_log_dir / "test.log",
                error_log_file=temp_log_dir / "test.err",
                level="TRACE",
            )

    def test_error_log_file_only_errors(self, temp_log_dir):
        log_file = temp_log_dir / "test.log"
        error_file = temp_log_dir / "test.err"
        logger = setup_logging(log_file=log_file, error_log_file=error_file, level="DEBUG", console=False)

        logger.info("informational")
        logger.error("broken")
        _flush(logger)

        assert "informational" in log_file.read_text()
        assert "broken" in log_file.read_text()
        assert "informational" not in error_file.read_text()
        assert "broken" in error_file.read_text()

    def test_child_loggers_propagate(self, temp_log_dir):
        log_file = temp_log_dir / "test.log"
        logger = setup_logging(log_file=log_file, error_log_file=temp_log_dir / "test.err", console=False)

        logging.getLogger("dirsnap.tree").warning("Skipping entry: /x")
        _flush(logger)

        assert "Skipping entry: /x" in log_file.read_text()

    def test_clears_existing_handlers(self, temp_log_dir):
        kwargs = dict(
            log_file=temp_log_dir / "test.log",
            error_log_file=temp_log_dir / "test.err",
            console=False,
        )
        setup_logging(**kwargs)
        logger = setup_logging(**kwargs)
        assert len(logger.handlers) == 2

    def test_get_logger_returns_package_logger(self):
        assert get_logger() is logging.getLogger(LOGGER_NAME)


class TestGzipRotation:

    def test_rotated_file_is_compressed(self, temp_log_dir):
        log_file = temp_log_dir / "test.log"
        handler = GzipRotatingFileHandler(log_file, maxBytes=100, backupCount=2, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        try:
            for i in range(20):
                handler.emit(logging.LogRecord("t", logging.INFO, __file__, 0, f"line {i:03d}", None, None))
        finally:
            handler.close()

        rotated = temp_log_dir / "test.log.1.gz"
        assert rotated.exists()
        with gzip.open(rotated, "rt") as f:
            assert "line" in f.read()


class TestOperationLogging:

    @pytest.fixture
    def logger_and_file(self, temp_log_dir):
        log_file = temp_log_dir / "test.log"
        logger = setup_logging(
            log_file=log_file,
            error_log_file=temp_log_dir / "test.err",
            level="DEBUG",
            console=False,
        )
        return logger, log_file

    def test_logs_start_info(self, logger_and_file):
        logger, log_file = logger_and_file
        log_operation_start(logger, "restore", Path("/repo"), Path("/target"), "20250101120000_FULL")
        _flush(logger)

        content = log_file.read_text()
        assert "restore started" in content
        assert "Repository: /repo" in content
        assert "Tree: /target" in content
        assert "Snapshot: 20250101120000_FULL" in content

    def test_logs_completion_stats(self, logger_and_file):
        logger, log_file = logger_and_file
        log_operation_completion(logger, "full_backup", 1.5, files_copied=3, bytes_copied=2048, failure_count=1)
        _flush(logger)

        content = log_file.read_text()
        assert "full_backup completed" in content
        assert "Duration: 1.50 seconds" in content
        assert "Files copied: 3" in content
        assert "Total size: 2.00 KB" in content
        assert "Entries skipped: 1" in content

    def test_logs_error_with_context(self, logger_and_file):
        logger, log_file = logger_and_file
        log_operation_error(logger, RuntimeError("boom"), "snapshot creation")
        _flush(logger)
        assert "Operation failed during snapshot creation: boom" in log_file.read_text()

    def test_entry_failures_truncated(self, logger_and_file):
        logger, log_file = logger_and_file
        failures = [(f"/p{i}", "denied") for i in range(MAX_LOGGED_FAILURES + 5)]
        log_entry_failures(logger, failures)
        _flush(logger)

        content = log_file.read_text()
        assert f"/p{MAX_LOGGED_FAILURES - 1}: denied" in content
        assert f"/p{MAX_LOGGED_FAILURES}: denied" not in content
        assert "... and 5 more" in content
