"""Logging configuration for dirsnap.

This module provides logging setup and utility functions for backup and
restore runs. Supports DEBUG, INFO, and ERROR log levels with separate log
and error files, rotated and gzip-compressed.

Every dirsnap module logs through a child of the ``dirsnap`` logger, so
per-entry warnings raised deep inside a traversal land in the same files.
"""

import gzip
import logging
import os
import shutil
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Tuple

from dirsnap.config import VALID_LOG_LEVELS, LoggingConfig


# Logger name for the dirsnap package
LOGGER_NAME = "dirsnap"

# Default rotation settings
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

# Per-entry failures listed individually before summarizing
MAX_LOGGED_FAILURES = 20


class LoggingError(Exception):
    """Raised when logging setup fails."""
    pass


class GzipRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that compresses rotated files with gzip.

    Rotated files are named with a .gz extension.
    """

    def rotation_filename(self, default_name: str) -> str:
        return default_name + ".gz"

    def rotate(self, source: str, dest: str) -> None:
        """
        Compress the source file into dest and remove the source.

        If compression fails the file is renamed without compression.
        """
        if not os.path.exists(source):
            return

        try:
            with open(source, 'rb') as f_in:
                with gzip.open(dest, 'wb') as f_out:
                    shutil.copyfileobj(f_in, f_out)
            os.remove(source)
        except OSError:
            if os.path.exists(source):
                fallback_dest = dest[:-3] if dest.endswith('.gz') else dest
                try:
                    os.rename(source, fallback_dest)
                except OSError:
                    pass  # Logging must never fail the run


def _ensure_log_directory(log_path: Path) -> None:
    """Ensure the parent directory for a log file exists."""
    log_dir = log_path.parent
    if not log_dir.exists():
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LoggingError(f"Failed to create log directory {log_dir}: {e}")


def _get_log_level(level_str: str) -> int:
    """Convert log level string to logging constant."""
    level_str = level_str.upper()
    if level_str not in VALID_LOG_LEVELS:
        raise LoggingError(
            f"Invalid log level '{level_str}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )
    return getattr(logging, level_str)


def setup_logging(
    config: Optional[LoggingConfig] = None,
    log_file: Optional[Path] = None,
    error_log_file: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    console: bool = True,
) -> logging.Logger:
    """
    Configure logging for dirsnap.

    Sets up logging with:
    - A rotating file handler for general logs (log_file)
    - A rotating file handler for error logs only (error_log_file)
    - Console output on stderr for immediate feedback (optional)

    Args:
        config: LoggingConfig object with settings. If provided, the path and
            level arguments are ignored.
        log_file: Path to main log file (used if config is None)
        error_log_file: Path to error log file (used if config is None)
        level: Log level string: "DEBUG", "INFO", or "ERROR" (used if config is None)
        max_bytes: Maximum log file size before rotation (default 10MB)
        backup_count: Number of rotated files to keep (default 5)
        console: Also log to stderr

    Returns:
        Configured logger instance

    Raises:
        LoggingError: If log directory cannot be created or level is invalid
    """
    if config is not None:
        log_file = config.log_file
        error_log_file = config.error_log_file
        level = config.level
        if max_bytes is None:
            max_bytes = config.log_max_bytes
        if backup_count is None:
            backup_count = config.log_backup_count
    else:
        if log_file is None:
            log_file = Path.home() / ".local/log/dirsnap.log"
        if error_log_file is None:
            error_log_file = Path.home() / ".local/log/dirsnap.err"
        if level is None:
            level = "INFO"
        if max_bytes is None:
            max_bytes = DEFAULT_MAX_BYTES
        if backup_count is None:
            backup_count = DEFAULT_BACKUP_COUNT

    # Expand ~ in paths
    log_file = Path(os.path.expanduser(str(log_file)))
    error_log_file = Path(os.path.expanduser(str(error_log_file)))

    _ensure_log_directory(log_file)
    _ensure_log_directory(error_log_file)

    log_level = _get_log_level(level)

    logger = logging.getLogger(LOGGER_NAME)

    # Close and drop handlers from a previous setup to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    logger.setLevel(logging.DEBUG)  # Handlers filter

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = GzipRotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    error_handler = GzipRotatingFileHandler(
        error_log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    logger.addHandler(error_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(detailed_formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the dirsnap logger instance."""
    return logging.getLogger(LOGGER_NAME)


def _format_size(total_size: int) -> str:
    if total_size >= 1024 * 1024 * 1024:
        return f"{total_size / (1024 * 1024 * 1024):.2f} GB"
    elif total_size >= 1024 * 1024:
        return f"{total_size / (1024 * 1024):.2f} MB"
    elif total_size >= 1024:
        return f"{total_size / 1024:.2f} KB"
    return f"{total_size} bytes"


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    repository: Path,
    tree: Path,
    snapshot_id: Optional[str] = None,
) -> None:
    """
    Log the start of a backup or restore.

    Args:
        logger: Logger instance
        operation: "full_backup" or "restore"
        repository: Repository path
        tree: Source tree (backup) or restore target (restore)
        snapshot_id: Snapshot being restored, if any
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    logger.info(f"{operation} started at {timestamp}")
    logger.info(f"Repository: {repository}")
    logger.info(f"Tree: {tree}")
    if snapshot_id:
        logger.info(f"Snapshot: {snapshot_id}")


def log_operation_completion(
    logger: logging.Logger,
    operation: str,
    duration_seconds: float,
    files_copied: int,
    bytes_copied: int,
    failure_count: int = 0,
) -> None:
    """Log the completion of a backup or restore."""
    logger.info(f"{operation} completed")
    logger.info(f"Duration: {duration_seconds:.2f} seconds")
    logger.info(f"Files copied: {files_copied}")
    logger.info(f"Total size: {_format_size(bytes_copied)}")
    if failure_count:
        logger.warning(f"Entries skipped: {failure_count}")


def log_operation_error(
    logger: logging.Logger,
    error: Exception,
    context: Optional[str] = None,
) -> None:
    """
    Log an error that stopped an operation.

    Args:
        logger: Logger instance
        error: The exception that occurred
        context: Additional context about what was happening
    """
    if context:
        logger.error(f"Operation failed during {context}: {error}")
    else:
        logger.error(f"Operation failed: {error}")


def log_entry_failures(
    logger: logging.Logger,
    failures: List[Tuple[str, str]],
) -> None:
    """
    Summarize per-entry failures at DEBUG level.

    The first MAX_LOGGED_FAILURES are listed individually.
    """
    for path, message in failures[:MAX_LOGGED_FAILURES]:
        logger.debug(f"failed: {path}: {message}")
    if len(failures) > MAX_LOGGED_FAILURES:
        logger.debug(f"... and {len(failures) - MAX_LOGGED_FAILURES} more")
