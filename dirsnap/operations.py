"""Backup and restore orchestration for dirsnap.

This module wraps the snapshot and restore engines with the ambient
concerns of a run:
- Load configuration
- Set up logging
- Acquire the repository lock
- Clean up incomplete snapshots (backup only)
- Run the engine
- Release the lock

Every outcome is returned as an OperationResult carrying an exit code, so
the CLI and the MCP server never need to handle engine exceptions.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from dirsnap.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
)
from dirsnap.errors import StructuralError
from dirsnap.lock import LockError, RepositoryLock
from dirsnap.logger import (
    LoggingError,
    get_logger,
    log_entry_failures,
    log_operation_completion,
    log_operation_error,
    log_operation_start,
    setup_logging,
)
from dirsnap.restore import RestoreEngine
from dirsnap.snapshot import SnapshotEngine, SnapshotError


# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_LOCK_ERROR = 2
EXIT_STRUCTURAL_ERROR = 3
EXIT_SNAPSHOT_ERROR = 4

OPERATION_FULL_BACKUP = "full_backup"
OPERATION_RESTORE = "restore"


@dataclass
class OperationResult:
    """Result of a backup or restore run."""
    success: bool
    exit_code: int
    operation: str
    snapshot_id: Optional[str] = None
    snapshot_path: Optional[Path] = None
    target_path: Optional[Path] = None
    directories: int = 0
    files: int = 0
    symlinks: int = 0
    bytes_copied: int = 0
    duration_seconds: float = 0.0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    incomplete_cleaned: int = 0
    error_message: Optional[str] = None

    @property
    def message(self) -> str:
        """One-line human-readable outcome."""
        if not self.success:
            return f"{self.operation} failed: {self.error_message}"
        if self.operation == OPERATION_FULL_BACKUP:
            return f"Backup completed successfully in {self.snapshot_path}"
        return f"Restore completed successfully from {self.snapshot_path} to {self.target_path}"


def _load(
    config_path: Optional[Path],
    config: Optional[Configuration],
    operation: str,
) -> Tuple[Optional[Configuration], Optional[OperationResult]]:
    if config is not None:
        return config, None
    try:
        return parse_config(config_path), None
    except (ConfigurationError, ValidationError) as e:
        return None, OperationResult(
            success=False,
            exit_code=EXIT_CONFIG_ERROR,
            operation=operation,
            error_message=str(e),
        )


def _setup_logger(config: Configuration, console: bool) -> logging.Logger:
    try:
        return setup_logging(config.logging, console=console)
    except (LoggingError, OSError) as e:
        # Fall back to whatever logging is already configured
        logger = get_logger()
        logger.warning(f"Failed to set up logging: {e}")
        return logger


def _lock_for(repository: Path, config: Configuration) -> Optional[RepositoryLock]:
    if not config.lock.enabled:
        return None
    return RepositoryLock(repository, timeout=config.lock.timeout_seconds)


def run_backup(
    repository: Path,
    source: Path,
    config_path: Optional[Path] = None,
    config: Optional[Configuration] = None,
    console_logging: bool = True,
) -> OperationResult:
    """
    Run a full backup of ``source`` into ``repository``.

    Args:
        repository: Repository that receives the snapshot
        source: Tree to back up
        config_path: Path to configuration file. If None, uses default path.
        config: Pre-loaded Configuration. If provided, config_path is ignored.
        console_logging: Also log to stderr

    Returns:
        OperationResult with success status, exit code and counts
    """
    operation = OPERATION_FULL_BACKUP
    config, failed = _load(config_path, config, operation)
    if failed is not None:
        return failed

    logger = _setup_logger(config, console_logging)
    log_operation_start(logger, operation, repository, source)

    lock = _lock_for(repository, config)
    try:
        if lock is not None:
            lock.acquire()
            logger.debug("Repository lock acquired")

        engine = SnapshotEngine(repository, config.copy.to_options())
        incomplete_cleaned = engine.cleanup_incomplete()
        if incomplete_cleaned > 0:
            logger.info(f"Cleaned up {incomplete_cleaned} incomplete snapshot(s)")

        snapshot = engine.create_snapshot(source)
    except LockError as e:
        log_operation_error(logger, e, "lock acquisition")
        return OperationResult(False, EXIT_LOCK_ERROR, operation, error_message=str(e))
    except StructuralError as e:
        log_operation_error(logger, e, "source validation")
        return OperationResult(False, EXIT_STRUCTURAL_ERROR, operation, error_message=str(e))
    except SnapshotError as e:
        log_operation_error(logger, e, "snapshot creation")
        return OperationResult(False, EXIT_SNAPSHOT_ERROR, operation, error_message=str(e))
    except Exception as e:
        log_operation_error(logger, e, "unexpected error")
        return OperationResult(
            False, EXIT_SNAPSHOT_ERROR, operation, error_message=f"Unexpected error: {e}"
        )
    finally:
        if lock is not None and lock.acquired:
            lock.release()
            logger.debug("Repository lock released")

    log_entry_failures(logger, snapshot.failures)
    log_operation_completion(
        logger,
        operation,
        duration_seconds=snapshot.duration_seconds,
        files_copied=snapshot.files_copied,
        bytes_copied=snapshot.bytes_copied,
        failure_count=len(snapshot.failures),
    )
    return OperationResult(
        success=True,
        exit_code=EXIT_SUCCESS,
        operation=operation,
        snapshot_id=snapshot.snapshot_id,
        snapshot_path=snapshot.snapshot_path,
        target_path=snapshot.snapshot_path,
        directories=snapshot.directories_created,
        files=snapshot.files_copied,
        symlinks=snapshot.symlinks_recorded,
        bytes_copied=snapshot.bytes_copied,
        duration_seconds=snapshot.duration_seconds,
        failures=snapshot.failures,
        incomplete_cleaned=incomplete_cleaned,
    )


def run_restore(
    repository: Path,
    target: Path,
    snapshot_id: str,
    config_path: Optional[Path] = None,
    config: Optional[Configuration] = None,
    console_logging: bool = True,
) -> OperationResult:
    """
    Restore snapshot ``snapshot_id`` from ``repository`` into ``target``.

    A missing snapshot fails with EXIT_STRUCTURAL_ERROR before anything is
    written.

    Returns:
        OperationResult with success status, exit code and counts
    """
    operation = OPERATION_RESTORE
    config, failed = _load(config_path, config, operation)
    if failed is not None:
        return failed

    logger = _setup_logger(config, console_logging)
    log_operation_start(logger, operation, repository, target, snapshot_id)

    lock = _lock_for(repository, config) if Path(repository).is_dir() else None
    try:
        if lock is not None:
            lock.acquire()
            logger.debug("Repository lock acquired")

        restored = RestoreEngine(repository, config.copy.to_options()).restore(snapshot_id, target)
    except LockError as e:
        log_operation_error(logger, e, "lock acquisition")
        return OperationResult(False, EXIT_LOCK_ERROR, operation, error_message=str(e))
    except StructuralError as e:
        log_operation_error(logger, e, "snapshot lookup")
        return OperationResult(False, EXIT_STRUCTURAL_ERROR, operation, error_message=str(e))
    except Exception as e:
        log_operation_error(logger, e, "unexpected error")
        return OperationResult(
            False, EXIT_SNAPSHOT_ERROR, operation, error_message=f"Unexpected error: {e}"
        )
    finally:
        if lock is not None and lock.acquired:
            lock.release()
            logger.debug("Repository lock released")

    log_entry_failures(logger, restored.failures)
    log_operation_completion(
        logger,
        operation,
        duration_seconds=restored.duration_seconds,
        files_copied=restored.files_copied,
        bytes_copied=restored.bytes_copied,
        failure_count=len(restored.failures),
    )
    return OperationResult(
        success=True,
        exit_code=EXIT_SUCCESS,
        operation=operation,
        snapshot_id=restored.snapshot_id,
        snapshot_path=restored.snapshot_path,
        target_path=restored.target_path,
        directories=restored.directories_created,
        files=restored.files_copied,
        symlinks=restored.symlinks_created,
        bytes_copied=restored.bytes_copied,
        duration_seconds=restored.duration_seconds,
        failures=restored.failures,
    )
