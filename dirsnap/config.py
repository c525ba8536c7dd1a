"""Configuration management for dirsnap.

This module provides dataclasses for configuration and functions for
parsing/formatting TOML configuration files. Every setting has a default,
so a missing config file at the default location is not an error.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import tomllib

from dirsnap.materialize import DEFAULT_CHUNK_SIZE, DEFAULT_DIR_MODE, DEFAULT_FILE_MODE
from dirsnap.paths import DEFAULT_MAX_PATH_LENGTH
from dirsnap.snapshot import CopyOptions


class ConfigurationError(Exception):
    """Raised when configuration file is missing or malformed."""
    pass


class ValidationError(Exception):
    """Raised when configuration values have invalid types."""
    pass


VALID_LOG_LEVELS = ("DEBUG", "INFO", "ERROR")


@dataclass
class CopyConfig:
    """Configuration for tree copies."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    file_mode: int = DEFAULT_FILE_MODE
    dir_mode: int = DEFAULT_DIR_MODE
    sort_entries: bool = True
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH

    def to_options(self) -> CopyOptions:
        return CopyOptions(
            chunk_size=self.chunk_size,
            file_mode=self.file_mode,
            dir_mode=self.dir_mode,
            sort_entries=self.sort_entries,
            max_path_length=self.max_path_length,
        )


@dataclass
class LockConfig:
    """Configuration for the repository lock."""
    enabled: bool = True
    timeout_seconds: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"  # "DEBUG", "INFO", "ERROR"
    log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/dirsnap.log"
    )
    error_log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/dirsnap.err"
    )
    log_max_size_mb: int = 10  # Maximum log file size in MB before rotation
    log_backup_count: int = 5  # Number of rotated log files to keep

    @property
    def log_max_bytes(self) -> int:
        """Return max size in bytes for use with RotatingFileHandler."""
        return self.log_max_size_mb * 1024 * 1024


@dataclass
class Configuration:
    """Main configuration for dirsnap."""
    copy: CopyConfig = field(default_factory=CopyConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Default config file path
DEFAULT_CONFIG_PATH = Path.home() / ".config/dirsnap/config.toml"


def _validate_type(value: Any, expected_type: type, key: str) -> None:
    """Validate that a value has the expected type."""
    # bool is a subclass of int; reject it where an int is expected
    if expected_type is int and isinstance(value, bool):
        raise ValidationError(
            f"Key '{key}' has invalid type: expected int, got bool"
        )
    if not isinstance(value, expected_type):
        raise ValidationError(
            f"Key '{key}' has invalid type: expected {expected_type.__name__}, "
            f"got {type(value).__name__}"
        )


def _validate_positive(value: int, key: str) -> None:
    if value <= 0:
        raise ValidationError(f"Key '{key}' must be positive, got {value}")


def _validate_mode(value: int, key: str) -> None:
    if not 0 <= value <= 0o7777:
        raise ValidationError(f"Key '{key}' is not a valid permission mode: {value}")


def _parse_copy_config(data: Dict[str, Any]) -> CopyConfig:
    """Parse copy configuration from dict."""
    copy_data = data.get("copy", {})

    chunk_size = copy_data.get("chunk_size", DEFAULT_CHUNK_SIZE)
    _validate_type(chunk_size, int, "copy.chunk_size")
    _validate_positive(chunk_size, "copy.chunk_size")

    file_mode = copy_data.get("file_mode", DEFAULT_FILE_MODE)
    _validate_type(file_mode, int, "copy.file_mode")
    _validate_mode(file_mode, "copy.file_mode")

    dir_mode = copy_data.get("dir_mode", DEFAULT_DIR_MODE)
    _validate_type(dir_mode, int, "copy.dir_mode")
    _validate_mode(dir_mode, "copy.dir_mode")

    sort_entries = copy_data.get("sort_entries", True)
    _validate_type(sort_entries, bool, "copy.sort_entries")

    max_path_length = copy_data.get("max_path_length", DEFAULT_MAX_PATH_LENGTH)
    _validate_type(max_path_length, int, "copy.max_path_length")
    _validate_positive(max_path_length, "copy.max_path_length")

    return CopyConfig(
        chunk_size=chunk_size,
        file_mode=file_mode,
        dir_mode=dir_mode,
        sort_entries=sort_entries,
        max_path_length=max_path_length,
    )


def _parse_lock_config(data: Dict[str, Any]) -> LockConfig:
    """Parse lock configuration from dict."""
    lock_data = data.get("lock", {})

    enabled = lock_data.get("enabled", True)
    _validate_type(enabled, bool, "lock.enabled")

    timeout_seconds = lock_data.get("timeout_seconds", 5)
    _validate_type(timeout_seconds, int, "lock.timeout_seconds")

    return LockConfig(enabled=enabled, timeout_seconds=timeout_seconds)


def _parse_logging_config(data: Dict[str, Any]) -> LoggingConfig:
    """Parse logging configuration from dict."""
    logging_data = data.get("logging", {})

    level = logging_data.get("level", "INFO")
    _validate_type(level, str, "logging.level")
    if level.upper() not in VALID_LOG_LEVELS:
        raise ValidationError(
            f"Key 'logging.level' must be one of {', '.join(VALID_LOG_LEVELS)}, got '{level}'"
        )

    log_file = logging_data.get(
        "log_file",
        str(Path.home() / ".local/log/dirsnap.log")
    )
    _validate_type(log_file, str, "logging.log_file")

    error_log_file = logging_data.get(
        "error_log_file",
        str(Path.home() / ".local/log/dirsnap.err")
    )
    _validate_type(error_log_file, str, "logging.error_log_file")

    log_max_size_mb = logging_data.get("log_max_size_mb", 10)
    _validate_type(log_max_size_mb, int, "logging.log_max_size_mb")

    log_backup_count = logging_data.get("log_backup_count", 5)
    _validate_type(log_backup_count, int, "logging.log_backup_count")

    return LoggingConfig(
        level=level.upper(),
        log_file=Path(log_file),
        error_log_file=Path(error_log_file),
        log_max_size_mb=log_max_size_mb,
        log_backup_count=log_backup_count,
    )


def parse_config_string(toml_content: str) -> Configuration:
    """
    Parse TOML string into Configuration object.

    Args:
        toml_content: TOML formatted string

    Returns:
        Configuration object

    Raises:
        ConfigurationError: If the TOML is malformed
        ValidationError: If a value has the wrong type or range
    """
    try:
        data = tomllib.loads(toml_content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML format: {e}")

    return Configuration(
        copy=_parse_copy_config(data),
        lock=_parse_lock_config(data),
        logging=_parse_logging_config(data),
    )


def parse_config(config_path: Optional[Path] = None) -> Configuration:
    """
    Parse TOML configuration file into Configuration object.

    Args:
        config_path: Path to config file. Defaults to ~/.config/dirsnap/config.toml

    Returns:
        Configuration object. If no path is given and the default file does
        not exist, returns the defaults.

    Raises:
        ConfigurationError: If an explicitly given file doesn't exist or can't be read
        ValidationError: If value has wrong type
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return Configuration()
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}"
        )

    try:
        content = config_path.read_text(encoding="utf-8")
    except PermissionError:
        raise ConfigurationError(
            f"Permission denied reading configuration file: {config_path}"
        )
    except OSError as e:
        raise ConfigurationError(
            f"Error reading configuration file {config_path}: {e}"
        )

    return parse_config_string(content)


def _escape_toml_string(s: str) -> str:
    """Escape a string for TOML basic string format."""
    # Must escape backslashes first, then quotes
    return s.replace("\\", "\\\\").replace('"', '\\"')


def format_config(config: Configuration) -> str:
    """
    Format Configuration object back to TOML string.

    Used for round-trip testing and config generation.
    """
    lines = []

    lines.append("[copy]")
    lines.append(f"chunk_size = {config.copy.chunk_size}")
    lines.append(f"file_mode = 0o{config.copy.file_mode:o}")
    lines.append(f"dir_mode = 0o{config.copy.dir_mode:o}")
    lines.append(f"sort_entries = {'true' if config.copy.sort_entries else 'false'}")
    lines.append(f"max_path_length = {config.copy.max_path_length}")
    lines.append("")

    lines.append("[lock]")
    lines.append(f"enabled = {'true' if config.lock.enabled else 'false'}")
    lines.append(f"timeout_seconds = {config.lock.timeout_seconds}")
    lines.append("")

    lines.append("[logging]")
    lines.append(f'level = "{_escape_toml_string(config.logging.level)}"')
    lines.append(f'log_file = "{_escape_toml_string(str(config.logging.log_file))}"')
    lines.append(f'error_log_file = "{_escape_toml_string(str(config.logging.error_log_file))}"')
    lines.append(f"log_max_size_mb = {config.logging.log_max_size_mb}")
    lines.append(f"log_backup_count = {config.logging.log_backup_count}")

    return "\n".join(lines) + "\n"


def create_default_config() -> str:
    """
    Generate default configuration TOML for `dirsnap init`.

    Returns:
        TOML formatted string with default configuration
    """
    return f'''# dirsnap configuration file

[copy]
# Bytes read per chunk when copying files
chunk_size = {DEFAULT_CHUNK_SIZE}
# Permissions for copied files and created directories (owner-only)
file_mode = 0o{DEFAULT_FILE_MODE:o}
dir_mode = 0o{DEFAULT_DIR_MODE:o}
# Visit directory entries in name order for deterministic snapshots
sort_entries = true
# Paths longer than this many bytes are skipped and reported
max_path_length = {DEFAULT_MAX_PATH_LENGTH}

[lock]
# Hold an exclusive lock on the repository during backup and restore
enabled = true
timeout_seconds = 5

[logging]
# Log level: DEBUG, INFO, ERROR
level = "INFO"
log_file = "~/.local/log/dirsnap.log"
error_log_file = "~/.local/log/dirsnap.err"
# Log rotation settings
log_max_size_mb = 10
log_backup_count = 5
'''
