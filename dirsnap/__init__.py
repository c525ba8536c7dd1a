"""dirsnap - Full snapshots of a directory tree, symlinks included."""

__version__ = "0.1.0"

from dirsnap.errors import (
    DirsnapError,
    AccessError,
    IoError,
    StructuralError,
    PathTooLong,
)
from dirsnap.tree import (
    EntryKind,
    TreeListing,
    classify_entry,
    enumerate_tree,
)
from dirsnap.paths import check_path_length, relative_path, remap
from dirsnap.materialize import duplicate_file, ensure_directory
from dirsnap.manifest import (
    MANIFEST_NAME,
    SymlinkRecord,
    read_manifest,
    replay_manifest,
    write_manifest,
)
from dirsnap.snapshot import (
    CopyOptions,
    SnapshotEngine,
    SnapshotError,
    SnapshotInfo,
    SnapshotResult,
)
from dirsnap.restore import RestoreEngine, RestoreResult
from dirsnap.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    format_config,
    create_default_config,
)
from dirsnap.lock import RepositoryLock, LockError
from dirsnap.logger import LoggingError, setup_logging, get_logger
from dirsnap.operations import (
    OperationResult,
    run_backup,
    run_restore,
    EXIT_SUCCESS,
    EXIT_CONFIG_ERROR,
    EXIT_LOCK_ERROR,
    EXIT_STRUCTURAL_ERROR,
    EXIT_SNAPSHOT_ERROR,
)

__all__ = [
    "DirsnapError",
    "AccessError",
    "IoError",
    "StructuralError",
    "PathTooLong",
    "EntryKind",
    "TreeListing",
    "classify_entry",
    "enumerate_tree",
    "check_path_length",
    "relative_path",
    "remap",
    "duplicate_file",
    "ensure_directory",
    "MANIFEST_NAME",
    "SymlinkRecord",
    "read_manifest",
    "replay_manifest",
    "write_manifest",
    "CopyOptions",
    "SnapshotEngine",
    "SnapshotError",
    "SnapshotInfo",
    "SnapshotResult",
    "RestoreEngine",
    "RestoreResult",
    "Configuration",
    "ConfigurationError",
    "ValidationError",
    "parse_config",
    "format_config",
    "create_default_config",
    "RepositoryLock",
    "LockError",
    "LoggingError",
    "setup_logging",
    "get_logger",
    "OperationResult",
    "run_backup",
    "run_restore",
    "EXIT_SUCCESS",
    "EXIT_CONFIG_ERROR",
    "EXIT_LOCK_ERROR",
    "EXIT_STRUCTURAL_ERROR",
    "EXIT_SNAPSHOT_ERROR",
]
