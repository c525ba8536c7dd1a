"""Snapshot engine for dirsnap.

This module provides the SnapshotEngine class that creates full snapshots of
a directory tree inside a repository. Each snapshot is a directory named
after its identifier (YYYYmmddHHMMSS_FULL) that mirrors the source tree and
carries a symlink manifest at its root.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
import logging
import os
import re
import shutil
import time

from dirsnap.errors import DirsnapError, StructuralError
from dirsnap.manifest import MANIFEST_NAME, collect_records, write_manifest
from dirsnap.materialize import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    duplicate_file,
    ensure_directory,
)
from dirsnap.paths import DEFAULT_MAX_PATH_LENGTH, check_path_length, child_path, remap
from dirsnap.tree import TreeListing, enumerate_tree


logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """Raised when snapshot creation fails as a whole."""
    pass


@dataclass
class CopyOptions:
    """Knobs shared by the snapshot and restore pipelines."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    file_mode: int = DEFAULT_FILE_MODE
    dir_mode: int = DEFAULT_DIR_MODE
    sort_entries: bool = True
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH


@dataclass
class SnapshotResult:
    """Result of a snapshot operation."""
    success: bool
    snapshot_id: str
    snapshot_path: Path
    directories_created: int = 0
    files_copied: int = 0
    symlinks_recorded: int = 0
    bytes_copied: int = 0
    duration_seconds: float = 0.0
    failures: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class SnapshotInfo:
    """Information about a snapshot."""
    snapshot_id: str
    path: Path
    created_at: datetime
    size_bytes: int
    file_count: int


def copy_directories(
    directories: List[str],
    source_root: str,
    dest_root: str,
    options: CopyOptions,
    failures: List[Tuple[str, str]],
) -> int:
    """Create every directory of a listing under ``dest_root``."""
    created = 0
    for directory in directories:
        target = remap(directory, source_root, dest_root)
        try:
            check_path_length(target, options.max_path_length)
            ensure_directory(target, options.dir_mode)
            created += 1
        except DirsnapError as e:
            logger.warning(str(e))
            failures.append((directory, str(e)))
    return created


def copy_files(
    files: List[str],
    source_root: str,
    dest_root: str,
    options: CopyOptions,
    failures: List[Tuple[str, str]],
) -> Tuple[int, int]:
    """
    Duplicate every file of a listing under ``dest_root``.

    Returns:
        Tuple of (files_copied, bytes_copied)
    """
    copied = 0
    total_bytes = 0
    for path in files:
        target = remap(path, source_root, dest_root)
        try:
            check_path_length(target, options.max_path_length)
            total_bytes += duplicate_file(
                path, target, chunk_size=options.chunk_size, mode=options.file_mode
            )
            copied += 1
        except DirsnapError as e:
            logger.warning(f"Skipping file: {e}")
            failures.append((path, str(e)))
    return copied, total_bytes


class SnapshotEngine:
    """
    Creates full snapshots of a directory tree in a repository.

    Snapshots are built in an ``in_progress_<id>`` staging directory and
    renamed to ``<id>`` once every entry has been processed. Per-entry
    failures are logged and reported but do not stop the snapshot.
    """

    # Timestamp format for snapshot identifiers
    TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

    # Literal suffix marking a full (non-incremental) snapshot
    FULL_SUFFIX = "_FULL"

    # Prefix for in-progress snapshots
    IN_PROGRESS_PREFIX = "in_progress_"

    _ID_PATTERN = re.compile(r"^(\d{14})(?:-(\d{2}))?_FULL$")

    def __init__(self, repository: Path, options: Optional[CopyOptions] = None):
        """
        Initialize the snapshot engine.

        Args:
            repository: Directory that holds the snapshots
            options: Copy options (chunk size, modes, ordering, path limit)
        """
        self.repository = Path(repository)
        self.options = options or CopyOptions()

    def _generate_timestamp(self) -> str:
        """Generate the YYYYmmddHHMMSS part of a snapshot identifier."""
        return datetime.now().strftime(self.TIMESTAMP_FORMAT)

    def _name_in_use(self, snapshot_id: str) -> bool:
        return (
            (self.repository / snapshot_id).exists()
            or (self.repository / f"{self.IN_PROGRESS_PREFIX}{snapshot_id}").exists()
        )

    def _generate_snapshot_id(self) -> str:
        """
        Generate a snapshot identifier that is not yet used in the repository.

        A second snapshot within the same second gets a sequence number
        (``YYYYmmddHHMMSS-NN_FULL``). If all 99 are taken, waits one second
        and tries again.
        """
        max_retries = 3

        for _ in range(max_retries):
            timestamp = self._generate_timestamp()
            snapshot_id = f"{timestamp}{self.FULL_SUFFIX}"
            if not self._name_in_use(snapshot_id):
                return snapshot_id

            for seq in range(1, 100):
                snapshot_id = f"{timestamp}-{seq:02d}{self.FULL_SUFFIX}"
                if not self._name_in_use(snapshot_id):
                    logger.debug(f"Timestamp collision detected, using sequence number: {snapshot_id}")
                    return snapshot_id

            logger.warning(f"All sequence numbers exhausted for {timestamp}, waiting 1 second")
            time.sleep(1)

        raise SnapshotError("Could not generate a unique snapshot identifier")

    def parse_snapshot_id(self, name: str) -> Optional[datetime]:
        """
        Parse a snapshot directory name into its creation time.

        Returns:
            datetime if ``name`` is a valid identifier, None otherwise
        """
        match = self._ID_PATTERN.match(name)
        if match is None:
            return None
        if match.group(2) is not None and match.group(2) == "00":
            return None
        try:
            return datetime.strptime(match.group(1), self.TIMESTAMP_FORMAT)
        except ValueError:
            return None

    def _sequence_number(self, name: str) -> int:
        """Return the collision sequence number of an identifier, 0 if none."""
        match = self._ID_PATTERN.match(name)
        if match is None or match.group(2) is None:
            return 0
        return int(match.group(2))

    def _exclude_reserved(
        self, listing: TreeListing, source_root: str, failures: List[Tuple[str, str]]
    ) -> None:
        """
        Drop a root-level source entry named like the manifest from a listing.

        The manifest owns that name at the snapshot root, so such a file or
        directory (with everything below it) is left out and reported.
        """
        reserved = child_path(source_root, MANIFEST_NAME)
        nested = reserved + "/"

        def keep(path: str) -> bool:
            return path != reserved and not path.startswith(nested)

        if all(keep(path) for path in listing.directories + listing.files):
            return

        listing.directories = [path for path in listing.directories if keep(path)]
        listing.files = [path for path in listing.files if keep(path)]
        listing.symlinks = [path for path in listing.symlinks if not path.startswith(nested)]
        message = f"Skipping '{reserved}': the name {MANIFEST_NAME} is reserved for the symlink manifest"
        logger.warning(message)
        failures.append((reserved, message))

    def create_snapshot(self, source: Path) -> SnapshotResult:
        """
        Create a new full snapshot of ``source``.

        Process:
        1. Validate the source tree
        2. Generate a unique snapshot identifier
        3. Create in_progress_<id>
        4. Enumerate the source tree
        5. Create every directory, then copy every file
        6. Write the symlink manifest
        7. Rename in_progress_<id> to <id>

        Args:
            source: Root of the tree to back up

        Returns:
            SnapshotResult with counts and per-entry failures

        Raises:
            StructuralError: If the source is missing or not a directory
            SnapshotError: If the snapshot cannot be staged or finalized
        """
        start_time = time.time()
        source_root = str(source)

        if not os.path.isdir(source_root) or os.path.islink(source_root):
            raise StructuralError(f"Source is not a directory: {source_root}", path=source_root)

        self.repository.mkdir(parents=True, exist_ok=True)
        snapshot_id = self._generate_snapshot_id()
        staging_path = self.repository / f"{self.IN_PROGRESS_PREFIX}{snapshot_id}"
        final_path = self.repository / snapshot_id
        staging_root = str(staging_path)

        logger.info(f"Creating snapshot {snapshot_id} of {source_root}")

        try:
            ensure_directory(staging_root, self.options.dir_mode)
        except DirsnapError as e:
            raise SnapshotError(f"Cannot create snapshot directory: {e}") from e

        try:
            listing = enumerate_tree(
                source_root,
                sort_entries=self.options.sort_entries,
                max_path_length=self.options.max_path_length,
            )
            failures = list(listing.failures)
            self._exclude_reserved(listing, source_root, failures)
            logger.info(
                f"Found {len(listing.directories)} directories, {len(listing.files)} files, "
                f"{len(listing.symlinks)} symlinks"
            )

            directories_created = copy_directories(
                listing.directories, source_root, staging_root, self.options, failures
            )
            files_copied, bytes_copied = copy_files(
                listing.files, source_root, staging_root, self.options, failures
            )

            records, link_failures = collect_records(listing.symlinks, source_root)
            failures.extend(link_failures)
            write_manifest(records, staging_root)

            os.rename(staging_path, final_path)
        except Exception as e:
            logger.error(f"Snapshot {snapshot_id} failed: {e}")
            shutil.rmtree(staging_path, ignore_errors=True)
            raise SnapshotError(f"Failed to create snapshot {snapshot_id}: {e}") from e

        if failures:
            logger.warning(f"Snapshot {snapshot_id} completed with {len(failures)} skipped entries")

        return SnapshotResult(
            success=True,
            snapshot_id=snapshot_id,
            snapshot_path=final_path,
            directories_created=directories_created,
            files_copied=files_copied,
            symlinks_recorded=len(records),
            bytes_copied=bytes_copied,
            duration_seconds=time.time() - start_time,
            failures=failures,
        )

    def get_snapshot(self, snapshot_id: str) -> Optional[Path]:
        """
        Find a complete snapshot by identifier.

        Returns:
            Path to the snapshot directory, or None if it does not exist or
            ``snapshot_id`` is not a snapshot identifier
        """
        if self.parse_snapshot_id(snapshot_id) is None:
            return None
        snapshot_path = self.repository / snapshot_id
        if snapshot_path.is_dir() and not snapshot_path.is_symlink():
            return snapshot_path
        return None

    def list_snapshots(self) -> List[SnapshotInfo]:
        """
        List complete snapshots in the repository, newest first.

        Ignores in_progress_* and hidden entries, and anything whose name is
        not a snapshot identifier.
        """
        if not self.repository.is_dir():
            return []

        snapshots = []
        for entry in self.repository.iterdir():
            if not entry.is_dir() or entry.name.startswith((".", self.IN_PROGRESS_PREFIX)):
                continue
            created_at = self.parse_snapshot_id(entry.name)
            if created_at is None:
                continue
            size_bytes, file_count = self._get_directory_stats(entry)
            snapshots.append(SnapshotInfo(
                snapshot_id=entry.name,
                path=entry,
                created_at=created_at,
                size_bytes=size_bytes,
                file_count=file_count,
            ))

        snapshots.sort(key=lambda s: (s.created_at, self._sequence_number(s.snapshot_id)), reverse=True)
        return snapshots

    def _get_directory_stats(self, path: Path) -> Tuple[int, int]:
        """
        Calculate total size and file count of a snapshot, manifest excluded.
        """
        listing = enumerate_tree(str(path), sort_entries=False)
        manifest_path = str(path / MANIFEST_NAME)
        total_size = 0
        file_count = 0
        for file_path in listing.files:
            if file_path == manifest_path:
                continue
            try:
                total_size += os.lstat(file_path).st_size
                file_count += 1
            except OSError:
                continue
        return total_size, file_count

    def cleanup_incomplete(self) -> int:
        """
        Remove in_progress_* directories left by interrupted runs.

        Returns:
            Count of directories removed
        """
        if not self.repository.is_dir():
            return 0

        removed_count = 0
        for entry in self.repository.iterdir():
            if entry.is_dir() and entry.name.startswith(self.IN_PROGRESS_PREFIX):
                try:
                    shutil.rmtree(entry)
                    removed_count += 1
                except OSError as e:
                    logger.warning(f"Could not remove incomplete snapshot {entry}: {e}")
        return removed_count
