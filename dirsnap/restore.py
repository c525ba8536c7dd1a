"""Restore engine for dirsnap.

Recreates a snapshot's directories, files and symlinks under an arbitrary
target directory.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
import logging
import os
import time

from dirsnap.errors import StructuralError
from dirsnap.manifest import MANIFEST_NAME, replay_manifest
from dirsnap.paths import child_path
from dirsnap.snapshot import CopyOptions, SnapshotEngine, copy_directories, copy_files
from dirsnap.tree import enumerate_tree


logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """Result of a restore operation."""
    success: bool
    snapshot_id: str
    snapshot_path: Path
    target_path: Path
    directories_created: int = 0
    files_copied: int = 0
    symlinks_created: int = 0
    bytes_copied: int = 0
    manifest_found: bool = True
    duration_seconds: float = 0.0
    failures: List[Tuple[str, str]] = field(default_factory=list)


class RestoreEngine:
    """
    Restores snapshots from a repository.

    The snapshot root is checked before anything is written: restoring an
    unknown identifier raises StructuralError and leaves the target alone.
    """

    def __init__(self, repository: Path, options: Optional[CopyOptions] = None):
        self.repository = Path(repository)
        self.options = options or CopyOptions()
        self._snapshots = SnapshotEngine(self.repository, self.options)

    def restore(self, snapshot_id: str, target: Path) -> RestoreResult:
        """
        Restore snapshot ``snapshot_id`` into ``target``.

        Process:
        1. Resolve the snapshot root (fail fast if missing)
        2. Create the target root if needed
        3. Enumerate the snapshot tree
        4. Create every directory, then copy every file (manifest excluded)
        5. Recreate symlinks from the manifest

        Args:
            snapshot_id: Identifier of the snapshot to restore
            target: Directory to restore into

        Returns:
            RestoreResult with counts and per-entry failures

        Raises:
            StructuralError: If the snapshot does not exist, or the target
                root cannot be created
        """
        start_time = time.time()

        snapshot_path = self._snapshots.get_snapshot(snapshot_id)
        if snapshot_path is None:
            raise StructuralError(
                f"Snapshot '{snapshot_id}' not found in {self.repository}",
                path=str(self.repository / snapshot_id),
            )

        snapshot_root = str(snapshot_path)
        target_root = str(target)
        logger.info(f"Restoring snapshot {snapshot_id} to {target_root}")

        try:
            os.makedirs(target_root, mode=self.options.dir_mode, exist_ok=True)
        except OSError as e:
            raise StructuralError(
                f"Cannot create restore target '{target_root}': {e.strerror or e}",
                path=target_root,
            ) from e

        listing = enumerate_tree(
            snapshot_root,
            sort_entries=self.options.sort_entries,
            max_path_length=self.options.max_path_length,
        )
        failures = list(listing.failures)

        manifest_path = child_path(snapshot_root, MANIFEST_NAME)
        files = [path for path in listing.files if path != manifest_path]

        directories_created = copy_directories(
            listing.directories, snapshot_root, target_root, self.options, failures
        )
        files_copied, bytes_copied = copy_files(
            files, snapshot_root, target_root, self.options, failures
        )

        replay = replay_manifest(manifest_path, target_root, self.options.max_path_length)
        if not replay.manifest_found and not replay.failures:
            failures.append((manifest_path, "Symlink manifest missing, no links restored"))
        failures.extend(replay.failures)

        if failures:
            logger.warning(f"Restore of {snapshot_id} completed with {len(failures)} problems")

        return RestoreResult(
            success=True,
            snapshot_id=snapshot_id,
            snapshot_path=snapshot_path,
            target_path=Path(target_root),
            directories_created=directories_created,
            files_copied=files_copied,
            symlinks_created=replay.created,
            bytes_copied=bytes_copied,
            manifest_found=replay.manifest_found,
            duration_seconds=time.time() - start_time,
            failures=failures,
        )
