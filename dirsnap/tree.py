"""Tree enumeration for dirsnap.

Walks a directory tree without following symbolic links and sorts every
entry into one of three path lists: directories, regular files and symlinks.
Directories always precede their descendants.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple
import logging
import os
import stat

from dirsnap.errors import AccessError, DirsnapError
from dirsnap.paths import DEFAULT_MAX_PATH_LENGTH, check_path_length, child_path


logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """Kind of a single filesystem entry, as seen by lstat."""
    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass
class TreeListing:
    """Paths collected by one traversal, in pre-order."""
    directories: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    symlinks: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.directories) + len(self.files) + len(self.symlinks)


def classify_entry(path: str) -> EntryKind:
    """
    Classify a path by its own type, never following symlinks.

    Args:
        path: Path to inspect

    Returns:
        The EntryKind of the entry

    Raises:
        AccessError: If the entry cannot be stat'ed (permission, vanished)
    """
    try:
        mode = os.lstat(path).st_mode
    except OSError as e:
        raise AccessError(f"Cannot inspect '{path}': {e.strerror or e}", path=path) from e

    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.REGULAR_FILE
    return EntryKind.OTHER


def _list_children(directory: str, sort_entries: bool) -> List[str]:
    """Return the child names of a directory."""
    try:
        with os.scandir(directory) as it:
            names = [entry.name for entry in it]
    except OSError as e:
        raise AccessError(
            f"Cannot open directory '{directory}': {e.strerror or e}",
            path=directory,
        ) from e
    if sort_entries:
        names.sort()
    return names


def enumerate_tree(
    root: str,
    sort_entries: bool = True,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> TreeListing:
    """
    Recursively enumerate ``root`` into directories, files and symlinks.

    Traversal is depth-first and pre-order, driven by an explicit stack.
    Symlinks are recorded but never descended into. Devices, sockets and
    fifos are skipped. An entry that cannot be inspected, or a directory
    that cannot be opened, is recorded in ``failures`` and the walk
    continues with its siblings.

    Args:
        root: Directory to enumerate (the root itself is not listed)
        sort_entries: Visit children in name order for deterministic output
        max_path_length: Maximum accepted path length in bytes

    Returns:
        TreeListing with the collected paths
    """
    listing = TreeListing()
    # Directories are recorded when popped, which yields pre-order
    stack: List[str] = [root]

    while stack:
        directory = stack.pop()
        if directory != root:
            listing.directories.append(directory)
        try:
            names = _list_children(directory, sort_entries)
        except AccessError as e:
            logger.warning(str(e))
            listing.failures.append((directory, str(e)))
            continue

        subdirectories: List[str] = []
        for name in names:
            path = child_path(directory, name)
            try:
                check_path_length(path, max_path_length)
                kind = classify_entry(path)
            except DirsnapError as e:
                logger.warning(f"Skipping entry: {e}")
                listing.failures.append((path, str(e)))
                continue

            if kind is EntryKind.DIRECTORY:
                subdirectories.append(path)
            elif kind is EntryKind.REGULAR_FILE:
                listing.files.append(path)
            elif kind is EntryKind.SYMLINK:
                listing.symlinks.append(path)
            else:
                logger.debug(f"Skipping special file: {path}")

        # Push in reverse so the first child is expanded next
        stack.extend(reversed(subdirectories))

    return listing
