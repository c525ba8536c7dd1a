"""Symlink manifest for dirsnap snapshots.

Symbolic links are not copied into a snapshot. Instead each link's path
(relative to the tree root) and its raw target text are written to
``symlink_list.txt`` at the snapshot root, one line per link::

    /a/link1 -> /etc/passwd

At restore time the manifest is read back and every link is recreated with
the same target text, relative targets included.

Fields are escaped before writing so that the `` -> `` token can only ever
be the delimiter: backslash, newline and carriage return are written as
``\\\\``, ``\\n`` and ``\\r``, and every ``>`` is written as ``\\>``. Paths
without those characters are written unchanged, so plain manifests remain
readable.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple
import logging
import os

from dirsnap.errors import DirsnapError
from dirsnap.paths import DEFAULT_MAX_PATH_LENGTH, check_path_length, relative_path


logger = logging.getLogger(__name__)


MANIFEST_NAME = "symlink_list.txt"
DELIMITER = " -> "

_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    ">": "\\>",
}
_UNESCAPES = {
    "\\": "\\",
    "n": "\n",
    "r": "\r",
    ">": ">",
}


@dataclass(frozen=True)
class SymlinkRecord:
    """A symlink's path relative to its tree root and its raw target."""
    relative_path: str
    target: str


@dataclass
class ReplayResult:
    """Outcome of recreating links from a manifest."""
    manifest_found: bool
    created: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)


def escape_field(text: str) -> str:
    """Escape a path or target for one manifest line."""
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def unescape_field(text: str) -> str:
    """Reverse escape_field. Unknown escapes are kept literally."""
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text) and text[i + 1] in _UNESCAPES:
            out.append(_UNESCAPES[text[i + 1]])
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def format_record(record: SymlinkRecord) -> str:
    """Format one record as a manifest line, without the newline."""
    return f"{escape_field(record.relative_path)}{DELIMITER}{escape_field(record.target)}"


def parse_record(line: str) -> SymlinkRecord:
    """
    Parse one manifest line.

    Raises:
        ValueError: If the line has no delimiter
    """
    line = line.rstrip("\r\n")
    if DELIMITER not in line:
        raise ValueError(f"Missing '{DELIMITER.strip()}' delimiter")
    path_text, target_text = line.split(DELIMITER, 1)
    return SymlinkRecord(
        relative_path=unescape_field(path_text),
        target=unescape_field(target_text),
    )


def collect_records(
    symlinks: Iterable[str],
    source_root: str,
) -> Tuple[List[SymlinkRecord], List[Tuple[str, str]]]:
    """
    Read the target of every symlink found under ``source_root``.

    Targets are read now, at backup time, so the manifest captures each
    link as it existed when the snapshot was taken.

    Returns:
        Tuple of (records, failures) where failures are (path, message) pairs
    """
    records: List[SymlinkRecord] = []
    failures: List[Tuple[str, str]] = []
    for path in symlinks:
        try:
            target = os.readlink(path)
        except OSError as e:
            message = f"Cannot read link '{path}': {e.strerror or e}"
            logger.warning(message)
            failures.append((path, message))
            continue
        records.append(SymlinkRecord(relative_path(path, source_root), target))
    return records, failures


def write_manifest(records: Iterable[SymlinkRecord], snapshot_root: str) -> str:
    """
    Write the manifest file into ``snapshot_root``.

    Args:
        records: Records to write, in order
        snapshot_root: Snapshot directory that receives the manifest

    Returns:
        Path of the written manifest

    Raises:
        OSError: If the manifest cannot be written
    """
    manifest_path = os.path.join(snapshot_root, MANIFEST_NAME)
    with open(manifest_path, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
        for record in records:
            f.write(format_record(record) + "\n")
    return manifest_path


def read_manifest(manifest_path: str) -> List[SymlinkRecord]:
    """
    Read every record from a manifest file.

    Blank lines are ignored. Malformed lines are logged and skipped.

    Raises:
        FileNotFoundError: If the manifest does not exist
    """
    records: List[SymlinkRecord] = []
    with open(manifest_path, "r", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(parse_record(line))
            except ValueError as e:
                logger.warning(f"{manifest_path}:{line_number}: skipping malformed line: {e}")
    return records


def replay_manifest(
    manifest_path: str,
    dest_root: str,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> ReplayResult:
    """
    Recreate every symlink listed in a manifest under ``dest_root``.

    An existing file or link at a link's location is replaced. A manifest
    that is missing or cannot be read is not an error: the result reports
    ``manifest_found=False`` and the restore carries on without links.

    Args:
        manifest_path: Manifest to read
        dest_root: Root the relative link paths are joined onto
        max_path_length: Maximum accepted path length in bytes

    Returns:
        ReplayResult with counts and per-link failures
    """
    try:
        records = read_manifest(manifest_path)
    except FileNotFoundError:
        logger.warning(f"No symlink manifest at {manifest_path}, no links to restore")
        return ReplayResult(manifest_found=False)
    except OSError as e:
        message = f"Cannot read symlink manifest '{manifest_path}': {e.strerror or e}"
        logger.warning(message)
        return ReplayResult(manifest_found=False, failures=[(manifest_path, message)])

    result = ReplayResult(manifest_found=True)
    for record in records:
        link_path = dest_root.rstrip("/") + record.relative_path
        try:
            check_path_length(link_path, max_path_length)
            if os.path.lexists(link_path):
                if os.path.isdir(link_path) and not os.path.islink(link_path):
                    raise FileExistsError("a directory is in the way")
                os.unlink(link_path)
            os.symlink(record.target, link_path)
            result.created += 1
        except (OSError, DirsnapError) as e:
            message = f"Cannot create link '{link_path}' -> '{record.target}': {e}"
            logger.warning(message)
            result.failures.append((link_path, message))
    return result
