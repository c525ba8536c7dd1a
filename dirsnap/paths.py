"""Path remapping between a source tree and a destination tree.

All paths handled by the engines are plain strings produced by a single
enumeration rooted at ``source_root``, so remapping is a prefix substitution.
No normalization is performed.
"""

import os

from dirsnap.errors import PathTooLong


# Default maximum path length in bytes (Linux PATH_MAX)
DEFAULT_MAX_PATH_LENGTH = 4096


def check_path_length(path: str, limit: int = DEFAULT_MAX_PATH_LENGTH) -> str:
    """
    Ensure a path fits within ``limit`` bytes once encoded for the OS.

    Args:
        path: Path to check
        limit: Maximum length in bytes

    Returns:
        The path, unchanged

    Raises:
        PathTooLong: If the encoded path is longer than ``limit``
    """
    length = len(os.fsencode(path))
    if length > limit:
        raise PathTooLong(
            f"Path is {length} bytes, exceeds limit of {limit}: {path[:80]}...",
            path=path,
        )
    return path


def child_path(directory: str, name: str) -> str:
    """Join a child name onto a directory with exactly one separator."""
    return directory.rstrip("/") + "/" + name


def relative_path(path: str, root: str) -> str:
    """
    Return the part of ``path`` below ``root``, e.g. ``/a/file1``.

    The result always starts with ``/`` (or is empty for the root itself),
    including when ``root`` is ``/``.

    Raises:
        ValueError: If ``path`` is not ``root`` or below it
    """
    prefix = root.rstrip("/")
    remainder = path[len(prefix):]
    if not path.startswith(prefix) or (remainder and not remainder.startswith("/")):
        raise ValueError(f"Path '{path}' is not under root '{root}'")
    return remainder


def remap(path: str, source_root: str, dest_root: str) -> str:
    """
    Convert a path under ``source_root`` into the same path under ``dest_root``.

    The remainder of ``path`` after the ``source_root`` prefix is appended
    verbatim to ``dest_root``.

    Args:
        path: Absolute path under source_root
        source_root: Root the path was enumerated from
        dest_root: Root to map onto

    Returns:
        The remapped path

    Raises:
        ValueError: If ``path`` does not start with ``source_root``
    """
    return dest_root.rstrip("/") + relative_path(path, source_root)
