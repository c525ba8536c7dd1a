"""Physical creation of directories and file copies.

Both operations overwrite rather than fail, so running them again over an
existing destination leaves it in the same state. A symlink found at the
destination is removed and replaced, never followed.
"""

import os

from dirsnap.errors import AccessError, IoError


# Owner-only permissions for everything dirsnap creates
DEFAULT_DIR_MODE = 0o700
DEFAULT_FILE_MODE = 0o600

# Size of each read during a file copy
DEFAULT_CHUNK_SIZE = 64 * 1024


def _remove_link(path: str, error_class) -> None:
    try:
        os.unlink(path)
    except OSError as e:
        raise error_class(f"Cannot replace link '{path}': {e.strerror or e}", path=path) from e


def ensure_directory(path: str, mode: int = DEFAULT_DIR_MODE) -> bool:
    """
    Create a directory if it does not already exist.

    Args:
        path: Directory to create
        mode: Permission bits for a newly created directory

    Returns:
        True if the directory was created, False if it already existed

    Raises:
        AccessError: If the directory cannot be created, or a file occupies
            the path
    """
    try:
        os.mkdir(path, mode)
        return True
    except FileExistsError:
        if os.path.islink(path):
            _remove_link(path, AccessError)
            return ensure_directory(path, mode)
        if os.path.isdir(path):
            return False
        raise AccessError(f"Cannot create directory '{path}': a file is in the way", path=path)
    except OSError as e:
        raise AccessError(f"Cannot create directory '{path}': {e.strerror or e}", path=path) from e


def duplicate_file(
    src: str,
    dest: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    mode: int = DEFAULT_FILE_MODE,
) -> int:
    """
    Copy the bytes of ``src`` into ``dest``, creating or truncating ``dest``.

    Args:
        src: File to read
        dest: File to write
        chunk_size: Bytes per read
        mode: Permission bits for a newly created ``dest``

    Returns:
        Number of bytes copied

    Raises:
        IoError: If either file cannot be opened, or a read or write fails
    """
    try:
        src_fd = os.open(src, os.O_RDONLY)
    except OSError as e:
        raise IoError(f"Cannot open '{src}' for reading: {e.strerror or e}", path=src) from e

    try:
        if os.path.islink(dest):
            _remove_link(dest, IoError)
        try:
            dest_fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW, mode)
        except OSError as e:
            raise IoError(f"Cannot open '{dest}' for writing: {e.strerror or e}", path=dest) from e

        try:
            copied = 0
            while True:
                try:
                    chunk = os.read(src_fd, chunk_size)
                except OSError as e:
                    raise IoError(f"Read failed on '{src}': {e.strerror or e}", path=src) from e
                if not chunk:
                    return copied
                view = memoryview(chunk)
                while view:
                    try:
                        written = os.write(dest_fd, view)
                    except OSError as e:
                        raise IoError(f"Write failed on '{dest}': {e.strerror or e}", path=dest) from e
                    view = view[written:]
                    copied += written
        finally:
            os.close(dest_fd)
    finally:
        os.close(src_fd)
