"""Repository locking for dirsnap.

Backups and restores against the same repository are serialized with an
exclusive ``fcntl.flock`` on ``<repository>/.dirsnap.lock``. The lock file
records the holder's PID so a conflicting run can report who holds it.
"""

import fcntl
import os
import time
from pathlib import Path
from typing import Optional


LOCK_FILE_NAME = ".dirsnap.lock"


class LockError(Exception):
    """Raised when the repository lock cannot be acquired."""
    pass


class RepositoryLock:
    """
    Exclusive lock on one repository.

    The flock is the source of truth; the PID written into the file is
    informational. The lock is released when the descriptor is closed, so a
    crashed holder never leaves the repository locked.

    Implements context manager protocol for safe lock handling.
    """

    def __init__(self, repository: Path, timeout: float = 5):
        """
        Args:
            repository: Repository directory to lock (created if missing)
            timeout: Seconds to wait for a held lock before giving up
        """
        self.repository = Path(repository)
        self.lock_path = self.repository / LOCK_FILE_NAME
        self.timeout = timeout
        self._lock_fd: Optional[int] = None

    @property
    def acquired(self) -> bool:
        return self._lock_fd is not None

    def acquire(self) -> bool:
        """
        Acquire the lock, polling until ``timeout`` expires.

        Returns True if lock acquired.

        Raises:
            LockError: If the lock file cannot be opened, or another process
                holds the lock after the timeout.
        """
        if self._lock_fd is not None:
            return True

        try:
            self.repository.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as e:
            raise LockError(f"Cannot open lock file {self.lock_path}: {e}")

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    holder_pid = self.get_lock_holder_pid()
                    holder = f"process {holder_pid}" if holder_pid else "another process"
                    raise LockError(
                        f"Repository {self.repository} is locked by {holder} "
                        f"(waited {self.timeout}s)"
                    )
                time.sleep(0.1)

        self._lock_fd = fd
        self._write_pid()
        return True

    def release(self) -> None:
        """Release the lock. The lock file itself is left in place."""
        if self._lock_fd is None:
            return
        try:
            os.ftruncate(self._lock_fd, 0)
        except OSError:
            pass
        try:
            fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(self._lock_fd)
            self._lock_fd = None

    def is_locked(self) -> bool:
        """Check if the lock is currently held by any process."""
        if self._lock_fd is not None:
            return True
        if not self.lock_path.exists():
            return False

        try:
            fd = os.open(str(self.lock_path), os.O_RDONLY)
        except OSError:
            return False
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fd, fcntl.LOCK_UN)
            return False
        except BlockingIOError:
            return True
        finally:
            os.close(fd)

    def get_lock_holder_pid(self) -> Optional[int]:
        """Return PID recorded in the lock file, or None."""
        try:
            content = self.lock_path.read_text().strip()
            if content:
                return int(content)
        except (OSError, ValueError):
            pass
        return None

    def _write_pid(self) -> None:
        try:
            os.ftruncate(self._lock_fd, 0)
            os.lseek(self._lock_fd, 0, os.SEEK_SET)
            os.write(self._lock_fd, str(os.getpid()).encode())
        except OSError:
            pass  # PID is informational only

    def __enter__(self) -> "RepositoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False  # Don't suppress exceptions
