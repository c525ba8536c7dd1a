"""Exception hierarchy for dirsnap.

Per-entry failures (AccessError, IoError, PathTooLong) are caught by the
engines, logged, and collected on the result. StructuralError aborts an
operation before anything is written.
"""


class DirsnapError(Exception):
    """Base class for all dirsnap errors."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class AccessError(DirsnapError):
    """Raised when an entry cannot be inspected, listed or created."""
    pass


class IoError(DirsnapError):
    """Raised when a file cannot be opened, read or written during a copy."""
    pass


class StructuralError(DirsnapError):
    """Raised when a source tree or snapshot root is missing or malformed."""
    pass


class PathTooLong(DirsnapError):
    """Raised when a path exceeds the configured maximum length."""
    pass
