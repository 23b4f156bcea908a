"""Error taxonomy for SafeMove."""


class SafeMoveError(Exception):
    """Base error carrying a stable code and a caller-safe message."""

    code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(SafeMoveError):
    """Malformed request, path traversal or symlink escape."""

    code = "VALIDATION"


class ConflictError(SafeMoveError):
    """Destination exists and overwriting is not allowed."""

    code = "CONFLICT"


class IntegrityError(SafeMoveError):
    """Post-copy digest mismatch."""

    code = "INTEGRITY"


class FilesystemError(SafeMoveError):
    """Permission, space or other I/O failure."""

    code = "FILESYSTEM"

    def __init__(self, message: str, *, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno

    @classmethod
    def from_os_error(cls, action: str, exc: OSError) -> "FilesystemError":
        """Wrap an OSError without leaking the absolute path it mentions."""
        reason = exc.strerror or exc.__class__.__name__
        return cls(f"{action}: {reason}", errno=exc.errno)


class ConfigurationError(SafeMoveError):
    """Zone root unset or unusable."""

    code = "CONFIGURATION"
