"""Path confinement for zone-relative paths."""

import os
from dataclasses import dataclass
from pathlib import Path

from ..errors import ValidationError
from ..utils.filesystem import Presence, probe
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PathValidationResult:
    """Result of confining a requested path to a zone root."""

    valid: bool
    absolute_path: Path | None = None
    error: str | None = None

    def raise_for_error(self) -> Path:
        """Return the absolute path, or raise ValidationError if rejected."""
        if not self.valid or self.absolute_path is None:
            raise ValidationError(self.error or "Invalid path")
        return self.absolute_path


def _rejected(error: str) -> PathValidationResult:
    return PathValidationResult(valid=False, error=error)


def is_within(path: str, root: str) -> bool:
    """True if ``path`` equals ``root`` or lies beneath it.

    ``/media-other`` is not within ``/media``.
    """
    return path == root or path.startswith(os.path.join(root, ""))


def normalize_separators(requested: str) -> str:
    """Convert backslashes to slashes and strip leading separators."""
    return requested.replace("\\", "/").lstrip("/")


def sanitize_relative(requested: str) -> str:
    """
    Clean an untrusted destination string before it is joined to a zone root.

    Leading slashes are stripped and ``.``/``..``/empty segments are dropped.

    Raises:
        ValidationError: If the string contains a NUL byte or nothing remains.
    """
    if "\0" in requested:
        raise ValidationError("Invalid path characters")
    parts = [
        part
        for part in normalize_separators(requested).split("/")
        if part not in ("", ".", "..")
    ]
    if not parts:
        raise ValidationError(f"Invalid destination: {requested}")
    return "/".join(parts)


class PathGuard:
    """
    Resolves requested paths against a zone root and rejects escapes.

    Containment is checked twice: lexically against the root as given, then
    against the symlink-resolved root once the path (or, for paths that do
    not exist yet, its immediate parent) is resolved on disk. Only one
    missing level is tolerated; a path whose parent is also missing is
    rejected.
    """

    def resolve(self, zone_root: Path | str, requested_path: str) -> PathValidationResult:
        """
        Confine ``requested_path`` to ``zone_root``.

        Args:
            zone_root: Absolute zone root directory
            requested_path: Zone-relative path supplied by the caller

        Returns:
            PathValidationResult; ``absolute_path`` is symlink-resolved when valid
        """
        if "\0" in requested_path:
            return _rejected("Invalid path characters")

        normalized = normalize_separators(requested_path)
        if ".." in normalized.split("/"):
            return _rejected("Path traversal detected")

        root = os.path.abspath(zone_root)
        full = os.path.normpath(os.path.join(root, normalized))
        if not is_within(full, root):
            return _rejected("Path traversal detected")

        real_root = os.path.realpath(root)
        target = probe(full)

        if target.exists:
            real_path = os.path.realpath(full)
            if not is_within(real_path, real_root):
                logger.warning(f"Symlink escape rejected: {requested_path}")
                return _rejected("Symlink escape detected")
            return PathValidationResult(valid=True, absolute_path=Path(real_path))

        if target.state is Presence.ERROR:
            return _rejected(f"Cannot access path: {target.error.strerror}")

        parent = os.path.dirname(full)
        parent_probe = probe(parent)
        if parent_probe.state is Presence.ERROR:
            return _rejected(f"Cannot access parent directory: {parent_probe.error.strerror}")
        if not parent_probe.exists:
            return _rejected("Parent directory does not exist")

        real_parent = os.path.realpath(parent)
        if not os.path.isdir(real_parent):
            return _rejected("Parent directory does not exist")
        if not is_within(real_parent, real_root):
            logger.warning(f"Parent escape rejected: {requested_path}")
            return _rejected("Invalid parent directory")

        return PathValidationResult(
            valid=True,
            absolute_path=Path(real_parent) / os.path.basename(full),
        )


@dataclass(frozen=True)
class Zone:
    """A named, root-confined filesystem area."""

    name: str
    root: Path

    def resolve(self, requested_path: str, guard: PathGuard | None = None) -> PathValidationResult:
        """Confine a path to this zone."""
        return (guard or PathGuard()).resolve(self.root, requested_path)

    def relative(self, absolute: Path | str) -> str:
        """Express an absolute path inside this zone as a zone-relative string."""
        real_root = os.path.realpath(self.root)
        absolute = os.fspath(absolute)
        for base in (real_root, os.path.abspath(self.root)):
            if is_within(absolute, base):
                return Path(os.path.relpath(absolute, base)).as_posix()
        raise ValidationError(f"Path is outside the {self.name} zone")
