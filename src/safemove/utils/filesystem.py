"""Filesystem helpers: existence probing and non-recursive tree traversal."""

import os
import shutil
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .logging import get_logger

logger = get_logger(__name__)


class Presence(str, Enum):
    """Outcome of probing a path."""

    EXISTS = "exists"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeResult:
    """Tri-state existence check result."""

    state: Presence
    is_dir: bool = False
    size: int = 0
    error: OSError | None = None

    @property
    def exists(self) -> bool:
        return self.state is Presence.EXISTS

    @property
    def absent(self) -> bool:
        return self.state is Presence.ABSENT


def probe(path: Path | str) -> ProbeResult:
    """
    Check whether a path exists without following a final symlink.

    A dangling symlink counts as existing. Only "not found" style errors map
    to ABSENT; anything else (permission denied, I/O error) is reported as
    ERROR so it is never mistaken for normal absence.
    """
    try:
        st = os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return ProbeResult(Presence.ABSENT)
    except OSError as e:
        return ProbeResult(Presence.ERROR, error=e)
    return ProbeResult(Presence.EXISTS, is_dir=stat.S_ISDIR(st.st_mode), size=st.st_size)


def walk_files(root: Path | str) -> list[str]:
    """
    List every regular file beneath ``root``.

    Returns POSIX-style paths relative to ``root``. Traversal uses an explicit
    stack; symlinks are neither followed nor listed.
    """
    root = Path(root)
    files: list[str] = []
    stack: list[tuple[Path, str]] = [(root, "")]

    while stack:
        directory, prefix = stack.pop()
        with os.scandir(directory) as entries:
            for entry in entries:
                rel = f"{prefix}{entry.name}"
                if entry.is_dir(follow_symlinks=False):
                    stack.append((Path(entry.path), rel + "/"))
                elif entry.is_file(follow_symlinks=False):
                    files.append(rel)

    return files


def remove_path(path: Path | str) -> None:
    """Remove a file, symlink or directory tree. Missing paths are ignored."""
    result = probe(path)
    if result.absent:
        return
    if result.state is Presence.ERROR:
        raise result.error
    if result.is_dir:
        shutil.rmtree(path)
    else:
        os.unlink(path)


def depth(path: Path | str) -> int:
    """Number of components in a path."""
    return len(Path(path).parts)
