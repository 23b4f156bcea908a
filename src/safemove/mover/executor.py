"""Single-item transfer: atomic rename first, copy + verify + delete as fallback."""

import errno
import os
import shutil
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from ..errors import (
    ConflictError,
    FilesystemError,
    IntegrityError,
    SafeMoveError,
)
from ..utils.filesystem import Presence, probe, remove_path
from ..utils.logging import get_logger
from ..verify import DEFAULT_CHUNK_SIZE, HashVerifier

logger = get_logger(__name__)


class Operation(str, Enum):
    """Requested transfer operation."""

    COPY = "copy"
    MOVE = "move"


class TransferStatus(str, Enum):
    """Per-item transfer result."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferRequest:
    """One item of a batch. Immutable once submitted."""

    source_path: str
    destination_path: str
    operation: Operation = Operation.MOVE
    overwrite_allowed: bool = False

    @property
    def display_name(self) -> str:
        """Short name used in progress events and error messages."""
        name = self.destination_path.replace("\\", "/").rstrip("/").split("/")[-1]
        if name:
            return name
        return self.source_path.replace("\\", "/").rstrip("/").split("/")[-1] or "file"

    def resolved(self, source: Path, destination: Path) -> "TransferRequest":
        """Copy of this request pointing at absolute, confined paths."""
        return replace(self, source_path=str(source), destination_path=str(destination))


@dataclass(frozen=True)
class TransferOutcome:
    """Result of executing one TransferRequest."""

    status: TransferStatus
    reason: str | None = None
    error_code: str | None = None
    method: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is TransferStatus.SUCCEEDED


def copy_exclusive(src: str, dst: str) -> str:
    """Copy one file with its timestamps, failing if ``dst`` already exists."""
    with open(src, "rb") as fsrc, open(dst, "xb") as fdst:
        shutil.copyfileobj(fsrc, fdst, DEFAULT_CHUNK_SIZE)
    shutil.copystat(src, dst)
    return dst


def copy_tree_exclusive(src: str, dst: str) -> None:
    """
    Copy a directory tree without replacing anything at the destination.

    Symlinks are copied as links. The copy stops at the first entry that
    already exists and raises FileExistsError; on any failure, entries this
    call created are removed and everything else is left alone.
    """
    # (destination, source, is_dir) in creation order
    created: list[tuple[str, str, bool]] = []
    try:
        os.mkdir(dst)
        created.append((dst, src, True))
        stack = [(src, dst)]

        while stack:
            src_dir, dst_dir = stack.pop()
            with os.scandir(src_dir) as entries:
                for entry in entries:
                    target = os.path.join(dst_dir, entry.name)
                    if entry.is_symlink():
                        os.symlink(os.readlink(entry.path), target)
                        created.append((target, entry.path, False))
                    elif entry.is_dir():
                        os.mkdir(target)
                        created.append((target, entry.path, True))
                        stack.append((entry.path, target))
                    else:
                        try:
                            copy_exclusive(entry.path, target)
                        except FileExistsError:
                            raise
                        except OSError:
                            created.append((target, entry.path, False))
                            raise
                        created.append((target, entry.path, False))

        # children first, so writing files does not disturb directory times
        for target, source, is_dir in reversed(created):
            if is_dir:
                shutil.copystat(source, target)
    except OSError:
        _roll_back(created)
        raise


def _roll_back(created: list[tuple[str, str, bool]]) -> None:
    for target, _, is_dir in reversed(created):
        try:
            if is_dir:
                os.rmdir(target)
            else:
                os.unlink(target)
        except FileNotFoundError:
            continue
        except OSError as e:
            # a directory still holding someone else's entry stays
            logger.debug(f"Kept {os.path.basename(target)} during rollback: {e.strerror}")


class TransferExecutor:
    """
    Performs one copy or move.

    Moves try an atomic rename first. When the rename fails (typically a
    cross-device move) or the operation is a copy, the item is copied,
    verified against the source by digest, and only then is the source
    removed. A source is never removed unless its copy verified.
    """

    def __init__(self, verifier: HashVerifier | None = None):
        """
        Initialize the executor.

        Args:
            verifier: HashVerifier used after copying (defaults to SHA-256)
        """
        self.verifier = verifier or HashVerifier()

    def execute(self, request: TransferRequest) -> TransferOutcome:
        """
        Execute a request whose paths are already absolute and confined.

        Never raises for per-item problems; every failure becomes an outcome.
        """
        name = request.display_name
        try:
            outcome = self._execute(request)
        except ConflictError as e:
            logger.warning(f"Skipped {name}: {e.message}")
            return TransferOutcome(TransferStatus.SKIPPED, e.message, e.code)
        except SafeMoveError as e:
            logger.error(f"Failed {name}: {e.message}")
            return TransferOutcome(TransferStatus.FAILED, e.message, e.code)
        except OSError as e:
            wrapped = FilesystemError.from_os_error(f"Failed: {name}", e)
            logger.error(wrapped.message)
            return TransferOutcome(TransferStatus.FAILED, wrapped.message, wrapped.code)

        logger.info(f"{request.operation.value.capitalize()} {name} ({outcome.method})")
        return outcome

    def _execute(self, request: TransferRequest) -> TransferOutcome:
        source = Path(request.source_path)
        destination = Path(request.destination_path)
        name = request.display_name

        source_probe = probe(source)
        if source_probe.state is Presence.ERROR:
            raise FilesystemError.from_os_error(f"Cannot access source {name}", source_probe.error)
        if source_probe.absent:
            raise FilesystemError(f"Source missing: {name}", errno=errno.ENOENT)

        dest_probe = probe(destination)
        if dest_probe.state is Presence.ERROR:
            raise FilesystemError.from_os_error(
                f"Cannot access destination {name}", dest_probe.error
            )
        if dest_probe.exists:
            if not request.overwrite_allowed:
                raise ConflictError(f"Already exists: {name}")
            logger.info(f"Overwriting existing destination: {name}")
            remove_path(destination)

        if request.operation is Operation.MOVE:
            try:
                os.rename(source, destination)
                return TransferOutcome(TransferStatus.SUCCEEDED, method="rename")
            except OSError as e:
                logger.debug(f"Rename failed for {name} ({e.strerror}), falling back to copy")

        self._copy(source, destination, source_probe.is_dir, name)

        verification = self.verifier.verify(source, destination)
        if not verification.valid:
            self._discard(destination, name)
            raise IntegrityError(
                f"Integrity mismatch for {name}: {verification.error}. Source preserved."
            )

        if request.operation is Operation.MOVE:
            try:
                remove_path(source)
            except OSError as e:
                raise FilesystemError.from_os_error(
                    f"Copied and verified {name}, but the source could not be removed", e
                ) from e

        return TransferOutcome(TransferStatus.SUCCEEDED, method="copy")

    def _copy(self, source: Path, destination: Path, is_dir: bool, name: str) -> None:
        """Recursive copy preserving timestamps; partial copies are removed on failure."""
        try:
            if is_dir:
                copy_tree_exclusive(str(source), str(destination))
            else:
                copy_exclusive(str(source), str(destination))
        except FileExistsError as e:
            # The existing entry belongs to someone else and is left in place.
            raise ConflictError(f"Destination appeared during copy: {name}") from e
        except OSError:
            # copy_tree_exclusive has already removed what it created
            if not is_dir:
                self._discard(destination, name)
            raise

    def _discard(self, destination: Path, name: str) -> None:
        """Best-effort removal of an unverified or partial copy."""
        try:
            remove_path(destination)
        except OSError as e:
            logger.warning(f"Could not remove partial copy of {name}: {e.strerror}")
