"""Batch orchestration: sequential transfers, progress, and post-move cleanup."""

import os
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Sequence

from ..config.models import SafeMoveConfig
from ..errors import ConfigurationError, FilesystemError, SafeMoveError, ValidationError
from ..guard import PathGuard, is_within, sanitize_relative
from ..mover import (
    Operation,
    TransferExecutor,
    TransferOutcome,
    TransferRequest,
    TransferStatus,
)
from ..utils.filesystem import Presence, depth, probe
from ..utils.logging import get_logger
from ..verify import HashVerifier
from .progress import CancellationToken, EventKind, ProgressChannel, ProgressEvent
from .requests import BatchRequest

logger = get_logger(__name__)


@dataclass
class BatchReport:
    """Aggregated result of a batch. Built incrementally, append-only."""

    batch_id: str
    total: int
    completed_count: int = 0
    failed_count: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: list[TransferOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """True when no item failed."""
        return self.failed_count == 0

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def message(self) -> str:
        if self.cancelled:
            return f"Cancelled after {self.attempted} of {self.total} item(s)"
        if self.failed_count == 0:
            return "All files processed successfully"
        return f"Completed with {self.failed_count} error(s)"

    def record(self, outcome: TransferOutcome):
        self.outcomes.append(outcome)
        if outcome.succeeded:
            self.completed_count += 1
        else:
            self.failed_count += 1
            self.errors.append(outcome.reason or "Failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "completed": self.completed_count,
            "failed": self.failed_count,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
            "message": self.message,
        }


def _failed(reason: str, code: str = ValidationError.code) -> TransferOutcome:
    return TransferOutcome(TransferStatus.FAILED, reason, code)


def _batch_size(batch) -> int:
    """Number of items a batch claims to hold, known even when it is rejected."""
    if isinstance(batch, BatchRequest):
        return len(batch.files)
    if isinstance(batch, Sequence) and not isinstance(batch, (str, bytes)):
        return len(batch)
    return 0


class BatchCoordinator:
    """
    Runs transfer requests from the source zone to the destination zone.

    Items run strictly one after another in submission order; one item's
    failure never stops the next. A ``progress`` event is emitted before
    each item starts. After a move batch with at least one success, source
    directories left empty are removed, deepest first.

    Two batches writing the same destination at the same time are not
    arbitrated; the last writer wins.
    """

    def __init__(
        self,
        source_root: Path | str,
        destination_root: Path | str,
        executor: TransferExecutor | None = None,
        guard: PathGuard | None = None,
        journal=None,
        cleanup_empty_dirs: bool = True,
        progress_buffer: int = 64,
    ):
        """
        Initialize the coordinator.

        Args:
            source_root: Absolute root of the source zone
            destination_root: Absolute root of the destination zone
            executor: TransferExecutor for single items
            guard: PathGuard used to confine every path
            journal: Optional TransferJournal recording each outcome
            cleanup_empty_dirs: Remove emptied source directories after moves
            progress_buffer: Capacity of the streaming progress channel
        """
        self.source_root = Path(os.path.abspath(source_root))
        self.destination_root = Path(os.path.abspath(destination_root))
        self.executor = executor or TransferExecutor()
        self.guard = guard or PathGuard()
        self.journal = journal
        self.cleanup_empty_dirs = cleanup_empty_dirs
        self.progress_buffer = progress_buffer

    @classmethod
    def from_config(cls, config: SafeMoveConfig, journal=None) -> "BatchCoordinator":
        """
        Build a coordinator from configuration.

        Raises:
            ConfigurationError: If a zone root is not configured.
        """
        verifier = HashVerifier(
            algorithm=config.transfer.hash_algorithm,
            chunk_size=config.transfer.chunk_size,
        )
        return cls(
            source_root=config.zones.root_for("source"),
            destination_root=config.zones.root_for("destination"),
            executor=TransferExecutor(verifier),
            journal=journal,
            cleanup_empty_dirs=config.transfer.cleanup_empty_dirs,
            progress_buffer=config.transfer.progress_buffer,
        )

    def run(
        self,
        batch: BatchRequest | Sequence[TransferRequest],
        channel: ProgressChannel | None = None,
        cancel: CancellationToken | None = None,
    ) -> BatchReport:
        """
        Run a batch to completion (or until cancelled).

        Args:
            batch: A BatchRequest or an ordered list of TransferRequests
            channel: Optional ProgressChannel receiving events; closed on return
            cancel: Optional token checked before each item

        Returns:
            BatchReport with per-item counts and errors

        Raises:
            ValidationError: If the request is malformed (before any item runs)
            ConfigurationError: If a zone root is unusable (before any item runs)
        """
        size = _batch_size(batch)
        try:
            requests = self._prepare(batch)
            report = self._run(requests, channel, cancel)
        except Exception as e:
            if channel is not None:
                reason = e.message if isinstance(e, SafeMoveError) else str(e) or "Unknown error"
                channel.finish(
                    ProgressEvent(
                        kind=EventKind.ERROR,
                        current=0,
                        total=size,
                        completed=0,
                        failed=size,
                        errors=(reason,),
                        message="Operation failed",
                    )
                )
            raise

        if channel is not None:
            channel.finish(
                ProgressEvent(
                    kind=EventKind.COMPLETE,
                    current=report.attempted if report.cancelled else report.total,
                    total=report.total,
                    completed=report.completed_count,
                    failed=report.failed_count,
                    errors=tuple(report.errors),
                    message=report.message,
                    cancelled=report.cancelled,
                )
            )
        return report

    def stream(
        self,
        batch: BatchRequest | Sequence[TransferRequest],
        cancel: CancellationToken | None = None,
    ) -> "BatchStream":
        """Run a batch on a worker thread and return an iterable of its events."""
        return BatchStream(self, batch, cancel).start()

    def _prepare(self, batch) -> list[TransferRequest]:
        if isinstance(batch, BatchRequest):
            requests = batch.to_requests()
        elif isinstance(batch, (str, bytes)) or not isinstance(batch, Sequence):
            raise ValidationError("files array is required")
        else:
            requests = list(batch)

        if not requests:
            raise ValidationError("files array is required")
        for request in requests:
            if not isinstance(request, TransferRequest):
                raise ValidationError("Every batch item must be a TransferRequest")

        for zone, root in (("source", self.source_root), ("destination", self.destination_root)):
            if not root.is_dir():
                raise ConfigurationError(f"The {zone} zone root is not an existing directory")

        return requests

    def _run(
        self,
        requests: Sequence[TransferRequest],
        channel: ProgressChannel | None,
        cancel: CancellationToken | None,
    ) -> BatchReport:
        report = BatchReport(batch_id=uuid.uuid4().hex, total=len(requests))
        created_dirs: set[Path] = set()
        cleanup_candidates: set[Path] = set()
        any_move_succeeded = False

        logger.info(f"Batch {report.batch_id}: {report.total} item(s)")

        for index, request in enumerate(requests, 1):
            if cancel is not None and cancel.cancelled:
                report.cancelled = True
                logger.warning(f"Batch {report.batch_id} cancelled before item {index}")
                break

            if channel is not None:
                channel.emit(
                    ProgressEvent(
                        kind=EventKind.PROGRESS,
                        current=index,
                        total=report.total,
                        completed=report.completed_count,
                        failed=report.failed_count,
                        errors=tuple(report.errors),
                        current_file=request.display_name,
                    )
                )

            outcome = self._process(request, created_dirs, cleanup_candidates)
            report.record(outcome)
            if outcome.succeeded and request.operation is Operation.MOVE:
                any_move_succeeded = True

            if self.journal is not None:
                self.journal.record(report.batch_id, request, outcome)

        if self.cleanup_empty_dirs and any_move_succeeded:
            self._cleanup(cleanup_candidates)

        logger.info(
            f"Batch {report.batch_id}: {report.completed_count} completed, "
            f"{report.failed_count} failed"
        )
        return report

    def _process(
        self,
        request: TransferRequest,
        created_dirs: set[Path],
        cleanup_candidates: set[Path],
    ) -> TransferOutcome:
        """Confine both paths, prepare the destination parent, then transfer."""
        source = self.guard.resolve(self.source_root, request.source_path)
        if not source.valid or source.absolute_path == Path(os.path.realpath(self.source_root)):
            return _failed(f"Invalid source: {request.source_path}")
        if request.operation is Operation.MOVE:
            cleanup_candidates.add(source.absolute_path.parent)

        # nothing is created in the destination for a source that is not there
        source_state = probe(source.absolute_path)
        if source_state.state is Presence.ERROR:
            wrapped = FilesystemError.from_os_error(
                f"Cannot access source {request.display_name}", source_state.error
            )
            return _failed(wrapped.message, wrapped.code)
        if source_state.absent:
            return _failed(f"Source missing: {request.display_name}", FilesystemError.code)

        try:
            relative = sanitize_relative(request.destination_path)
        except ValidationError:
            return _failed(f"Invalid destination: {request.destination_path}")

        lexical = Path(os.path.normpath(self.destination_root / relative))
        if not is_within(str(lexical), str(self.destination_root)):
            return _failed(f"Invalid path: {request.destination_path}")

        try:
            self._ensure_parent(lexical.parent, created_dirs)
        except ValidationError as e:
            return _failed(f"Invalid destination: {request.destination_path} ({e.message})")
        except OSError as e:
            wrapped = FilesystemError.from_os_error(f"Failed: {request.display_name}", e)
            return _failed(wrapped.message, wrapped.code)

        destination = self.guard.resolve(self.destination_root, relative)
        if not destination.valid:
            return _failed(f"Invalid destination: {request.destination_path} ({destination.error})")

        return self.executor.execute(
            request.resolved(source.absolute_path, destination.absolute_path)
        )

    def _ensure_parent(self, parent: Path, created_dirs: set[Path]):
        """
        Create the destination parent once per batch.

        The deepest existing ancestor must resolve inside the destination
        zone, so directories are never created through an escaping symlink.
        """
        if parent in created_dirs:
            return

        ancestor = parent
        state = probe(ancestor)
        while state.absent and ancestor != self.destination_root:
            ancestor = ancestor.parent
            state = probe(ancestor)
        if state.state is Presence.ERROR:
            raise state.error

        real_root = os.path.realpath(self.destination_root)
        if not is_within(os.path.realpath(ancestor), real_root):
            raise ValidationError("Symlink escape detected")

        if ancestor != parent:
            parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created folder: {os.path.relpath(parent, self.destination_root)}")
        created_dirs.add(parent)

    def _cleanup(self, directories: set[Path]):
        """Remove empty source directories, deepest first. Failures are ignored."""
        real_root = Path(os.path.realpath(self.source_root))
        for directory in sorted(directories, key=depth, reverse=True):
            if directory == real_root or not is_within(str(directory), str(real_root)):
                continue
            try:
                with os.scandir(directory) as entries:
                    if next(entries, None) is not None:
                        continue
                os.rmdir(directory)
                logger.info(f"Removed empty folder: {directory.relative_to(real_root).as_posix()}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove source folder: {e.strerror}")


class BatchStream:
    """
    Iterable of a running batch's progress events.

    Stopping iteration early detaches the consumer; the batch itself keeps
    running to completion on its worker thread.
    """

    def __init__(
        self,
        coordinator: BatchCoordinator,
        batch: BatchRequest | Sequence[TransferRequest],
        cancel: CancellationToken | None = None,
    ):
        self.coordinator = coordinator
        self.batch = batch
        self.cancel = cancel
        self.channel = ProgressChannel(maxsize=coordinator.progress_buffer)
        self.report: BatchReport | None = None
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._work, name="safemove-batch", daemon=True)

    def start(self) -> "BatchStream":
        self._thread.start()
        return self

    def _work(self):
        try:
            self.report = self.coordinator.run(self.batch, channel=self.channel, cancel=self.cancel)
        except SafeMoveError as e:
            self.error = e
            logger.error(f"Batch rejected: {e.message}")
        except Exception as e:
            self.error = e
            logger.exception("Batch failed")

    def __iter__(self) -> Iterator[ProgressEvent]:
        try:
            yield from self.channel
        finally:
            self.channel.detach()

    def close(self):
        """Stop listening without stopping the batch."""
        self.channel.detach()

    def join(self, timeout: float | None = None) -> BatchReport | None:
        """Wait for the worker thread; returns the report if the batch ran."""
        self._thread.join(timeout)
        return self.report
