"""One-way progress event stream and cooperative cancellation."""

import json
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from ..utils.logging import get_logger

logger = get_logger(__name__)

_CLOSED = object()


class EventKind(str, Enum):
    """Kinds of progress events."""

    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """A snapshot of batch progress."""

    kind: EventKind
    current: int
    total: int
    completed: int
    failed: int
    errors: tuple[str, ...] = field(default_factory=tuple)
    current_file: str | None = None
    message: str | None = None
    cancelled: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.kind is not EventKind.PROGRESS

    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys; optional fields are omitted when unset."""
        data: dict[str, Any] = {
            "type": self.kind.value,
            "current": self.current,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "errors": list(self.errors),
        }
        if self.current_file is not None:
            data["currentFile"] = self.current_file
        if self.message is not None:
            data["message"] = self.message
        if self.cancelled:
            data["cancelled"] = True
        return data

    def to_sse(self) -> str:
        """Server-sent-events framing of this event."""
        return f"data: {json.dumps(self.to_dict())}\n\n"


class CancellationToken:
    """
    Cooperative cancellation for a batch.

    Checked between items: the item in flight always finishes, and items not
    yet started are left untouched.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request that the batch stop after the current item."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressChannel:
    """
    Single-producer, single-consumer event stream with bounded buffering.

    The producer blocks while the buffer is full. Once the consumer detaches,
    further events are dropped so the producer can run to completion. The
    channel is closed exactly once, right after its terminal event.
    """

    def __init__(self, maxsize: int = 64):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._detached = threading.Event()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached.is_set()

    def _put(self, item) -> bool:
        while not self._detached.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def emit(self, event: ProgressEvent):
        """Send a non-terminal event."""
        if event.is_terminal:
            raise ValueError("Terminal events must be sent with finish()")
        if self._closed:
            raise RuntimeError("Progress channel is closed")
        if not self._put(event):
            logger.debug(f"Consumer gone, dropped {event.kind.value} event {event.current}")

    def finish(self, event: ProgressEvent):
        """Send the terminal event and close the channel."""
        if not event.is_terminal:
            raise ValueError("finish() requires a complete or error event")
        with self._lock:
            if self._closed:
                raise RuntimeError("Progress channel is closed")
            self._closed = True
        self._put(event)
        self._put(_CLOSED)

    def detach(self):
        """Consumer stops listening; pending and future events are discarded."""
        self._detached.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item
