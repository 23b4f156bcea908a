"""Core module containing batch orchestration and progress streaming."""

from .coordinator import BatchCoordinator, BatchReport, BatchStream
from .preflight import ConflictChecker, ExistingDestination
from .progress import CancellationToken, EventKind, ProgressChannel, ProgressEvent
from .requests import BatchRequest, FileEntry, parse_file_entries, requests_into_folder

__all__ = [
    "BatchCoordinator",
    "BatchReport",
    "BatchStream",
    "BatchRequest",
    "FileEntry",
    "parse_file_entries",
    "requests_into_folder",
    "ConflictChecker",
    "ExistingDestination",
    "CancellationToken",
    "EventKind",
    "ProgressChannel",
    "ProgressEvent",
]
